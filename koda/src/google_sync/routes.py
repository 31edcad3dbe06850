from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.database import get_session
from koda.core.exceptions import NotFoundException, ProviderError, StoreError
from koda.core.logging import get_logger
from koda.core.security import get_current_user
from koda.src.events.models import EventSource
from koda.src.events.repository import EventRepository
from koda.src.google_sync.client import GoogleCalendarClient, get_google_client
from koda.src.google_sync.repository import ConnectionRepository, MappingRepository
from koda.src.google_sync.schemas import (
    ConnectionSettingsUpdate,
    ConnectionStatusResponse,
    ConnectRequest,
    DisconnectResponse,
    SyncResponse,
)
from koda.src.google_sync.service import GoogleSyncService
from koda.src.users.models import User

logger = get_logger(__name__)

router = APIRouter(prefix="/integrations/google", tags=["google-calendar"])


def _status(connection) -> ConnectionStatusResponse:
    if connection is None:
        return ConnectionStatusResponse(connected=False)
    return ConnectionStatusResponse(
        connected=True,
        calendar_id=connection.calendar_id,
        push_enabled=connection.push_enabled,
        sync_window_past_days=connection.sync_window_past_days,
        sync_window_future_days=connection.sync_window_future_days,
        last_synced_at=connection.last_synced_at,
        last_sync_status=connection.last_sync_status,
        last_sync_error=connection.last_sync_error,
        last_sync_error_count=connection.last_sync_error_count,
        last_sync_failed_at=connection.last_sync_failed_at,
    )


@router.post("/connect", response_model=ConnectionStatusResponse)
async def connect(
    request: ConnectRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ConnectionStatusResponse:
    """Store Google credentials and sync settings for the current user."""
    logger.debug(f"Connecting Google Calendar for user {current_user.id}")
    connection = await ConnectionRepository(session).upsert(
        current_user.id, **request.model_dump()
    )
    await session.commit()
    logger.info(f"Google Calendar connected for user {current_user.id}")
    return _status(connection)


@router.patch("/settings", response_model=ConnectionStatusResponse)
async def update_settings(
    request: ConnectionSettingsUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ConnectionStatusResponse:
    """Change push and sync window settings."""
    repository = ConnectionRepository(session)
    connection = await repository.get_by_user(current_user.id)
    if connection is None:
        raise NotFoundException("Google Calendar is not connected")
    await repository.update(connection, **request.model_dump(exclude_unset=True))
    await session.commit()
    return _status(connection)


@router.get("/status", response_model=ConnectionStatusResponse)
async def get_status(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ConnectionStatusResponse:
    """Get connection state and the outcome of the last sync."""
    connection = await ConnectionRepository(session).get_by_user(current_user.id)
    return _status(connection)


@router.post("/sync", response_model=SyncResponse)
async def sync(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    client: GoogleCalendarClient = Depends(get_google_client),
) -> SyncResponse:
    """Run a full two-way sync for the current user."""
    logger.debug(f"Sync triggered by user {current_user.id}")
    try:
        summary = await GoogleSyncService(session, client).sync_all(current_user.id)
    except (ProviderError, StoreError) as e:
        logger.error(f"Google sync failed: {str(e)}")
        return SyncResponse(success=False, message=str(e))

    return SyncResponse(
        success=summary.failed == 0,
        message=(
            f"Pulled {summary.pulled}, updated {summary.updated}, "
            f"deleted {summary.deleted}, pushed {summary.pushed}"
        ),
        result=summary,
    )


@router.post("/disconnect", response_model=DisconnectResponse)
async def disconnect(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> DisconnectResponse:
    """Remove the Google connection, its mappings and the imported events."""
    connections = ConnectionRepository(session)
    connection = await connections.get_by_user(current_user.id)
    if connection is None:
        raise NotFoundException("Google Calendar is not connected")

    removed = await MappingRepository(session).delete_for_user(current_user.id)
    removed_events = await EventRepository(session).delete_by_source(
        current_user.id, EventSource.GOOGLE
    )
    await connections.delete(connection)
    await session.commit()
    logger.info(f"Google Calendar disconnected for user {current_user.id}, {removed} mappings removed")
    return DisconnectResponse(ok=True, removed_mappings=removed, removed_events=removed_events)
