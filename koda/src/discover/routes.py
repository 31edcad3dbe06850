from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError

from koda.core.exceptions import BadRequestException
from koda.core.logging import get_logger
from koda.core.security import get_current_user
from koda.src.discover.cache import SuggestionCache, get_suggestion_cache
from koda.src.discover.ranking import fetch_and_rank_suggestions
from koda.src.discover.schemas import Suggestion, SuggestionQuery
from koda.src.users.models import User

logger = get_logger(__name__)

router = APIRouter(prefix="/discover", tags=["discover"])


@router.get("/suggestions", response_model=list[Suggestion])
async def get_suggestions(
    city: str,
    slot_start: datetime,
    slot_end: datetime,
    radius_miles: float = 10,
    interests: str = Query(default="", description="Comma-separated interests"),
    timezone: str | None = Query(default=None, description="IANA zone of the city"),
    current_user: User = Depends(get_current_user),
    cache: SuggestionCache = Depends(get_suggestion_cache),
) -> list[Suggestion]:
    """Things to do near a city during a time slot."""
    try:
        query = SuggestionQuery(
            city=city,
            radius_miles=radius_miles,
            interests=[i.strip() for i in interests.split(",") if i.strip()],
            slot_start=slot_start,
            slot_end=slot_end,
            timezone=timezone,
        )
    except ValidationError as e:
        raise BadRequestException(e.errors()[0]["msg"]) from e

    logger.debug(f"Suggestions request from user {current_user.id} for {query.city}")
    return await fetch_and_rank_suggestions(query, cache)
