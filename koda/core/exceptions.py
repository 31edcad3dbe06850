from fastapi import HTTPException, status


class NotFoundException(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class UnauthorizedException(HTTPException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class BadRequestException(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class AlreadyExistsException(HTTPException):
    def __init__(self, detail: str = "Already exists"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ForbiddenException(HTTPException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class SyncInProgressException(HTTPException):
    def __init__(self, detail: str = "A calendar sync is already running"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class SyncError(Exception):
    """Base class for calendar sync failures."""


class ConfigurationError(SyncError):
    """The user has no Google Calendar connection."""


class ProviderError(SyncError):
    """A Google Calendar API call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(SyncError):
    """A remote event is missing fields required to import it."""


class StoreError(SyncError):
    """A database operation failed during sync."""
