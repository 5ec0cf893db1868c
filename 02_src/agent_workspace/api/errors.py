"""Translation of domain errors into HTTP responses."""

from fastapi import HTTPException

from ..errors import WorkspaceError
from ..logging_config import get_logger

logger = get_logger(__name__)


def to_http(error: Exception) -> HTTPException:
    """Map a WorkspaceError to its status code; anything else is a 500."""
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, WorkspaceError):
        return HTTPException(status_code=error.status_code, detail=error.message)

    logger.error("Unhandled error in request: %s", error, exc_info=error)
    return HTTPException(status_code=500, detail=str(error))
