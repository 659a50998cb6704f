import logging
from fastapi import HTTPException

logger = logging.getLogger(__name__)


def as_http_500(e: Exception, request_id: str = "unknown") -> HTTPException:
    """Log exception and return a generic 500 HTTPException (no internal details leaked).
    Why available: Centralized error handling so the API never leaks stack traces, provider messages or store internals to clients."""
    logger.error("unhandled_api_error", exc_info=e, extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
