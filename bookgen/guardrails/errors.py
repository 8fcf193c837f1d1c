import logging

from fastapi import HTTPException

logger = logging.getLogger(__name__)


def as_http_500(e: Exception) -> HTTPException:
    """Log the exception and return a generic 500 HTTPException (no internal details leaked).
    Why available: Control API handlers never expose worker internals or backend payloads to clients."""
    logger.error("control_api_error", exc_info=e)
    return HTTPException(status_code=500, detail="Internal server error")
