import logging
from typing import Dict, Optional

from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ChatError(Exception):
    """Base for failures that map onto a client-visible outcome."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, str]] = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthenticated(ChatError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(ChatError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(ChatError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ValidationFailed(ChatError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


def error_payload(exc: ChatError) -> Dict[str, object]:
    payload: Dict[str, object] = {"error": exc.message}
    if exc.details:
        payload["details"] = exc.details
    return payload


def error_response(exc: ChatError) -> JSONResponse:
    """Return a JSONResponse with a consistent structure and log details."""
    if exc.status_code >= 500:
        logger.error("%s %s", exc.message, exc.details or "")
    else:
        logger.info("%s (%s) %s", exc.message, exc.status_code, exc.details or "")
    return JSONResponse(status_code=exc.status_code, content=error_payload(exc))


def field_errors(errors) -> Dict[str, str]:
    """Flatten pydantic error dicts into ``{field: message}``."""
    result: Dict[str, str] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        result.setdefault(field, err.get("msg", "Invalid value"))
    return result
