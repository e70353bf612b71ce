# errors.py
"""
Error taxonomy and the uniform JSON envelope.

Every failure leaves the API as
``{"success": false, "message": ..., "errors": [...]?, ...extra}``.
Route code raises the ``APIError`` subclasses below (they are plain
``HTTPException``s, so FastAPI's own machinery still applies); the handlers
installed by ``install_error_handlers`` do the rendering.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from designspace.settings import settings

logger = logging.getLogger(__name__)


# ===================================================================
# Taxonomy
# ===================================================================

class APIError(HTTPException):
    """Base class; subclasses fix the status code and default message."""

    code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Something went wrong"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        errors: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=self.code, detail=message or self.default_message, headers=headers)
        self.errors = errors
        self.extra = extra or {}


class ValidationFailed(APIError):
    code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class InvalidState(APIError):
    code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Unauthenticated(APIError):
    code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"

    def __init__(self, message: Optional[str] = None, **kwargs):
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kwargs)


class Forbidden(APIError):
    code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFound(APIError):
    code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Conflict(APIError):
    code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class Internal(APIError):
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"


class ServiceUnavailable(APIError):
    code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "External service unavailable"


class SubscriptionRequired(Forbidden):
    """403 carrying the plan the caller needs and the plan they have."""

    def __init__(self, required_plan: str, current_plan: Optional[str], message: Optional[str] = None):
        # Anonymous callers count as free.
        super().__init__(
            message or f"{required_plan} subscription required",
            extra={"requiredPlan": required_plan, "currentPlan": current_plan or "free"},
        )


# ===================================================================
# Rendering
# ===================================================================

def error_response(
    status_code: int,
    message: str,
    errors: Optional[List[Dict[str, Any]]] = None,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _field_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    details = []
    for err in exc.errors():
        # Drop the "body"/"query"/"path" prefix FastAPI puts on every location.
        loc = [str(part) for part in err.get("loc", ())]
        location = loc[0] if loc else None
        field = ".".join(loc[1:]) if len(loc) > 1 else (location or "")
        details.append({
            "field": field,
            "location": location,
            "message": err.get("msg", "Invalid value"),
            "type": err.get("type"),
        })
    return details


async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", errors=_field_errors(exc))


async def _http_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc, APIError):
        return error_response(exc.status_code, str(exc.detail), errors=exc.errors, headers=exc.headers, **exc.extra)
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    message = str(exc) if settings.is_development else "Something went wrong!"
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


def install_error_handlers(app: FastAPI) -> None:
    from starlette.exceptions import HTTPException as StarletteHTTPException

    app.add_exception_handler(RequestValidationError, _validation_handler)
    # Starlette's base class also covers routing 404/405s.
    app.add_exception_handler(StarletteHTTPException, _http_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
