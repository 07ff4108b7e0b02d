"""Exception handlers that render errors as ``{success: false, message, code}`` bodies."""

import logging
import traceback
from collections.abc import Awaitable, Callable
from typing import Any, cast

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from accounts_gate.core.config import settings
from accounts_gate.services.errors import AuthError, InternalAuthError

logger = logging.getLogger(__name__)

HttpExceptionHandler = Callable[[Request, Exception], Response | Awaitable[Response]]

# Generic codes for framework-raised HTTP errors
_HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "AUTH_REQUIRED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def _handle_auth_error(request: Request, exc: AuthError) -> Response:
    """Translate gate errors into their HTTP status and body."""
    if isinstance(exc, InternalAuthError):
        logger.error(f"Authentication error on {request.method} {request.url.path}: {exc.__cause__!r}")

    headers: dict[str, str] = {}
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "Route not found"
    else:
        message = str(exc.detail)
    body = {
        "success": False,
        "message": message,
        "code": _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
    }
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


def _handle_unexpected_error(request: Request, exc: Exception) -> Response:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    body: dict[str, Any] = {
        "success": False,
        "message": "Internal server error",
        "code": "INTERNAL_ERROR",
    }
    # Stack traces never leave the process outside development
    if settings.debug:
        body["stack"] = "".join(traceback.format_exception(exc))
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error handlers to the FastAPI app."""
    app.add_exception_handler(AuthError, cast(HttpExceptionHandler, _handle_auth_error))
    app.add_exception_handler(
        StarletteHTTPException, cast(HttpExceptionHandler, _handle_http_exception)
    )
    app.add_exception_handler(Exception, _handle_unexpected_error)
