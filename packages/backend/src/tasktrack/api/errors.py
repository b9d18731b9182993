"""Error boundary — every failure becomes one JSON shape with one status.

Learn: Services raise typed exceptions (AuthError, TokenError,
ResourceError subclasses). This module is the single place that maps
each type to (status, title, client message). The mapping is by class,
never by inspecting message text.

Body shape for every error:
    {timestamp, status, error, message, path, details?}

Unexpected exceptions become a bare 500 — the traceback goes to the log,
never to the client.
"""

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tasktrack.auth.dependencies import UnauthenticatedError
from tasktrack.auth.jwt import TokenError
from tasktrack.auth.ownership import ResourceError, TaskNotFoundError
from tasktrack.auth.resolver import (
    AuthError,
    BadCredentialsError,
    EmailTakenError,
    PrincipalNotFoundError,
    PrincipalVanishedError,
    UsernameTakenError,
)

logger = structlog.get_logger()

_BAD_LOGIN = "Invalid username/email or password"
_TOKEN_REQUIRED = "A valid bearer token is required"

# (status, error title, client message). A None message means "use str(exc)".
ERROR_TABLE: dict[type[Exception], tuple[int, str, Optional[str]]] = {
    UsernameTakenError: (400, "Bad Request", None),
    EmailTakenError: (400, "Bad Request", None),
    # Unknown user and wrong password look identical from outside
    PrincipalNotFoundError: (401, "Invalid Credentials", _BAD_LOGIN),
    BadCredentialsError: (401, "Invalid Credentials", _BAD_LOGIN),
    PrincipalVanishedError: (401, "Unauthorized", _TOKEN_REQUIRED),
    TokenError: (401, "Unauthorized", _TOKEN_REQUIRED),
    UnauthenticatedError: (401, "Unauthorized", _TOKEN_REQUIRED),
    TaskNotFoundError: (404, "Not Found", None),
}


def _lookup(exc: Exception) -> tuple[int, str, Optional[str]]:
    for cls in type(exc).__mro__:
        if cls in ERROR_TABLE:
            return ERROR_TABLE[cls]
    raise LookupError(f"No error mapping for {type(exc).__name__}")


def error_body(
    request: Request,
    status: int,
    error: str,
    message: str,
    details: Optional[list[str]] = None,
) -> dict:
    body = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status,
        "error": error,
        "message": message,
        "path": request.url.path,
    }
    if details is not None:
        body["details"] = details
    return body


async def handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
    """AuthError / TokenError / ResourceError / UnauthenticatedError."""
    status, error, message = _lookup(exc)
    headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
    logger.info(
        "api.request_failed",
        status=status,
        reason=type(exc).__name__,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status,
        content=error_body(request, status, error, message or str(exc)),
        headers=headers,
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = []
    for err in exc.errors():
        # loc looks like ("body", "title"); drop the "body"/"path" prefix
        field = ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0])
        details.append(f"{field}: {err['msg']}")
    return JSONResponse(
        status_code=400,
        content=error_body(
            request, 400, "Validation Error", "Invalid data provided", details
        ),
    )


async def handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, _reason(exc.status_code), str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("api.unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body(
            request,
            500,
            "Internal Server Error",
            "An unexpected error occurred. Please try again later.",
        ),
    )


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


def register_error_handlers(app: FastAPI) -> None:
    for exc_class in (AuthError, TokenError, ResourceError, UnauthenticatedError):
        app.add_exception_handler(exc_class, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)
