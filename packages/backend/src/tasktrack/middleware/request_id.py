"""Per-request correlation id and access log.

Learn: A caller (or a proxy in front of us) may send X-Request-ID; we
reuse it so one id follows the request across services. Anything
missing or unreasonably long is replaced with a fresh UUID, so a client
can't stuff arbitrary text into our logs.

The id lands in structlog's contextvars before the handler runs, which
means auth.token_rejected, tasks.created and every other event logged
while serving the request carries it. After the handler returns, one
"http.request" line records method, path, status and latency.
"""

import time
import uuid
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128


def _pick_request_id(incoming: Optional[str]) -> str:
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH:
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the log context and echo it back."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = _pick_request_id(request.headers.get(REQUEST_ID_HEADER))

        # Fresh context per request; the authenticator adds principal_id later
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        response: Response = await call_next(request)
        logger.info(
            "http.request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
