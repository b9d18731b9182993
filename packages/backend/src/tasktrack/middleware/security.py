"""Response hardening for a token-issuing JSON API.

Learn: TaskTrack never serves HTML, so the headers here are about two
things: browsers must not reinterpret or frame our JSON, and bearer
tokens must not be kept anywhere after they are handed out.

- BASELINE_HEADERS go on every response, error responses included.
- /auth/* responses carry a fresh token (or the caller's profile), so
  they are marked Cache-Control: no-store.
- HSTS is only meaningful when the request already arrived over TLS.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

BASELINE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

TOKEN_PATH_PREFIX = "/auth/"
HSTS_VALUE = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp hardening headers onto whatever the app returned."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers.update(BASELINE_HEADERS)

        if request.url.path.startswith(TOKEN_PATH_PREFIX):
            response.headers["Cache-Control"] = "no-store"
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = HSTS_VALUE
        return response
