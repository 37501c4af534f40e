"""Security headers middleware for the stock and orders services."""

from collections.abc import Callable
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Stock levels and gate rejections must never be served from a cache
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}
DEFAULT_CACHE_CONTROL = "no-store"
HSTS_VALUE = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamps SECURITY_HEADERS on every response, 403/429 rejections included.

    Cache-Control defaults to no-store unless a handler set its own.
    Strict-Transport-Security is added only when enabled and the request
    came in over HTTPS.
    """

    def __init__(self, app: Callable[..., Any], enable_hsts: bool = False) -> None:
        """Initialize security headers middleware.

        Args:
            app: ASGI application instance.
            enable_hsts: If True, add Strict-Transport-Security on HTTPS requests.
        """
        super().__init__(app)
        self._enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next: Callable[..., Any]) -> Response:
        response: Response = await call_next(request)

        response.headers.update(SECURITY_HEADERS)
        response.headers.setdefault("Cache-Control", DEFAULT_CACHE_CONTROL)
        if self._enable_hsts and request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = HSTS_VALUE

        return response
