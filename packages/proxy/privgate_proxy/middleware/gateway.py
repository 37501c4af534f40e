"""Access policy and usage plan middleware for the stock API."""

from collections.abc import Callable
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from privgate.control_plane import ControlPlane
from privgate.domain.models.system_error import GatewayError

# Initialize structured logger
logger = structlog.get_logger(__name__)

API_KEY_HEADER = "x-api-key"


def error_response(error: GatewayError) -> JSONResponse:
    """Render a gateway error as a JSON response with the right status."""
    headers: dict[str, str] = {}
    content: dict[str, Any] = {"detail": error.message}
    if error.retry_after is not None:
        headers["Retry-After"] = str(error.retry_after)
        content["retry_after"] = error.retry_after
    return JSONResponse(status_code=error.status_code, content=content, headers=headers)


def stage_relative_path(path: str, stage: str) -> str:
    """Strip the base-path mapping, e.g. '/prod/stock' -> '/stock'."""
    prefix = f"/{stage}"
    if path == prefix:
        return "/"
    if path.startswith(f"{prefix}/"):
        return path[len(prefix):]
    return path


def _control_plane(request: Request) -> ControlPlane:
    return request.app.state.control_plane  # type: ignore[no-any-return]


class AccessPolicyMiddleware(BaseHTTPMiddleware):
    """Denies (403) every request that did not arrive through the sanctioned endpoint.

    Provenance is only taken from a peer that is one of the entry point's
    addresses; the header it stamps is ignored from anyone else. Unknown
    provenance is denied. Applies to every path, including '/'.
    """

    def __init__(self, app: Callable[..., Any], provenance_header: str = "x-source-endpoint-id") -> None:
        """Initialize access policy middleware.

        Args:
            app: ASGI application instance.
            provenance_header: Header carrying the source endpoint id.
        """
        super().__init__(app)
        self._provenance_header = provenance_header

    async def dispatch(self, request: Request, call_next: Callable[..., Any]) -> Response:
        control_plane = _control_plane(request)
        peer = request.client.host if request.client else None
        stamped = request.headers.get(self._provenance_header)
        source_endpoint_id = control_plane.resolve_source_endpoint(stamped, peer)
        if stamped and source_endpoint_id is None:
            logger.warning("provenance_header_ignored", peer=peer, path=request.url.path)
        path = stage_relative_path(request.url.path, control_plane.config.stage)
        try:
            await control_plane.check_access(request.method, path, source_endpoint_id)
        except GatewayError as e:
            logger.info(
                "request_denied",
                path=request.url.path,
                method=request.method,
                source_endpoint_id=source_endpoint_id,
                category=e.category.value,
            )
            return error_response(e)

        request.state.source_endpoint_id = source_endpoint_id
        return await call_next(request)  # type: ignore[no-any-return]


class UsagePlanMiddleware(BaseHTTPMiddleware):
    """Authenticates the x-api-key and applies throttle and quota (403/429).

    Unauthenticated requests, including health probes, get 403.
    """

    async def dispatch(self, request: Request, call_next: Callable[..., Any]) -> Response:
        control_plane = _control_plane(request)
        path = stage_relative_path(request.url.path, control_plane.config.stage)
        try:
            result = await control_plane.authorize(
                request.method, path, request.headers.get(API_KEY_HEADER)
            )
        except GatewayError as e:
            logger.info(
                "request_rejected",
                path=request.url.path,
                method=request.method,
                category=e.category.value,
                retry_after=e.retry_after,
            )
            return error_response(e)

        request.state.identity_id = result.identity_id
        response = await call_next(request)
        if result.remaining_quota is not None:
            response.headers["X-RateLimit-Remaining-Quota"] = str(result.remaining_quota)
        return response  # type: ignore[no-any-return]
