"""Orders API endpoints.

Both endpoints make the dependent call to the private stock API and relay
its body verbatim. Nothing is retried.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.responses import Response

from privgate.infrastructure.config.settings import ControlPlaneSettings
from privgate_proxy.clients.stock_client import (
    StockClient,
    StockServiceError,
    StockServiceUnavailableError,
)
from privgate_proxy.dependencies import get_app_settings, get_stock_client

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["orders"])


async def call_stock(
    client: StockClient, settings: ControlPlaneSettings, operation: str
) -> Response:
    """Make the dependent call and map its outcome to a response.

    propagate: dependent status and body relayed as-is; transport failure is 502.
    bad_gateway: any dependent failure is a 502 JSON error.
    """
    try:
        payload = await client.get_stock()
    except StockServiceError as e:
        logger.warning(
            "dependent_call_rejected",
            operation=operation,
            status_code=e.status_code,
            failure_mode=settings.orders_failure_mode,
        )
        if settings.orders_failure_mode == "propagate":
            return Response(content=e.body, status_code=e.status_code, media_type=e.content_type)
        return JSONResponse(
            status_code=502,
            content={"detail": f"Stock service returned {e.status_code}"},
        )
    except StockServiceUnavailableError as e:
        logger.error("dependent_call_failed", operation=operation, error=e.message)
        return JSONResponse(status_code=502, content={"detail": "Stock service unavailable"})

    logger.info("dependent_call_succeeded", operation=operation)
    return Response(content=payload.body, status_code=200, media_type=payload.content_type)


@router.post("/orders")
async def create_order(
    client: Annotated[StockClient, Depends(get_stock_client)],
    settings: Annotated[ControlPlaneSettings, Depends(get_app_settings)],
) -> Response:
    """Create an order. Returns the stock listing obtained from the stock API."""
    return await call_stock(client, settings, operation="create_order")


@router.post("/smoke-test")
async def smoke_test(
    client: Annotated[StockClient, Depends(get_stock_client)],
    settings: Annotated[ControlPlaneSettings, Depends(get_app_settings)],
) -> Response:
    """Verify in-boundary resolution of the internal domain end to end."""
    return await call_stock(client, settings, operation="smoke_test")
