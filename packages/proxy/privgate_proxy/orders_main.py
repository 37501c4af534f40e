"""FastAPI application entry point for the orders API."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from privgate.infrastructure.config.settings import ControlPlaneSettings
from privgate.infrastructure.observability.logger import configure_logging
from privgate_proxy.api import orders
from privgate_proxy.clients.stock_client import StockClient
from privgate_proxy.dependencies import get_settings
from privgate_proxy.middleware.security import SecurityHeadersMiddleware

logger = structlog.get_logger(__name__)


def build_stock_client(settings: ControlPlaneSettings) -> StockClient:
    return StockClient(
        domain=settings.stock_domain,
        api_key=settings.orders_api_key.get_secret_value(),
        timeout=settings.stock_request_timeout_seconds,
        verify=settings.stock_ca_bundle or True,
    )


def create_orders_app(
    settings: ControlPlaneSettings | None = None,
    stock_client: StockClient | None = None,
) -> FastAPI:
    """Build the orders API application.

    Args:
        settings: Process settings; read from the environment when omitted.
        stock_client: Client for the dependent call; built from settings when omitted.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.json_logs)
    client = stock_client or build_stock_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "application_startup",
            message="Orders API starting up",
            stock_url=client.url,
            failure_mode=settings.orders_failure_mode,
        )
        yield
        try:
            await client.aclose()
            logger.info("shutdown_resource_closed", resource="http_client", status="success")
        except Exception as e:
            logger.warning(
                "shutdown_resource_error",
                resource="http_client",
                error=str(e),
                status="warning",
            )

    app = FastAPI(
        title="privgate orders API",
        version="0.1.0",
        description="Public orders API; calls the private stock API",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.stock_client = client

    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)
    app.include_router(orders.router)
    return app
