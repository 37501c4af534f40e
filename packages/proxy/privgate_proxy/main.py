"""FastAPI application entry point for the private stock API."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from privgate.control_plane import ControlPlane
from privgate.infrastructure.config.settings import ControlPlaneSettings
from privgate_proxy.api import stock
from privgate_proxy.catalog import StockCatalog
from privgate_proxy.dependencies import get_settings
from privgate_proxy.middleware.gateway import AccessPolicyMiddleware, UsagePlanMiddleware
from privgate_proxy.middleware.security import SecurityHeadersMiddleware

# Initialize structured logger
logger = structlog.get_logger(__name__)


async def shutdown_control_plane(control_plane: ControlPlane, timeout: int) -> None:
    """Stop background tasks and close the usage store within the timeout."""
    logger.info("shutdown_started", message="Beginning graceful shutdown")
    try:
        await asyncio.wait_for(control_plane.stop(), timeout=timeout)
    except TimeoutError:
        logger.warning(
            "shutdown_timeout_exceeded",
            timeout_seconds=timeout,
            message=f"Shutdown timeout ({timeout}s) exceeded, forcing exit",
        )
        return
    except Exception as e:
        logger.error(
            "shutdown_error",
            error=str(e),
            message="Unexpected error during shutdown",
        )
        return
    logger.info("shutdown_completed", message="Graceful shutdown completed successfully")


def create_stock_app(
    control_plane: ControlPlane | None = None,
    settings: ControlPlaneSettings | None = None,
    catalog: StockCatalog | None = None,
) -> FastAPI:
    """Build the stock API application.

    Every request, on any path, passes the access policy (403) and then the
    usage plan gate (403/429) before routing.

    Args:
        control_plane: Control plane to gate requests with; built from
            settings when omitted.
        settings: Process settings; read from the environment when omitted.
        catalog: Stock listing to serve.
    """
    settings = settings or (control_plane.settings if control_plane else get_settings())
    control_plane = control_plane or ControlPlane(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "application_startup",
            message="Stock API starting up",
            background_tasks=settings.run_background_tasks,
        )
        if settings.run_background_tasks:
            await control_plane.start()
        else:
            await control_plane.initialize()
        logger.info("shutdown_timeout_configured", timeout_seconds=settings.shutdown_timeout_seconds)

        yield

        logger.info("shutdown_signal_received", message="Shutdown signal received")
        await shutdown_control_plane(control_plane, settings.shutdown_timeout_seconds)

    app = FastAPI(
        title="privgate stock API",
        version="0.1.0",
        description="Private stock API reachable only through the sanctioned endpoint",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.control_plane = control_plane
    app.state.settings = settings
    app.state.stock_catalog = catalog or StockCatalog()

    # Add middleware in order (last added is first executed)
    # Usage plan gate (innermost, executes last)
    app.add_middleware(UsagePlanMiddleware)

    # Access policy runs before the usage plan gate
    app.add_middleware(AccessPolicyMiddleware, provenance_header=settings.provenance_header)

    # Security headers outermost so rejections carry them too
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)

    app.include_router(stock.router, prefix=f"/{control_plane.config.stage}")
    return app
