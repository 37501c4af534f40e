"""
Dependency injection setup for the privgate services.
"""

from functools import cache

from fastapi import Request

from privgate.control_plane import ControlPlane
from privgate.infrastructure.config.settings import ControlPlaneSettings
from privgate_proxy.catalog import StockCatalog
from privgate_proxy.clients.stock_client import StockClient


@cache
def get_settings() -> ControlPlaneSettings:
    """Get a singleton instance of the process settings."""
    return ControlPlaneSettings()


def get_control_plane(request: Request) -> ControlPlane:
    """Control plane owned by the stock application."""
    return request.app.state.control_plane  # type: ignore[no-any-return]


def get_stock_catalog(request: Request) -> StockCatalog:
    return request.app.state.stock_catalog  # type: ignore[no-any-return]


def get_stock_client(request: Request) -> StockClient:
    """Stock client owned by the orders application."""
    return request.app.state.stock_client  # type: ignore[no-any-return]


def get_app_settings(request: Request) -> ControlPlaneSettings:
    return request.app.state.settings  # type: ignore[no-any-return]
