"""Pytest configuration and shared fixtures for the stock and orders services."""

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from privgate.control_plane import ControlPlane
from privgate.infrastructure.config.settings import ControlPlaneSettings
from privgate.infrastructure.usage_store.memory_store import InMemoryUsageStore
from privgate_proxy.main import create_stock_app

ENDPOINT_ID = "vpce-stock-api"
ENDPOINT_ADDRESS = "10.2.0.10"


class FrozenClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class PeerAddress:
    """ASGI wrapper that makes every request come from a given peer address."""

    def __init__(self, app: FastAPI, address: str) -> None:
        self.app = app
        self.address = address

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "http":
            scope = {**scope, "client": (self.address, 50000)}
        await self.app(scope, receive, send)


class EntryPointStamp:
    """ASGI wrapper playing the private entry point.

    Requests leave from one of the endpoint's addresses with its id stamped.
    """

    def __init__(
        self,
        app: FastAPI,
        endpoint_id: str,
        address: str = ENDPOINT_ADDRESS,
        header: str = "x-source-endpoint-id",
    ) -> None:
        self.app = app
        self.endpoint_id = endpoint_id
        self.address = address
        self.header = header.encode()

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "http":
            headers = [(k, v) for k, v in scope["headers"] if k.lower() != self.header]
            headers.append((self.header, self.endpoint_id.encode()))
            scope = {**scope, "headers": headers, "client": (self.address, 50000)}
        await self.app(scope, receive, send)


@pytest.fixture
def settings() -> ControlPlaneSettings:
    return ControlPlaneSettings(run_background_tasks=False, redis_url=None, json_logs=False)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 14, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def control_plane(settings, clock) -> ControlPlane:
    return ControlPlane(settings=settings, usage_store=InMemoryUsageStore(), clock=clock)


@pytest.fixture
def stock_app(control_plane) -> FastAPI:
    return create_stock_app(control_plane=control_plane)


@pytest.fixture
def stock_client(stock_app) -> Iterator[TestClient]:
    """Client connecting from the entry point's address."""
    with TestClient(PeerAddress(stock_app, ENDPOINT_ADDRESS)) as client:
        yield client


@pytest.fixture
def client_from(stock_app, stock_client) -> Callable[[str], TestClient]:
    """Clients connecting from arbitrary peers, sharing the started app."""

    def make(address: str) -> TestClient:
        return TestClient(PeerAddress(stock_app, address))

    return make


@pytest.fixture
def entry_point(stock_app) -> EntryPointStamp:
    """The stock app as seen through the sanctioned endpoint."""
    return EntryPointStamp(stock_app, ENDPOINT_ID)
