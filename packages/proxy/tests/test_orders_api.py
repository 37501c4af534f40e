"""Tests for the orders API and its dependent call to the stock API."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from privgate.infrastructure.config.settings import ControlPlaneSettings
from privgate_proxy.clients.stock_client import StockClient
from privgate_proxy.orders_main import build_stock_client, create_orders_app

STOCK_BODY = b'{"stock":[{"stockId":7,"description":"Bolt"}]}'


def _stock_client(handler) -> StockClient:
    return StockClient(
        domain="stock.yourdomain.co.uk",
        api_key="super-secret-api-key",
        transport=httpx.MockTransport(handler),
    )


def _orders_client(handler, failure_mode: str = "propagate") -> TestClient:
    settings = ControlPlaneSettings(orders_failure_mode=failure_mode)
    return TestClient(create_orders_app(settings=settings, stock_client=_stock_client(handler)))


class TestCreateOrder:
    """Tests for POST /orders."""

    def test_relays_stock_body_verbatim(self) -> None:
        """Test that the stock API body is returned byte for byte."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, content=STOCK_BODY, headers={"content-type": "application/json"}
            )

        with _orders_client(handler) as client:
            response = client.post("/orders")

        assert response.status_code == 200
        assert response.content == STOCK_BODY
        assert str(seen[0].url) == "https://stock.yourdomain.co.uk/prod/stock"
        assert seen[0].headers["x-api-key"] == "super-secret-api-key"

    @pytest.mark.parametrize("status_code", [403, 429])
    def test_propagate_mode_relays_rejection(self, status_code: int) -> None:
        """Test that dependent rejections are relayed with their status and body."""
        body = json.dumps({"detail": "Too Many Requests"}).encode()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                status_code, content=body, headers={"content-type": "application/json"}
            )

        with _orders_client(handler) as client:
            response = client.post("/orders")

        assert response.status_code == status_code
        assert response.content == body

    def test_bad_gateway_mode(self) -> None:
        """Test that bad_gateway mode maps dependent failures to 502."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"detail": "Too Many Requests"})

        with _orders_client(handler, failure_mode="bad_gateway") as client:
            response = client.post("/orders")

        assert response.status_code == 502
        assert response.json() == {"detail": "Stock service returned 429"}

    @pytest.mark.parametrize("failure_mode", ["propagate", "bad_gateway"])
    def test_transport_failure_is_502(self, failure_mode: str) -> None:
        """Test that an unreachable stock API gives 502 in either mode."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Name or service not known", request=request)

        with _orders_client(handler, failure_mode=failure_mode) as client:
            response = client.post("/orders")

        assert response.status_code == 502
        assert response.json() == {"detail": "Stock service unavailable"}

    def test_no_retry(self) -> None:
        """Test that a failing dependent call is made exactly once."""
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        with _orders_client(handler) as client:
            client.post("/orders")

        assert len(calls) == 1

    def test_get_not_allowed(self) -> None:
        """Test that only POST is routed."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=STOCK_BODY)

        with _orders_client(handler) as client:
            response = client.get("/orders")

        assert response.status_code == 405


class TestSmokeTest:
    """Tests for POST /smoke-test."""

    def test_smoke_test_calls_stock(self) -> None:
        """Test that the smoke test makes the same dependent call."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=STOCK_BODY, headers={"content-type": "application/json"}
            )

        with _orders_client(handler) as client:
            response = client.post("/smoke-test")

        assert response.status_code == 200
        assert response.json() == {"stock": [{"stockId": 7, "description": "Bolt"}]}
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestBuildStockClient:
    """Tests for building the client from settings."""

    def test_url_from_settings(self) -> None:
        """Test that the internal domain comes from settings."""
        settings = ControlPlaneSettings(stock_domain="stock.internal.example.com")

        client = build_stock_client(settings)

        assert client.url == "https://stock.internal.example.com/prod/stock"
