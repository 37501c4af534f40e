"""HTTP client for the private stock API."""

import httpx
import structlog
from pydantic import BaseModel, ConfigDict

logger = structlog.get_logger(__name__)

API_KEY_HEADER = "x-api-key"


class StockPayload(BaseModel):
    """Raw body of a successful dependent call, relayed verbatim."""

    body: bytes
    content_type: str

    model_config = ConfigDict(frozen=True)


class StockServiceError(Exception):
    """The stock API answered with a non-success status."""

    def __init__(self, status_code: int, body: bytes, content_type: str) -> None:
        self.status_code = status_code
        self.body = body
        self.content_type = content_type
        super().__init__(f"Stock service returned {status_code}")


class StockServiceUnavailableError(Exception):
    """The stock API could not be reached (DNS, connect, TLS or timeout)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class StockClient:
    """Calls ``GET https://<domain>/<stage>/stock`` with the pre-shared key.

    The client does not retry; failures are surfaced to the caller.
    """

    def __init__(
        self,
        domain: str,
        api_key: str,
        stage: str = "prod",
        timeout: float = 10.0,
        verify: bool | str = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize StockClient.

        Args:
            domain: Internal domain of the stock API.
            api_key: Pre-shared key sent as x-api-key.
            stage: Base-path mapping of the stock API.
            timeout: Request timeout in seconds.
            verify: TLS verification (True, False or a CA bundle path).
            transport: Optional transport, used by tests to route in-process.
        """
        self._domain = domain
        self._api_key = api_key
        self._stage = stage
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=verify,
            transport=transport,
            follow_redirects=False,
        )

    @property
    def url(self) -> str:
        return f"https://{self._domain}/{self._stage}/stock"

    async def get_stock(self) -> StockPayload:
        """Fetch the stock listing.

        Raises:
            StockServiceError: If the stock API answered with a non-2xx status.
            StockServiceUnavailableError: If the request failed in transport.
        """
        logger.info("stock_call_started", url=self.url)
        try:
            response = await self._client.get(self.url, headers={API_KEY_HEADER: self._api_key})
        except httpx.HTTPError as e:
            logger.warning("stock_call_failed", url=self.url, error=str(e))
            raise StockServiceUnavailableError(f"Stock service unreachable: {e}") from e

        content_type = response.headers.get("content-type", "application/json")
        if not response.is_success:
            logger.warning("stock_call_rejected", url=self.url, status_code=response.status_code)
            raise StockServiceError(response.status_code, response.content, content_type)

        logger.info("stock_call_succeeded", url=self.url, status_code=response.status_code)
        return StockPayload(body=response.content, content_type=content_type)

    async def aclose(self) -> None:
        await self._client.aclose()
