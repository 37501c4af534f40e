"""HTTP(S) health prober for router targets."""

import time

import httpx

from privgate.domain.interfaces.health_prober import HealthProber, ProbeResult
from privgate.domain.models.target import HealthCheckSettings, Target


class HttpHealthProber(HealthProber):
    """Sends an unauthenticated GET to a target and reports the status code.

    Targets are addressed by IP while their certificate names the service
    domain, so certificate verification is off for probes. Only reachability
    and the status code matter.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Initialize HttpHealthProber.

        Args:
            transport: Optional httpx transport (for testing).
        """
        self._transport = transport

    @staticmethod
    def build_url(target: Target, settings: HealthCheckSettings) -> str:
        host = f"[{target.address}]" if ":" in target.address else target.address
        port = settings.port or target.port
        path = settings.path if settings.path.startswith("/") else f"/{settings.path}"
        return f"{settings.protocol}://{host}:{port}{path}"

    async def probe(self, target: Target, settings: HealthCheckSettings) -> ProbeResult:
        """Probe a target once; network failures become a ProbeResult with an error."""
        url = self.build_url(target, settings)
        start_time = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=settings.timeout_seconds,
                verify=False,
                follow_redirects=False,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException:
            return ProbeResult(error="probe timed out")
        except httpx.HTTPError as e:
            return ProbeResult(error=f"network error: {type(e).__name__}")

        return ProbeResult(
            status_code=response.status_code,
            latency_ms=int((time.monotonic() - start_time) * 1000),
        )
