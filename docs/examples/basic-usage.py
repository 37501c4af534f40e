"""
Basic privgate Usage Example

This example demonstrates the control plane without any network access:
- Building the control plane from the sample configuration
- Admitting requests through the access policy and usage plan
- Reconciling router targets and running health checks
- Resolving the private domain

Prerequisites:
    Install from source:
    pip install -e .

Run with: python basic-usage.py
"""

import asyncio
from pathlib import Path

from privgate import ControlPlane
from privgate.domain.interfaces.health_prober import HealthProber, ProbeResult
from privgate.domain.models.system_error import GatewayError
from privgate.domain.models.target import HealthCheckSettings, Target
from privgate.infrastructure.config.file_loader import load_control_plane_config
from privgate.infrastructure.config.settings import ControlPlaneSettings


class AlwaysForbiddenProber(HealthProber):
    """Answers like the stock API does for unauthenticated probes."""

    async def probe(self, target: Target, settings: HealthCheckSettings) -> ProbeResult:
        return ProbeResult(status_code=403)


async def main():
    """Main example function demonstrating basic privgate usage."""

    print("=" * 80)
    print("privgate Basic Usage Example")
    print("=" * 80)
    print()

    # ============================================================================
    # Step 1: Build the control plane
    # ============================================================================

    print("Step 1: Building the control plane...")
    config = load_control_plane_config(Path(__file__).with_name("privgate.yaml"))
    settings = ControlPlaneSettings(json_logs=False, run_background_tasks=False)
    control_plane = ControlPlane(
        config=config,
        settings=settings,
        prober=AlwaysForbiddenProber(),
    )
    await control_plane.initialize()
    print(f"✓ Endpoint: {config.endpoint.id} in boundary {config.boundary.name}")
    print()

    # ============================================================================
    # Step 2: Admit requests
    # ============================================================================

    print("Step 2: Admitting requests...")
    requests = [
        ("through the endpoint", "super-secret-api-key", config.endpoint.id),
        ("through the endpoint", "super-secret-api-key", config.endpoint.id),
        ("third in the same second", "super-secret-api-key", config.endpoint.id),
        ("from another endpoint", "super-secret-api-key", "vpce-other"),
        ("with a wrong key", "wrong-key", config.endpoint.id),
    ]
    for label, api_key, source in requests:
        try:
            result = await control_plane.admit("GET", "/stock", api_key, source)
            print(f"  ✓ {label}: 200 (remaining quota {result.remaining_quota})")
        except GatewayError as e:
            print(f"  ✗ {label}: {e.status_code} {e.message}")
    print()

    # ============================================================================
    # Step 3: Reconcile targets and check health
    # ============================================================================

    print("Step 3: Reconciling router targets...")
    result = await control_plane.synchronizer.reconcile()
    print(f"  Added: {result.added}")
    for _ in range(config.health_check.healthy_threshold):
        await control_plane.health_checker.check_all()
    for target in control_plane.router.targets:
        print(f"    - {target.key}: {target.health.value}")
    print()

    # ============================================================================
    # Step 4: Resolve the private domain
    # ============================================================================

    print("Step 4: Resolving the private domain...")
    address = control_plane.resolve(config.dns.zone_name, "10.2.0.2")
    print(f"  {config.dns.zone_name} -> {address} (inside the boundary)")
    try:
        control_plane.resolve(config.dns.zone_name, "203.0.113.7")
    except GatewayError as e:
        print(f"  Outside the boundary: {e.message}")
    print()

    await control_plane.stop()

    print("=" * 80)
    print("Example completed!")
    print("=" * 80)


if __name__ == "__main__":
    asyncio.run(main())
