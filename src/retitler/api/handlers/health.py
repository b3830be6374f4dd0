"""Health check endpoint handler."""

import asyncio
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Response

from retitler import __version__
from retitler.api.deps import BackendClientDep, SettingsDep
from retitler.config import Settings
from retitler.core.transport import BackendClient
from retitler.models.health import ComponentHealth, HealthResponse, HealthStatus
from retitler.utils.errors import (
    ApiError,
    ConfigurationError,
    NetworkError,
    TitleGeneratorError,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Thresholds for health status determination
LATENCY_DEGRADED_MS = 2000  # Above this is considered degraded


async def check_backend_health(settings: Settings, client: BackendClient) -> ComponentHealth:
    """Check that the active backend is configured and reachable.

    Uses the catalogue query as a lightweight connectivity check.

    Args:
        settings: Application settings.
        client: Backend client used for the check.

    Returns:
        ComponentHealth for the active backend.
    """
    try:
        settings.validate_required()
    except ConfigurationError as e:
        return ComponentHealth(status=HealthStatus.UNHEALTHY, error=e.user_message)

    if not settings.health.backend_check_enabled:
        return ComponentHealth(status=HealthStatus.HEALTHY, message="Check disabled")

    start_time = time.perf_counter()
    try:
        await asyncio.wait_for(
            client.send_catalogue_request(settings.backend, settings.generation_config()),
            timeout=settings.health.timeout_seconds,
        )
    except (asyncio.TimeoutError, NetworkError) as e:
        if isinstance(e, asyncio.TimeoutError) or e.timeout:
            return ComponentHealth(status=HealthStatus.UNHEALTHY, error="Connection timeout")
        return ComponentHealth(status=HealthStatus.UNHEALTHY, error=e.message)
    except ApiError as e:
        return ComponentHealth(status=HealthStatus.UNHEALTHY, error=e.user_message)
    except TitleGeneratorError as e:
        return ComponentHealth(status=HealthStatus.UNHEALTHY, error=e.user_message)

    latency_ms = int((time.perf_counter() - start_time) * 1000)
    if latency_ms > LATENCY_DEGRADED_MS:
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            latency_ms=latency_ms,
            message="High latency detected",
        )
    return ComponentHealth(status=HealthStatus.HEALTHY, latency_ms=latency_ms)


def determine_overall_status(checks: dict[str, ComponentHealth]) -> HealthStatus:
    """Determine overall health status from component checks."""
    if not checks:
        return HealthStatus.HEALTHY

    statuses = [check.status for check in checks.values()]

    if any(s == HealthStatus.UNHEALTHY for s in statuses):
        return HealthStatus.UNHEALTHY
    elif any(s == HealthStatus.DEGRADED for s in statuses):
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: SettingsDep, client: BackendClientDep, response: Response
) -> HealthResponse:
    """Health of the service and its active backend.

    - HTTP 200: Service is healthy or degraded
    - HTTP 503: Service is unhealthy
    """
    checks = {"backend": await check_backend_health(settings, client)}
    overall_status = determine_overall_status(checks)

    if overall_status == HealthStatus.UNHEALTHY:
        response.status_code = 503

    return HealthResponse(
        status=overall_status,
        version=__version__,
        backend=settings.backend,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness check: the process is up. No dependency checks."""
    return {"status": "alive"}


@router.get("/health/ready", response_model=HealthResponse)
async def readiness_check(
    settings: SettingsDep, client: BackendClientDep, response: Response
) -> HealthResponse:
    """Readiness check, same as the main health check."""
    return await health_check(settings, client, response)
