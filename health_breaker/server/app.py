"""Starlette ASGI application factory for the readiness API.

Routes:

* ``GET /health``: overall status from the latest sweep
* ``GET /services``: latest per-service results
* ``GET /services/{name}``: on-demand check of one service
* ``GET /breakers``: breaker snapshots (never probes)

The monitor's periodic loop runs inside the application lifespan.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from health_breaker.breaker.models import CircuitState
from health_breaker.constants import APP_NAME, APP_VERSION
from health_breaker.errors import ServiceNotFoundError
from health_breaker.monitor import HealthMonitor, ResultMap
from health_breaker.server.schemas import (
    BreakersResponse,
    BreakerSnapshot,
    ErrorResponse,
    HealthResponse,
    HealthServices,
    ServiceResult,
    ServicesResponse,
)

logger = logging.getLogger(__name__)


class LatestResults:
    """Monitor sink that keeps the most recent sweep for the API."""

    def __init__(self) -> None:
        self._results: Optional[ResultMap] = None
        self._updated_at: Optional[datetime] = None
        self.first_sweep_lock = asyncio.Lock()

    def __call__(self, results: ResultMap) -> None:
        self._results = dict(results)
        self._updated_at = datetime.now(timezone.utc)

    @property
    def results(self) -> Optional[ResultMap]:
        return self._results

    @property
    def updated_at(self) -> Optional[datetime]:
        return self._updated_at


# ── Helpers ──────────────────────────────────────────────────────────────


def _get_monitor(request: Request) -> HealthMonitor:
    monitor: Optional[HealthMonitor] = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise RuntimeError("HealthMonitor not found on app.state")
    return monitor


def _error_json(error: str, message: str, status_code: int = 500) -> JSONResponse:
    body = ErrorResponse(error=error, message=message)
    return JSONResponse(body.model_dump(), status_code=status_code)


async def _latest_or_check(request: Request) -> LatestResults:
    """Return the stored sweep, running one first if none happened yet."""
    latest: LatestResults = request.app.state.latest
    if latest.results is None:
        async with latest.first_sweep_lock:
            if latest.results is None:
                logger.debug("No sweep recorded yet; running one for the API.")
                latest(await _get_monitor(request).check_all_services())
    return latest


# ── Handlers ─────────────────────────────────────────────────────────────


async def handle_health(request: Request) -> JSONResponse:
    """Aggregate readiness: 503 only when every service is unavailable."""
    latest = await _latest_or_check(request)
    results = latest.results or {}

    total = len(results)
    available = sum(1 for r in results.values() if r.available)
    open_circuits = sum(1 for r in results.values() if r.circuit_state == CircuitState.OPEN)

    if available == total:
        status = "healthy"  # includes the no-services case
    elif available > 0:
        status = "degraded"
    else:
        status = "unhealthy"

    resp = HealthResponse(
        status=status,
        version=APP_VERSION,
        services=HealthServices(total=total, available=available, open_circuits=open_circuits),
        checked_at=latest.updated_at.isoformat() if latest.updated_at else None,
    )
    return JSONResponse(resp.model_dump(), status_code=503 if status == "unhealthy" else 200)


async def handle_services(request: Request) -> JSONResponse:
    latest = await _latest_or_check(request)
    resp = ServicesResponse(
        services={
            name: ServiceResult(**result.to_dict())
            for name, result in (latest.results or {}).items()
        },
        checked_at=latest.updated_at.isoformat() if latest.updated_at else None,
    )
    return JSONResponse(resp.model_dump())


async def handle_service(request: Request) -> JSONResponse:
    name = request.path_params["name"]
    try:
        result = await _get_monitor(request).check_service(name)
    except ServiceNotFoundError as exc:
        return _error_json("not_found", str(exc), status_code=404)
    return JSONResponse(ServiceResult(**result.to_dict()).model_dump())


async def handle_breakers(request: Request) -> JSONResponse:
    monitor = _get_monitor(request)
    resp = BreakersResponse(
        breakers=[BreakerSnapshot(**snap) for snap in monitor.breaker_snapshots()]
    )
    return JSONResponse(resp.model_dump())


# ── Application factory ──────────────────────────────────────────────────


def create_app(monitor: HealthMonitor, *, start_monitoring: bool = True) -> Starlette:
    """Create the Starlette app around *monitor*.

    The lifespan starts the periodic loop (unless *start_monitoring* is
    false) and always stops the monitor on shutdown.
    """
    latest = LatestResults()
    monitor.add_sink(latest)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        if start_monitoring:
            monitor.start_monitoring()
        try:
            yield
        finally:
            await monitor.stop()

    application = Starlette(
        lifespan=lifespan,
        routes=[
            Route("/health", endpoint=handle_health),
            Route("/services", endpoint=handle_services),
            Route("/services/{name}", endpoint=handle_service),
            Route("/breakers", endpoint=handle_breakers),
        ],
    )
    application.state.monitor = monitor
    application.state.latest = latest
    logger.info(
        "Starlette ASGI app '%s' created for %d service(s).",
        APP_NAME,
        len(monitor.service_names),
    )
    return application
