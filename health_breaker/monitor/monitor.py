"""Health monitor: owns one circuit breaker per service and polls them.

Runs an asyncio background task that sweeps every registered service at
the configured monitoring period and hands each sweep's results to the
attached reporting sinks.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

import httpx

from health_breaker.breaker.circuit_breaker import CircuitBreaker, StateChangeCallback
from health_breaker.config.schema import BreakerConfig, ServiceDescriptor
from health_breaker.errors import ConfigurationError, ServiceNotFoundError
from health_breaker.monitor.results import AggregatedResult

logger = logging.getLogger(__name__)

ResultMap = Dict[str, AggregatedResult]
ResultSink = Callable[[ResultMap], Union[None, Awaitable[None]]]
ProbeFactory = Callable[[ServiceDescriptor, BreakerConfig], Any]


class HealthMonitor:
    """Owns the breakers for a fixed set of services.

    Parameters
    ----------
    services:
        The services to monitor. Names must be unique.
    config:
        Breaker tunables shared by every service; a service's ``breaker``
        overrides are merged on top.
    sinks:
        Callables receiving each periodic sweep's result map. They may be
        plain functions or return an awaitable.
    client:
        Optional shared :class:`httpx.AsyncClient` for all probes. Not
        closed by the monitor.
    clock:
        Monotonic time source handed to every breaker.
    probe_factory:
        Optional ``(service, config) -> probe`` used instead of the default
        HTTP probe.
    on_state_change:
        Optional callback ``(service_name, old_state, new_state)``.
    """

    def __init__(
        self,
        services: Sequence[ServiceDescriptor],
        config: Optional[BreakerConfig] = None,
        *,
        sinks: Optional[Sequence[ResultSink]] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
        probe_factory: Optional[ProbeFactory] = None,
        on_state_change: Optional[StateChangeCallback] = None,
    ) -> None:
        self._config = config or BreakerConfig()
        self._sinks: List[ResultSink] = list(sinks or [])

        # Built once; never mutated afterwards, so lookups need no lock.
        self._breakers: Dict[str, CircuitBreaker] = {}
        for svc in services:
            if svc.name in self._breakers:
                raise ConfigurationError(f"Duplicate service name '{svc.name}'")
            svc_config = self._config.merged(svc.breaker)
            probe = probe_factory(svc, svc_config) if probe_factory is not None else None
            self._breakers[svc.name] = CircuitBreaker(
                svc,
                svc_config,
                probe=probe,
                client=client,
                clock=clock,
                on_state_change=on_state_change,
            )

        self._task: Optional[asyncio.Task[None]] = None
        self._sweep_lock = asyncio.Lock()
        self._stopped = False
        self._sweeps = 0

        logger.debug("Health monitor created for %d service(s)", len(self._breakers))

    # ── Read-only views ──────────────────────────────────────────────────

    @property
    def config(self) -> BreakerConfig:
        return self._config

    @property
    def service_names(self) -> List[str]:
        return list(self._breakers)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def sweep_count(self) -> int:
        """Number of periodic sweeps completed since start."""
        return self._sweeps

    def get_breaker_states(self) -> Dict[str, str]:
        """Return ``{service_name: state}`` without probing anything."""
        return {name: b.state.value for name, b in self._breakers.items()}

    def breaker_snapshots(self) -> List[Dict[str, Any]]:
        """Return :meth:`CircuitBreaker.to_dict` for every service."""
        return [b.to_dict() for b in self._breakers.values()]

    def add_sink(self, sink: ResultSink) -> None:
        """Attach another reporting sink (setup time only)."""
        self._sinks.append(sink)

    # ── One-shot checks ──────────────────────────────────────────────────

    async def check_service(self, name: str) -> AggregatedResult:
        """Check one service through its breaker.

        Raises :class:`ServiceNotFoundError` for unregistered names.
        """
        breaker = self._breakers.get(name)
        if breaker is None:
            raise ServiceNotFoundError(name)
        result = await breaker.check_health()
        return AggregatedResult.from_check(breaker, result)

    async def check_all_services(self) -> ResultMap:
        """Check every service concurrently; one entry per registered name."""
        async with self._sweep_lock:
            names = list(self._breakers)
            outcomes = await asyncio.gather(
                *(self.check_service(n) for n in names), return_exceptions=True
            )

        results: ResultMap = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, AggregatedResult):
                results[name] = outcome
            elif isinstance(outcome, Exception):
                logger.error(
                    "[%s] Health check raised: %s", name, outcome, exc_info=outcome
                )
                breaker = self._breakers[name]
                results[name] = AggregatedResult(
                    name=name,
                    available=False,
                    circuit_state=breaker.state,
                    failure_count=breaker.consecutive_failures,
                    error=f"Health check failed: {type(outcome).__name__}: {outcome}",
                )
            else:
                raise outcome
        return results

    # ── Periodic monitoring ──────────────────────────────────────────────

    def start_monitoring(self) -> None:
        """Launch the background sweep loop (first sweep after one period)."""
        if self._stopped:
            raise RuntimeError("Health monitor has been stopped and cannot be restarted")
        if self.is_running:
            logger.warning("Health monitor already running.")
            return
        self._task = asyncio.create_task(self._run(), name="health-monitor")
        logger.info(
            "Health monitor started (%d service(s), period=%.1fs, threshold=%d, reset=%.1fs)",
            len(self._breakers),
            self._config.monitoring_period,
            self._config.failure_threshold,
            self._config.reset_timeout,
        )

    async def stop(self) -> None:
        """Cancel the loop, detach every breaker and release HTTP clients."""
        if self._stopped:
            return
        self._stopped = True
        for breaker in self._breakers.values():
            breaker.shutdown()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        for breaker in self._breakers.values():
            await breaker.aclose()
        logger.info("Health monitor stopped.")

    async def __aenter__(self) -> "HealthMonitor":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # ── Background loop ─────────────────────────────────────────────────

    async def _run(self) -> None:
        """Sweep once per period; overrunning sweeps skip missed ticks."""
        loop = asyncio.get_running_loop()
        period = self._config.monitoring_period
        next_tick = loop.time() + period
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            await self._sweep()
            next_tick += period
            now = loop.time()
            if now >= next_tick:
                missed = int((now - next_tick) // period) + 1
                logger.warning(
                    "Health sweep overran the %.1fs period; skipping %d tick(s)",
                    period,
                    missed,
                )
                next_tick += missed * period

    async def _sweep(self) -> None:
        try:
            results = await self.check_all_services()
        except Exception:
            logger.exception("Health sweep failed")
            return
        self._sweeps += 1
        available = sum(1 for r in results.values() if r.available)
        logger.debug("Health sweep #%d: %d/%d available", self._sweeps, available, len(results))
        await self._emit(results)

    async def _emit(self, results: ResultMap) -> None:
        for sink in self._sinks:
            try:
                rv = sink(results)
                if inspect.isawaitable(rv):
                    await rv
            except Exception:
                logger.exception("Reporting sink %r failed", sink)
