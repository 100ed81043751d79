"""Circuit breaker state machine for one monitored service.

States::

    CLOSED ──(N failures)──► OPEN ──(reset timeout)──► HALF_OPEN
       ▲                                                   │
       └──────────────(probe success)──────────────────────┘
                      (probe fail) ──► OPEN

The breaker owns its probe. Every call to :meth:`CircuitBreaker.check_health`
either short-circuits (OPEN, timeout not elapsed) or sends exactly one probe
and feeds its outcome through the transition table.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, Callable, Dict, Optional

import httpx

from health_breaker.breaker.models import (
    CheckResult,
    CircuitState,
    HealthCheckOutcome,
    ProbeResponse,
)
from health_breaker.breaker.probe import HealthProbe
from health_breaker.config.schema import BreakerConfig, ServiceDescriptor

logger = logging.getLogger(__name__)

StateChangeCallback = Callable[[str, CircuitState, CircuitState], Any]


class CircuitBreaker:
    """Per-service circuit breaker.

    Parameters
    ----------
    service:
        The service this breaker guards.
    config:
        Threshold, reset timeout and probe timeout.
    probe:
        Optional probe object (anything with ``async probe()``). Built from
        *service* and *client* when omitted.
    client:
        Shared :class:`httpx.AsyncClient` handed to the default probe.
    clock:
        Monotonic time source in seconds.
    on_state_change:
        Optional callback ``(service_name, old_state, new_state)``.
    """

    def __init__(
        self,
        service: ServiceDescriptor,
        config: BreakerConfig,
        *,
        probe: Optional[Any] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[StateChangeCallback] = None,
    ) -> None:
        self.service = service
        self.config = config
        self._probe = (
            probe
            if probe is not None
            else HealthProbe(service, timeout=config.probe_timeout, client=client)
        )
        self._clock = clock
        self._on_state_change = on_state_change

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: Optional[float] = None
        self._next_attempt_time: Optional[float] = None

        # Serialises read-decide-probe-update so only one HALF_OPEN trial
        # probe can decide the next state.
        self._lock = asyncio.Lock()
        self._shut_down = False

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self.service.name

    @property
    def state(self) -> CircuitState:
        """Current state. Reading it never triggers a transition."""
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def last_failure_time(self) -> Optional[float]:
        return self._last_failure_time

    @property
    def next_attempt_time(self) -> Optional[float]:
        return self._next_attempt_time

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    # ── Probe-and-interpret ──────────────────────────────────────────────

    async def check_health(self) -> CheckResult:
        """Probe the service unless the circuit is open, and update state.

        Always returns a :class:`CheckResult`; network trouble is reported
        in the result, never raised.
        """
        async with self._lock:
            if self._shut_down:
                return CheckResult(
                    available=False,
                    error=f"Health monitoring for {self.name} has been stopped",
                )

            now = self._clock()
            if self._state == CircuitState.OPEN:
                if self._next_attempt_time is not None and now < self._next_attempt_time:
                    remaining = self._next_attempt_time - now
                    return CheckResult(
                        available=False,
                        error=(
                            f"Circuit breaker OPEN for {self.name}. "
                            f"Next attempt in {math.ceil(remaining)}s"
                        ),
                        retry_in=remaining,
                    )
                self._transition(CircuitState.HALF_OPEN, "reset timeout elapsed")

            outcome = await self._probe.probe()

            if self._shut_down:
                logger.debug("[%s] Discarding probe result received after shutdown", self.name)
                return CheckResult(
                    available=False,
                    error=f"Health monitoring for {self.name} has been stopped",
                    outcome=outcome,
                )
            return self._apply(outcome)

    def _apply(self, outcome: HealthCheckOutcome) -> CheckResult:
        if isinstance(outcome, ProbeResponse):
            payload = outcome.payload
            if payload.is_up:
                self._record_success()
                return CheckResult(available=True, response=payload, outcome=outcome)
            self._record_failure()
            error = "Service reported DOWN status"
            if payload.error:
                error += f": {payload.error}"
            return CheckResult(available=False, response=payload, error=error, outcome=outcome)

        self._record_failure()
        return CheckResult(available=False, error=outcome.message, outcome=outcome)

    # ── Transition methods ───────────────────────────────────────────────

    def _record_success(self) -> None:
        self._consecutive_failures = 0
        if self._state != CircuitState.CLOSED:
            self._transition(CircuitState.CLOSED, "probe succeeded")

    def _record_failure(self) -> None:
        now = self._clock()
        self._consecutive_failures += 1
        self._last_failure_time = now

        if self._state == CircuitState.HALF_OPEN:
            self._next_attempt_time = now + self.config.reset_timeout
            self._transition(CircuitState.OPEN, "trial probe failed")
        elif (
            self._state == CircuitState.CLOSED
            and self._consecutive_failures >= self.config.failure_threshold
        ):
            self._next_attempt_time = now + self.config.reset_timeout
            self._transition(
                CircuitState.OPEN, f"{self._consecutive_failures} consecutive failures"
            )

    def _transition(self, new: CircuitState, reason: str) -> None:
        old = self._state
        self._state = new
        if new == CircuitState.OPEN:
            logger.warning(
                "[%s] Circuit breaker: %s → OPEN (%s, retry in %.1fs)",
                self.name,
                old.value,
                reason,
                self.config.reset_timeout,
            )
        else:
            logger.info("[%s] Circuit breaker: %s → %s (%s)", self.name, old.value, new.value, reason)
        self._notify(old, new)

    def _notify(self, old: CircuitState, new: CircuitState) -> None:
        if old != new and self._on_state_change is not None:
            try:
                self._on_state_change(self.name, old, new)
            except Exception:
                logger.debug("[%s] on_state_change callback error", self.name, exc_info=True)

    # ── Teardown ─────────────────────────────────────────────────────────

    def shutdown(self) -> None:
        """Stop accepting probe results; in-flight results are discarded."""
        self._shut_down = True

    async def aclose(self) -> None:
        """Shut down and release the probe's HTTP client (if it owns one)."""
        self.shutdown()
        close = getattr(self._probe, "close", None)
        if close is not None:
            await close()

    # ── Serialisation ────────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """Read-only snapshot for reports and the readiness endpoint."""
        next_attempt_in: Optional[float] = None
        if self._state == CircuitState.OPEN and self._next_attempt_time is not None:
            next_attempt_in = round(max(0.0, self._next_attempt_time - self._clock()), 3)
        return {
            "service": self.name,
            "url": self.service.url,
            "state": self._state.value,
            "consecutive_failures": self._consecutive_failures,
            "failure_threshold": self.config.failure_threshold,
            "reset_timeout_ms": self.config.reset_timeout_ms,
            "next_attempt_in": next_attempt_in,
        }
