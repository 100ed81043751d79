"""Aggregated per-service results returned by the health monitor."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from health_breaker.breaker.circuit_breaker import CircuitBreaker
from health_breaker.breaker.models import (
    CheckResult,
    CircuitState,
    HealthCheckOutcome,
    HealthPayload,
    ProbeFailure,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AggregatedResult:
    """One service's check result plus the breaker state it left behind."""

    name: str
    available: bool
    circuit_state: CircuitState
    failure_count: int
    response: Optional[HealthPayload] = None
    error: Optional[str] = None
    outcome: Optional[HealthCheckOutcome] = None
    retry_in: Optional[float] = None
    checked_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_check(cls, breaker: CircuitBreaker, result: CheckResult) -> "AggregatedResult":
        return cls(
            name=breaker.name,
            available=result.available,
            circuit_state=breaker.state,
            failure_count=breaker.consecutive_failures,
            response=result.response,
            error=result.error,
            outcome=result.outcome,
            retry_in=result.retry_in,
        )

    @property
    def probed(self) -> bool:
        """False when the open circuit suppressed the probe."""
        return self.outcome is not None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly snapshot."""
        failure_kind = None
        latency_ms = None
        if self.outcome is not None:
            latency_ms = round(self.outcome.latency_ms, 2)
            if isinstance(self.outcome, ProbeFailure):
                failure_kind = self.outcome.kind.value
        return {
            "service": self.name,
            "available": self.available,
            "circuit_state": self.circuit_state.value,
            "failure_count": self.failure_count,
            "response": self.response.model_dump(exclude_none=True) if self.response else None,
            "error": self.error,
            "failure_kind": failure_kind,
            "latency_ms": latency_ms,
            "retry_in": round(self.retry_in, 3) if self.retry_in is not None else None,
            "checked_at": self.checked_at.isoformat(),
        }
