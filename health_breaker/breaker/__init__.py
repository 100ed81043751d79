"""Per-service circuit breaking.

Public API
----------
- :class:`CircuitBreaker`: Per-service state machine and probe driver
- :class:`CircuitState`: Circuit breaker state enum
- :class:`HealthProbe`: Single HTTP(S) health request with a hard timeout
- :class:`CheckResult`: Value returned by ``CircuitBreaker.check_health``
- :class:`ProbeResponse` / :class:`ProbeFailure`: The two probe outcomes
"""

from health_breaker.breaker.circuit_breaker import CircuitBreaker
from health_breaker.breaker.models import (
    CheckResult,
    CircuitState,
    FailureKind,
    HealthCheckOutcome,
    HealthPayload,
    ProbeFailure,
    ProbeResponse,
)
from health_breaker.breaker.probe import HealthProbe, parse_health_payload

__all__ = [
    "CheckResult",
    "CircuitBreaker",
    "CircuitState",
    "FailureKind",
    "HealthCheckOutcome",
    "HealthPayload",
    "HealthProbe",
    "ProbeFailure",
    "ProbeResponse",
    "parse_health_payload",
]
