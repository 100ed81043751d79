"""Value types produced by health probes and circuit breakers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

_TIMESTAMP_ADAPTER = TypeAdapter(datetime)


class CircuitState(str, Enum):
    """States for the circuit breaker."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class HealthPayload(BaseModel):
    """Body returned by a monitored service's health endpoint."""

    status: Literal["UP", "DOWN"]
    service: str
    timestamp: str = Field(description="ISO-8601 timestamp set by the service.")
    details: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _validate_timestamp(cls, v: str) -> str:
        try:
            _TIMESTAMP_ADAPTER.validate_python(v)
        except ValidationError as exc:
            raise ValueError(f"timestamp '{v}' is not ISO-8601") from exc
        return v

    @property
    def is_up(self) -> bool:
        return self.status == "UP"


class FailureKind(str, Enum):
    """Why a probe produced no usable payload."""

    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    PROTOCOL = "protocol"


@dataclass(frozen=True)
class ProbeResponse:
    """The service answered with a well-formed health payload (UP or DOWN)."""

    payload: HealthPayload
    latency_ms: float = 0.0


@dataclass(frozen=True)
class ProbeFailure:
    """The probe failed before a well-formed payload was obtained."""

    kind: FailureKind
    message: str
    latency_ms: float = 0.0


HealthCheckOutcome = Union[ProbeResponse, ProbeFailure]


@dataclass(frozen=True)
class CheckResult:
    """What :meth:`CircuitBreaker.check_health` hands back.

    ``outcome`` is ``None`` when the circuit was open and no probe was sent;
    ``retry_in`` then holds the remaining wait in seconds.
    """

    available: bool
    response: Optional[HealthPayload] = None
    error: Optional[str] = None
    outcome: Optional[HealthCheckOutcome] = None
    retry_in: Optional[float] = None

    @property
    def short_circuited(self) -> bool:
        return self.outcome is None
