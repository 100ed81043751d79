"""Pydantic response schemas for the readiness API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# ── /health ──────────────────────────────────────────────────────────────


class HealthServices(BaseModel):
    total: int = 0
    available: int = 0
    open_circuits: int = 0


class HealthResponse(BaseModel):
    status: str = Field(description="healthy | degraded | unhealthy")
    version: str = ""
    services: HealthServices = Field(default_factory=HealthServices)
    checked_at: Optional[str] = None  # ISO-8601


# ── /services ────────────────────────────────────────────────────────────


class ServiceResult(BaseModel):
    service: str
    available: bool
    circuit_state: str
    failure_count: int = 0
    response: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    failure_kind: Optional[str] = None
    latency_ms: Optional[float] = None
    retry_in: Optional[float] = None
    checked_at: str


class ServicesResponse(BaseModel):
    services: Dict[str, ServiceResult] = Field(default_factory=dict)
    checked_at: Optional[str] = None


# ── /breakers ────────────────────────────────────────────────────────────


class BreakerSnapshot(BaseModel):
    service: str
    url: str
    state: str
    consecutive_failures: int = 0
    failure_threshold: int
    reset_timeout_ms: int
    next_attempt_in: Optional[float] = None


class BreakersResponse(BaseModel):
    breakers: List[BreakerSnapshot] = Field(default_factory=list)


# ── Errors ───────────────────────────────────────────────────────────────


class ErrorResponse(BaseModel):
    error: str
    message: str
