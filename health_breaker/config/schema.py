"""Pydantic configuration models for Health Breaker.

Defines the validated config structure using the versioned v1 format.
"""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from health_breaker.constants import (
    DEFAULT_FAILURE_THRESHOLD,
    DEFAULT_HEALTH_PATH,
    DEFAULT_HOST,
    DEFAULT_MONITORING_PERIOD_MS,
    DEFAULT_PORT,
    DEFAULT_PROBE_TIMEOUT_MS,
    DEFAULT_RESET_TIMEOUT_MS,
    DEFAULT_SERVICE_HOST,
)

# ── Breaker tunables ─────────────────────────────────────────────────────


class BreakerConfig(BaseModel):
    """Tunables shared by every circuit breaker (or overridden per service)."""

    model_config = ConfigDict(frozen=True)

    failure_threshold: int = Field(
        default=DEFAULT_FAILURE_THRESHOLD,
        ge=1,
        description="Consecutive failures required to open the circuit.",
    )
    reset_timeout_ms: int = Field(
        default=DEFAULT_RESET_TIMEOUT_MS,
        ge=0,
        description="Milliseconds the circuit stays OPEN before a trial probe.",
    )
    monitoring_period_ms: int = Field(
        default=DEFAULT_MONITORING_PERIOD_MS,
        gt=0,
        description="Milliseconds between scheduled sweeps.",
    )
    probe_timeout_ms: int = Field(
        default=DEFAULT_PROBE_TIMEOUT_MS,
        gt=0,
        description="Hard timeout for a single health probe in milliseconds.",
    )

    @property
    def reset_timeout(self) -> float:
        return self.reset_timeout_ms / 1000.0

    @property
    def monitoring_period(self) -> float:
        return self.monitoring_period_ms / 1000.0

    @property
    def probe_timeout(self) -> float:
        return self.probe_timeout_ms / 1000.0

    def merged(self, overrides: Optional["BreakerOverrides"]) -> "BreakerConfig":
        """Return a copy with any fields set in *overrides* applied."""
        if overrides is None:
            return self
        changes = overrides.model_dump(exclude_none=True)
        if not changes:
            return self
        return BreakerConfig.model_validate({**self.model_dump(), **changes})


class BreakerOverrides(BaseModel):
    """Per-service overrides; unset fields fall back to the shared config.

    The sweep period is global, so only breaker-level fields can be overridden.
    """

    model_config = ConfigDict(frozen=True)

    failure_threshold: Optional[int] = Field(default=None, ge=1)
    reset_timeout_ms: Optional[int] = Field(default=None, ge=0)
    probe_timeout_ms: Optional[int] = Field(default=None, gt=0)


# ── Monitored services ───────────────────────────────────────────────────


class ServiceEntry(BaseModel):
    """One ``services:`` entry in the YAML file (name is the mapping key)."""

    host: str = Field(default=DEFAULT_SERVICE_HOST, min_length=1)
    port: int = Field(..., ge=1, le=65535)
    health_path: str = Field(default=DEFAULT_HEALTH_PATH)
    scheme: Literal["http", "https"] = "http"
    breaker: Optional[BreakerOverrides] = None

    @field_validator("host")
    @classmethod
    def _strip_host(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("host must be a non-empty string")
        return v

    @field_validator("health_path")
    @classmethod
    def _validate_path(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith("/"):
            raise ValueError(f"health_path '{v}' must start with '/'")
        return v

    @field_validator("scheme", mode="before")
    @classmethod
    def _normalise_scheme(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().lower()
        return v


class ServiceDescriptor(ServiceEntry):
    """Static, immutable description of one monitored service."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}{self.health_path}"


# ── Readiness server settings ────────────────────────────────────────────


class ServerSettings(BaseModel):
    """Readiness endpoint settings (host, port)."""

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)


# ── Top-level config ────────────────────────────────────────────────────


class MonitorConfig(BaseModel):
    """Root of the configuration file."""

    version: str = "1"
    breaker: BreakerConfig = Field(default_factory=BreakerConfig)
    server: ServerSettings = Field(default_factory=ServerSettings)
    services: Dict[str, ServiceEntry] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, v: object) -> str:
        v = str(v)
        if v != "1":
            raise ValueError(f"Unsupported config version '{v}' (expected '1')")
        return v

    def descriptors(self) -> List[ServiceDescriptor]:
        """Return the configured services as :class:`ServiceDescriptor` objects."""
        return [
            ServiceDescriptor(name=name, **entry.model_dump())
            for name, entry in self.services.items()
        ]
