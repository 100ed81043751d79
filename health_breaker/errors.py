"""Custom exception classes for Health Breaker."""

from typing import Optional


class HealthBreakerError(Exception):
    """Base class for all custom exceptions in Health Breaker."""

    pass


class ConfigurationError(HealthBreakerError):
    """Raised when loading or validating the configuration file fails."""

    pass


class ServiceNotFoundError(HealthBreakerError, LookupError):
    """Raised when a caller asks for a service that was never registered."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        super().__init__(f"Service {service_name!r} not found")


class ProbeError(HealthBreakerError):
    """
    Raised by the probe layer when a health request fails.

    Never escapes :meth:`CircuitBreaker.check_health`; the breaker turns it
    into a failed outcome.
    """

    def __init__(
        self,
        message: str,
        kind: str,
        svc_name: Optional[str] = None,
        orig_exc: Optional[BaseException] = None,
    ):
        self.svc_name = svc_name
        self.kind = kind
        self.orig_exc = orig_exc
        self.message = message

        full_msg = "Health probe failed"
        if svc_name:
            full_msg += f" (service: {svc_name})"
        full_msg += f": {message}"
        if orig_exc:
            full_msg += f" (original error: {type(orig_exc).__name__})"
        super().__init__(full_msg)
