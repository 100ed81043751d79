"""
Health Breaker - per-service circuit breakers driven by health probes.

A :class:`~health_breaker.monitor.HealthMonitor` owns one
:class:`~health_breaker.breaker.CircuitBreaker` per downstream service,
polls their health endpoints, and stops probing services that keep
failing until a cool-down period has passed.
"""

from health_breaker.constants import APP_NAME, APP_VERSION

__version__ = APP_VERSION
__app_name__ = APP_NAME

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "__version__",
    "__app_name__",
]
