"""Health monitoring across a fixed set of services.

Public API
----------
- :class:`HealthMonitor`: Owns the breakers; one-shot and periodic checks
- :class:`AggregatedResult`: Per-service result plus breaker state
"""

from health_breaker.monitor.monitor import HealthMonitor, ResultMap, ResultSink
from health_breaker.monitor.results import AggregatedResult

__all__ = [
    "AggregatedResult",
    "HealthMonitor",
    "ResultMap",
    "ResultSink",
]
