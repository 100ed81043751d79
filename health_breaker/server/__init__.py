"""Readiness HTTP endpoint exposing the monitor's results."""

from health_breaker.server.app import LatestResults, create_app

__all__ = ["LatestResults", "create_app"]
