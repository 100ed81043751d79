"""Tests for the readiness API (Starlette TestClient)."""

from __future__ import annotations

import asyncio
from typing import Dict

import httpx
import pytest
from starlette.testclient import TestClient

from health_breaker.config.schema import BreakerConfig
from health_breaker.monitor import HealthMonitor
from health_breaker.server import create_app
from tests.fakes import ScriptedProbe, down, make_service, refused, up


def _app(probes: Dict[str, ScriptedProbe], config: BreakerConfig = None):
    services = [make_service(name, 9000 + i) for i, name in enumerate(probes)]
    monitor = HealthMonitor(
        services,
        config or BreakerConfig(),
        probe_factory=lambda svc, cfg: probes[svc.name],
    )
    return create_app(monitor, start_monitoring=False), monitor


class TestHealthEndpoint:
    def test_all_available_is_healthy(self) -> None:
        app, _ = _app({"a": ScriptedProbe(default=up("a")), "b": ScriptedProbe(default=up("b"))})
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["services"] == {"total": 2, "available": 2, "open_circuits": 0}
        assert body["checked_at"] is not None

    def test_partial_outage_is_degraded(self) -> None:
        app, _ = _app({"a": ScriptedProbe(default=up("a")), "b": ScriptedProbe(default=down("b"))})
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "degraded"

    def test_full_outage_is_503(self) -> None:
        app, _ = _app(
            {"a": ScriptedProbe(default=refused()), "b": ScriptedProbe(default=refused())},
            BreakerConfig(failure_threshold=1),
        )
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 503
        body = resp.json()
        assert body["status"] == "unhealthy"
        assert body["services"]["open_circuits"] == 2

    def test_stored_sweep_is_reused(self) -> None:
        probe = ScriptedProbe(default=up("a"))
        app, _ = _app({"a": probe})
        with TestClient(app) as client:
            client.get("/health")
            client.get("/health")
            client.get("/services")
        assert probe.calls == 1


@pytest.mark.asyncio
class TestConcurrentRequests:
    async def test_first_sweep_runs_once_for_concurrent_requests(self) -> None:
        probe = ScriptedProbe(default=up("a"), delay=0.05)
        app, monitor = _app({"a": probe})
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            responses = await asyncio.gather(
                client.get("/health"), client.get("/health"), client.get("/services")
            )
        await monitor.stop()
        assert [r.status_code for r in responses] == [200, 200, 200]
        assert probe.calls == 1


class TestServiceEndpoints:
    def test_services_lists_latest_results(self) -> None:
        app, _ = _app({"a": ScriptedProbe(default=up("a")), "b": ScriptedProbe(default=refused())})
        with TestClient(app) as client:
            resp = client.get("/services")
        assert resp.status_code == 200
        services = resp.json()["services"]
        assert services["a"]["available"] is True
        assert services["b"]["available"] is False
        assert services["b"]["failure_kind"] == "transport"
        assert services["b"]["error"] == "[Errno 111] Connection refused"

    def test_single_service_checks_on_demand(self) -> None:
        probe = ScriptedProbe(default=up("a", build="42"))
        app, _ = _app({"a": probe})
        with TestClient(app) as client:
            first = client.get("/services/a")
            client.get("/services/a")
        assert first.status_code == 200
        assert first.json()["response"]["details"] == {"build": "42"}
        assert probe.calls == 2

    def test_unknown_service_is_404(self) -> None:
        app, _ = _app({"a": ScriptedProbe()})
        with TestClient(app) as client:
            resp = client.get("/services/nope")
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "not_found"
        assert "nope" in body["message"]

    def test_breakers_never_probe(self) -> None:
        probe = ScriptedProbe()
        app, _ = _app({"a": probe})
        with TestClient(app) as client:
            resp = client.get("/breakers")
        assert resp.status_code == 200
        (snap,) = resp.json()["breakers"]
        assert snap["service"] == "a"
        assert snap["state"] == "CLOSED"
        assert snap["url"] == "http://localhost:9000/health"
        assert probe.calls == 0


class TestLifespan:
    def test_shutdown_stops_monitor(self) -> None:
        probe = ScriptedProbe()
        app, monitor = _app({"a": probe})
        with TestClient(app):
            pass
        assert probe.closed is True
        assert monitor.is_running is False

    def test_startup_starts_loop(self) -> None:
        probe = ScriptedProbe(default=up("a"))
        monitor = HealthMonitor(
            [make_service("a", 9000)],
            BreakerConfig(),
            probe_factory=lambda svc, cfg: probe,
        )
        with TestClient(create_app(monitor)):
            assert monitor.is_running is True
        assert monitor.is_running is False
