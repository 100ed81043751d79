"""Tests for config schema, YAML loading and path resolution."""

from __future__ import annotations

import os

import pytest
from pydantic import ValidationError

from health_breaker.config import (
    BreakerConfig,
    BreakerOverrides,
    MonitorConfig,
    ServiceDescriptor,
    ServiceEntry,
    default_config,
    expand_env_vars,
    find_config_file,
    load_config,
    resolve_config,
)
from health_breaker.errors import ConfigurationError

VALID_YAML = """\
version: "1"
breaker:
  failure_threshold: 4
  reset_timeout_ms: 15000
  monitoring_period_ms: 2000
services:
  image-server:
    port: 8081
  broker-gateway:
    host: ${GATEWAY_HOST}
    port: 8443
    scheme: HTTPS
    health_path: /actuator/health
    breaker:
      failure_threshold: 6
"""


def _write(tmp_path, text: str, name: str = "config.yaml") -> str:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


# ── Schema ───────────────────────────────────────────────────────────────


class TestBreakerConfig:
    def test_defaults(self) -> None:
        cfg = BreakerConfig()
        assert cfg.failure_threshold == 3
        assert cfg.reset_timeout_ms == 30_000
        assert cfg.monitoring_period_ms == 10_000
        assert cfg.probe_timeout_ms == 5_000
        assert cfg.reset_timeout == 30.0
        assert cfg.monitoring_period == 10.0
        assert cfg.probe_timeout == 5.0

    @pytest.mark.parametrize(
        "field,value",
        [
            ("failure_threshold", 0),
            ("reset_timeout_ms", -1),
            ("monitoring_period_ms", 0),
            ("probe_timeout_ms", 0),
        ],
    )
    def test_invalid_values(self, field: str, value: int) -> None:
        with pytest.raises(ValidationError):
            BreakerConfig(**{field: value})

    def test_zero_reset_timeout_allowed(self) -> None:
        assert BreakerConfig(reset_timeout_ms=0).reset_timeout == 0.0

    def test_merged_applies_only_set_fields(self) -> None:
        base = BreakerConfig(failure_threshold=3, reset_timeout_ms=1000)
        merged = base.merged(BreakerOverrides(failure_threshold=7))
        assert merged.failure_threshold == 7
        assert merged.reset_timeout_ms == 1000
        assert base.failure_threshold == 3

    def test_merged_without_overrides_is_same_object(self) -> None:
        base = BreakerConfig()
        assert base.merged(None) is base
        assert base.merged(BreakerOverrides()) is base


class TestServiceDescriptor:
    def test_url(self) -> None:
        svc = ServiceDescriptor(name="fs", port=4040)
        assert svc.url == "http://localhost:4040/health"

    def test_scheme_normalised(self) -> None:
        svc = ServiceDescriptor(name="gw", port=443, scheme="HTTPS", host="gw.internal")
        assert svc.url == "https://gw.internal:443/health"

    def test_rejects_unknown_scheme(self) -> None:
        with pytest.raises(ValidationError):
            ServiceDescriptor(name="x", port=1, scheme="ftp")

    def test_rejects_relative_path(self) -> None:
        with pytest.raises(ValidationError, match="must start with '/'"):
            ServiceEntry(port=1, health_path="health")

    def test_rejects_bad_port(self) -> None:
        with pytest.raises(ValidationError):
            ServiceEntry(port=70000)

    def test_immutable(self) -> None:
        svc = ServiceDescriptor(name="fs", port=4040)
        with pytest.raises(ValidationError):
            svc.port = 9999


class TestMonitorConfig:
    def test_descriptors(self) -> None:
        cfg = MonitorConfig.model_validate(
            {"services": {"a": {"port": 1}, "b": {"port": 2, "breaker": {"reset_timeout_ms": 5}}}}
        )
        descs = cfg.descriptors()
        assert [d.name for d in descs] == ["a", "b"]
        assert descs[1].breaker.reset_timeout_ms == 5

    def test_unsupported_version(self) -> None:
        with pytest.raises(ValidationError, match="Unsupported config version"):
            MonitorConfig.model_validate({"version": 2})

    def test_numeric_version_accepted(self) -> None:
        assert MonitorConfig.model_validate({"version": 1}).version == "1"


# ── Loader ───────────────────────────────────────────────────────────────


class TestExpandEnvVars:
    def test_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HB_HOST", "svc.local")
        data = {"a": ["${HB_HOST}", 1], "b": {"c": "x-${HB_HOST}"}}
        assert expand_env_vars(data) == {"a": ["svc.local", 1], "b": {"c": "x-svc.local"}}

    def test_unset_left_unchanged(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HB_NOT_SET_12345", raising=False)
        assert expand_env_vars("${HB_NOT_SET_12345}") == "${HB_NOT_SET_12345}"


class TestLoadConfig:
    def test_valid_file(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GATEWAY_HOST", "gateway.internal")
        cfg = load_config(_write(tmp_path, VALID_YAML))
        assert cfg.breaker.failure_threshold == 4
        assert cfg.breaker.monitoring_period == 2.0
        descs = {d.name: d for d in cfg.descriptors()}
        assert descs["image-server"].url == "http://localhost:8081/health"
        assert descs["broker-gateway"].url == "https://gateway.internal:8443/actuator/health"
        assert descs["broker-gateway"].breaker.failure_threshold == 6

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="does not exist"):
            load_config(str(tmp_path / "nope.yaml"))

    def test_bad_extension(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported config file extension"):
            load_config(_write(tmp_path, "{}", name="config.json"))

    def test_not_a_mapping(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="must be a YAML mapping"):
            load_config(_write(tmp_path, "- a\n- b\n"))

    def test_yaml_syntax_error(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="Error reading configuration file"):
            load_config(_write(tmp_path, "services: [unclosed\n"))

    def test_validation_errors_collected(self, tmp_path) -> None:
        text = "breaker:\n  failure_threshold: 0\nservices:\n  a:\n    port: 0\n"
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(_write(tmp_path, text))
        msg = str(exc_info.value)
        assert "validation failed (2 error(s))" in msg
        assert "failure_threshold" in msg
        assert "port" in msg

    def test_no_services(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="No services"):
            load_config(_write(tmp_path, 'version: "1"\n'))


class TestDefaults:
    def test_reference_deployment(self) -> None:
        cfg = default_config()
        ports = {d.name: d.port for d in cfg.descriptors()}
        assert ports == {"image-server": 8081, "file-system-server": 4040, "broker-gateway": 8080}
        assert cfg.breaker.failure_threshold == 3
        assert cfg.breaker.reset_timeout_ms == 30_000
        assert cfg.breaker.monitoring_period_ms == 10_000


class TestFindConfigFile:
    def test_explicit_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEALTH_BREAKER_CONFIG", "/env/config.yaml")
        assert find_config_file("/flag/config.yaml") == "/flag/config.yaml"

    def test_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEALTH_BREAKER_CONFIG", "/env/config.yaml")
        assert find_config_file() == "/env/config.yaml"

    def test_cwd_search(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HEALTH_BREAKER_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        _write(tmp_path, VALID_YAML, name="config.yml")
        found = find_config_file()
        assert found is not None
        assert os.path.samefile(found, tmp_path / "config.yml")

    def test_nothing_found(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HEALTH_BREAKER_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        assert find_config_file() is None
        assert len(resolve_config().services) == 3
