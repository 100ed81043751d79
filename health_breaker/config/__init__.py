"""Configuration loading and validation for Health Breaker."""

from health_breaker.config.loader import (
    default_config,
    expand_env_vars,
    find_config_file,
    load_config,
    resolve_config,
)
from health_breaker.config.schema import (
    BreakerConfig,
    BreakerOverrides,
    MonitorConfig,
    ServerSettings,
    ServiceDescriptor,
    ServiceEntry,
)

__all__ = [
    "BreakerConfig",
    "BreakerOverrides",
    "MonitorConfig",
    "ServerSettings",
    "ServiceDescriptor",
    "ServiceEntry",
    "default_config",
    "expand_env_vars",
    "find_config_file",
    "load_config",
    "resolve_config",
]
