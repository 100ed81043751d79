"""Shared constants for Health Breaker."""

APP_NAME = "Health Breaker"
APP_VERSION = "0.1.0"

# Network defaults for the readiness endpoint
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9100

# Logging defaults
LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"

# Breaker defaults
DEFAULT_FAILURE_THRESHOLD = 3
DEFAULT_RESET_TIMEOUT_MS = 30_000
DEFAULT_MONITORING_PERIOD_MS = 10_000
DEFAULT_PROBE_TIMEOUT_MS = 5_000  # hard bound for one health probe

DEFAULT_HEALTH_PATH = "/health"
DEFAULT_SERVICE_HOST = "localhost"

# Env var consulted when --config is not given
CONFIG_ENV_VAR = "HEALTH_BREAKER_CONFIG"
