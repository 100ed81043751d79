"""Configuration file loading and validation.

Loads a YAML configuration file, expands ``${ENV_VAR}`` placeholders,
and validates against Pydantic models defined in :mod:`schema`.

The public API is :func:`load_config` which returns the validated
:class:`MonitorConfig`, and :func:`default_config` for the built-in
reference deployment.
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from health_breaker.config.schema import MonitorConfig
from health_breaker.constants import CONFIG_ENV_VAR
from health_breaker.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Recognised config file extensions.
_YAML_EXTS = frozenset({".yaml", ".yml"})

# Config file search order (first match wins)
_CONFIG_SEARCH_ORDER = ("config.yaml", "config.yml")

# Regex for ${VAR_NAME}: captures the variable name inside ${}
_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

# Services monitored when no config file is supplied.
_DEFAULT_SERVICES: Dict[str, Dict[str, Any]] = {
    "image-server": {"port": 8081, "health_path": "/health", "scheme": "http"},
    "file-system-server": {"port": 4040, "health_path": "/health", "scheme": "http"},
    "broker-gateway": {"port": 8080, "health_path": "/health", "scheme": "http"},
}


def expand_env_vars(value: Any) -> Any:
    """Recursively expand ``${VAR}`` references in string values.

    - If the env var is not set, the placeholder is left unchanged.
    - Non-string leaves are returned as-is.
    - Dicts and lists are walked recursively.
    """
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(
            lambda m: os.environ.get(m.group(1), m.group(0)),
            value,
        )
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _read_config_file(cfg_fpath: str) -> Dict[str, Any]:
    """Read and parse a YAML config file from *cfg_fpath*.

    Raises :class:`ConfigurationError` on I/O or parse errors.
    """
    ext = os.path.splitext(cfg_fpath)[1].lower()
    if ext not in _YAML_EXTS:
        raise ConfigurationError(
            f"Unsupported config file extension '{ext}'. "
            "Only YAML files (.yaml, .yml) are supported."
        )

    try:
        with open(cfg_fpath, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Error reading configuration file: {cfg_fpath}\n  {exc}") from exc

    if not isinstance(raw_data, dict):
        raise ConfigurationError(
            "Top-level configuration content must be a YAML mapping (dictionary)."
        )
    return raw_data


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


def validate_config(raw_data: Dict[str, Any]) -> MonitorConfig:
    """Validate an already-parsed mapping, raising :class:`ConfigurationError`."""
    try:
        return MonitorConfig.model_validate(raw_data)
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Configuration validation failed ({len(exc.errors())} error(s)):\n" f"{error_summary}"
        ) from exc


# ── Public API ───────────────────────────────────────────────────────────


def load_config(cfg_fpath: str) -> MonitorConfig:
    """Load, expand, validate, and return the monitor configuration.

    Steps:
        1. Read YAML file
        2. Expand ``${VAR}`` environment variable references
        3. Validate against :class:`MonitorConfig` (Pydantic)
    """
    logger.debug("Loading config: %s", cfg_fpath)

    if not os.path.exists(cfg_fpath):
        raise ConfigurationError(f"Configuration file does not exist: {cfg_fpath}")

    raw_data = _read_config_file(cfg_fpath)
    raw_data = expand_env_vars(raw_data)
    config = validate_config(raw_data)

    if not config.services:
        raise ConfigurationError("No services were configured in the file.")

    logger.info(
        "Configuration '%s' loaded (v%s). %d service(s) validated.",
        cfg_fpath,
        config.version,
        len(config.services),
    )
    return config


def default_config() -> MonitorConfig:
    """Return the built-in reference deployment (three local services)."""
    return MonitorConfig.model_validate({"services": _DEFAULT_SERVICES})


def find_config_file(explicit: Optional[str] = None) -> Optional[str]:
    """Resolve the config path: explicit flag, env var, then CWD search.

    Returns ``None`` when nothing is found so callers can fall back to
    :func:`default_config`.
    """
    if explicit:
        return explicit
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return from_env
    for name in _CONFIG_SEARCH_ORDER:
        candidate = os.path.join(os.getcwd(), name)
        if os.path.isfile(candidate):
            return candidate
    return None


def resolve_config(explicit: Optional[str] = None) -> MonitorConfig:
    """Load the config found by :func:`find_config_file`, or the default."""
    cfg_fpath = find_config_file(explicit)
    if cfg_fpath is None:
        logger.info("No configuration file found; using built-in defaults.")
        return default_config()
    return load_config(os.path.abspath(cfg_fpath))
