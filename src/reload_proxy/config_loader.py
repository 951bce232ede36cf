"""Load ProxyConfig from the environment.

Merges environment variables with CLI kwargs. CLI overrides environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from reload_proxy._errors import ConfigError
from reload_proxy.config import ProxyConfig

# Environment variable -> ProxyConfig field
ENV_FIELDS: dict[str, str] = {
    "UPSTREAM_HOST": "upstream_host",
    "UPSTREAM_PORT": "upstream_port",
    "LIVERELOAD_PORT": "livereload_port",
    "LIVERELOAD_DELAY": "livereload_delay",
    "PROXY_PORT": "proxy_port",
    "WATCH_PATH": "watch_path",
    "ACCESS_CONTROL_ALLOW_ORIGIN": "allow_origin",
    "UPSTREAM_MAX_RETRIES": "max_retries",
    "UPSTREAM_RETRY_DELAY": "retry_delay",
    "RELOAD_PROXY_DEBUG": "debug",
}

_REQUIRED = (
    "UPSTREAM_HOST",
    "UPSTREAM_PORT",
    "LIVERELOAD_PORT",
    "LIVERELOAD_DELAY",
    "PROXY_PORT",
    "WATCH_PATH",
)

_PORTS = ("UPSTREAM_PORT", "LIVERELOAD_PORT", "PROXY_PORT")
_NON_NEGATIVE = ("LIVERELOAD_DELAY", "UPSTREAM_MAX_RETRIES", "UPSTREAM_RETRY_DELAY")

_TRUTHY = frozenset({"1", "true", "yes", "on"})

# Fields settable only from the command line.
_OVERRIDE_ONLY = frozenset({"host"})


def load_config(
    environ: Mapping[str, str] | None = None,
    **overrides: object,
) -> ProxyConfig:
    """Build a validated ProxyConfig.

    Values come from *environ* (``os.environ`` by default). Keyword
    overrides use ProxyConfig field names and win over the environment;
    an override of ``None`` means "not given".

    Raises:
        ConfigError: A required setting is missing, a numeric setting is
            not an integer or out of range, or the watch path does not exist.

    """
    env = os.environ if environ is None else environ
    field_to_var = {field: var for var, field in ENV_FIELDS.items()}

    raw: dict[str, object] = {}
    extra: dict[str, object] = {}
    for var, field in ENV_FIELDS.items():
        value = env.get(var)
        if value:
            raw[var] = value
    for field, value in overrides.items():
        if field in _OVERRIDE_ONLY:
            if value is not None:
                extra[field] = str(value)
            continue
        if field not in field_to_var:
            msg = f"Unknown configuration option {field!r}"
            raise ConfigError(msg)
        if value is not None:
            raw[field_to_var[field]] = value

    for var in _REQUIRED:
        if var not in raw:
            if var in _PORTS or var in _NON_NEGATIVE:
                msg = f"Environment variable {var} is required and must be an integer"
            else:
                msg = f"Environment variable {var} is required"
            raise ConfigError(msg)

    values: dict[str, object] = dict(extra)
    for var, value in raw.items():
        field = ENV_FIELDS[var]
        if var in _PORTS:
            values[field] = _parse_int(var, value, minimum=1, maximum=65535)
        elif var in _NON_NEGATIVE:
            values[field] = _parse_int(var, value, minimum=0)
        elif var == "RELOAD_PROXY_DEBUG":
            values[field] = _parse_flag(value)
        elif var == "WATCH_PATH":
            values[field] = _parse_watch_path(var, value)
        else:
            values[field] = str(value)

    return ProxyConfig(**values)  # type: ignore[arg-type]


def _parse_int(
    var: str,
    value: object,
    *,
    minimum: int,
    maximum: int | None = None,
) -> int:
    """Parse an integer setting, enforcing its range."""
    if isinstance(value, bool):
        msg = f"Environment variable {var} must be an integer"
        raise ConfigError(msg)
    try:
        number = int(str(value).strip())
    except ValueError:
        msg = f"Environment variable {var} must be an integer, got {value!r}"
        raise ConfigError(msg) from None
    if number < minimum or (maximum is not None and number > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        msg = f"Environment variable {var} must be {bound}, got {number}"
        raise ConfigError(msg)
    return number


def _parse_flag(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def _parse_watch_path(var: str, value: object) -> Path:
    path = Path(str(value)).expanduser()
    if not path.exists():
        msg = f"Environment variable {var} points to {str(path)!r}, which does not exist"
        raise ConfigError(msg)
    return path
