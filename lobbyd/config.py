from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, replace
from typing import Mapping

from .constants import DEFAULT_MAILBOX_SIZE
from .paths import default_config_path
from .util import expand_path


@dataclass(frozen=True)
class RelayRuntimeConfig:
    config_path: str | None = None
    host: str = "0.0.0.0"
    port: int = 8080
    mailbox_size: int = DEFAULT_MAILBOX_SIZE
    ping_interval_s: float = 30.0
    ping_timeout_s: float = 20.0
    max_frame_bytes: int = 1024 * 1024
    notify_vanished: bool = False
    stats_interval_s: float = 0.0
    log_level: str = "INFO"
    log_websockets_level: str = "WARNING"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    log_datefmt: str | None = None


_INT_KEYS = ("port", "mailbox_size", "max_frame_bytes")
_FLOAT_KEYS = ("ping_interval_s", "ping_timeout_s", "stats_interval_s")
_BOOL_KEYS = ("notify_vanished", "log_console")
_OPTIONAL_STR_KEYS = ("log_file", "log_datefmt")

_LOGGING_KEYS = {
    "level": "log_level",
    "websockets_level": "log_websockets_level",
    "console": "log_console",
    "file": "log_file",
    "format": "log_format",
    "datefmt": "log_datefmt",
}


def load_toml(path: str) -> dict:
    with open(expand_path(path), "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def _coerce(key: str, value):
    if key in _INT_KEYS:
        if isinstance(value, bool):
            raise ValueError(f"{key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{key} must be an integer, got {value!r}") from e
    if key in _FLOAT_KEYS:
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{key} must be a number, got {value!r}") from e
    if key in _BOOL_KEYS:
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if key in _OPTIONAL_STR_KEYS:
        return None if value is None or str(value) == "" else str(value)
    return str(value)


def apply_config_data(base: RelayRuntimeConfig, data: dict) -> RelayRuntimeConfig:
    """Overlay a parsed TOML document on ``base``.

    Keys may sit at top level or in a ``[relay]`` table; a ``[logging]``
    table maps onto the ``log_*`` fields. Unknown keys are ignored.
    """
    relay = data.get("relay") if isinstance(data, dict) else None
    if isinstance(relay, dict):
        data = {**data, **relay}

    log_table = data.get("logging") if isinstance(data, dict) else None
    if isinstance(log_table, dict):
        mapped = {
            field: log_table[key] for key, field in _LOGGING_KEYS.items() if key in log_table
        }
        data = {**data, **mapped}

    allowed = set(asdict(base).keys())
    # Identifies where the config came from; the file must not override it.
    allowed.discard("config_path")

    updates = {k: _coerce(k, v) for k, v in data.items() if k in allowed}
    return replace(base, **updates) if updates else base


def apply_env(base: RelayRuntimeConfig, env: Mapping[str, str]) -> RelayRuntimeConfig:
    updates: dict[str, object] = {}

    port = env.get("LOBBYD_PORT") or env.get("PORT")
    if port:
        updates["port"] = _coerce("port", port)

    host = env.get("LOBBYD_HOST")
    if host:
        updates["host"] = host

    level = env.get("LOBBYD_LOG_LEVEL")
    if level:
        updates["log_level"] = level

    if "LOBBYD_LOG_FILE" in env:
        updates["log_file"] = _coerce("log_file", env["LOBBYD_LOG_FILE"])

    return replace(base, **updates) if updates else base


def resolve_config_path(env: Mapping[str, str]) -> str | None:
    explicit = env.get("LOBBYD_CONFIG")
    if explicit:
        return explicit
    default = default_config_path(env)
    if default.exists():
        return str(default)
    return None


def validate_config(cfg: RelayRuntimeConfig) -> None:
    if not (0 <= cfg.port <= 65535):
        raise ValueError(f"port out of range: {cfg.port}")
    if cfg.mailbox_size < 1:
        raise ValueError(f"mailbox_size must be at least 1, got {cfg.mailbox_size}")
    if cfg.max_frame_bytes < 1:
        raise ValueError(f"max_frame_bytes must be positive, got {cfg.max_frame_bytes}")


def load_config(env: Mapping[str, str] | None = None) -> RelayRuntimeConfig:
    """Build the runtime config from defaults, the optional TOML file and env."""
    env = os.environ if env is None else env

    cfg = RelayRuntimeConfig()
    config_path = resolve_config_path(env)
    if config_path:
        cfg = apply_config_data(cfg, load_toml(config_path))
        cfg = replace(cfg, config_path=config_path)

    cfg = apply_env(cfg, env)
    validate_config(cfg)
    return cfg
