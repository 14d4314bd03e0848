from __future__ import annotations

import json
import os
import warnings
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from .transport import DEFAULT_TIMEOUT_S, build_base_url

DEFAULT_CONFIG_PATH = Path("~/.config/chyavan/config.json").expanduser()
DEFAULT_HOSTED_URL = "https://collect.chyavan.dev"

MODE_CONSOLE = "console"
MODE_ENDPOINT = "endpoint"
MODE_HOSTED = "hosted"
MODES = (MODE_CONSOLE, MODE_ENDPOINT, MODE_HOSTED)

CONFIG_ENV_OVERRIDES = {
    "mode": "CHYAVAN_MODE",
    "delivery_endpoint": "CHYAVAN_ENDPOINT",
    "api_key": "CHYAVAN_API_KEY",
    "hosted_url": "CHYAVAN_HOSTED_URL",
    "debug": "CHYAVAN_DEBUG",
    "buffer_capacity": "CHYAVAN_BUFFER_CAPACITY",
    "flush_interval_ms": "CHYAVAN_FLUSH_INTERVAL_MS",
    "request_timeout_s": "CHYAVAN_REQUEST_TIMEOUT_S",
}

_INT_KEYS = {"buffer_capacity", "flush_interval_ms"}
_BOOL_KEYS = {"debug"}
_FLOAT_KEYS = {"request_timeout_s"}
# Callables can only be injected in code, never from a file or the environment.
_CALLABLE_KEYS = {"on_flush", "consent_check"}


class ConfigError(ValueError):
    pass


def env_consent() -> bool:
    return os.environ.get("CHYAVAN_TRACKING_CONSENT") == "true"


@dataclass(frozen=True)
class TrackerConfig:
    mode: str = MODE_ENDPOINT
    delivery_endpoint: str | None = None
    api_key: str | None = None
    hosted_url: str = DEFAULT_HOSTED_URL
    debug: bool = False
    buffer_capacity: int = 20
    flush_interval_ms: int = 5000
    request_timeout_s: float = DEFAULT_TIMEOUT_S
    on_flush: Callable[[list[Any]], Any] | None = None
    consent_check: Callable[[], bool] = env_consent

    def to_public_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for item in fields(self):
            if item.name in _CALLABLE_KEYS:
                data[item.name] = getattr(self, item.name) is not None
                continue
            if item.name == "api_key":
                data[item.name] = "***" if self.api_key else None
                continue
            data[item.name] = getattr(self, item.name)
        return data


def validate_config(cfg: TrackerConfig) -> TrackerConfig:
    if cfg.mode not in MODES:
        raise ConfigError(f"unknown mode: {cfg.mode!r}")
    if isinstance(cfg.buffer_capacity, bool) or not isinstance(cfg.buffer_capacity, int):
        raise ConfigError("buffer_capacity must be an integer")
    if cfg.buffer_capacity <= 0:
        raise ConfigError("buffer_capacity must be positive")
    if isinstance(cfg.flush_interval_ms, bool) or not isinstance(cfg.flush_interval_ms, int):
        raise ConfigError("flush_interval_ms must be an integer")
    if cfg.flush_interval_ms <= 0:
        raise ConfigError("flush_interval_ms must be positive")
    if isinstance(cfg.request_timeout_s, bool) or not isinstance(
        cfg.request_timeout_s, (int, float)
    ):
        raise ConfigError("request_timeout_s must be a number")
    if cfg.request_timeout_s <= 0:
        raise ConfigError("request_timeout_s must be positive")
    if not callable(cfg.consent_check):
        raise ConfigError("consent_check must be callable")
    if cfg.on_flush is not None and not callable(cfg.on_flush):
        raise ConfigError("on_flush must be callable")
    if cfg.mode == MODE_HOSTED and not (cfg.api_key or "").strip():
        raise ConfigError("hosted mode requires api_key")
    return cfg


def resolve_endpoint(cfg: TrackerConfig) -> str | None:
    if cfg.mode == MODE_CONSOLE:
        return None
    if cfg.mode == MODE_HOSTED:
        base = build_base_url(cfg.hosted_url or DEFAULT_HOSTED_URL)
        return f"{base}/v1/{(cfg.api_key or '').strip()}/track"
    if not cfg.delivery_endpoint:
        return None
    return build_base_url(cfg.delivery_endpoint) or None


def merge_config(cfg: TrackerConfig, changes: dict[str, Any]) -> TrackerConfig:
    unknown = sorted(set(changes) - {item.name for item in fields(cfg)})
    if unknown:
        raise ConfigError(f"unknown config option(s): {', '.join(unknown)}")
    return validate_config(replace(cfg, **changes))


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("CHYAVAN_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_bool(value: object, default: bool, *, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return _parse_bool(value, default)
    warnings.warn(f"Invalid bool for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def _coerce_values(cfg: TrackerConfig, data: dict[str, Any]) -> dict[str, Any]:
    known = {item.name for item in fields(cfg)}
    values: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known or key in _CALLABLE_KEYS:
            continue
        if key in _INT_KEYS:
            values[key] = _parse_int(value, getattr(cfg, key), key=key)
            continue
        if key in _BOOL_KEYS:
            values[key] = _coerce_bool(value, getattr(cfg, key), key=key)
            continue
        if key in _FLOAT_KEYS:
            values[key] = _parse_float(value, getattr(cfg, key), key=key)
            continue
        values[key] = value
    return values


def load_config(path: Path | None = None, **overrides: Any) -> TrackerConfig:
    """Build a validated config from file, then environment, then ``overrides``."""
    cfg = TrackerConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = replace(cfg, **_coerce_values(cfg, data))
    cfg = replace(cfg, **_coerce_values(cfg, get_env_overrides()))
    return merge_config(cfg, overrides)
