"""
Load config from config.yaml with optional env overrides.
Single source of truth for router tunables and the provider lists.

Provider entries may reference environment variables as ${VAR}; they are
expanded at load time so endpoint URLs and keys never live in the file.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .core.errors import ConfigError

CONFIG_ENV_VAR = "PROVIDER_ROUTER_CONFIG"
_PLACEHOLDER = re.compile(r"\$\{(\w+)\}")

# Defaults if no YAML or env
_DEFAULTS = {
    "router": {
        "rpc_window_seconds": 1.0,
        "market_data_window_seconds": 60.0,
        "headroom_ratio": 0.9,
        "error_threshold": 5,
        "cooldown_seconds": 60.0,
        "error_window_seconds": None,
        "maintenance_interval_seconds": 1.0,
    },
    "rpc_providers": [],
    "market_data_providers": [],
}

# env var -> (router key, type)
_ENV_OVERRIDES = {
    "PROVIDER_ROUTER_HEADROOM_RATIO": ("headroom_ratio", float),
    "PROVIDER_ROUTER_COOLDOWN_SECONDS": ("cooldown_seconds", float),
    "PROVIDER_ROUTER_ERROR_THRESHOLD": ("error_threshold", int),
    "PROVIDER_ROUTER_MAINTENANCE_INTERVAL": ("maintenance_interval_seconds", float),
}


def _config_yaml_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Explicit path, else $PROVIDER_ROUTER_CONFIG, else config.yaml at repo root."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path)
    return Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml(path: Path, required: bool = False) -> dict:
    if not path.exists():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config root in {path} must be a mapping, got {type(data).__name__}")
    return data


def _deep_merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _expand_env(value: Any, where: str = "config") -> Any:
    """Substitute ${VAR} placeholders from the environment; an unset variable is a ConfigError."""
    if isinstance(value, str):
        def _sub(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name not in os.environ:
                raise ConfigError(f"Environment variable {name} is not set (referenced by {where})")
            return os.environ[name]

        return _PLACEHOLDER.sub(_sub, value)
    if isinstance(value, dict):
        return {k: _expand_env(v, f"{where}.{k}") for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v, f"{where}[{i}]") for i, v in enumerate(value)]
    return value


def _env_overrides() -> dict:
    overrides: dict = {}
    for env_name, (key, cast) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name, "").strip()
        if not raw:
            continue
        try:
            overrides.setdefault("router", {})[key] = cast(raw)
        except ValueError:
            raise ConfigError(f"{env_name}={raw!r} is not a valid {cast.__name__}") from None
    return overrides


def get_config(path: Optional[Union[str, Path]] = None) -> dict:
    """Return merged config: defaults <- config.yaml <- env."""
    cfg_path = _config_yaml_path(path)
    loaded = _expand_env(_load_yaml(cfg_path, required=path is not None))
    merged = _deep_merge(_DEFAULTS, loaded)
    merged = _deep_merge(merged, _env_overrides())
    return merged


@dataclass(frozen=True)
class RouterSettings:
    """Router tunables. Defaults match the production policy."""

    rpc_window_seconds: float = 1.0
    market_data_window_seconds: float = 60.0
    headroom_ratio: float = 0.9
    error_threshold: int = 5
    cooldown_seconds: float = 60.0
    error_window_seconds: Optional[float] = None
    maintenance_interval_seconds: float = 1.0

    def __post_init__(self) -> None:
        if not 0 < self.headroom_ratio <= 1:
            raise ConfigError(f"headroom_ratio must be in (0, 1], got {self.headroom_ratio}")
        if self.error_threshold < 1:
            raise ConfigError(f"error_threshold must be >= 1, got {self.error_threshold}")
        for name in (
            "rpc_window_seconds",
            "market_data_window_seconds",
            "cooldown_seconds",
            "maintenance_interval_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")

    @classmethod
    def from_config(cls, cfg: Optional[dict] = None) -> "RouterSettings":
        router = (cfg if cfg is not None else get_config()).get("router", {}) or {}
        window = router.get("error_window_seconds")
        try:
            return cls(
                rpc_window_seconds=float(router.get("rpc_window_seconds", 1.0)),
                market_data_window_seconds=float(router.get("market_data_window_seconds", 60.0)),
                headroom_ratio=float(router.get("headroom_ratio", 0.9)),
                error_threshold=int(router.get("error_threshold", 5)),
                cooldown_seconds=float(router.get("cooldown_seconds", 60.0)),
                error_window_seconds=None if window is None else float(window),
                maintenance_interval_seconds=float(router.get("maintenance_interval_seconds", 1.0)),
            )
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ConfigError):
                raise
            raise ConfigError(f"Invalid router settings: {exc}") from exc
