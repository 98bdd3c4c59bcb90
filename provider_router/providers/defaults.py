"""
Build the provider registry and router from config.yaml settings.

Expected YAML structure:
    router:
      headroom_ratio: 0.9
      cooldown_seconds: 60
    rpc_providers:
      - id: primary_rpc
        tier: premium
        rate_limit: 500
        priority: 1
        networks:
          ethereum: "${PRIMARY_RPC_ETHEREUM_URL}"
        credentials: "${PRIMARY_RPC_KEY}"
    market_data_providers:
      - id: prices_api
        base_url: "${PRICES_API_URL}"
        rate_limit: 100
        priority: 1
        headers:
          X-API-KEY: "${PRICES_API_KEY}"

No endpoints or keys are built in; every provider comes from configuration.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..config import RouterSettings, get_config
from ..core.errors import ConfigError
from ..timeutils import Clock
from .base import MarketDataProvider, Provider, ProviderTier
from .events import EventBus
from .registry import ProviderRegistry
from .router import EndpointRouter

logger = logging.getLogger(__name__)


def _require(entry: Dict[str, Any], key: str, kind: str, index: int) -> Any:
    if key not in entry or entry[key] in (None, ""):
        raise ConfigError(f"{kind}[{index}] is missing required field '{key}'")
    return entry[key]


def _as_int(value: Any, field_name: str, kind: str, index: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{kind}[{index}].{field_name} must be an integer, got {value!r}") from None


def parse_rpc_provider(entry: Dict[str, Any], index: int = 0) -> Provider:
    kind = "rpc_providers"
    if not isinstance(entry, dict):
        raise ConfigError(f"{kind}[{index}] must be a mapping")
    networks = _require(entry, "networks", kind, index)
    if not isinstance(networks, dict) or not networks:
        raise ConfigError(f"{kind}[{index}].networks must be a non-empty mapping")
    try:
        tier = ProviderTier.parse(entry.get("tier", "premium"))
    except ValueError as exc:
        raise ConfigError(f"{kind}[{index}]: {exc}") from None
    return Provider(
        id=str(_require(entry, "id", kind, index)),
        tier=tier,
        rate_limit=_as_int(_require(entry, "rate_limit", kind, index), "rate_limit", kind, index),
        networks={str(k): str(v) for k, v in networks.items()},
        priority=_as_int(entry.get("priority", 1), "priority", kind, index),
        credentials=entry.get("credentials"),
    )


def parse_market_data_provider(entry: Dict[str, Any], index: int = 0) -> MarketDataProvider:
    kind = "market_data_providers"
    if not isinstance(entry, dict):
        raise ConfigError(f"{kind}[{index}] must be a mapping")
    headers = entry.get("headers") or {}
    if not isinstance(headers, dict):
        raise ConfigError(f"{kind}[{index}].headers must be a mapping")
    return MarketDataProvider(
        id=str(_require(entry, "id", kind, index)),
        base_url=str(_require(entry, "base_url", kind, index)),
        rate_limit=_as_int(_require(entry, "rate_limit", kind, index), "rate_limit", kind, index),
        priority=_as_int(entry.get("priority", 1), "priority", kind, index),
        headers={str(k): str(v) for k, v in headers.items()},
    )


def load_registry(cfg: Optional[dict] = None) -> ProviderRegistry:
    """Registry with every provider declared in the config."""
    cfg = cfg if cfg is not None else get_config()
    rpc: List[Any] = cfg.get("rpc_providers") or []
    market: List[Any] = cfg.get("market_data_providers") or []
    if not isinstance(rpc, list) or not isinstance(market, list):
        raise ConfigError("rpc_providers and market_data_providers must be lists")
    registry = ProviderRegistry(
        providers=[parse_rpc_provider(e, i) for i, e in enumerate(rpc)],
        market_data=[parse_market_data_provider(e, i) for i, e in enumerate(market)],
    )
    logger.info(
        "Loaded %d RPC providers and %d market data providers",
        len(registry.provider_ids), len(registry.market_data_ids),
    )
    return registry


def create_router(
    cfg: Optional[dict] = None,
    clock: Optional[Clock] = None,
    events: Optional[EventBus] = None,
) -> EndpointRouter:
    """Build a router (not started) from config."""
    cfg = cfg if cfg is not None else get_config()
    return EndpointRouter(
        load_registry(cfg),
        settings=RouterSettings.from_config(cfg),
        clock=clock,
        events=events,
    )
