"""
Config loading: defaults <- YAML <- env, ${VAR} expansion, provider parsing.
"""
from __future__ import annotations

import textwrap

import pytest

from provider_router.config import CONFIG_ENV_VAR, RouterSettings, get_config
from provider_router.core.errors import ConfigError
from provider_router.providers.base import ProviderTier
from provider_router.providers.defaults import (
    create_router,
    load_registry,
    parse_market_data_provider,
    parse_rpc_provider,
)
from tests.fakes import ManualClock

_YAML = textwrap.dedent(
    """
    router:
      headroom_ratio: 0.8
      cooldown_seconds: 30
    rpc_providers:
      - id: primary
        tier: premium
        rate_limit: 500
        priority: 1
        networks:
          ethereum: "${TEST_RPC_URL}/eth"
        credentials: "${TEST_RPC_KEY}"
      - id: public
        tier: fallback
        rate_limit: 15
        priority: 3
        networks:
          ethereum: "https://public.invalid/eth"
    market_data_providers:
      - id: prices
        base_url: "https://prices.invalid"
        rate_limit: 100
        headers:
          X-API-KEY: "${TEST_PRICES_KEY}"
    """
)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(_YAML, encoding="utf-8")
    monkeypatch.setenv("TEST_RPC_URL", "https://rpc.invalid")
    monkeypatch.setenv("TEST_RPC_KEY", "not-a-real-key")
    monkeypatch.setenv("TEST_PRICES_KEY", "not-a-real-key")
    for name in (
        "PROVIDER_ROUTER_HEADROOM_RATIO",
        "PROVIDER_ROUTER_COOLDOWN_SECONDS",
        "PROVIDER_ROUTER_ERROR_THRESHOLD",
        "PROVIDER_ROUTER_MAINTENANCE_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)
    return path


class TestGetConfig:
    def test_defaults_when_file_missing(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "absent.yaml"))
        cfg = get_config()
        assert cfg["router"]["headroom_ratio"] == 0.9
        assert cfg["router"]["error_threshold"] == 5
        assert cfg["rpc_providers"] == []

    def test_yaml_merged_over_defaults(self, config_file):
        cfg = get_config(config_file)
        assert cfg["router"]["headroom_ratio"] == 0.8
        assert cfg["router"]["cooldown_seconds"] == 30
        assert cfg["router"]["error_threshold"] == 5

    def test_env_var_selects_file(self, config_file, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file))
        assert get_config()["router"]["headroom_ratio"] == 0.8

    def test_placeholders_expanded(self, config_file):
        cfg = get_config(config_file)
        primary = cfg["rpc_providers"][0]
        assert primary["networks"]["ethereum"] == "https://rpc.invalid/eth"
        assert primary["credentials"] == "not-a-real-key"

    def test_unset_placeholder_raises(self, config_file, monkeypatch):
        monkeypatch.delenv("TEST_RPC_URL")
        with pytest.raises(ConfigError, match=r"TEST_RPC_URL.*rpc_providers\[0\]\.networks\.ethereum"):
            get_config(config_file)

    def test_literal_dollar_text_kept(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("router:\n  note: \"costs $5\"\n", encoding="utf-8")
        assert get_config(path)["router"]["note"] == "costs $5"

    def test_env_overrides_win(self, config_file, monkeypatch):
        monkeypatch.setenv("PROVIDER_ROUTER_ERROR_THRESHOLD", "3")
        monkeypatch.setenv("PROVIDER_ROUTER_HEADROOM_RATIO", "0.75")
        cfg = get_config(config_file)
        assert cfg["router"]["error_threshold"] == 3
        assert cfg["router"]["headroom_ratio"] == 0.75

    def test_bad_env_override(self, config_file, monkeypatch):
        monkeypatch.setenv("PROVIDER_ROUTER_ERROR_THRESHOLD", "many")
        with pytest.raises(ConfigError, match="PROVIDER_ROUTER_ERROR_THRESHOLD"):
            get_config(config_file)

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            get_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("router: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            get_config(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            get_config(path)


class TestRouterSettings:
    def test_from_config(self, config_file):
        settings = RouterSettings.from_config(get_config(config_file))
        assert settings.headroom_ratio == 0.8
        assert settings.cooldown_seconds == 30.0
        assert settings.error_window_seconds is None

    @pytest.mark.parametrize(
        "router",
        [
            {"headroom_ratio": 0},
            {"headroom_ratio": 1.2},
            {"error_threshold": 0},
            {"cooldown_seconds": -1},
            {"rpc_window_seconds": "soon"},
        ],
    )
    def test_invalid_settings(self, router):
        with pytest.raises(ConfigError):
            RouterSettings.from_config({"router": router})


class TestProviderParsing:
    def test_rpc_provider(self):
        provider = parse_rpc_provider(
            {"id": "p", "tier": "Fallback", "rate_limit": "25", "networks": {"base": "https://x.invalid"}}
        )
        assert provider.tier is ProviderTier.FALLBACK
        assert provider.rate_limit == 25
        assert provider.priority == 1

    @pytest.mark.parametrize(
        "entry,match",
        [
            ({"tier": "premium", "rate_limit": 1, "networks": {"a": "u"}}, "id"),
            ({"id": "p", "rate_limit": 1, "networks": {}}, "networks"),
            ({"id": "p", "rate_limit": "lots", "networks": {"a": "u"}}, "rate_limit"),
            ({"id": "p", "tier": "gold", "rate_limit": 1, "networks": {"a": "u"}}, "gold"),
        ],
    )
    def test_rpc_provider_errors(self, entry, match):
        with pytest.raises(ConfigError, match=match):
            parse_rpc_provider(entry, 2)

    def test_market_data_provider_requires_base_url(self):
        with pytest.raises(ConfigError, match="base_url"):
            parse_market_data_provider({"id": "m", "rate_limit": 10})

    def test_credentials_not_in_repr(self, config_file):
        registry = load_registry(get_config(config_file))
        assert "not-a-real-key" not in repr(registry.get("primary"))
        assert "not-a-real-key" not in repr(registry.get_market_data("prices"))

    def test_duplicate_ids_rejected(self):
        entry = {"id": "p", "rate_limit": 1, "networks": {"a": "u"}}
        with pytest.raises(ConfigError, match="Duplicate"):
            load_registry({"rpc_providers": [entry, dict(entry)], "market_data_providers": []})


def test_create_router(config_file):
    router = create_router(get_config(config_file), clock=ManualClock())
    assert router.settings.headroom_ratio == 0.8
    assert router.registry.provider_ids == ["primary", "public"]
    endpoint = router.select_endpoint("ethereum")
    assert endpoint.url == "https://rpc.invalid/eth"
    assert router.select_market_data_endpoint().name == "prices"
