"""Tests for curvemm.config — environment loading and the engines file."""

import json

import pytest

from curvemm.config import EngineSpec, Settings, load_engine_specs, load_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure CurveMM env vars are cleared between tests."""
    for var in [
        "SOLANA_RPC_URL",
        "MARKET_API_URL",
        "TICK_TIMEOUT_SECONDS",
        "LOG_CAPACITY",
        "LOG_LEVEL",
        "API_PORT",
        "ENGINES_PATH",
        "CHAIN_ADAPTER",
        "KEY_STORE",
    ]:
        monkeypatch.delenv(var, raising=False)


def _set_required(monkeypatch):
    monkeypatch.setenv("SOLANA_RPC_URL", "https://rpc.example.test")


class TestLoadSettings:
    def test_loads_required_vars(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        settings = load_settings(env_path=str(tmp_path / ".env"))
        assert isinstance(settings, Settings)
        assert settings.rpc_url == "https://rpc.example.test"

    def test_defaults(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        settings = load_settings(env_path=str(tmp_path / ".env"))
        assert settings.market_api_url == "https://frontend-api.pump.fun"
        assert settings.tick_timeout_seconds == 15.0
        assert settings.log_capacity == 100
        assert settings.log_level == "INFO"
        assert settings.api_port == 8080
        assert settings.engines_path == "curvemm.json"
        assert settings.chain_adapter is None
        assert settings.key_store is None

    def test_missing_rpc_url(self, tmp_path):
        with pytest.raises(ValueError, match="SOLANA_RPC_URL"):
            load_settings(env_path=str(tmp_path / "nonexistent.env"))

    def test_reads_dotenv_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "SOLANA_RPC_URL=https://from-file.test\nAPI_PORT=9090\n",
            encoding="utf-8",
        )
        settings = load_settings(env_path=str(env_file))
        assert settings.rpc_url == "https://from-file.test"
        assert settings.api_port == 9090

    def test_malformed_number(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        monkeypatch.setenv("TICK_TIMEOUT_SECONDS", "soon")
        with pytest.raises(ValueError, match="TICK_TIMEOUT_SECONDS"):
            load_settings(env_path=str(tmp_path / ".env"))

    def test_trailing_slash_stripped(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        monkeypatch.setenv("MARKET_API_URL", "https://market.test/")
        settings = load_settings(env_path=str(tmp_path / ".env"))
        assert settings.market_api_url == "https://market.test"

    def test_settings_frozen(self, monkeypatch, tmp_path):
        _set_required(monkeypatch)
        settings = load_settings(env_path=str(tmp_path / ".env"))
        with pytest.raises(AttributeError):
            settings.rpc_url = "changed"  # type: ignore[misc]


class TestLoadEngineSpecs:
    def test_missing_file_is_empty(self, tmp_path):
        assert load_engine_specs(tmp_path / "absent.json") == []

    def test_parses_entries(self, tmp_path):
        path = tmp_path / "curvemm.json"
        path.write_text(json.dumps({
            "engines": [
                {
                    "token_mint": "MintAAA",
                    "owner": "alice",
                    "preset": "stealth",
                    "config": {"price_stabilizer_enabled": True},
                    "wallets": [
                        {"id": "w1", "address": "Addr1", "encrypted_key": "ct1"},
                        {"id": "w2", "address": "Addr2", "active": False,
                         "is_creator": True},
                    ],
                },
                {"token_mint": "MintBBB"},
            ]
        }), encoding="utf-8")

        specs = load_engine_specs(path)
        assert len(specs) == 2
        first = specs[0]
        assert isinstance(first, EngineSpec)
        assert first.owner == "alice"
        assert first.preset == "stealth"
        assert first.config == {"price_stabilizer_enabled": True}
        assert [w.wallet_id for w in first.wallets] == ["w1", "w2"]
        assert first.wallets[1].active is False
        assert first.wallets[1].is_creator is True
        assert specs[1].owner == "default"
        assert specs[1].wallets == []

    def test_entry_without_mint(self, tmp_path):
        path = tmp_path / "curvemm.json"
        path.write_text(json.dumps({"engines": [{"owner": "x"}]}), encoding="utf-8")
        with pytest.raises(ValueError, match="token_mint"):
            load_engine_specs(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "curvemm.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="not valid JSON"):
            load_engine_specs(path)
