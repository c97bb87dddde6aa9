"""
Tests for alpha_ledger/config.py.

What we test
------------
load_config():
  - Loads the committed default.toml.
  - Missing explicit path raises FileNotFoundError.
  - local.toml next to the config file overrides values.
  - Invalid values fail validation.

_apply_env_overrides():
  - Credential fallback order for store URL, store key and AI key.
  - ALPHA_LEDGER_GEMINI_MODEL / LOG_LEVEL / DEBUG overrides.

missing_credentials():
  - Lists the primary env name of each unset credential.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from alpha_ledger.config import (
    AppConfig,
    StoreConfig,
    _apply_env_overrides,
    _build_app_config,
    first_env,
    load_config,
    missing_credentials,
)

_CREDENTIAL_ENV = (
    "ALPHA_LEDGER_SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL", "SUPABASE_URL",
    "ALPHA_LEDGER_SUPABASE_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY", "SUPABASE_ANON_KEY",
    "ALPHA_LEDGER_GEMINI_API_KEY", "NEXT_PUBLIC_GEMINI_API", "VITE_GEMINI_API_KEY",
    "GEMINI_API_KEY", "API_KEY",
    "ALPHA_LEDGER_GEMINI_MODEL", "ALPHA_LEDGER_LOG_LEVEL", "ALPHA_LEDGER_DEBUG",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in _CREDENTIAL_ENV:
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env from leaking into assertions.
    monkeypatch.setattr("alpha_ledger.config.load_dotenv", lambda **_: False)
    return monkeypatch


class TestLoadConfig:
    def test_default_toml(self, clean_env):
        config = load_config()
        assert isinstance(config, AppConfig)
        assert config.store.analysis_table == "daily_analysis"
        assert config.ai.model == "gemini-2.5-flash"
        assert config.session.idle_timeout_minutes == 30.0
        assert config.freshness.safety_boundary_hours == 1.0

    def test_missing_path_raises(self, clean_env, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml")

    def test_local_override(self, clean_env, tmp_path):
        (tmp_path / "default.toml").write_text('[ai]\nmodel = "gemini-2.5-flash"\n', encoding="utf-8")
        (tmp_path / "local.toml").write_text('[ai]\nmodel = "gemini-2.0-flash"\n', encoding="utf-8")
        assert load_config(tmp_path / "default.toml").ai.model == "gemini-2.0-flash"

    def test_invalid_value_fails(self, clean_env, tmp_path):
        path: Path = tmp_path / "bad.toml"
        path.write_text("[session]\nidle_timeout_minutes = 0\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_env_credentials_applied(self, clean_env):
        clean_env.setenv("SUPABASE_URL", "https://abc.supabase.co/")
        clean_env.setenv("SUPABASE_ANON_KEY", "anon")
        clean_env.setenv("GEMINI_API_KEY", "g-key")
        config = load_config()
        assert config.store.url == "https://abc.supabase.co"
        assert config.store.anon_key == "anon"
        assert config.ai.api_key == "g-key"


class TestEnvOverrides:
    def test_store_url_fallback_order(self):
        env = {"SUPABASE_URL": "c", "NEXT_PUBLIC_SUPABASE_URL": "b"}
        assert _apply_env_overrides({}, env)["store"]["url"] == "b"
        env["ALPHA_LEDGER_SUPABASE_URL"] = "a"
        assert _apply_env_overrides({}, env)["store"]["url"] == "a"

    def test_ai_key_fallback_order(self):
        env = {"API_KEY": "last", "VITE_GEMINI_API_KEY": "vite"}
        assert _apply_env_overrides({}, env)["ai"]["api_key"] == "vite"

    def test_empty_value_is_skipped(self):
        assert first_env({"A": "", "B": "b"}, ("A", "B")) == "b"
        assert first_env({}, ("A",)) is None

    def test_model_log_level_debug(self):
        raw = _apply_env_overrides(
            {},
            {
                "ALPHA_LEDGER_GEMINI_MODEL": "gemini-x",
                "ALPHA_LEDGER_LOG_LEVEL": "debug",
                "ALPHA_LEDGER_DEBUG": "true",
            },
        )
        config = _build_app_config(raw)
        assert config.ai.model == "gemini-x"
        assert config.logging.level == "DEBUG"
        assert config.debug is True

    def test_bad_log_level(self):
        with pytest.raises(ValidationError):
            _build_app_config({"logging": {"level": "LOUD"}})

    def test_briefing_size_bounds(self):
        with pytest.raises(ValidationError):
            _build_app_config({"ai": {"briefing_size": 6}})


class TestMissingCredentials:
    def test_all_missing(self):
        assert missing_credentials(AppConfig()) == [
            "ALPHA_LEDGER_SUPABASE_URL",
            "ALPHA_LEDGER_SUPABASE_KEY",
            "ALPHA_LEDGER_GEMINI_API_KEY",
        ]

    def test_store_only(self):
        config = AppConfig(store=StoreConfig(url="https://x", anon_key="k"))
        assert missing_credentials(config) == ["ALPHA_LEDGER_GEMINI_API_KEY"]
