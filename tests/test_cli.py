"""
Tests for alpha_ledger/cli.py via ``typer.testing.CliRunner``.

What we test
------------
  - validate-config succeeds on a minimal TOML and fails on a missing path.
  - Store commands exit 1 when the store is not configured.
  - advise resolves bare codes to .TW and prints the weighted plan.
  - portfolio requires credentials.
"""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from alpha_ledger.cli import app
from alpha_ledger.ingestion.store_client import StoreClient
from alpha_ledger.models.market import MarketRecord

runner = CliRunner()

_ENV_KEYS = (
    "ALPHA_LEDGER_SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL", "SUPABASE_URL",
    "ALPHA_LEDGER_SUPABASE_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY", "SUPABASE_ANON_KEY",
    "ALPHA_LEDGER_GEMINI_API_KEY", "NEXT_PUBLIC_GEMINI_API", "VITE_GEMINI_API_KEY",
    "GEMINI_API_KEY", "API_KEY", "ALPHA_LEDGER_EMAIL", "ALPHA_LEDGER_PASSWORD",
)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("alpha_ledger.config.load_dotenv", lambda **_: False)
    path = tmp_path / "default.toml"
    path.write_text('[logging]\nlevel = "WARNING"\n', encoding="utf-8")
    return str(path)


@pytest.fixture
def configured_store(config_file, monkeypatch):
    monkeypatch.setenv("ALPHA_LEDGER_SUPABASE_URL", "https://abc.supabase.co")
    monkeypatch.setenv("ALPHA_LEDGER_SUPABASE_KEY", "anon")
    records = [
        MarketRecord(code="2330.TW", name="台積電", close_price=100.0, ai_score=90.0,
                     volatility=4.0, volume_ratio=1.6, short_term_score=50.0,
                     long_term_score=80.0, roe=20.0),
    ]
    monkeypatch.setattr(StoreClient, "fetch_daily_analysis", lambda self, session=None: records)
    return config_file


class TestValidateConfig:
    def test_ok(self, config_file):
        result = runner.invoke(app, ["validate-config", "--config", config_file])
        assert result.exit_code == 0
        assert "[OK] Config valid." in result.stdout
        assert "Missing credentials" in result.stdout

    def test_missing_file(self, config_file, tmp_path):
        result = runner.invoke(app, ["validate-config", "--config", str(tmp_path / "nope.toml")])
        assert result.exit_code == 1


class TestStoreCommands:
    def test_signals_without_store(self, config_file):
        result = runner.invoke(app, ["signals", "--config", config_file])
        assert result.exit_code == 1

    def test_advise_bare_code(self, configured_store):
        result = runner.invoke(app, ["advise", "2330", "--config", configured_store])
        assert result.exit_code == 0
        assert "SWING" in result.stdout
        assert "台積電 (2330.TW)" in result.stdout

    def test_advise_forced_mode(self, configured_store):
        result = runner.invoke(app, ["advise", "2330.TW", "--mode", "short", "--config", configured_store])
        assert result.exit_code == 0
        assert "DAY_TRADE" in result.stdout

    def test_advise_unknown_code(self, configured_store):
        result = runner.invoke(app, ["advise", "9999", "--config", configured_store])
        assert result.exit_code == 1

    def test_portfolio_requires_login(self, configured_store):
        result = runner.invoke(app, ["portfolio", "--config", configured_store])
        assert result.exit_code == 1
