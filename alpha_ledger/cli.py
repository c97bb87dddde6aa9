"""
Alpha Ledger — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging and warn once about missing credentials.
  3. Sign in if credentials were given (``--email`` / ``--password`` or
     ``ALPHA_LEDGER_EMAIL`` / ``ALPHA_LEDGER_PASSWORD``).
  4. Execute the action against the store / engine / AI client.
  5. Report result to stdout.

Install and run::

    pip install -e .
    alpha-ledger --help
    alpha-ledger validate-config
    alpha-ledger signals --top 20
    alpha-ledger advise 2330.TW --mode long
    alpha-ledger portfolio
    alpha-ledger add-position --code 2330 --name 台積電 --price 1000 --qty 1000
    alpha-ledger ai-report --kind weekly
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from alpha_ledger.models.recommendation import TradeMode
from alpha_ledger.reporting.prompts import ReportKind

app = typer.Typer(
    name="alpha-ledger",
    help="Alpha Ledger — stock signal dashboard and AI commentary CLI.",
    add_completion=False,
)

log = logging.getLogger(__name__)

_EMAIL_OPTION = typer.Option(None, "--email", envvar="ALPHA_LEDGER_EMAIL", help="Store account email.")
_PASSWORD_OPTION = typer.Option(
    None, "--password", envvar="ALPHA_LEDGER_PASSWORD", help="Store account password.", hide_input=True
)
_CONFIG_OPTION = typer.Option(None, "--config", help="Path to TOML config file.")


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from alpha_ledger.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config) -> None:
    """Set up logging from config and report missing credentials once."""
    from alpha_ledger.config import missing_credentials
    from alpha_ledger.utils.logging import configure_logging

    configure_logging(config.logging)
    missing = missing_credentials(config)
    if missing:
        log.warning("Missing credentials: %s", ", ".join(missing))


def _open_store(config):
    from alpha_ledger.ingestion.store_client import StoreClient

    store = StoreClient.from_config(config.store)
    if not store.is_configured:
        typer.echo("[ERROR] Store URL / key not configured. Set ALPHA_LEDGER_SUPABASE_URL and _KEY.", err=True)
        raise typer.Exit(code=1)
    return store


def _sign_in_or_anonymous(store, email: Optional[str], password: Optional[str], required: bool = False):
    """Return a signed-in Session if credentials were given, else anonymous."""
    from alpha_ledger.ingestion.store_client import AuthError
    from alpha_ledger.session import Session

    if not email or not password:
        if required:
            typer.echo("[ERROR] This command needs --email and --password.", err=True)
            raise typer.Exit(code=1)
        return Session.anonymous()
    try:
        return store.sign_in(email, password)
    except AuthError as exc:
        typer.echo(f"[ERROR] Sign-in failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _load_state_or_exit(store, session, config):
    from alpha_ledger.pipeline.dashboard import load_dashboard

    state = load_dashboard(store, session, freshness=config.freshness)
    if not state.ok:
        typer.echo(f"[ERROR] {state.error}: {state.detail}", err=True)
        raise typer.Exit(code=1)
    return state


def _find_record(records, code: str):
    from alpha_ledger.models.portfolio import normalize_code
    from alpha_ledger.recommendations.ranker import latest_per_code

    latest = {r.code.upper(): r for r in latest_per_code(records)}
    return latest.get(code.strip().upper()) or latest.get(normalize_code(code))


def _print_ai_report(report) -> None:
    typer.echo("")
    typer.echo(report.text)
    if report.links:
        typer.echo("")
        typer.echo("Sources:")
        for link in report.links:
            typer.echo(f"  - {link.title}: {link.uri}")
    if not report.ok:
        raise typer.Exit(code=1)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = _CONFIG_OPTION,
    show_full: bool = typer.Option(False, "--full", help="Print full config (secrets masked)."),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.  Missing credentials
    are reported but do not fail validation.
    """
    from alpha_ledger.config import missing_credentials

    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Store URL:        {config.store.url or '(not set)'}")
    typer.echo(f"  Store key:        {'set' if config.store.anon_key else '(not set)'}")
    typer.echo(f"  AI model:         {config.ai.model} (reports: {config.ai.report_model})")
    typer.echo(f"  AI key:           {'set' if config.ai.api_key else '(not set)'}")
    typer.echo(f"  Idle timeout:     {config.session.idle_timeout_minutes:g} min")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        dumped = config.model_dump()
        dumped["store"]["anon_key"] = "***" if config.store.anon_key else ""
        dumped["ai"]["api_key"] = "***" if config.ai.api_key else ""
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(dumped, indent=2, default=str, ensure_ascii=False))

    missing = missing_credentials(config)
    typer.echo("")
    if missing:
        typer.echo(f"[WARN] Missing credentials: {', '.join(missing)}")
    typer.echo("[OK] Config valid.")


@app.command("signals")
def signals(
    top: Optional[int] = typer.Option(None, "--top", min=1, help="Show only the top N by score."),
    email: Optional[str] = _EMAIL_OPTION,
    password: Optional[str] = _PASSWORD_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List banding signals for every instrument in today's analysis.

    When signed in, held instruments get holding-aware labels (ADD / HOLD /
    STOP_LOSS) using the entry price of the lot.
    """
    from alpha_ledger.reporting.formatters import format_signal_table, format_top_pick

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store(config)
    session = _sign_in_or_anonymous(store, email, password)

    state = _load_state_or_exit(store, session, config)
    typer.echo(format_top_pick(state.matrix))
    typer.echo(format_signal_table(state.matrix.signals, state.freshness, top_n=top))


@app.command("advise")
def advise(
    code: str = typer.Argument(..., help="Stock code, e.g. 2330 or 2330.TW."),
    mode: Optional[TradeMode] = typer.Option(
        None, "--mode", case_sensitive=False, help="Force short (day trade) or long (swing)."
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Weighted short/long plan (entry, target, stop, risk) for one instrument."""
    from alpha_ledger.ingestion.store_client import StoreError
    from alpha_ledger.models.recommendation import Strategy
    from alpha_ledger.recommendations.engine import RecommendationEngine
    from alpha_ledger.reporting.formatters import format_advice

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store(config)

    try:
        records = store.fetch_daily_analysis()
    except StoreError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    record = _find_record(records, code)
    if record is None:
        typer.echo(f"[ERROR] No analysis row for '{code}'.", err=True)
        raise typer.Exit(code=1)

    rec = RecommendationEngine().recommend(record, strategy=Strategy.WEIGHTED, forced_mode=mode)
    typer.echo(format_advice(record, rec))


@app.command("portfolio")
def portfolio(
    email: Optional[str] = _EMAIL_OPTION,
    password: Optional[str] = _PASSWORD_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Show holdings with return, P/L, signal and weak-score alerts."""
    from alpha_ledger.reporting.formatters import format_portfolio_table, format_sync_banner

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store(config)
    session = _sign_in_or_anonymous(store, email, password, required=True)

    state = _load_state_or_exit(store, session, config)
    typer.echo(format_sync_banner(state.freshness))
    typer.echo(format_portfolio_table(state.matrix))


@app.command("add-position")
def add_position(
    code: str = typer.Option(..., "--code", help="Stock code; .TW is appended if no suffix."),
    name: str = typer.Option(..., "--name", help="Display name."),
    price: float = typer.Option(..., "--price", help="Entry price per share."),
    qty: float = typer.Option(..., "--qty", help="Number of shares."),
    email: Optional[str] = _EMAIL_OPTION,
    password: Optional[str] = _PASSWORD_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Register a holding.  An existing holding of the same code is replaced."""
    from pydantic import ValidationError

    from alpha_ledger.ingestion.store_client import StoreError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store(config)
    session = _sign_in_or_anonymous(store, email, password, required=True)

    try:
        pos = store.add_position(session, code, name, price, qty)
    except (ValidationError, ValueError) as exc:
        typer.echo(f"[ERROR] Invalid holding: {exc}", err=True)
        raise typer.Exit(code=1)
    except StoreError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[OK] Registered {pos.code} x{pos.quantity:g} @ {pos.entry_price:g}.")


@app.command("remove-position")
def remove_position(
    position_id: str = typer.Argument(..., help="Holding id (see 'portfolio')."),
    email: Optional[str] = _EMAIL_OPTION,
    password: Optional[str] = _PASSWORD_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Delete a holding by id."""
    from alpha_ledger.ingestion.store_client import StoreError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store(config)
    session = _sign_in_or_anonymous(store, email, password, required=True)

    try:
        store.delete_position(session, position_id)
    except StoreError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"[OK] Removed holding {position_id}.")


@app.command("briefing")
def briefing(config_path: Optional[str] = _CONFIG_OPTION) -> None:
    """AI market briefing over today's top-scored instruments."""
    from alpha_ledger.ingestion.ai_client import AiClient
    from alpha_ledger.ingestion.store_client import StoreError
    from alpha_ledger.recommendations.ranker import latest_per_code
    from alpha_ledger.reporting.prompts import build_market_briefing_prompt

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store(config)

    try:
        records = latest_per_code(store.fetch_daily_analysis())
    except StoreError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    prompt = build_market_briefing_prompt(records, limit=config.ai.briefing_size)
    _print_ai_report(AiClient.from_config(config.ai).generate(prompt))


@app.command("ai-analyze")
def ai_analyze(
    code: str = typer.Argument(..., help="Stock code, e.g. 2330.TW."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """AI deep-dive on one instrument, seeded with the weighted plan."""
    from alpha_ledger.ingestion.ai_client import AiClient
    from alpha_ledger.ingestion.store_client import StoreError
    from alpha_ledger.models.recommendation import Strategy
    from alpha_ledger.recommendations.engine import RecommendationEngine
    from alpha_ledger.reporting.prompts import build_stock_analysis_prompt

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store(config)

    try:
        records = store.fetch_daily_analysis()
    except StoreError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    record = _find_record(records, code)
    if record is None:
        typer.echo(f"[ERROR] No analysis row for '{code}'.", err=True)
        raise typer.Exit(code=1)

    advice = RecommendationEngine().recommend(record, strategy=Strategy.WEIGHTED)
    prompt = build_stock_analysis_prompt(record, advice)
    _print_ai_report(AiClient.from_config(config.ai).generate(prompt))


@app.command("ai-report")
def ai_report(
    kind: ReportKind = typer.Option(ReportKind.DAILY, "--kind", case_sensitive=False, help="daily or weekly."),
    email: Optional[str] = _EMAIL_OPTION,
    password: Optional[str] = _PASSWORD_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Web-grounded intelligence report focused on your holdings."""
    from alpha_ledger.ingestion.ai_client import AiClient
    from alpha_ledger.ingestion.store_client import StoreError
    from alpha_ledger.reporting.prompts import build_intelligence_report_prompt

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    codes: list[str] = []
    if email and password:
        store = _open_store(config)
        session = _sign_in_or_anonymous(store, email, password)
        try:
            codes = [p.code for p in store.fetch_portfolio(session)]
        except StoreError as exc:
            log.warning("Portfolio unavailable for report; continuing without it: %s", exc)

    prompt = build_intelligence_report_prompt(kind, codes)
    client = AiClient.from_config(config.ai)
    typer.echo(f"Generating {kind.value} report with {config.ai.report_model} ...")
    _print_ai_report(client.generate(prompt, use_search=True, model=config.ai.report_model))


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
