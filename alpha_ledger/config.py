"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``ALPHA_LEDGER_*`` prefix, plus the
                                    deployment names listed below

Entry point: ``load_config(config_path=None) -> AppConfig``

Credentials are never committed to TOML.  Each one is resolved from the
first environment variable that is set, in this order:

  store URL : ALPHA_LEDGER_SUPABASE_URL → NEXT_PUBLIC_SUPABASE_URL → SUPABASE_URL
  store key : ALPHA_LEDGER_SUPABASE_KEY → NEXT_PUBLIC_SUPABASE_ANON_KEY → SUPABASE_ANON_KEY
  AI key    : ALPHA_LEDGER_GEMINI_API_KEY → NEXT_PUBLIC_GEMINI_API
              → VITE_GEMINI_API_KEY → GEMINI_API_KEY → API_KEY

Missing credentials are NOT a load error.  Call ``missing_credentials()``
once at startup and log a warning; the data and AI layers degrade to empty
results / advisory messages on their own.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Credential fallback order ─────────────────────────────────────────────────

STORE_URL_ENV_KEYS: tuple[str, ...] = (
    "ALPHA_LEDGER_SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_URL",
    "SUPABASE_URL",
)
STORE_KEY_ENV_KEYS: tuple[str, ...] = (
    "ALPHA_LEDGER_SUPABASE_KEY",
    "NEXT_PUBLIC_SUPABASE_ANON_KEY",
    "SUPABASE_ANON_KEY",
)
AI_KEY_ENV_KEYS: tuple[str, ...] = (
    "ALPHA_LEDGER_GEMINI_API_KEY",
    "NEXT_PUBLIC_GEMINI_API",
    "VITE_GEMINI_API_KEY",
    "GEMINI_API_KEY",
    "API_KEY",
)


# ── Sub-config models ─────────────────────────────────────────────────────────


class StoreConfig(BaseModel):
    """Hosted data store (Supabase / PostgREST) connection settings."""

    model_config = ConfigDict(frozen=True)

    url: str = ""
    anon_key: str = ""
    analysis_table: str = "daily_analysis"
    portfolio_table: str = "portfolio"
    timeout_seconds: float = 15.0

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class AiConfig(BaseModel):
    """Generative-AI (Gemini REST API) settings."""

    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    model: str = "gemini-2.5-flash"
    report_model: str = "gemini-2.5-pro"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_seconds: float = 120.0
    briefing_size: int = 5

    @field_validator("briefing_size")
    @classmethod
    def validate_briefing_size(cls, v: int) -> int:
        if not 1 <= v <= 5:
            raise ValueError(f"briefing_size must be in [1, 5], got {v}.")
        return v


class SessionConfig(BaseModel):
    """Sign-in session behaviour."""

    model_config = ConfigDict(frozen=True)

    idle_timeout_minutes: float = 30.0

    @field_validator("idle_timeout_minutes")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"idle_timeout_minutes must be positive, got {v}.")
        return v


class FreshnessConfig(BaseModel):
    """As-of timestamp resolution and stale-data banner thresholds."""

    model_config = ConfigDict(frozen=True)

    safety_boundary_hours: float = 1.0
    stale_after_hours: float = 24.0


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = ""
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    The CLI and the dashboard each build one ``AppConfig`` at startup and pass
    the relevant sections down.  Nothing below this layer reads ``os.environ``.
    """

    model_config = ConfigDict(frozen=True)

    store: StoreConfig = StoreConfig()
    ai: AiConfig = AiConfig()
    session: SessionConfig = SessionConfig()
    freshness: FreshnessConfig = FreshnessConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply environment overrides and credentials
    raw = _apply_env_overrides(raw, os.environ)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def missing_credentials(config: AppConfig) -> list[str]:
    """Return the names of required credentials that are not configured.

    Used once at startup to emit a single non-fatal warning.
    """
    missing: list[str] = []
    if not config.store.url:
        missing.append(STORE_URL_ENV_KEYS[0])
    if not config.store.anon_key:
        missing.append(STORE_KEY_ENV_KEYS[0])
    if not config.ai.api_key:
        missing.append(AI_KEY_ENV_KEYS[0])
    return missing


def first_env(env: Any, keys: tuple[str, ...]) -> Optional[str]:
    """Return the first non-empty value among ``keys`` in ``env``."""
    for key in keys:
        value = env.get(key)
        if value:
            return value
    return None


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any], env: Any) -> dict[str, Any]:
    """Apply credentials and ALPHA_LEDGER_* env vars to the raw config dict.

    Supported overrides:
      (credential chains, see module docstring)
      ALPHA_LEDGER_GEMINI_MODEL → raw["ai"]["model"]
      ALPHA_LEDGER_LOG_LEVEL    → raw["logging"]["level"]
      ALPHA_LEDGER_DEBUG        → raw["debug"]
    """
    if url := first_env(env, STORE_URL_ENV_KEYS):
        raw.setdefault("store", {})["url"] = url

    if key := first_env(env, STORE_KEY_ENV_KEYS):
        raw.setdefault("store", {})["anon_key"] = key

    if ai_key := first_env(env, AI_KEY_ENV_KEYS):
        raw.setdefault("ai", {})["api_key"] = ai_key

    if model := env.get("ALPHA_LEDGER_GEMINI_MODEL"):
        raw.setdefault("ai", {})["model"] = model

    if log_level := env.get("ALPHA_LEDGER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := env.get("ALPHA_LEDGER_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        store=StoreConfig(**raw.get("store", {})),
        ai=AiConfig(**raw.get("ai", {})),
        session=SessionConfig(**raw.get("session", {})),
        freshness=FreshnessConfig(**raw.get("freshness", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
