"""
Hosted data store client (Supabase REST: PostgREST + GoTrue auth).

API:   {SUPABASE_URL}/rest/v1/   (tables)
       {SUPABASE_URL}/auth/v1/   (auth)

Credential setup (.env, gitignored):
  ALPHA_LEDGER_SUPABASE_URL=https://<project>.supabase.co
  ALPHA_LEDGER_SUPABASE_KEY=<anon / publishable key>

Every request carries ``apikey: <anon key>``.  The ``Authorization`` bearer
is the signed-in user's access token when a ``Session`` is passed, else the
anon key; row-level security on the store decides what each one can see.

Queries
-------
  daily_analysis : select=*  order=analysis_date.desc,ai_score.desc
  portfolio      : select=*  status=eq.holding  order=created_at.desc

Failures raise ``StoreError`` (``AuthError`` for auth-specific ones).  The
client does not retry; callers decide whether to surface an empty result or
an error message.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Optional

import httpx
from pydantic import ValidationError

from alpha_ledger.config import StoreConfig
from alpha_ledger.models.market import MarketRecord
from alpha_ledger.models.portfolio import HOLDING_STATUS, PositionRecord, normalize_code
from alpha_ledger.session import Session

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A store query, insert, delete or auth call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(StoreError):
    """Sign-in, sign-up or an operation that needs a signed-in user failed."""


def _error_message(resp: httpx.Response) -> str:
    """Best-effort message from a PostgREST / GoTrue error body."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"


class StoreClient:
    """Typed client for the analysis and portfolio tables plus auth.

    Usage::

        store = StoreClient.from_config(config.store)
        session = store.sign_in("me@example.com", "secret")
        records = store.fetch_daily_analysis(session)
        positions = store.fetch_portfolio(session)

    Implements the ``AuthProvider`` protocol from ``alpha_ledger.session``.
    """

    REST_PATH: ClassVar[str] = "/rest/v1"
    AUTH_PATH: ClassVar[str] = "/auth/v1"

    def __init__(
        self,
        url: str,
        anon_key: str,
        analysis_table: str = "daily_analysis",
        portfolio_table: str = "portfolio",
        timeout: float = 15.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        """Initialise the store client.

        Args:
            url: Project URL, e.g. ``https://abc.supabase.co``.
            anon_key: Public anon / publishable key.
            analysis_table: Table holding daily analysis rows.
            portfolio_table: Table holding user holdings.
            timeout: Per-request timeout in seconds.
            http_client: Pre-built ``httpx.Client`` (tests inject one backed
                by ``httpx.MockTransport``).
        """
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.analysis_table = analysis_table
        self.portfolio_table = portfolio_table
        self._http = http_client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(cls, config: StoreConfig) -> "StoreClient":
        return cls(
            url=config.url,
            anon_key=config.anon_key,
            analysis_table=config.analysis_table,
            portfolio_table=config.portfolio_table,
            timeout=config.timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)

    def close(self) -> None:
        self._http.close()

    # ── Transport ──────────────────────────────────────────────────────────────

    def _headers(self, session: Optional[Session]) -> dict[str, str]:
        token = session.access_token if session and session.access_token else self.anon_key
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token}",
        }

    def _request(
        self,
        method: str,
        path: str,
        session: Optional[Session] = None,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        extra_headers: Optional[dict[str, str]] = None,
        error_cls: type[StoreError] = StoreError,
    ) -> httpx.Response:
        if not self.is_configured:
            raise StoreError("Store URL / key not configured.")
        headers = self._headers(session)
        if extra_headers:
            headers.update(extra_headers)
        try:
            resp = self._http.request(
                method, f"{self.url}{path}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            raise error_cls(f"{method} {path} failed: {exc}") from exc
        if resp.is_error:
            raise error_cls(_error_message(resp), status_code=resp.status_code)
        return resp

    def _rows(self, resp: httpx.Response) -> list[dict[str, Any]]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise StoreError(f"Malformed JSON from store: {exc}") from exc
        if not isinstance(data, list):
            raise StoreError(f"Expected a row list, got {type(data).__name__}.")
        return data

    # ── Queries ────────────────────────────────────────────────────────────────

    def fetch_daily_analysis(self, session: Optional[Session] = None) -> list[MarketRecord]:
        """All analysis rows, newest date first, then highest score.

        Rows that fail normalization (no code, no positive close) are skipped
        with a warning.
        """
        resp = self._request(
            "GET",
            f"{self.REST_PATH}/{self.analysis_table}",
            session=session,
            params={"select": "*", "order": "analysis_date.desc,ai_score.desc"},
        )
        records: list[MarketRecord] = []
        skipped = 0
        for row in self._rows(resp):
            try:
                records.append(MarketRecord.from_row(row))
            except ValidationError as exc:
                skipped += 1
                logger.warning(
                    "Skipping analysis row %s: %s",
                    row.get("stock_code") or row.get("id"), exc.errors()[0]["msg"],
                )
        logger.info("Fetched %d analysis rows (%d skipped)", len(records), skipped)
        return records

    def fetch_portfolio(self, session: Optional[Session] = None) -> list[PositionRecord]:
        """Active holdings (status = holding), newest first."""
        resp = self._request(
            "GET",
            f"{self.REST_PATH}/{self.portfolio_table}",
            session=session,
            params={
                "select": "*",
                "status": f"eq.{HOLDING_STATUS}",
                "order": "created_at.desc",
            },
        )
        positions: list[PositionRecord] = []
        for row in self._rows(resp):
            try:
                positions.append(PositionRecord.from_row(row))
            except ValidationError as exc:
                logger.warning(
                    "Skipping portfolio row %s: %s", row.get("id"), exc.errors()[0]["msg"]
                )
        logger.info("Fetched %d holdings", len(positions))
        return positions

    # ── Mutations ──────────────────────────────────────────────────────────────

    def add_position(
        self,
        session: Session,
        code: str,
        name: str,
        price: float,
        quantity: float,
    ) -> PositionRecord:
        """Register a holding, replacing any active holding of the same code.

        Raises:
            AuthError: If ``session`` is not signed in.
            pydantic.ValidationError: If price or quantity is not positive.
            StoreError: On any store failure.
        """
        if not session.is_authenticated:
            raise AuthError("User not authenticated")

        formatted = normalize_code(code)
        candidate = PositionRecord(code=formatted, name=name.strip(), entry_price=price, quantity=quantity)
        table = f"{self.REST_PATH}/{self.portfolio_table}"

        # One active holding per code. Old lots are removed only after the
        # new one is stored, so a failed insert leaves them in place.
        existing = self._request(
            "GET",
            table,
            session=session,
            params={
                "select": "id",
                "stock_code": f"eq.{formatted}",
                "status": f"eq.{HOLDING_STATUS}",
                "user_id": f"eq.{session.user_id}",
            },
        )
        old_ids = [
            str(row["id"]) for row in self._rows(existing)
            if isinstance(row, dict) and row.get("id") is not None
        ]

        resp = self._request(
            "POST",
            table,
            session=session,
            json=[{
                "stock_code": candidate.code,
                "stock_name": candidate.name,
                "buy_price": candidate.entry_price,
                "quantity": candidate.quantity,
                "status": HOLDING_STATUS,
                "user_id": session.user_id,
            }],
            extra_headers={"Prefer": "return=representation"},
        )
        logger.info("Registered holding %s x%s @ %s", formatted, quantity, price)

        if old_ids:
            self._request(
                "DELETE",
                table,
                session=session,
                params={"id": f"in.({','.join(old_ids)})"},
            )
            logger.info("Replaced %d previous lot(s) of %s", len(old_ids), formatted)

        rows = self._rows(resp) if resp.content else []
        if rows:
            try:
                return PositionRecord.from_row(rows[0])
            except ValidationError:
                logger.warning("Store returned an unparseable inserted row for %s", formatted)
        return candidate

    def delete_position(self, session: Session, position_id: str) -> None:
        """Delete a holding by row id."""
        self._request(
            "DELETE",
            f"{self.REST_PATH}/{self.portfolio_table}",
            session=session,
            params={"id": f"eq.{position_id}"},
        )
        logger.info("Deleted holding id=%s", position_id)

    # ── Auth ───────────────────────────────────────────────────────────────────

    def _session_from_payload(self, payload: dict[str, Any], email: str) -> Session:
        user = payload.get("user") or {}
        token = payload.get("access_token")
        if not token:
            # Sign-up with email confirmation returns the user without a session.
            return Session.anonymous()
        return Session(
            user_id=str(user.get("id")) if user.get("id") else None,
            email=user.get("email") or email,
            access_token=token,
        )

    def sign_in(self, email: str, password: str) -> Session:
        """Password sign-in.

        Raises:
            AuthError: On bad credentials or any auth failure.
            StoreError: If the store URL / key is not configured.
        """
        resp = self._request(
            "POST",
            f"{self.AUTH_PATH}/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            error_cls=AuthError,
        )
        session = self._session_from_payload(resp.json(), email)
        if not session.is_authenticated:
            raise AuthError("Sign-in returned no session.")
        return session

    def sign_up(self, email: str, password: str) -> Session:
        """Register a new user.

        Returns a signed-in ``Session`` if the project auto-confirms,
        otherwise an anonymous one (confirm by email, then sign in).
        """
        resp = self._request(
            "POST",
            f"{self.AUTH_PATH}/signup",
            json={"email": email, "password": password},
            error_cls=AuthError,
        )
        return self._session_from_payload(resp.json(), email)

    def sign_out(self, session: Session) -> None:
        self._request("POST", f"{self.AUTH_PATH}/logout", session=session, error_cls=AuthError)

    def get_user(self, session: Session) -> Optional[dict[str, Any]]:
        """Return the user object for ``session``, or None if it is invalid."""
        if not session.access_token:
            return None
        try:
            resp = self._request("GET", f"{self.AUTH_PATH}/user", session=session, error_cls=AuthError)
        except AuthError as exc:
            logger.info("Session user lookup failed: %s", exc)
            return None
        return resp.json()
