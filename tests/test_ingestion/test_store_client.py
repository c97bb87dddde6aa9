"""
Tests for alpha_ledger/ingestion/store_client.py.

All HTTP traffic goes through ``httpx.MockTransport``; no network access.

What we test
------------
Queries:
  - fetch_daily_analysis sends apikey / bearer headers and the ordering.
  - Invalid rows are skipped, valid rows normalized.
  - fetch_portfolio filters status=eq.holding and uses the user token.
  - HTTP errors raise StoreError with the store's message and status.
  - Unconfigured client raises StoreError without a request.

Mutations:
  - add_position inserts first, then deletes older holdings of the code.
  - A failed insert leaves the existing holding in place.
  - add_position normalizes the code and needs a signed-in session.
  - delete_position filters by id.

Auth:
  - sign_in parses the token payload; bad credentials raise AuthError.
  - sign_up without a session returns an anonymous Session.
  - get_user returns None on an invalid session.
"""

from __future__ import annotations

import json
from typing import Callable

import httpx
import pytest

from alpha_ledger.ingestion.store_client import AuthError, StoreClient, StoreError
from alpha_ledger.session import Session

_URL = "https://abc.supabase.co"
_SESSION = Session(user_id="user-1", email="me@example.com", access_token="user-token")


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> StoreClient:
    return StoreClient(_URL, "anon-key", http_client=httpx.Client(transport=httpx.MockTransport(handler)))


class _Recorder:
    """Handler that records requests and replies from a queue."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responses.pop(0)


# ── Queries ────────────────────────────────────────────────────────────────────

class TestFetchDailyAnalysis:
    def test_headers_and_params(self):
        rec = _Recorder(httpx.Response(200, json=[]))
        _client(rec).fetch_daily_analysis()
        req = rec.requests[0]
        assert req.method == "GET"
        assert req.url.path == "/rest/v1/daily_analysis"
        assert req.url.params["order"] == "analysis_date.desc,ai_score.desc"
        assert req.headers["apikey"] == "anon-key"
        assert req.headers["authorization"] == "Bearer anon-key"

    def test_skips_invalid_rows(self, sample_row):
        rows = [sample_row, {"stock_code": "BAD", "close_price": None}, {"close_price": 5}]
        records = _client(_Recorder(httpx.Response(200, json=rows))).fetch_daily_analysis()
        assert [r.code for r in records] == ["2330.TW"]
        assert records[0].ai_score == 91.0

    def test_http_error_raises_store_error(self):
        resp = httpx.Response(500, json={"message": "relation does not exist"})
        with pytest.raises(StoreError, match="relation does not exist") as info:
            _client(_Recorder(resp)).fetch_daily_analysis()
        assert info.value.status_code == 500

    def test_transport_error_raises_store_error(self):
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(StoreError):
            _client(boom).fetch_daily_analysis()

    def test_non_list_body_raises(self):
        with pytest.raises(StoreError):
            _client(_Recorder(httpx.Response(200, json={"rows": []}))).fetch_daily_analysis()

    def test_unconfigured_client(self):
        rec = _Recorder()
        store = StoreClient("", "", http_client=httpx.Client(transport=httpx.MockTransport(rec)))
        assert store.is_configured is False
        with pytest.raises(StoreError):
            store.fetch_daily_analysis()
        assert rec.requests == []


class TestFetchPortfolio:
    def test_filters_holding_and_uses_user_token(self):
        rows = [{"id": 1, "stock_code": "2330.TW", "stock_name": "台積電", "buy_price": 600, "quantity": 1000}]
        rec = _Recorder(httpx.Response(200, json=rows))
        positions = _client(rec).fetch_portfolio(_SESSION)
        req = rec.requests[0]
        assert req.url.path == "/rest/v1/portfolio"
        assert req.url.params["status"] == "eq.holding"
        assert req.headers["authorization"] == "Bearer user-token"
        assert positions[0].id == "1"
        assert positions[0].cost_basis == 600_000.0


# ── Mutations ──────────────────────────────────────────────────────────────────

class TestAddPosition:
    def test_replaces_existing_holding(self):
        inserted = [{"id": 9, "stock_code": "2330.TW", "stock_name": "台積電", "buy_price": 610, "quantity": 2000}]
        rec = _Recorder(
            httpx.Response(200, json=[{"id": 3}, {"id": 4}]),
            httpx.Response(201, json=inserted),
            httpx.Response(204),
        )
        pos = _client(rec).add_position(_SESSION, "2330", "台積電", 610.0, 2000.0)

        lookup, insert, delete = rec.requests
        assert lookup.method == "GET"
        assert lookup.url.params["stock_code"] == "eq.2330.TW"
        assert lookup.url.params["status"] == "eq.holding"
        assert lookup.url.params["user_id"] == "eq.user-1"

        assert insert.method == "POST"
        assert insert.headers["prefer"] == "return=representation"
        body = json.loads(insert.content)
        assert body == [{
            "stock_code": "2330.TW",
            "stock_name": "台積電",
            "buy_price": 610.0,
            "quantity": 2000.0,
            "status": "holding",
            "user_id": "user-1",
        }]

        assert delete.method == "DELETE"
        assert delete.url.params["id"] == "in.(3,4)"
        assert pos.id == "9"

    def test_no_existing_holding_skips_delete(self):
        rec = _Recorder(httpx.Response(200, json=[]), httpx.Response(201))
        pos = _client(rec).add_position(_SESSION, "2454", "聯發科", 1200.0, 1000.0)
        assert [r.method for r in rec.requests] == ["GET", "POST"]
        assert pos.id is None
        assert pos.code == "2454.TW"

    def test_failed_insert_keeps_existing_holding(self):
        holdings = [{"id": 3, "stock_code": "2330.TW", "status": "holding", "user_id": "user-1"}]

        def store(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json=[{"id": row["id"]} for row in holdings])
            if request.method == "POST":
                return httpx.Response(500, json={"message": "insert failed"})
            holdings.clear()
            return httpx.Response(204)

        with pytest.raises(StoreError, match="insert failed"):
            _client(store).add_position(_SESSION, "2330", "台積電", 650.0, 1000.0)
        assert [row["id"] for row in holdings] == [3]

    def test_requires_authenticated_session(self):
        rec = _Recorder()
        with pytest.raises(AuthError):
            _client(rec).add_position(Session.anonymous(), "2330", "台積電", 610.0, 1.0)
        assert rec.requests == []

    def test_rejects_non_positive_price(self):
        rec = _Recorder()
        with pytest.raises(ValueError):
            _client(rec).add_position(_SESSION, "2330", "台積電", 0.0, 1.0)
        assert rec.requests == []


class TestDeletePosition:
    def test_filters_by_id(self):
        rec = _Recorder(httpx.Response(204))
        _client(rec).delete_position(_SESSION, "42")
        assert rec.requests[0].method == "DELETE"
        assert rec.requests[0].url.params["id"] == "eq.42"


# ── Auth ───────────────────────────────────────────────────────────────────────

class TestAuth:
    def test_sign_in(self):
        payload = {"access_token": "tok", "user": {"id": "u-9", "email": "me@example.com"}}
        rec = _Recorder(httpx.Response(200, json=payload))
        session = _client(rec).sign_in("me@example.com", "pw")
        assert session == Session(user_id="u-9", email="me@example.com", access_token="tok")
        assert rec.requests[0].url.path == "/auth/v1/token"
        assert rec.requests[0].url.params["grant_type"] == "password"

    def test_bad_credentials(self):
        resp = httpx.Response(400, json={"error_description": "Invalid login credentials"})
        with pytest.raises(AuthError, match="Invalid login credentials"):
            _client(_Recorder(resp)).sign_in("me@example.com", "wrong")

    def test_sign_up_pending_confirmation(self):
        rec = _Recorder(httpx.Response(200, json={"id": "u-10", "email": "new@example.com"}))
        session = _client(rec).sign_up("new@example.com", "pw")
        assert session.is_authenticated is False

    def test_sign_out(self):
        rec = _Recorder(httpx.Response(204))
        _client(rec).sign_out(_SESSION)
        assert rec.requests[0].url.path == "/auth/v1/logout"
        assert rec.requests[0].headers["authorization"] == "Bearer user-token"

    def test_get_user_invalid_session(self):
        rec = _Recorder(httpx.Response(401, json={"msg": "invalid JWT"}))
        assert _client(rec).get_user(_SESSION) is None

    def test_get_user_anonymous_skips_request(self):
        rec = _Recorder()
        assert _client(rec).get_user(Session.anonymous()) is None
        assert rec.requests == []
