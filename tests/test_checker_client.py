from __future__ import annotations

from typing import Any

import pytest
import requests

from drejtshkruaj_sync.config import CheckerSettings
from drejtshkruaj_sync.remote import (
    CheckerClient,
    CheckerResponseError,
    CheckerTransportError,
    RateLimitedError,
    TokenCredentials,
    UnauthenticatedError,
)
from drejtshkruaj_sync.remote import checker_client as cc


class DummyResponse:
    def __init__(
        self, status_code: int = 200, payload: Any = None, headers: dict | None = None
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class DummySession:
    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> DummyResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def sleeps(monkeypatch):
    recorded: list[float] = []
    monkeypatch.setattr(cc.time, "sleep", recorded.append)
    return recorded


def _client(session: DummySession, **settings: Any) -> CheckerClient:
    return CheckerClient(
        CheckerSettings(base_url="http://checker.test/", **settings),
        TokenCredentials("abc"),
        session=session,
    )


def test_check_posts_text_and_parses_findings(sleeps):
    text = "Une jam ketu"
    session = DummySession(
        DummyResponse(
            payload={
                "matches": [
                    {
                        "offset": 0,
                        "length": 3,
                        "wordform": "Une",
                        "shortMessage": "drejtshkrimore",
                        "suggestions": [{"value": "Unë"}],
                    },
                    {"offset": 50, "length": 3},
                ],
                "user_id": "u-1",
                "TAT": 12,
                "TST": "340",
            }
        )
    )

    result = _client(session).check(text)

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "http://checker.test/drejtshkruaj/v2/spellings"
    assert call["json"] == {"text": text}
    assert call["headers"]["Authorization"] == "Bearer abc"
    assert call["headers"]["Accept"] == "application/json"
    assert [f.surface_form for f in result.findings] == ["Une"]
    assert result.discarded == 1
    assert result.user_id == "u-1"
    assert result.tokens_this_request == 12
    assert result.tokens_spent_today == 340
    assert sleeps == []


def test_check_retries_transient_failures_with_backoff(sleeps):
    session = DummySession(
        requests.ConnectionError("down"),
        DummyResponse(status_code=503),
        DummyResponse(payload={"matches": []}),
    )

    result = _client(session, backoff_base=1.0, backoff_cap=1.5).check("tekst")

    assert result.findings == ()
    assert len(session.calls) == 3
    assert sleeps == [1.0, 1.5]


def test_check_raises_transport_error_after_attempts(sleeps):
    session = DummySession(
        DummyResponse(payload=ValueError("bad json")),
        DummyResponse(payload=["not", "an", "object"]),
    )

    with pytest.raises(CheckerTransportError):
        _client(session, max_attempts=2).check("tekst")
    assert len(sleeps) == 1


def test_server_errors_surface_status_after_attempts(sleeps):
    session = DummySession(DummyResponse(status_code=500), DummyResponse(status_code=502))

    with pytest.raises(CheckerResponseError) as excinfo:
        _client(session, max_attempts=2).check("tekst")
    assert excinfo.value.status_code == 502


def test_unauthenticated_is_distinct_and_not_retried(sleeps):
    session = DummySession(DummyResponse(status_code=401))

    with pytest.raises(UnauthenticatedError):
        _client(session).check("tekst")
    assert len(session.calls) == 1
    assert sleeps == []


def test_rate_limited_carries_retry_after(sleeps):
    session = DummySession(DummyResponse(status_code=429, headers={"Retry-After": "7"}))

    with pytest.raises(RateLimitedError) as excinfo:
        _client(session).check("tekst")
    assert excinfo.value.retry_after == 7.0
    assert len(session.calls) == 1


def test_other_client_errors_are_not_retried(sleeps):
    session = DummySession(DummyResponse(status_code=422))

    with pytest.raises(CheckerResponseError) as excinfo:
        _client(session).check("tekst")
    assert excinfo.value.status_code == 422
    assert len(session.calls) == 1


def test_fetch_usage_computes_remaining(sleeps):
    session = DummySession(
        DummyResponse(payload={"daily_token_limit": 1000, "tokens_used_today": 250})
    )

    usage = _client(session).fetch_usage()

    assert session.calls[0]["method"] == "GET"
    assert session.calls[0]["url"] == "http://checker.test/user-data/usage"
    assert usage.remaining_tokens == 750


def test_fetch_usage_rejects_malformed_payload(sleeps):
    session = DummySession(DummyResponse(payload={"tokens_used_today": 1}))

    with pytest.raises(CheckerResponseError):
        _client(session).fetch_usage()


def test_close_closes_session():
    session = DummySession()
    client = _client(session)
    client.close()
    assert session.closed
