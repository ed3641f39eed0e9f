from __future__ import annotations

import logging
import time
from typing import Any, Mapping

import requests

from ..config import CheckerSettings
from ..matches import findings_from_payload
from ..models import CheckResult, TokenUsage
from .auth import TokenCredentials
from .errors import (
    CheckerResponseError,
    CheckerTransportError,
    RateLimitedError,
    UnauthenticatedError,
)

logger = logging.getLogger(__name__)


class CheckerClient:
    """Thin wrapper around the checker HTTP API with retries for transient failures.

    Each ``check`` call is independent; the only state kept is the HTTP
    session and the credential it sends.
    """

    def __init__(
        self,
        settings: CheckerSettings,
        credentials: TokenCredentials | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials or TokenCredentials.from_settings(settings)
        self._session = session
        self._max_attempts = max(1, settings.max_attempts)

    @property
    def settings(self) -> CheckerSettings:
        return self._settings

    @property
    def credentials(self) -> TokenCredentials:
        return self._credentials

    def check(self, text: str) -> CheckResult:
        """POST one paragraph and return its parsed findings."""
        payload = self._request(
            "POST", self._settings.spellings_path, json={"text": text}
        )
        findings, discarded = findings_from_payload(payload.get("matches"), text)
        result = CheckResult(
            findings=tuple(findings),
            user_id=payload.get("user_id"),
            tokens_this_request=_number_or_none(payload.get("TAT")),
            tokens_spent_today=_number_or_none(payload.get("TST")),
            discarded=discarded,
        )
        logger.debug(
            "Checked %d characters: %d findings (%d discarded)",
            len(text),
            len(result.findings),
            discarded,
        )
        return result

    def fetch_usage(self) -> TokenUsage:
        """GET the user's daily token limits."""
        payload = self._request("GET", self._settings.usage_path)
        try:
            limit = int(payload["daily_token_limit"])
            used = int(payload.get("tokens_used_today", 0))
        except (KeyError, TypeError, ValueError) as exc:
            raise CheckerResponseError(f"Malformed usage payload: {payload!r}") from exc
        remaining = payload.get("remaining_tokens")
        return TokenUsage(
            daily_token_limit=limit,
            tokens_used_today=used,
            remaining_tokens=int(remaining) if remaining is not None else max(0, limit - used),
        )

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def _request(self, method: str, path: str, **kwargs: Any) -> Mapping[str, Any]:
        url = self._settings.endpoint(path)
        attempt = 0
        last_error: Exception | None = None
        while attempt < self._max_attempts:
            attempt += 1
            try:
                response = self._ensure_session().request(
                    method,
                    url,
                    headers=self._credentials.headers(),
                    timeout=self._settings.request_timeout,
                    **kwargs,
                )
            except requests.RequestException as exc:
                last_error = exc
            else:
                status = response.status_code
                if status == 401:
                    raise UnauthenticatedError(f"Checker rejected credentials for {url}")
                if status == 429:
                    raise RateLimitedError(
                        f"Checker rate limited request to {url}",
                        retry_after=_retry_after(response),
                    )
                if 400 <= status < 500:
                    raise CheckerResponseError(
                        f"Checker returned HTTP {status} for {url}", status_code=status
                    )
                if status >= 500:
                    last_error = CheckerResponseError(
                        f"Checker returned HTTP {status} for {url}", status_code=status
                    )
                else:
                    try:
                        payload = response.json()
                    except ValueError as exc:
                        last_error = exc
                    else:
                        if isinstance(payload, Mapping):
                            return payload
                        last_error = ValueError(
                            f"Expected a JSON object, got {type(payload).__name__}"
                        )
            logger.warning(
                "Checker request %s %s failed (attempt %s/%s): %s",
                method,
                url,
                attempt,
                self._max_attempts,
                last_error,
            )
            if attempt >= self._max_attempts:
                break
            time.sleep(self._backoff(attempt))
        if isinstance(last_error, CheckerResponseError):
            raise last_error
        raise CheckerTransportError(
            f"Checker request to {url} failed after {attempt} attempts."
        ) from last_error

    def _backoff(self, attempt: int) -> float:
        return min(
            self._settings.backoff_base * (2 ** (attempt - 1)),
            self._settings.backoff_cap,
        )

    def _ensure_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session


def _number_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _retry_after(response: requests.Response) -> float | None:
    header = response.headers.get("Retry-After") if response.headers else None
    if header is None:
        return None
    try:
        return max(0.0, float(header))
    except ValueError:
        return None
