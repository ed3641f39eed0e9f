from __future__ import annotations

import logging
import os

from ..config import CheckerSettings

logger = logging.getLogger(__name__)


class TokenCredentials:
    """Bearer token for the checker session.

    Storage and refresh belong to the sign-in flow; this object only holds
    the current token and forgets it when the server rejects it.
    """

    def __init__(self, token: str | None = None) -> None:
        self._token = token or None

    @classmethod
    def from_settings(cls, settings: CheckerSettings) -> "TokenCredentials":
        """Resolve the token from explicit config or the configured environment variable."""
        if settings.token:
            return cls(settings.token)
        env_name = settings.token_env
        if env_name and os.environ.get(env_name):
            return cls(os.environ[env_name])
        return cls()

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set(self, token: str) -> None:
        self._token = token or None

    def clear(self) -> None:
        if self._token is not None:
            logger.info("Clearing stored checker credential")
        self._token = None

    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers
