from __future__ import annotations


class CheckerError(RuntimeError):
    """Base class for failures talking to the remote checker."""


class UnauthenticatedError(CheckerError):
    """The checker rejected the session credential (HTTP 401)."""


class RateLimitedError(CheckerError):
    """The checker asked the client to slow down (HTTP 429)."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class CheckerResponseError(CheckerError):
    """Non-success HTTP status that is not worth retrying further."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CheckerTransportError(CheckerError):
    """Connection, timeout or decoding failure after all attempts."""
