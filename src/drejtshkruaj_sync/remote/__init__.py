from .auth import TokenCredentials
from .checker_client import CheckerClient
from .errors import (
    CheckerError,
    CheckerResponseError,
    CheckerTransportError,
    RateLimitedError,
    UnauthenticatedError,
)
from .usage import UsageTracker

__all__ = [
    "CheckerClient",
    "CheckerError",
    "CheckerResponseError",
    "CheckerTransportError",
    "RateLimitedError",
    "TokenCredentials",
    "UnauthenticatedError",
    "UsageTracker",
]
