from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml


@dataclass(slots=True)
class CheckerSettings:
    """Configuration block for the remote spelling/grammar checker."""

    base_url: str = "http://127.0.0.1:8000/"
    spellings_path: str = "drejtshkruaj/v2/spellings"
    usage_path: str = "user-data/usage"
    token: str | None = None
    token_env: str = "DREJTSHKRUAJ_AUTH_TOKEN"
    request_timeout: float = 15.0
    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_cap: float = 60.0

    def endpoint(self, path: str) -> str:
        return self.base_url.rstrip("/") + "/" + path.lstrip("/")


@dataclass(slots=True)
class SyncConfig:
    """Configuration options for the annotation synchronization engine."""

    cooldown_seconds: float = 4.0
    cache_freshness_seconds: float = 30.0
    cache_max_entries: int = 512
    min_request_interval: float = 0.5
    rate_limit_window: float = 60.0
    rate_limit_max_calls: int = 30
    rate_limit_cooldown: float = 10.0
    relocation_radius: int = 30
    max_suggestions: int = 3
    checker: CheckerSettings = field(default_factory=CheckerSettings)

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable dictionary representation of the configuration."""
        return dict(asdict(self))

    def validate(self) -> "SyncConfig":
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be >= 0.")
        if self.cache_freshness_seconds < 0:
            raise ValueError("cache_freshness_seconds must be >= 0.")
        if self.rate_limit_max_calls < 1:
            raise ValueError("rate_limit_max_calls must be >= 1.")
        if self.rate_limit_window <= 0:
            raise ValueError("rate_limit_window must be > 0.")
        if self.checker.max_attempts < 1:
            raise ValueError("checker.max_attempts must be >= 1.")
        return self


def _build_kwargs(data: Mapping[str, Any]) -> dict[str, Any]:
    allowed = {field.name for field in fields(SyncConfig)}
    kwargs = {key: data[key] for key in data if key in allowed}
    if "checker" in data:
        checker_value = data["checker"]
        if isinstance(checker_value, CheckerSettings):
            kwargs["checker"] = checker_value
        elif isinstance(checker_value, Mapping):
            kwargs["checker"] = _build_checker_settings(checker_value)
        else:
            kwargs.pop("checker")
    return kwargs


def _build_checker_settings(data: Mapping[str, Any]) -> CheckerSettings:
    checker_allowed = {field.name for field in fields(CheckerSettings)}
    filtered = {key: data[key] for key in data if key in checker_allowed}
    return CheckerSettings(**filtered)


def config_from_dict(data: Mapping[str, Any] | None) -> SyncConfig:
    """Build a SyncConfig from a dictionary-like input."""
    if data is None:
        return SyncConfig()
    return SyncConfig(**_build_kwargs(data)).validate()


def config_from_yaml(path: str | Path) -> SyncConfig:
    """Load configuration from a YAML file."""
    contents = Path(path).read_text(encoding="utf-8")
    parsed = yaml.safe_load(contents) or {}
    if not isinstance(parsed, MutableMapping):
        raise ValueError("Configuration YAML must define a mapping.")
    return config_from_dict(parsed)


def load_config(path: str | Path | None = None) -> SyncConfig:
    """Load configuration from YAML when provided, otherwise return defaults."""
    if path is None:
        return SyncConfig()
    return config_from_yaml(path)
