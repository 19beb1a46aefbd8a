from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from application.services.execution_deps import DEFAULT_TIMEOUT_MS

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS = ("text", "json")


class ConfigError(ValueError):
    pass


def _parse_positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer: {raw!r}") from exc
    if value < 1:
        raise ConfigError(f"{name} must be >= 1: {value}")
    return value


@dataclass(frozen=True)
class RunnerSettings:
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_concurrency: Optional[int] = None
    log_level: str = "INFO"
    log_format: str = "text"

    def __post_init__(self) -> None:
        if self.default_timeout_ms < 1:
            raise ConfigError(f"default_timeout_ms must be >= 1: {self.default_timeout_ms}")
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ConfigError(f"max_concurrency must be >= 1: {self.max_concurrency}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"Unknown log format: {self.log_format}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RunnerSettings":
        """
        Build settings from TRAFFIC_* environment variables.

        Unset variables keep their defaults. A .env file is expected to have
        been loaded by the caller already.
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        raw = env.get("TRAFFIC_DEFAULT_TIMEOUT_MS")
        if raw:
            kwargs["default_timeout_ms"] = _parse_positive_int("TRAFFIC_DEFAULT_TIMEOUT_MS", raw)
        raw = env.get("TRAFFIC_MAX_CONCURRENCY")
        if raw:
            kwargs["max_concurrency"] = _parse_positive_int("TRAFFIC_MAX_CONCURRENCY", raw)
        raw = env.get("TRAFFIC_LOG_LEVEL")
        if raw:
            kwargs["log_level"] = raw.upper()
        raw = env.get("TRAFFIC_LOG_FORMAT")
        if raw:
            kwargs["log_format"] = raw.lower()

        return cls(**kwargs)

    def override(self, **changes) -> "RunnerSettings":
        """Copy with the given non-None values applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
