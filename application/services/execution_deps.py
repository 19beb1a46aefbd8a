# application/services/execution_deps.py
from __future__ import annotations

from dataclasses import dataclass, replace

from application.ports.logger import LoggerPort

DEFAULT_TIMEOUT_MS = 30_000


@dataclass(frozen=True)
class ExecutionDeps:
    logger: LoggerPort
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS

    # logger を差し替えたコピーを返す
    def with_logger(self, logger: LoggerPort) -> "ExecutionDeps":
        return replace(self, logger=logger)
