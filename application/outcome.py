# application/outcome.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from application.ports.http_client import TransportError


class OutcomeKind(str, Enum):
    PASSED = "passed"
    FAILED_TRANSPORT = "failed_transport"
    FAILED_VALIDATION = "failed_validation"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class CheckResult:
    name: str  # "status" | "headers" | "body"
    ok: bool
    expected: Any = None
    actual: Any = None
    detail: Optional[str] = None

    def describe(self) -> str:
        text = f"{self.name} mismatch: expected {self.expected!r}, got {self.actual!r}"
        if self.detail:
            text += f" ({self.detail})"
        return text


@dataclass(frozen=True)
class ValidationVerdict:
    checks: Tuple[CheckResult, ...]

    @property
    def ok(self) -> bool:
        return all(c.ok for c in self.checks)

    @property
    def failed_checks(self) -> Tuple[CheckResult, ...]:
        return tuple(c for c in self.checks if not c.ok)

    def check(self, name: str) -> Optional[CheckResult]:
        for c in self.checks:
            if c.name == name:
                return c
        return None

    def describe(self) -> Optional[str]:
        failed = self.failed_checks
        if not failed:
            return None
        return failed[0].describe()


@dataclass(frozen=True)
class ExecutionOutcome:
    request_id: int
    kind: OutcomeKind
    wave: int
    reason: Optional[str] = None
    status: Optional[int] = None
    verdict: Optional[ValidationVerdict] = None
    transport_error: Optional[TransportError] = None
    blocked_by: Tuple[int, ...] = ()
    elapsed_ms: Optional[int] = None

    @property
    def passed(self) -> bool:
        return self.kind is OutcomeKind.PASSED

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "request_id": self.request_id,
            "outcome": self.kind.value,
            "wave": self.wave,
        }
        if self.reason is not None:
            data["reason"] = self.reason
        if self.status is not None:
            data["status"] = self.status
        if self.elapsed_ms is not None:
            data["elapsed_ms"] = self.elapsed_ms
        if self.blocked_by:
            data["blocked_by"] = list(self.blocked_by)
        if self.transport_error is not None:
            data["transport_error"] = {
                "kind": self.transport_error.kind.value,
                "message": self.transport_error.message,
            }
        if self.verdict is not None:
            data["checks"] = [
                {"name": c.name, "ok": c.ok, "expected": c.expected, "actual": c.actual, "detail": c.detail}
                for c in self.verdict.checks
            ]
        return data
