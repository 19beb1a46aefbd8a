from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from application.outcome import ExecutionOutcome, OutcomeKind


class Verdict(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    INVALID = "invalid"


@dataclass(frozen=True)
class ScenarioReport:
    scenario_name: str
    outcomes: Tuple[ExecutionOutcome, ...]
    counts: Dict[OutcomeKind, int]
    verdict: Verdict
    waves: int = 0
    elapsed_ms: Optional[int] = None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASSED

    def outcome_for(self, request_id: int) -> Optional[ExecutionOutcome]:
        for outcome in self.outcomes:
            if outcome.request_id == request_id:
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario_name,
            "verdict": self.verdict.value,
            "total": self.total,
            "counts": {kind.value: n for kind, n in self.counts.items()},
            "waves": self.waves,
            "elapsed_ms": self.elapsed_ms,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class StatisticsAggregator:
    def aggregate(
        self,
        scenario_name: str,
        outcomes: Iterable[ExecutionOutcome],
        waves: int = 0,
        elapsed_ms: Optional[int] = None,
    ) -> ScenarioReport:
        items = tuple(outcomes)
        counts = {kind: 0 for kind in OutcomeKind}
        for outcome in items:
            counts[outcome.kind] += 1

        ok = bool(items) and counts[OutcomeKind.PASSED] == len(items)
        return ScenarioReport(
            scenario_name=scenario_name,
            outcomes=items,
            counts=counts,
            verdict=Verdict.PASSED if ok else Verdict.FAILED,
            waves=waves,
            elapsed_ms=elapsed_ms,
        )
