# application/executor/scenario_runner.py
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from application.executor.wave_scheduler import WaveScheduler
from application.services.execution_deps import ExecutionDeps
from application.services.execution_error_builder import ExecutionErrorBuilder, ExecutionErrorDetail
from application.services.statistics import ScenarioReport, StatisticsAggregator, Verdict
from domain.exceptions import ScenarioStructureError
from domain.scenario import Scenario
from domain.scenario_validator import ScenarioStructureValidator


@dataclass(frozen=True)
class ScenarioRunResult:
    run_id: str
    scenario_name: str
    report: Optional[ScenarioReport] = None
    error: Optional[ExecutionErrorDetail] = None

    @property
    def valid(self) -> bool:
        return self.error is None

    @property
    def verdict(self) -> Verdict:
        if self.report is None:
            return Verdict.INVALID
        return self.report.verdict

    @property
    def ok(self) -> bool:
        return self.verdict is Verdict.PASSED

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "run_id": self.run_id,
            "scenario": self.scenario_name,
            "valid": self.valid,
            "verdict": self.verdict.value,
        }
        if self.error is not None:
            data["error"] = self.error.to_dict()
        if self.report is not None:
            data["report"] = self.report.to_dict()
        return data


class ScenarioRunner:
    """
    Validate a scenario's structure, execute it and fold the outcomes into a report.

    A structurally invalid scenario is reported as such and nothing is sent.
    """

    def __init__(
        self,
        scheduler: WaveScheduler,
        validator: Optional[ScenarioStructureValidator] = None,
        aggregator: Optional[StatisticsAggregator] = None,
        error_builder: Optional[ExecutionErrorBuilder] = None,
    ):
        self._scheduler = scheduler
        self._validator = validator or ScenarioStructureValidator()
        self._aggregator = aggregator or StatisticsAggregator()
        self._error_builder = error_builder or ExecutionErrorBuilder()

    def run(self, scenario: Scenario, deps: ExecutionDeps, run_id: Optional[str] = None) -> ScenarioRunResult:
        run_id = run_id or uuid.uuid4().hex
        name = scenario.config.name
        deps = deps.with_logger(deps.logger.bind(run_id=run_id, scenario=name))

        try:
            graph = self._validator.validate(scenario)
        except ScenarioStructureError as e:
            detail = self._error_builder.build_from_structure_error(e)
            deps.logger.error(
                "scenario.invalid",
                error_type=detail.error_type,
                error=detail.message,
                ids=list(detail.ids),
            )
            return ScenarioRunResult(run_id=run_id, scenario_name=name, error=detail)

        deps.logger.info(
            "scenario.start",
            servers=len(scenario.servers),
            requests=len(scenario.requests),
            responses=len(scenario.responses),
            waves=[list(w) for w in graph.waves],
        )
        t0 = time.perf_counter()

        outcomes = self._scheduler.run(scenario, graph, deps)

        report = self._aggregator.aggregate(
            name,
            outcomes,
            waves=len(graph.waves),
            elapsed_ms=int((time.perf_counter() - t0) * 1000),
        )
        deps.logger.info(
            "scenario.end",
            verdict=report.verdict.value,
            total=report.total,
            counts={k.value: v for k, v in report.counts.items()},
            elapsed_ms=report.elapsed_ms,
        )
        return ScenarioRunResult(run_id=run_id, scenario_name=name, report=report)
