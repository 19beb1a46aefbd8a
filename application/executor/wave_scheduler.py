# application/executor/wave_scheduler.py
from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Tuple

from application.executor.request_executor import RequestExecutor
from application.outcome import ExecutionOutcome, OutcomeKind
from application.ports.http_client import TransportError, TransportErrorKind
from application.services.execution_deps import ExecutionDeps
from application.services.response_validator import ResponseValidator
from domain.dependency_graph import DependencyGraph
from domain.scenario import Request, Scenario

CANCELLED_REASON = "run cancelled"


class WaveScheduler:
    """
    Runs a scenario wave by wave.

    Members of one wave run concurrently on a thread pool; the next wave is
    only looked at once every dispatched member of the current one has a
    final outcome. A request whose dependencies did not all pass is recorded
    as blocked and never sent.
    """

    def __init__(
        self,
        executor: RequestExecutor,
        validator: Optional[ResponseValidator] = None,
        max_concurrency: Optional[int] = None,
    ):
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._executor = executor
        self._validator = validator or ResponseValidator()
        self._max_concurrency = max_concurrency
        self._stop = threading.Event()

    def cancel(self) -> None:
        """
        Stop dispatching further waves. In-flight requests are left to finish.

        Applies to the run in progress, or to the next run if none is active;
        the flag is reset when that run returns.
        """
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def concurrency_ceiling(self, scenario: Scenario) -> Optional[int]:
        if self._max_concurrency is not None:
            return self._max_concurrency
        if scenario.config.rate > 0:
            return scenario.config.rate
        return None

    def run(self, scenario: Scenario, graph: DependencyGraph, deps: ExecutionDeps) -> Tuple[ExecutionOutcome, ...]:
        try:
            return self._run_waves(scenario, graph, deps)
        finally:
            self._stop.clear()

    def _run_waves(
        self,
        scenario: Scenario,
        graph: DependencyGraph,
        deps: ExecutionDeps,
    ) -> Tuple[ExecutionOutcome, ...]:
        if not graph.ids:
            return ()

        ceiling = self.concurrency_ceiling(scenario)
        widest = max(len(w) for w in graph.waves)
        workers = min(ceiling, widest) if ceiling else widest

        deps.logger.info(
            "schedule.start",
            requests=len(graph.ids),
            waves=len(graph.waves),
            ceiling=ceiling,
            workers=workers,
        )

        outcomes: Dict[int, ExecutionOutcome] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scenario-wave") as pool:
            for index, wave in enumerate(graph.waves):
                if self._stop.is_set():
                    deps.logger.warning("wave.skipped", wave=index, reason=CANCELLED_REASON)
                    for request_id in wave:
                        outcomes[request_id] = ExecutionOutcome(
                            request_id=request_id,
                            kind=OutcomeKind.BLOCKED,
                            wave=index,
                            reason=CANCELLED_REASON,
                        )
                    continue

                ready: List[int] = []
                for request_id in wave:
                    blockers = tuple(
                        sorted(d for d in graph.dependencies_of(request_id) if not outcomes[d].passed)
                    )
                    if blockers:
                        outcomes[request_id] = self._blocked(request_id, index, blockers, deps)
                    else:
                        ready.append(request_id)

                deps.logger.info("wave.start", wave=index, size=len(wave), dispatched=len(ready))
                t0 = time.perf_counter()
                futures: Dict[Future, int] = {
                    pool.submit(self._run_guarded, scenario, scenario.request_by_id(i), index, deps): i
                    for i in ready
                }
                if futures:
                    wait(futures)
                for future, request_id in futures.items():
                    outcomes[request_id] = future.result()
                deps.logger.info(
                    "wave.end",
                    wave=index,
                    elapsed_ms=int((time.perf_counter() - t0) * 1000),
                )

        return tuple(outcomes[i] for i in graph.ids)

    def _blocked(
        self,
        request_id: int,
        wave: int,
        blockers: Tuple[int, ...],
        deps: ExecutionDeps,
    ) -> ExecutionOutcome:
        reason = "dependencies did not pass: " + ", ".join(str(b) for b in blockers)
        deps.logger.warning("request.blocked", request_id=request_id, wave=wave, blocked_by=list(blockers))
        return ExecutionOutcome(
            request_id=request_id,
            kind=OutcomeKind.BLOCKED,
            wave=wave,
            reason=reason,
            blocked_by=blockers,
        )

    def _run_guarded(self, scenario: Scenario, request: Request, wave: int, deps: ExecutionDeps) -> ExecutionOutcome:
        try:
            return self._run_one(scenario, request, wave, deps)
        except Exception as e:
            # 1件の失敗でシナリオ全体を止めない
            error = TransportError(kind=TransportErrorKind.ERROR, message=f"{type(e).__name__}: {e}")
            deps.logger.error(
                "request.unexpected_error",
                request_id=request.id,
                wave=wave,
                error_type=type(e).__name__,
                error=str(e),
            )
            return ExecutionOutcome(
                request_id=request.id,
                kind=OutcomeKind.FAILED_TRANSPORT,
                wave=wave,
                reason=error.describe(),
                transport_error=error,
            )

    def _run_one(self, scenario: Scenario, request: Request, wave: int, deps: ExecutionDeps) -> ExecutionOutcome:
        server = scenario.server_by_id(request.server_id)
        fixture = scenario.expected_for_request(request.id)

        deps.logger.info(
            "request.start",
            request_id=request.id,
            wave=wave,
            method=request.method.value,
            path=request.path,
            server_id=server.id,
        )
        t0 = time.perf_counter()

        result = self._executor.execute(server, request, deps)
        elapsed_ms = int((time.perf_counter() - t0) * 1000)

        if isinstance(result, TransportError):
            outcome = ExecutionOutcome(
                request_id=request.id,
                kind=OutcomeKind.FAILED_TRANSPORT,
                wave=wave,
                reason=result.describe(),
                transport_error=result,
                elapsed_ms=elapsed_ms,
            )
        elif fixture is None:
            outcome = ExecutionOutcome(
                request_id=request.id,
                kind=OutcomeKind.PASSED,
                wave=wave,
                reason="no expected response",
                status=result.status,
                elapsed_ms=elapsed_ms,
            )
        else:
            verdict = self._validator.validate(fixture.expected, result)
            outcome = ExecutionOutcome(
                request_id=request.id,
                kind=OutcomeKind.PASSED if verdict.ok else OutcomeKind.FAILED_VALIDATION,
                wave=wave,
                reason=verdict.describe(),
                status=result.status,
                verdict=verdict,
                elapsed_ms=elapsed_ms,
            )

        deps.logger.info(
            "request.end",
            request_id=request.id,
            wave=wave,
            outcome=outcome.kind.value,
            status=outcome.status,
            reason=outcome.reason,
            elapsed_ms=elapsed_ms,
        )
        return outcome
