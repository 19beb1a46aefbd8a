from __future__ import annotations

import threading
import time

import pytest

from application.executor.request_executor import RequestExecutor
from application.executor.transport_registry import TransportRegistry
from application.executor.wave_scheduler import CANCELLED_REASON, WaveScheduler
from application.outcome import OutcomeKind
from application.ports.http_client import TransportErrorKind, TransportFailure, TransportResponse
from application.ports.requests_client import RequestsHttpTransport
from application.services.execution_deps import ExecutionDeps
from application.services.response_validator import ResponseValidator
from domain.dependency_graph import build_dependency_graph
from tests.fakes import (
    RecordingLogger,
    StubTransport,
    json_response,
    make_expected,
    make_request,
    make_scenario,
    make_server,
    trickling_http_server,
)


def _run(scenario, stub, max_concurrency=None, logger=None):
    scheduler = WaveScheduler(RequestExecutor(TransportRegistry([stub])), max_concurrency=max_concurrency)
    deps = ExecutionDeps(logger=logger or RecordingLogger())
    outcomes = scheduler.run(scenario, build_dependency_graph(scenario), deps)
    return {o.request_id: o for o in outcomes}


def test_outcomes_follow_scenario_order() -> None:
    scenario = make_scenario([make_request(3, depends=[1]), make_request(1), make_request(2)])

    outcomes = WaveScheduler(RequestExecutor(TransportRegistry([StubTransport()]))).run(
        scenario, build_dependency_graph(scenario), ExecutionDeps(logger=RecordingLogger())
    )

    assert [o.request_id for o in outcomes] == [3, 1, 2]
    assert [o.wave for o in outcomes] == [1, 0, 0]


def test_request_without_fixture_passes_on_any_response() -> None:
    stub = StubTransport({"/r1": json_response(503)})

    outcomes = _run(make_scenario([make_request(1)]), stub)

    assert outcomes[1].kind is OutcomeKind.PASSED
    assert outcomes[1].status == 503


def test_failed_validation_blocks_dependent_without_sending_it() -> None:
    scenario = make_scenario(
        [make_request(1, path="/a"), make_request(2, path="/b", depends=[1])],
        [make_expected(1, status=200, body={"ok": True})],
    )
    stub = StubTransport({"/a": json_response(200, {"ok": False})})

    outcomes = _run(scenario, stub)

    assert outcomes[1].kind is OutcomeKind.FAILED_VALIDATION
    assert outcomes[2].kind is OutcomeKind.BLOCKED
    assert outcomes[2].blocked_by == (1,)
    assert stub.calls_to("/b") == 0


def test_blocking_is_transitive() -> None:
    scenario = make_scenario(
        [
            make_request(1),
            make_request(2, depends=[1]),
            make_request(3, depends=[2]),
            make_request(4, depends=[3]),
            make_request(5),
        ]
    )
    stub = StubTransport({"/r1": TransportFailure(TransportErrorKind.CONNECT, "connection refused")})

    outcomes = _run(scenario, stub)

    assert outcomes[1].kind is OutcomeKind.FAILED_TRANSPORT
    assert outcomes[1].transport_error.kind is TransportErrorKind.CONNECT
    assert [outcomes[i].kind for i in (2, 3, 4)] == [OutcomeKind.BLOCKED] * 3
    assert outcomes[3].blocked_by == (2,)
    assert outcomes[5].kind is OutcomeKind.PASSED
    assert {stub.calls_to(p) for p in ("/r2", "/r3", "/r4")} == {0}


def test_timeout_does_not_affect_siblings() -> None:
    scenario = make_scenario(
        [make_request(1), make_request(2), make_request(3, depends=[1]), make_request(4, depends=[2])]
    )
    stub = StubTransport({"/r1": TransportFailure(TransportErrorKind.TIMEOUT, "read timed out")})

    outcomes = _run(scenario, stub)

    assert outcomes[1].kind is OutcomeKind.FAILED_TRANSPORT
    assert outcomes[1].reason == "timeout: read timed out"
    assert outcomes[2].kind is OutcomeKind.PASSED
    assert outcomes[3].kind is OutcomeKind.BLOCKED
    assert outcomes[4].kind is OutcomeKind.PASSED


def test_partial_dependency_failure_blocks() -> None:
    scenario = make_scenario(
        [make_request(1), make_request(2), make_request(3, depends=[1, 2])],
        [make_expected(2, status=200)],
    )
    stub = StubTransport({"/r2": json_response(404)})

    outcomes = _run(scenario, stub)

    assert outcomes[1].kind is OutcomeKind.PASSED
    assert outcomes[3].kind is OutcomeKind.BLOCKED
    assert outcomes[3].blocked_by == (2,)


def test_dependents_start_only_after_dependencies_finish() -> None:
    finished = {}
    started = {}

    def slow(request):
        time.sleep(0.05)
        finished["/r1"] = time.monotonic()
        return json_response(200)

    def record(request):
        started["/r2"] = time.monotonic()
        return json_response(200)

    scenario = make_scenario([make_request(2, depends=[1]), make_request(1)])

    _run(scenario, StubTransport({"/r1": slow, "/r2": record}))

    assert started["/r2"] >= finished["/r1"]


def test_wave_members_run_concurrently() -> None:
    barrier = threading.Barrier(3, timeout=5)

    def meet(_request):
        barrier.wait()
        return json_response(200)

    scenario = make_scenario([make_request(i) for i in (1, 2, 3)])

    outcomes = _run(scenario, StubTransport({f"/r{i}": meet for i in (1, 2, 3)}))

    assert all(o.kind is OutcomeKind.PASSED for o in outcomes.values())


def test_concurrency_ceiling_limits_in_flight_requests() -> None:
    lock = threading.Lock()
    state = {"current": 0, "peak": 0}

    def track(_request):
        with lock:
            state["current"] += 1
            state["peak"] = max(state["peak"], state["current"])
        time.sleep(0.02)
        with lock:
            state["current"] -= 1
        return json_response(200)

    scenario = make_scenario([make_request(i) for i in range(1, 9)])

    outcomes = _run(scenario, StubTransport({f"/r{i}": track for i in range(1, 9)}), max_concurrency=2)

    assert state["peak"] <= 2
    assert len(outcomes) == 8
    assert all(o.wave == 0 for o in outcomes.values())


def test_ceiling_comes_from_rate_hint() -> None:
    scheduler = WaveScheduler(RequestExecutor(TransportRegistry([StubTransport()])))

    assert scheduler.concurrency_ceiling(make_scenario([], rate=3)) == 3
    assert scheduler.concurrency_ceiling(make_scenario([], rate=0)) is None


def test_explicit_ceiling_overrides_rate_hint() -> None:
    scheduler = WaveScheduler(RequestExecutor(TransportRegistry([StubTransport()])), max_concurrency=5)

    assert scheduler.concurrency_ceiling(make_scenario([], rate=3)) == 5


def test_invalid_ceiling_is_rejected() -> None:
    with pytest.raises(ValueError):
        WaveScheduler(RequestExecutor(TransportRegistry([StubTransport()])), max_concurrency=0)


def test_cancel_stops_later_waves_but_finishes_current() -> None:
    scheduler_holder = {}

    def cancel_during_first_wave(_request):
        scheduler_holder["scheduler"].cancel()
        return json_response(200)

    scenario = make_scenario([make_request(1), make_request(2, depends=[1]), make_request(3, depends=[2])])
    stub = StubTransport({"/r1": cancel_during_first_wave})
    scheduler = WaveScheduler(RequestExecutor(TransportRegistry([stub])))
    scheduler_holder["scheduler"] = scheduler

    outcomes = scheduler.run(scenario, build_dependency_graph(scenario), ExecutionDeps(logger=RecordingLogger()))

    assert outcomes[0].kind is OutcomeKind.PASSED
    assert [o.kind for o in outcomes[1:]] == [OutcomeKind.BLOCKED, OutcomeKind.BLOCKED]
    assert outcomes[1].reason == CANCELLED_REASON
    assert stub.calls_to("/r2") == 0


def test_scheduler_is_reusable_after_a_cancelled_run() -> None:
    scheduler_holder = {}
    calls = []

    def cancel_on_first_call(_request):
        calls.append(1)
        if len(calls) == 1:
            scheduler_holder["scheduler"].cancel()
        return json_response(200)

    scenario = make_scenario([make_request(1), make_request(2, depends=[1])])
    stub = StubTransport({"/r1": cancel_on_first_call})
    scheduler = WaveScheduler(RequestExecutor(TransportRegistry([stub])))
    scheduler_holder["scheduler"] = scheduler
    graph = build_dependency_graph(scenario)

    first = scheduler.run(scenario, graph, ExecutionDeps(logger=RecordingLogger()))
    second = scheduler.run(scenario, graph, ExecutionDeps(logger=RecordingLogger()))

    assert first[1].reason == CANCELLED_REASON
    assert scheduler.cancelled is False
    assert [o.kind for o in second] == [OutcomeKind.PASSED, OutcomeKind.PASSED]
    assert stub.calls_to("/r2") == 1


def test_cancel_before_run_applies_to_that_run() -> None:
    scenario = make_scenario([make_request(1)])
    stub = StubTransport()
    scheduler = WaveScheduler(RequestExecutor(TransportRegistry([stub])))

    scheduler.cancel()
    outcomes = scheduler.run(scenario, build_dependency_graph(scenario), ExecutionDeps(logger=RecordingLogger()))

    assert outcomes[0].kind is OutcomeKind.BLOCKED
    assert outcomes[0].reason == CANCELLED_REASON
    assert stub.calls == []
    assert scheduler.cancelled is False


def test_empty_graph_produces_no_outcomes() -> None:
    scenario = make_scenario([])
    scheduler = WaveScheduler(RequestExecutor(TransportRegistry([StubTransport()])))

    assert scheduler.run(scenario, build_dependency_graph(scenario), ExecutionDeps(logger=RecordingLogger())) == ()


def test_wave_and_request_events_are_logged() -> None:
    logger = RecordingLogger()

    _run(make_scenario([make_request(1), make_request(2, depends=[1])]), StubTransport(), logger=logger)

    names = logger.names()
    assert names.count("wave.start") == 2
    assert names.count("request.end") == 2
    assert names.index("wave.end") < names.index("request.start", names.index("wave.end"))


class _ExplodingValidator(ResponseValidator):
    def validate(self, expected, actual):
        raise RuntimeError("validator blew up")


def test_unexpected_error_fails_only_that_request() -> None:
    # Arrange
    scenario = make_scenario(
        [make_request(1, path="/a"), make_request(2, path="/b"), make_request(3, path="/c", depends=[1])],
        [make_expected(1)],
    )
    stub = StubTransport()
    logger = RecordingLogger()
    scheduler = WaveScheduler(RequestExecutor(TransportRegistry([stub])), validator=_ExplodingValidator())

    # Act
    outcomes = {
        o.request_id: o
        for o in scheduler.run(scenario, build_dependency_graph(scenario), ExecutionDeps(logger=logger))
    }

    # Assert
    assert outcomes[1].kind is OutcomeKind.FAILED_TRANSPORT
    assert outcomes[1].transport_error.kind is TransportErrorKind.ERROR
    assert outcomes[1].reason == "error: RuntimeError: validator blew up"
    assert outcomes[2].kind is OutcomeKind.PASSED
    assert outcomes[3].kind is OutcomeKind.BLOCKED
    assert stub.calls_to("/c") == 0
    assert "request.unexpected_error" in logger.names()


def test_deeply_nested_body_fails_validation_without_aborting() -> None:
    depth = 100_000
    nested = b"[" * depth + b"]" * depth
    scenario = make_scenario(
        [make_request(1, path="/deep"), make_request(2, path="/next", depends=[1]), make_request(3, path="/other")],
        [make_expected(1, body=[])],
    )
    stub = StubTransport({"/deep": TransportResponse(status=200, headers={}, content=nested)})

    outcomes = _run(scenario, stub)

    assert outcomes[1].kind is OutcomeKind.FAILED_VALIDATION
    assert not outcomes[1].verdict.check("body").ok
    assert outcomes[2].kind is OutcomeKind.BLOCKED
    assert outcomes[3].kind is OutcomeKind.PASSED


def test_request_timeout_covers_a_slowly_streamed_body() -> None:
    transport = RequestsHttpTransport()
    transport._session.trust_env = False
    with trickling_http_server(body=b'{"ok": true}' + b" " * 8, delay_sec=0.15) as (host, port):
        scenario = make_scenario(
            [make_request(1, path="/slow", timeout_ms=500), make_request(2, path="/slow", depends=[1])],
            [make_expected(1, body={"ok": True})],
            servers=[make_server(host=host, port=port)],
        )
        scheduler = WaveScheduler(RequestExecutor(TransportRegistry([transport])))

        started = time.monotonic()
        outcomes = scheduler.run(scenario, build_dependency_graph(scenario), ExecutionDeps(logger=RecordingLogger()))
        elapsed = time.monotonic() - started
    transport.close()

    assert outcomes[0].kind is OutcomeKind.FAILED_TRANSPORT
    assert outcomes[0].transport_error.kind is TransportErrorKind.TIMEOUT
    assert outcomes[1].kind is OutcomeKind.BLOCKED
    assert elapsed < 2.0
