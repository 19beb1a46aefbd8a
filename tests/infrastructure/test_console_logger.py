from __future__ import annotations

import io
import json

from infrastructure.logging.console_logger import ConsoleLogger


def _parse(line: str, event: str):
    assert line.startswith(f"{event} ")
    return json.loads(line[len(event) + 1:])


def test_console_logger_emits_type_field(capsys) -> None:
    logger = ConsoleLogger()

    logger.info("request.start", request_id=1)

    captured = capsys.readouterr()
    payload = _parse(captured.err.strip(), "request.start")
    assert payload["type"] == "request.start"
    assert payload["level"] == "info"
    assert payload["request_id"] == 1
    assert captured.out == ""


def test_bound_fields_are_merged_into_every_event() -> None:
    stream = io.StringIO()
    logger = ConsoleLogger(stream=stream).bind(run_id="r1").bind(scenario="s")

    logger.warning("request.blocked", request_id=2)

    payload = _parse(stream.getvalue().strip(), "request.blocked")
    assert payload["run_id"] == "r1"
    assert payload["scenario"] == "s"
    assert payload["request_id"] == 2


def test_events_below_level_are_dropped() -> None:
    stream = io.StringIO()
    logger = ConsoleLogger(level="WARNING", stream=stream)

    logger.debug("http.request")
    logger.info("wave.start")
    logger.error("scenario.invalid")

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    assert lines[0].startswith("scenario.invalid ")


def test_bind_keeps_level_and_stream() -> None:
    stream = io.StringIO()
    bound = ConsoleLogger(level="ERROR", stream=stream).bind(run_id="r1")

    bound.info("dropped")
    bound.error("kept")

    assert bound.level == "ERROR"
    assert stream.getvalue().startswith("kept ")


def test_non_json_values_are_stringified() -> None:
    stream = io.StringIO()

    ConsoleLogger(stream=stream).info("scenario.end", obj=object())

    payload = _parse(stream.getvalue().strip(), "scenario.end")
    assert payload["obj"].startswith("<object object")
