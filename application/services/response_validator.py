# application/services/response_validator.py
"""
Compare an actual transport response against an expected-response fixture.

Headers are matched as a subset with case-insensitive names; bodies are
compared as parsed JSON values (object key order ignored, array order kept).
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from application.outcome import CheckResult, ValidationVerdict
from application.ports.http_client import TransportResponse
from domain.scenario import ExpectedContent


def json_diff(expected: Any, actual: Any, path: str = "$") -> Optional[str]:
    """
    Return the path of the first difference between two JSON values, or None.

    Booleans never equal numbers; ints and floats compare by value.
    """
    if isinstance(expected, bool) or isinstance(actual, bool):
        if type(expected) is not type(actual) or expected != actual:
            return path
        return None

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return path
        if set(expected) != set(actual):
            missing = sorted(set(expected) - set(actual))
            extra = sorted(set(actual) - set(expected))
            key = (missing or extra)[0]
            return f"{path}.{key}"
        for key in sorted(expected):
            found = json_diff(expected[key], actual[key], f"{path}.{key}")
            if found:
                return found
        return None

    if isinstance(expected, list):
        if not isinstance(actual, list):
            return path
        for index, (e, a) in enumerate(zip(expected, actual)):
            found = json_diff(e, a, f"{path}[{index}]")
            if found:
                return found
        if len(expected) != len(actual):
            return f"{path}[{min(len(expected), len(actual))}]"
        return None

    if isinstance(expected, (int, float)) and isinstance(actual, (int, float)):
        return None if expected == actual else path

    if type(expected) is not type(actual) or expected != actual:
        return path
    return None


def _lookup_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


class ResponseValidator:
    def validate(self, expected: ExpectedContent, actual: TransportResponse) -> ValidationVerdict:
        return ValidationVerdict(
            checks=(
                self._check_status(expected, actual),
                self._check_headers(expected, actual),
                self._check_body(expected, actual),
            )
        )

    def _check_status(self, expected: ExpectedContent, actual: TransportResponse) -> CheckResult:
        return CheckResult(
            name="status",
            ok=expected.status == actual.status,
            expected=expected.status,
            actual=actual.status,
        )

    def _check_headers(self, expected: ExpectedContent, actual: TransportResponse) -> CheckResult:
        mismatched: Dict[str, Optional[str]] = {}
        for name, value in expected.headers.items():
            got = _lookup_header(actual.headers, name)
            if got != value:
                mismatched[name] = got

        if not mismatched:
            return CheckResult(name="headers", ok=True, expected=dict(expected.headers))

        names = sorted(mismatched)
        missing = [n for n in names if mismatched[n] is None]
        detail = f"missing: {', '.join(missing)}" if missing else f"differs: {', '.join(names)}"
        return CheckResult(
            name="headers",
            ok=False,
            expected={n: expected.headers[n] for n in names},
            actual=mismatched,
            detail=detail,
        )

    def _check_body(self, expected: ExpectedContent, actual: TransportResponse) -> CheckResult:
        try:
            body = actual.json()
        except ValueError as e:
            return CheckResult(
                name="body",
                ok=False,
                expected=expected.body,
                actual=actual.text[:200],
                detail=f"response body is not valid JSON: {e}",
            )
        except RecursionError:
            return CheckResult(
                name="body",
                ok=False,
                expected=expected.body,
                actual=actual.text[:200],
                detail="response body is nested too deeply to parse",
            )

        diff_path = json_diff(expected.body, body)
        if diff_path is None:
            return CheckResult(name="body", ok=True, expected=expected.body, actual=body)
        return CheckResult(
            name="body",
            ok=False,
            expected=expected.body,
            actual=body,
            detail=f"first difference at {diff_path}",
        )
