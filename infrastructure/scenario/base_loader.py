"""
Build a Scenario domain object from a parsed scenario document
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from domain.scenario import (
    ExpectedContent,
    ExpectedResponse,
    HttpMethod,
    HttpVersion,
    Protocol,
    Request,
    RequestContent,
    Scenario,
    ScenarioConfig,
    Server,
)

E = TypeVar("E")


class ScenarioLoadError(Exception):
    pass


def _require(data: Dict[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise ScenarioLoadError(f"{where}: missing field '{key}'")
    return data[key]


def _as_int(value: Any, where: str) -> int:
    # bool は int のサブクラスなので明示的に除外する
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ScenarioLoadError(f"{where}: expected a non-negative integer, got {value!r}")
    return value


def _as_bool(value: Any, where: str) -> bool:
    if not isinstance(value, bool):
        raise ScenarioLoadError(f"{where}: expected true or false, got {value!r}")
    return value


def _as_optional_str(value: Any, where: str) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ScenarioLoadError(f"{where}: expected a string, got {value!r}")
    return value


def _as_enum(enum_cls: Type[E], value: Any, where: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ScenarioLoadError(f"{where}: {value!r} is not one of {allowed}") from None


def _as_headers(value: Any, where: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ScenarioLoadError(f"{where}: headers must be a mapping")
    return {str(k): str(v) for k, v in value.items()}


def _as_list(value: Any, where: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ScenarioLoadError(f"{where}: expected a list")
    return value


class ScenarioLoaderBase(ABC):
    def load_from_file(self, path: str | Path) -> Scenario:
        p = Path(path)
        if not p.exists():
            raise ScenarioLoadError(f"Scenario file not found: {path}")

        try:
            data = self._load_file(p)
        except ScenarioLoadError:
            raise
        except Exception as e:
            raise ScenarioLoadError(f"Scenario file could not be parsed: {path}: {e}") from e

        if data is None:
            raise ScenarioLoadError(f"Scenario file is empty: {path}")
        if not isinstance(data, dict):
            raise ScenarioLoadError(f"Scenario file is invalid: {path}")

        return self.load_from_dict(data)

    @abstractmethod
    def _load_file(self, path: Path) -> Any:
        ...

    def load_from_dict(self, data: Dict[str, Any]) -> Scenario:
        return Scenario(
            config=self._load_config(data.get("config") or {}),
            servers=self._load_many(data.get("servers"), "servers", self._load_server),
            requests=self._load_many(data.get("requests"), "requests", self._load_request),
            responses=self._load_many(data.get("responses"), "responses", self._load_response),
        )

    def _load_many(self, items: Any, section: str, load_one) -> Tuple[Any, ...]:
        loaded = []
        for index, item in enumerate(_as_list(items, section)):
            where = f"{section}[{index}]"
            if not isinstance(item, dict):
                raise ScenarioLoadError(f"{where}: expected an object")
            loaded.append(load_one(item, where))
        return tuple(loaded)

    def _load_config(self, data: Dict[str, Any]) -> ScenarioConfig:
        if not isinstance(data, dict):
            raise ScenarioLoadError("config: expected an object")
        return ScenarioConfig(
            name=str(data.get("name", "")),
            rate=_as_int(data.get("rate", 0), "config.rate"),
            description=str(data.get("description", "")),
            author=str(data.get("author", "")),
        )

    def _load_server(self, data: Dict[str, Any], where: str) -> Server:
        return Server(
            id=_as_int(_require(data, "id", where), f"{where}.id"),
            protocol=_as_enum(Protocol, _require(data, "protocol", where), f"{where}.protocol"),
            host=str(_require(data, "host", where)),
            port=_as_int(_require(data, "port", where), f"{where}.port"),
            http_version=_as_enum(HttpVersion, data.get("http_version", "v1_1"), f"{where}.http_version"),
            authorization=_as_bool(data.get("authorization", False), f"{where}.authorization"),
            authz_token=_as_optional_str(data.get("authz_token"), f"{where}.authz_token"),
        )

    def _load_request(self, data: Dict[str, Any], where: str) -> Request:
        content = data.get("content") or {}
        if not isinstance(content, dict):
            raise ScenarioLoadError(f"{where}.content: expected an object")

        timeout_ms = data.get("timeout_ms")
        if timeout_ms is not None:
            timeout_ms = _as_int(timeout_ms, f"{where}.timeout_ms")

        depends = _as_list(data.get("depends"), f"{where}.depends")
        return Request(
            id=_as_int(_require(data, "id", where), f"{where}.id"),
            server_id=_as_int(_require(data, "server_id", where), f"{where}.server_id"),
            path=str(data.get("path", "")),
            method=_as_enum(HttpMethod, str(data.get("method", "GET")).upper(), f"{where}.method"),
            content=RequestContent(
                headers=_as_headers(content.get("headers"), f"{where}.content"),
                body=content.get("body"),
            ),
            depends=frozenset(_as_int(d, f"{where}.depends") for d in depends),
            timeout_ms=timeout_ms,
        )

    def _load_response(self, data: Dict[str, Any], where: str) -> ExpectedResponse:
        expected = _require(data, "expected", where)
        if not isinstance(expected, dict):
            raise ScenarioLoadError(f"{where}.expected: expected an object")
        return ExpectedResponse(
            id=_as_int(_require(data, "id", where), f"{where}.id"),
            request_id=_as_int(_require(data, "request_id", where), f"{where}.request_id"),
            expected=ExpectedContent(
                status=_as_int(_require(expected, "status", f"{where}.expected"), f"{where}.expected.status"),
                headers=_as_headers(expected.get("headers"), f"{where}.expected"),
                body=expected.get("body"),
            ),
        )
