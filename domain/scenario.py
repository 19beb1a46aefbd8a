# domain/scenario.py
"""
Traffic scenario domain model

A scenario is loaded once and then shared read-only between every worker
of a run, so all types here are frozen.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


class Protocol(str, Enum):
    HTTP = "http"
    HTTPS = "https"


class HttpVersion(str, Enum):
    V1_0 = "v1_0"
    V1_1 = "v1_1"
    V2_0 = "v2_0"

    @property
    def is_http2(self) -> bool:
        return self is HttpVersion.V2_0


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    CONNECT = "CONNECT"
    TRACE = "TRACE"
    PATCH = "PATCH"


@dataclass(frozen=True)
class Server:
    id: int
    protocol: Protocol
    host: str
    port: int
    http_version: HttpVersion = HttpVersion.V1_1
    authorization: bool = False
    authz_token: Optional[str] = None


@dataclass(frozen=True)
class RequestContent:
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass(frozen=True)
class Request:
    id: int
    server_id: int
    path: str
    method: HttpMethod = HttpMethod.GET
    content: RequestContent = field(default_factory=RequestContent)
    depends: FrozenSet[int] = frozenset()
    timeout_ms: Optional[int] = None


@dataclass(frozen=True)
class ExpectedContent:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass(frozen=True)
class ExpectedResponse:
    id: int
    request_id: int
    expected: ExpectedContent


@dataclass(frozen=True)
class ScenarioConfig:
    name: str = ""
    rate: int = 0
    description: str = ""
    author: str = ""


@dataclass(frozen=True)
class Scenario:
    """
    Scenario aggregate root
    """
    config: ScenarioConfig
    servers: Tuple[Server, ...] = ()
    requests: Tuple[Request, ...] = ()
    responses: Tuple[ExpectedResponse, ...] = ()

    def server_by_id(self, server_id: int) -> Optional[Server]:
        for server in self.servers:
            if server.id == server_id:
                return server
        return None

    def request_by_id(self, request_id: int) -> Optional[Request]:
        for request in self.requests:
            if request.id == request_id:
                return request
        return None

    def expected_for_request(self, request_id: int) -> Optional[ExpectedResponse]:
        for response in self.responses:
            if response.request_id == request_id:
                return response
        return None
