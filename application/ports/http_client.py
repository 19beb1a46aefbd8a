# application/ports/http_client.py
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from domain.scenario import HttpVersion


class TransportErrorKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECT = "connect"
    TLS = "tls"
    PROTOCOL = "protocol"
    INVALID_URL = "invalid_url"
    ERROR = "error"


@dataclass(frozen=True)
class TransportRequest:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    json_body: Any = None
    timeout_sec: float = 30.0
    http_version: HttpVersion = HttpVersion.V1_1

    @property
    def has_body(self) -> bool:
        return self.json_body is not None


@dataclass(frozen=True)
class TransportResponse:
    status: int
    headers: Dict[str, str]
    content: bytes = b""
    encoding: Optional[str] = None

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")

    def json(self) -> Any:
        """Parsed body. An empty body is treated as JSON null."""
        if not self.content.strip():
            return None
        return json.loads(self.text)


@dataclass(frozen=True)
class TransportError:
    kind: TransportErrorKind
    message: str

    def describe(self) -> str:
        return f"{self.kind.value}: {self.message}"


class TransportFailure(Exception):
    def __init__(self, kind: TransportErrorKind, message: str):
        super().__init__(message)
        self.kind = kind

    def to_error(self) -> TransportError:
        return TransportError(kind=self.kind, message=str(self))


def deadline_exceeded(timeout_sec: float) -> TransportFailure:
    return TransportFailure(TransportErrorKind.TIMEOUT, f"no complete response within {timeout_sec:g}s")


class HttpTransportPort(ABC):
    @abstractmethod
    def supports(self, http_version: HttpVersion) -> bool:
        ...

    @abstractmethod
    def send(self, request: TransportRequest) -> TransportResponse:
        """
        Perform exactly one network exchange.

        `timeout_sec` bounds the whole exchange, body included, not just
        the gap between two reads.

        Raises:
            TransportFailure: the exchange did not produce a response.
        """
        ...

    def close(self) -> None:
        return None
