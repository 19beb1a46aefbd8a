# application/executor/transport_registry.py
from __future__ import annotations

from typing import List

from application.ports.http_client import HttpTransportPort
from domain.scenario import HttpVersion


class TransportRegistry:
    def __init__(self, transports: List[HttpTransportPort]):
        self._transports = transports

    def get_transport(self, http_version: HttpVersion) -> HttpTransportPort:
        for t in self._transports:
            if t.supports(http_version):
                return t
        raise RuntimeError(f"No transport found for HTTP version: {http_version.value}")

    def close(self) -> None:
        for t in self._transports:
            t.close()
