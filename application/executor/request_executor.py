# application/executor/request_executor.py
from __future__ import annotations

from typing import Dict, Union

from application.executor.transport_registry import TransportRegistry
from application.ports.http_client import (
    TransportError,
    TransportErrorKind,
    TransportFailure,
    TransportRequest,
    TransportResponse,
)
from application.services.execution_deps import ExecutionDeps
from application.services.redactor import mask_dict
from domain.scenario import Request, Server

TransportOutcome = Union[TransportResponse, TransportError]


def build_url(server: Server, request: Request) -> str:
    host = server.host
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"{server.protocol.value}://{host}:{server.port}/{request.path.lstrip('/')}"


def build_headers(server: Server, request: Request) -> Dict[str, str]:
    headers = dict(request.content.headers)
    if server.authorization and server.authz_token:
        # 明示的な Authorization ヘッダより Server の設定を優先する
        for name in [k for k in headers if k.lower() == "authorization"]:
            del headers[name]
        headers["Authorization"] = f"Bearer {server.authz_token}"
    return headers


class RequestExecutor:
    def __init__(self, transports: TransportRegistry):
        self._transports = transports

    def build_transport_request(self, server: Server, request: Request, deps: ExecutionDeps) -> TransportRequest:
        timeout_ms = request.timeout_ms if request.timeout_ms is not None else deps.default_timeout_ms
        return TransportRequest(
            method=request.method.value,
            url=build_url(server, request),
            headers=build_headers(server, request),
            json_body=request.content.body,
            timeout_sec=timeout_ms / 1000.0,
            http_version=server.http_version,
        )

    def execute(self, server: Server, request: Request, deps: ExecutionDeps) -> TransportOutcome:
        """
        Send one request to its server. Never retries and never raises for
        network problems; those come back as a TransportError.
        """
        transport_request = self.build_transport_request(server, request, deps)
        transport = self._transports.get_transport(server.http_version)

        deps.logger.debug(
            "http.request",
            request_id=request.id,
            method=transport_request.method,
            url=transport_request.url,
            http_version=server.http_version.value,
            transport=type(transport).__name__,
            timeout_sec=transport_request.timeout_sec,
            headers=mask_dict(transport_request.headers),
        )

        try:
            resp = transport.send(transport_request)
        except TransportFailure as e:
            deps.logger.error(
                "http.transport_failed",
                request_id=request.id,
                url=transport_request.url,
                kind=e.kind.value,
                error=str(e),
            )
            return e.to_error()
        except Exception as e:
            deps.logger.error(
                "http.transport_unexpected_error",
                request_id=request.id,
                url=transport_request.url,
                error_type=type(e).__name__,
                error=str(e),
            )
            return TransportError(kind=TransportErrorKind.ERROR, message=f"{type(e).__name__}: {e}")

        deps.logger.debug(
            "http.response",
            request_id=request.id,
            status=resp.status,
            headers=mask_dict(resp.headers),
            body_len=len(resp.content),
        )
        return resp
