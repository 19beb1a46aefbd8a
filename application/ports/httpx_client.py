from __future__ import annotations

import time
from typing import Dict, List, Optional

import httpx

from application.ports.http_client import (
    HttpTransportPort,
    TransportErrorKind,
    TransportFailure,
    TransportRequest,
    TransportResponse,
    deadline_exceeded,
)
from domain.scenario import HttpVersion


def classify_httpx_error(exc: Exception) -> TransportErrorKind:
    """Map an httpx exception to a transport error kind."""
    if isinstance(exc, httpx.TimeoutException):
        return TransportErrorKind.TIMEOUT
    if isinstance(exc, httpx.ConnectError):
        text = str(exc).lower()
        if "ssl" in text or "certificate" in text or "tls" in text:
            return TransportErrorKind.TLS
        return TransportErrorKind.CONNECT
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.LocalProtocolError)):
        return TransportErrorKind.PROTOCOL
    if isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        return TransportErrorKind.INVALID_URL
    return TransportErrorKind.ERROR


class HttpxHttp2Transport(HttpTransportPort):
    """
    HTTP/2 transport with prior knowledge.

    HTTP/1.1 is disabled on the client, so cleartext connections open with the
    HTTP/2 preface directly instead of an Upgrade handshake, and TLS
    connections must negotiate h2 through ALPN.

    httpx timeouts apply per network operation; the body is read chunk by
    chunk against an overall deadline so a slow trickle still times out.
    """

    def __init__(
        self,
        base_headers: Optional[Dict[str, str]] = None,
        pool_size: int = 10,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            http1=False,
            http2=True,
            follow_redirects=False,
            headers=base_headers or {},
            limits=httpx.Limits(max_connections=pool_size),
            transport=transport,
        )

    def supports(self, http_version: HttpVersion) -> bool:
        return http_version.is_http2

    def send(self, request: TransportRequest) -> TransportResponse:
        kwargs = {}
        if request.has_body:
            kwargs["json"] = request.json_body

        deadline = time.monotonic() + request.timeout_sec
        chunks: List[bytes] = []
        try:
            with self._client.stream(
                request.method.upper(),
                request.url,
                headers=request.headers,
                timeout=request.timeout_sec,
                **kwargs,
            ) as resp:
                if time.monotonic() > deadline:
                    raise deadline_exceeded(request.timeout_sec)
                for chunk in resp.iter_bytes():
                    chunks.append(chunk)
                    if time.monotonic() > deadline:
                        raise deadline_exceeded(request.timeout_sec)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportFailure(classify_httpx_error(e), str(e) or type(e).__name__) from e

        return TransportResponse(
            status=resp.status_code,
            headers=dict(resp.headers),
            content=b"".join(chunks),
            encoding=resp.charset_encoding,
        )

    def close(self) -> None:
        self._client.close()
