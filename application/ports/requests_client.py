from __future__ import annotations

import contextlib
import socket
import threading
import time
from typing import Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter

from application.ports.http_client import (
    HttpTransportPort,
    TransportErrorKind,
    TransportFailure,
    TransportRequest,
    TransportResponse,
    deadline_exceeded,
)
from domain.scenario import HttpVersion

_CHUNK_SIZE = 16 * 1024


def classify_requests_error(exc: requests.RequestException) -> TransportErrorKind:
    # ConnectTimeout is also a ConnectionError and SSLError is one too,
    # so the order of these checks matters.
    if isinstance(exc, requests.exceptions.Timeout):
        return TransportErrorKind.TIMEOUT
    if isinstance(exc, requests.exceptions.SSLError):
        return TransportErrorKind.TLS
    if isinstance(exc, requests.exceptions.ConnectionError):
        return TransportErrorKind.CONNECT
    if isinstance(
        exc,
        (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
            requests.exceptions.URLRequired,
        ),
    ):
        return TransportErrorKind.INVALID_URL
    if isinstance(exc, (requests.exceptions.ChunkedEncodingError, requests.exceptions.ContentDecodingError)):
        return TransportErrorKind.PROTOCOL
    return TransportErrorKind.ERROR


def _shutdown_socket(resp: requests.Response) -> None:
    conn = getattr(resp.raw, "connection", None)
    sock = getattr(conn, "sock", None)
    if sock is None:
        return
    # 既に閉じられている場合は何もしない
    with contextlib.suppress(OSError):
        sock.shutdown(socket.SHUT_RDWR)


class RequestsHttpTransport(HttpTransportPort):
    """
    HTTP/1.x transport backed by a single requests session.

    urllib3 always speaks HTTP/1.1 on the wire, so servers declared as
    v1_0 are reached with 1.1 framing as well.

    requests only knows per-read timeouts, so the body is streamed under a
    watchdog that shuts the socket down once the request's deadline passes.
    """

    def __init__(self, base_headers: Optional[Dict[str, str]] = None, pool_size: int = 10):
        self._session = requests.Session()
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)
        self._base_headers = base_headers or {}

    def supports(self, http_version: HttpVersion) -> bool:
        return http_version in (HttpVersion.V1_0, HttpVersion.V1_1)

    def send(self, request: TransportRequest) -> TransportResponse:
        merged = dict(self._base_headers)
        merged.update(request.headers)

        kwargs = {}
        if request.has_body:
            kwargs["json"] = request.json_body

        deadline = time.monotonic() + request.timeout_sec
        try:
            resp = self._session.request(
                method=request.method.upper(),
                url=request.url,
                headers=merged,
                timeout=request.timeout_sec,
                allow_redirects=False,
                stream=True,
                **kwargs,
            )
        except requests.RequestException as e:
            raise TransportFailure(classify_requests_error(e), str(e)) from e

        with resp:
            content = self._read_body(resp, deadline, request.timeout_sec)

        return TransportResponse(
            status=resp.status_code,
            headers=dict(resp.headers),
            content=content,
            encoding=resp.encoding,
        )

    def _read_body(self, resp: requests.Response, deadline: float, timeout_sec: float) -> bytes:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise deadline_exceeded(timeout_sec)

        expired = threading.Event()

        def abort() -> None:
            expired.set()
            _shutdown_socket(resp)

        watchdog = threading.Timer(remaining, abort)
        watchdog.daemon = True
        watchdog.start()

        chunks: List[bytes] = []
        try:
            for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                chunks.append(chunk)
                if time.monotonic() > deadline:
                    raise deadline_exceeded(timeout_sec)
        except (requests.RequestException, OSError) as e:
            if expired.is_set():
                raise deadline_exceeded(timeout_sec) from e
            if isinstance(e, requests.RequestException):
                raise TransportFailure(classify_requests_error(e), str(e)) from e
            raise TransportFailure(TransportErrorKind.CONNECT, str(e)) from e
        finally:
            watchdog.cancel()

        # a close-delimited body just ends when the socket is shut down
        if expired.is_set():
            raise deadline_exceeded(timeout_sec)
        return b"".join(chunks)

    def close(self) -> None:
        self._session.close()
