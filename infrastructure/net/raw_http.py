"""
Hand-built HTTP/1.1 framing over a raw TLS socket.

Only what a timed claim needs: build the request bytes up front, push
them through an already-open connection, and pull the status code out
of the first bytes of the response without parsing anything else.
"""

from __future__ import annotations

import json
import logging
import socket
import ssl
from typing import Optional

from domain.exceptions import MalformedResponseError, TransportError
from domain.models import ClaimRequest, RequestShape
from domain.ports import ConnectionFactory, RawConnection

logger = logging.getLogger(__name__)

PROFILE_HOST = "api.minecraftservices.com"
USER_AGENT = "name-sniper/1.0"
CRLF = "\r\n"

# "HTTP/1.1 200 OK": the code sits at a fixed offset after the version.
STATUS_CODE_SLICE = slice(9, 12)


def build_claim_payload(request: ClaimRequest, bearer: str, host: str = PROFILE_HOST) -> bytes:
    """
    Build the complete request bytes for a claim.

    The result always ends with a CRLF that is only sent in the final
    write. For the body-carrying shape that CRLF trails the JSON body and
    is counted in Content-Length.
    """

    headers = [
        ("Host", host),
        ("User-Agent", USER_AGENT),
        ("Authorization", f"Bearer {bearer}"),
    ]
    body = ""

    if request.shape is RequestShape.CREATE_PROFILE:
        method, path = "POST", "/minecraft/profile"
        body = json.dumps({"profileName": request.username}) + CRLF
        headers.append(("Accept", "application/json"))
        headers.append(("Content-Type", "application/json"))
        headers.append(("Content-Length", str(len(body.encode("utf-8")))))
    elif request.shape is RequestShape.RENAME:
        method, path = "PUT", f"/minecraft/profile/name/{request.username}"
        headers.append(("Accept", "application/json"))
    else:
        method, path = "PUT", f"/minecraft/profile/name/{request.username}"

    headers.append(("Connection", "close"))

    lines = [f"{method} {path} HTTP/1.1"]
    lines.extend(f"{name}: {value}" for name, value in headers)
    head = CRLF.join(lines) + CRLF

    if body:
        return (head + CRLF + body).encode("utf-8")
    return (head + CRLF).encode("utf-8")


def parse_status_code(prefix: bytes) -> int:
    """Read the three-digit status code from the start of a response."""

    if not prefix.startswith(b"HTTP/"):
        raise MalformedResponseError(
            f"Response does not start with a status line: {prefix!r}", raw=prefix
        )

    code = prefix[STATUS_CODE_SLICE]
    if len(code) != 3 or not code.isdigit():
        raise MalformedResponseError(
            f"Status code bytes are not three ASCII digits: {code!r}", raw=prefix
        )
    return int(code)


class TlsConnection(RawConnection):
    """Thin wrapper over an `ssl.SSLSocket` mapping socket errors to `TransportError`."""

    def __init__(self, sock: ssl.SSLSocket) -> None:
        self._sock = sock

    def write(self, data: bytes) -> None:
        try:
            self._sock.sendall(data)
        except OSError as exc:
            raise TransportError(f"Write failed: {exc}") from exc

    def read(self, size: int) -> bytes:
        data = b""
        try:
            while len(data) < size:
                chunk = self._sock.recv(size - len(data))
                if not chunk:
                    break
                data += chunk
        except OSError as exc:
            raise TransportError(f"Read failed: {exc}") from exc
        return data

    def close(self) -> None:
        try:
            self._sock.close()
        except OSError:
            logger.debug("Ignoring error while closing TLS socket", exc_info=True)


class TlsConnectionFactory(ConnectionFactory):
    """Opens TLS connections with Nagle's algorithm disabled."""

    def __init__(
        self,
        context: Optional[ssl.SSLContext] = None,
        timeout: float = 10.0,
    ) -> None:
        self._context = context or ssl.create_default_context()
        self._timeout = timeout

    def open(self, host: str, port: int) -> TlsConnection:
        try:
            raw = socket.create_connection((host, port), timeout=self._timeout)
        except OSError as exc:
            raise TransportError(f"Cannot connect to {host}:{port}: {exc}") from exc

        try:
            raw.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock = self._context.wrap_socket(raw, server_hostname=host)
        except OSError as exc:
            raw.close()
            raise TransportError(f"TLS handshake with {host}:{port} failed: {exc}") from exc

        logger.debug("Connected to %s:%d", host, port)
        return TlsConnection(sock)
