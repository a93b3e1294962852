from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Tuple

from domain.exceptions import MalformedResponseError
from domain.models import ClaimRequest
from domain.ports import Clock, ConnectionFactory, StatusParser

from application.scheduler import ClaimScheduler

logger = logging.getLogger(__name__)

TERMINATOR = b"\r\n"
HTTPS_PORT = 443
STATUS_PREFIX_SIZE = 12

PayloadBuilder = Callable[[ClaimRequest, str, str], bytes]


@dataclass(frozen=True)
class TransmissionResult:
    status_code: int
    send_time: datetime
    receive_time: datetime


def split_payload(payload: bytes) -> Tuple[bytes, bytes]:
    """Split a prebuilt request immediately before its final terminator."""

    if not payload.endswith(TERMINATOR) or len(payload) <= len(TERMINATOR):
        raise ValueError("Payload must end with the CRLF terminator.")
    split_at = len(payload) - len(TERMINATOR)
    return payload[:split_at], payload[split_at:]


class RawTransmissionEngine:
    """
    Sends one prebuilt claim request over a raw connection at a precise instant.

    The request is written in two parts: everything but the final
    terminator, then the terminator alone, back to back. Only a short
    prefix of the response is read, enough for the status line.
    """

    def __init__(
        self,
        host: str,
        connection_factory: ConnectionFactory,
        scheduler: ClaimScheduler,
        clock: Clock,
        build_payload: PayloadBuilder,
        parse_status: StatusParser,
        port: int = HTTPS_PORT,
        read_size: int = STATUS_PREFIX_SIZE,
    ) -> None:
        self.host = host
        self.port = port
        self.read_size = read_size
        self._connection_factory = connection_factory
        self._scheduler = scheduler
        self._clock = clock
        self._build_payload = build_payload
        self._parse_status = parse_status

    def transmit(self, bearer: str, request: ClaimRequest) -> TransmissionResult:
        head, tail = split_payload(self._build_payload(request, bearer, self.host))

        self._scheduler.wait_for_connection(request.target)
        connection = self._connection_factory.open(self.host, self.port)
        try:
            self._scheduler.wait_for_fire(request.target)

            connection.write(head)
            connection.write(tail)
            send_time = self._clock.now()

            prefix = connection.read(self.read_size)
            receive_time = self._clock.now()
        finally:
            connection.close()

        logger.debug(
            "Request for %r sent at %s, response at %s",
            request.username,
            send_time.isoformat(),
            receive_time.isoformat(),
        )

        try:
            status_code = self._parse_status(prefix)
        except MalformedResponseError as exc:
            exc.send_time = send_time
            raise

        return TransmissionResult(
            status_code=status_code,
            send_time=send_time,
            receive_time=receive_time,
        )
