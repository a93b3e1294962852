from __future__ import annotations

from datetime import datetime
from typing import Optional


class SniperError(Exception):
    """Base exception for every failure raised by the account and claim flows."""

    pass


class InputValidationError(SniperError):
    """Caller-supplied data has the wrong shape (e.g. answer count)."""

    pass


class AuthFailure(SniperError):
    """Authentication could not be completed."""

    pass


class NotAuthenticatedError(AuthFailure):
    """An authenticated request was built for an account without a bearer."""

    pass


class InvalidCredentialsError(AuthFailure):
    pass


class WrongAnswerError(AuthFailure):
    pass


class TransportError(SniperError):
    """DNS, TLS or connection-level failure talking to the provider."""

    pass


class UnexpectedStatusError(SniperError):
    """The provider answered a step with a status the flow does not expect."""

    def __init__(self, stage: str, status_code: int, message: str = "") -> None:
        self.stage = stage
        self.status_code = status_code
        super().__init__(message or f"Got status {status_code} during {stage}.")


class ProfileNotFoundError(UnexpectedStatusError):
    """The account does not own a game profile."""

    pass


class MalformedResponseError(SniperError):
    """
    The response prefix did not carry a readable status line.

    The request was already on the wire, so the send timestamp is kept.
    """

    def __init__(
        self,
        message: str,
        raw: bytes = b"",
        send_time: Optional[datetime] = None,
    ) -> None:
        self.raw = raw
        self.send_time = send_time
        super().__init__(message)
