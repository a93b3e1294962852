from __future__ import annotations

from datetime import datetime
from typing import List, Protocol

from .models import Account, ChallengeAnswer, NameChangeInfo, SecurityChallenge


class IdentityProvider(Protocol):
    """
    Abstraction over the identity provider's REST endpoints.

    Implementations are responsible for:
    - Attaching the account's bearer token to every authenticated call.
    - Mapping provider status codes onto the domain exceptions.
    - Hiding HTTP client details from the application layer.
    """

    def authenticate(self, account: Account) -> None:
        """
        Exchange email/password for a bearer token.

        On success the account's bearer, uuid and username are set.
        """

        ...

    def load_security_challenge(self, account: Account) -> SecurityChallenge:
        """Return the security questions on file (zero or three)."""

        ...

    def needs_challenge_answer(self, account: Account) -> bool:
        """Return True if the provider currently requires challenge answers."""

        ...

    def submit_answers(self, account: Account, answers: List[ChallengeAnswer]) -> None:
        ...

    def load_account_info(self, account: Account) -> None:
        """Refresh uuid and username from the account's profile."""

        ...

    def name_change_info(self, account: Account) -> NameChangeInfo:
        ...


class Clock(Protocol):
    """Wall clock plus the ability to block until later."""

    def now(self) -> datetime:
        ...

    def sleep(self, seconds: float) -> None:
        ...


class RawConnection(Protocol):
    """A live, already-handshaken byte stream to the provider."""

    def write(self, data: bytes) -> None:
        ...

    def read(self, size: int) -> bytes:
        ...

    def close(self) -> None:
        ...


class ConnectionFactory(Protocol):
    def open(self, host: str, port: int) -> RawConnection:
        ...


class StatusParser(Protocol):
    def __call__(self, prefix: bytes) -> int:
        ...
