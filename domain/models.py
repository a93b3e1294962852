from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from .exceptions import InputValidationError

CHALLENGE_SIZE = 3
USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_]{1,16}")


class AuthState(str, Enum):
    """Last state reached by the authentication flow for an account."""

    UNAUTHENTICATED = "unauthenticated"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    CHALLENGE_LOADED = "challenge_loaded"
    CHALLENGE_SKIPPED = "challenge_skipped"
    CHALLENGE_REQUIRED = "challenge_required"
    AUTHENTICATED = "authenticated"


class RequestShape(str, Enum):
    """Wire shape of a name claim request."""

    CREATE_PROFILE = "create_profile"
    RENAME = "rename"
    RENAME_WITHOUT_ACCEPT = "rename_without_accept"


@dataclass(frozen=True)
class SecurityQuestion:
    question_id: int
    answer_id: int
    question: str = ""


@dataclass(frozen=True)
class SecurityChallenge:
    """
    The preset security questions tied to an account.

    A provider either has no questions on file or exactly three of them.
    """

    questions: Tuple[SecurityQuestion, ...] = ()

    def __post_init__(self) -> None:
        if len(self.questions) not in (0, CHALLENGE_SIZE):
            raise InputValidationError(
                f"A security challenge holds 0 or {CHALLENGE_SIZE} questions, "
                f"got {len(self.questions)}."
            )

    def __len__(self) -> int:
        return len(self.questions)


@dataclass(frozen=True)
class ChallengeAnswer:
    """A caller answer bound to the provider's answer id."""

    answer_id: int
    answer: str


@dataclass
class Account:
    """
    A game account driven through authentication and name claims.

    The caller owns the instance; the authentication flow fills in the
    bearer token and profile fields in place as each step succeeds.
    """

    email: str
    password: str
    security_answers: List[str] = field(default_factory=list)
    bearer: str = ""
    uuid: str = ""
    username: str = ""
    auth_state: AuthState = AuthState.UNAUTHENTICATED
    security_challenge: Optional[SecurityChallenge] = None

    @property
    def authenticated(self) -> bool:
        return self.auth_state is AuthState.AUTHENTICATED

    def __repr__(self) -> str:
        # Keep credentials out of logs and tracebacks.
        return (
            f"Account(email={self.email!r}, username={self.username!r}, "
            f"uuid={self.uuid!r}, auth_state={self.auth_state.value!r})"
        )


@dataclass(frozen=True)
class ClaimRequest:
    username: str
    target: datetime
    shape: RequestShape = RequestShape.RENAME

    def __post_init__(self) -> None:
        if not self.username:
            raise InputValidationError("A claim request needs a desired username.")
        if not USERNAME_PATTERN.fullmatch(self.username):
            raise InputValidationError(
                f"Username {self.username!r} must be 1-16 letters, digits or underscores."
            )


@dataclass(frozen=True)
class ClaimOutcome:
    """Result of a single timed claim attempt."""

    status_code: int
    success: bool
    send_time: Optional[datetime]
    receive_time: Optional[datetime]
    username: str
    account: Account


@dataclass(frozen=True)
class NameChangeInfo:
    changed_at: Optional[datetime]
    created_at: Optional[datetime]
    name_change_allowed: bool
