from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from domain.exceptions import InputValidationError, NotAuthenticatedError
from domain.models import (
    CHALLENGE_SIZE,
    Account,
    AuthState,
    ChallengeAnswer,
    ClaimOutcome,
    ClaimRequest,
    RequestShape,
    SecurityChallenge,
)
from domain.ports import IdentityProvider

from application.transmission import RawTransmissionEngine

logger = logging.getLogger(__name__)


def pair_answers(
    challenge: SecurityChallenge,
    answers: Sequence[str],
) -> List[ChallengeAnswer]:
    """
    Bind caller answers to the provider's answer ids, by position.

    Both sides must hold exactly three entries.
    """

    if len(answers) != CHALLENGE_SIZE:
        raise InputValidationError(
            f"Expected {CHALLENGE_SIZE} security answers, got {len(answers)}."
        )
    if len(challenge) != CHALLENGE_SIZE:
        raise InputValidationError(
            f"Expected {CHALLENGE_SIZE} loaded security questions, got {len(challenge)}."
        )

    return [
        ChallengeAnswer(answer_id=question.answer_id, answer=answer)
        for question, answer in zip(challenge.questions, answers)
    ]


def submit_security_answers(
    account: Account,
    challenge: SecurityChallenge,
    provider: IdentityProvider,
) -> None:
    """Validate and submit the account's answers; nothing is sent on a bad count."""

    answers = pair_answers(challenge, account.security_answers)
    provider.submit_answers(account, answers)


def authenticate_account(account: Account, provider: IdentityProvider) -> None:
    """
    Run every step needed to fully authenticate an account.

    - Submit email/password and capture bearer, uuid and username.
    - Load the security questions; none on file means we are done.
    - Ask the provider whether answers are required right now.
    - If they are, submit the three answers.

    Any failing step raises and leaves the account unauthenticated. The
    state reached so far stays on `account.auth_state` for diagnostics.
    """

    account.auth_state = AuthState.UNAUTHENTICATED

    provider.authenticate(account)
    account.auth_state = AuthState.CREDENTIALS_SUBMITTED
    logger.info("Credentials accepted for %s", account.email)

    challenge = provider.load_security_challenge(account)
    account.security_challenge = challenge
    account.auth_state = AuthState.CHALLENGE_LOADED

    if len(challenge) == 0:
        logger.info("No security questions on file for %s", account.email)
        account.auth_state = AuthState.AUTHENTICATED
        return

    if not provider.needs_challenge_answer(account):
        account.auth_state = AuthState.CHALLENGE_SKIPPED
        logger.info("Security challenge not required for %s", account.email)
        account.auth_state = AuthState.AUTHENTICATED
        return

    account.auth_state = AuthState.CHALLENGE_REQUIRED
    logger.info("Submitting security answers for %s", account.email)
    submit_security_answers(account, challenge, provider)

    account.auth_state = AuthState.AUTHENTICATED
    logger.info("Account %s authenticated", account.email)


def build_outcome(
    status_code: int,
    send_time: Optional[datetime],
    receive_time: Optional[datetime],
    username: str,
    account: Account,
) -> ClaimOutcome:
    return ClaimOutcome(
        status_code=status_code,
        success=status_code < 300,
        send_time=send_time,
        receive_time=receive_time,
        username=username,
        account=account,
    )


def claim_name(
    account: Account,
    desired_name: str,
    target: datetime,
    engine: RawTransmissionEngine,
    create_profile: bool = False,
    shape: Optional[RequestShape] = None,
) -> ClaimOutcome:
    """
    Attempt to claim `desired_name` exactly at `target`.

    `create_profile` picks between the create-profile and rename request
    shapes; an explicit `shape` overrides it. This is a single shot: the
    race window is gone by the time a retry could be sent.
    """

    if not account.bearer:
        raise NotAuthenticatedError("Account is not authenticated.")

    if shape is None:
        shape = RequestShape.CREATE_PROFILE if create_profile else RequestShape.RENAME

    request = ClaimRequest(username=desired_name, target=target, shape=shape)
    logger.info(
        "Scheduling %s of %r at %s", request.shape.value, request.username, target.isoformat()
    )

    result = engine.transmit(account.bearer, request)

    outcome = build_outcome(
        status_code=result.status_code,
        send_time=result.send_time,
        receive_time=result.receive_time,
        username=request.username,
        account=account,
    )
    if outcome.success:
        logger.info("Claimed %r with status %d", outcome.username, outcome.status_code)
    else:
        logger.warning(
            "Claim of %r failed with status %d", outcome.username, outcome.status_code
        )
    return outcome
