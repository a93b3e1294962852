"""
Identity provider client backed by `requests`.

Covers credential authentication, the security challenge endpoints, and
the read-only profile queries. Every instance owns its own session, so
accounts run in parallel flows never share connection state.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional

import requests
from requests.exceptions import RequestException

from domain.exceptions import (
    InvalidCredentialsError,
    NotAuthenticatedError,
    ProfileNotFoundError,
    TransportError,
    UnexpectedStatusError,
    WrongAnswerError,
)
from domain.models import (
    Account,
    ChallengeAnswer,
    NameChangeInfo,
    SecurityChallenge,
    SecurityQuestion,
)
from domain.ports import IdentityProvider

logger = logging.getLogger(__name__)

AUTH_SERVER_URL = "https://authserver.mojang.com"
ACCOUNT_API_URL = "https://api.mojang.com"
SERVICES_API_URL = "https://api.minecraftservices.com"

DEFAULT_TIMEOUT = 10.0


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


# Decoding and shape errors raised while reading a provider body.
MALFORMED_BODY_ERRORS = (ValueError, KeyError, TypeError, AttributeError)


def _malformed(stage: str, response: requests.Response, exc: Exception) -> UnexpectedStatusError:
    logger.warning("Malformed provider response during %s: %s", stage, exc)
    return UnexpectedStatusError(
        stage, response.status_code, f"Malformed provider response during {stage}."
    )


class RequestsIdentityProvider(IdentityProvider):
    """`IdentityProvider` talking JSON over HTTPS through a `requests.Session`."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        auth_server_url: str = AUTH_SERVER_URL,
        account_api_url: str = ACCOUNT_API_URL,
        services_api_url: str = SERVICES_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._session = session or requests.Session()
        self._auth_server_url = auth_server_url.rstrip("/")
        self._account_api_url = account_api_url.rstrip("/")
        self._services_api_url = services_api_url.rstrip("/")
        self._timeout = timeout

    def close(self) -> None:
        self._session.close()

    def build_authenticated_request(
        self,
        account: Account,
        method: str,
        url: str,
        body: Any = None,
    ) -> requests.PreparedRequest:
        """Prepare a request carrying the account's bearer token."""

        if not account.bearer:
            raise NotAuthenticatedError("Account is not authenticated.")

        request = requests.Request(
            method=method,
            url=url,
            json=body,
            headers={
                "Authorization": f"Bearer {account.bearer}",
                "Content-Type": "application/json",
            },
        )
        return self._session.prepare_request(request)

    def _send(self, prepared: requests.PreparedRequest) -> requests.Response:
        logger.debug("%s %s", prepared.method, prepared.url)
        try:
            return self._session.send(prepared, timeout=self._timeout)
        except RequestException as exc:
            raise TransportError(f"{prepared.method} {prepared.url} failed: {exc}") from exc

    def _send_authenticated(
        self,
        account: Account,
        method: str,
        url: str,
        body: Any = None,
    ) -> requests.Response:
        return self._send(self.build_authenticated_request(account, method, url, body))

    def authenticate(self, account: Account) -> None:
        payload = {
            "agent": {"name": "Minecraft", "version": 1},
            "username": account.email,
            "password": account.password,
            "requestUser": True,
        }
        request = requests.Request(
            method="POST",
            url=f"{self._auth_server_url}/authenticate",
            json=payload,
        )
        response = self._send(self._session.prepare_request(request))

        if response.status_code == 403:
            logger.warning("Provider rejected credentials for %s", account.email)
            raise InvalidCredentialsError("Invalid email or password.")
        if response.status_code >= 300:
            raise UnexpectedStatusError("authenticate", response.status_code)

        try:
            data = response.json()
            token = data.get("accessToken")
            user = data.get("user") or {}
            uuid = user.get("id", "")
            username = user.get("username", "")
        except MALFORMED_BODY_ERRORS as exc:
            raise _malformed("authenticate", response, exc) from exc

        if not token:
            raise UnexpectedStatusError(
                "authenticate",
                response.status_code,
                "Provider accepted credentials but returned no access token.",
            )

        account.bearer = token
        account.uuid = uuid
        account.username = username

    def load_security_challenge(self, account: Account) -> SecurityChallenge:
        response = self._send_authenticated(
            account, "GET", f"{self._account_api_url}/user/security/challenges"
        )
        if response.status_code >= 400:
            raise UnexpectedStatusError("load security challenge", response.status_code)

        stage = "load security challenge"
        try:
            entries = response.json() or []
            questions = tuple(
                SecurityQuestion(
                    question_id=entry["question"]["id"],
                    answer_id=entry["answer"]["id"],
                    question=entry["question"].get("question", ""),
                )
                for entry in entries
            )
        except MALFORMED_BODY_ERRORS as exc:
            raise _malformed(stage, response, exc) from exc

        if len(questions) not in (0, 3):
            raise UnexpectedStatusError(
                stage,
                response.status_code,
                f"Provider returned {len(questions)} security questions.",
            )

        return SecurityChallenge(questions=questions)

    def needs_challenge_answer(self, account: Account) -> bool:
        response = self._send_authenticated(
            account, "GET", f"{self._account_api_url}/user/security/location"
        )
        if response.status_code == 204:
            return False
        if response.status_code == 403:
            return True
        raise UnexpectedStatusError("security challenge probe", response.status_code)

    def submit_answers(self, account: Account, answers: List[ChallengeAnswer]) -> None:
        body = [{"id": answer.answer_id, "answer": answer.answer} for answer in answers]
        response = self._send_authenticated(
            account, "POST", f"{self._account_api_url}/user/security/location", body
        )
        if response.status_code == 204:
            return
        if response.status_code == 403:
            logger.warning("Provider rejected security answers for %s", account.email)
            raise WrongAnswerError("At least one security answer was incorrect.")
        raise UnexpectedStatusError("submit security answers", response.status_code)

    def load_account_info(self, account: Account) -> None:
        response = self._send_authenticated(
            account, "GET", f"{self._services_api_url}/minecraft/profile"
        )
        if response.status_code == 404:
            raise ProfileNotFoundError(
                "load account info", 404, "Account does not own the game."
            )
        if response.status_code >= 400:
            raise UnexpectedStatusError("load account info", response.status_code)

        try:
            data = response.json()
            uuid = data.get("id", "")
            username = data.get("name", "")
        except MALFORMED_BODY_ERRORS as exc:
            raise _malformed("load account info", response, exc) from exc

        account.uuid = uuid
        account.username = username

    def name_change_info(self, account: Account) -> NameChangeInfo:
        response = self._send_authenticated(
            account, "GET", f"{self._services_api_url}/minecraft/profile/namechange"
        )
        if response.status_code >= 400:
            raise UnexpectedStatusError("name change info", response.status_code)

        try:
            data = response.json()
            return NameChangeInfo(
                changed_at=_parse_timestamp(data.get("changedAt")),
                created_at=_parse_timestamp(data.get("createdAt")),
                name_change_allowed=bool(data.get("nameChangeAllowed", False)),
            )
        except MALFORMED_BODY_ERRORS as exc:
            raise _malformed("name change info", response, exc) from exc
