import logging
import os
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from dotenv import load_dotenv

from application.scheduler import ClaimScheduler
from application.services import authenticate_account, claim_name
from application.transmission import RawTransmissionEngine
from domain.models import Account, RequestShape
from infrastructure.clock import SystemClock
from infrastructure.net.raw_http import (
    PROFILE_HOST,
    TlsConnectionFactory,
    build_claim_payload,
    parse_status_code,
)
from infrastructure.provider.identity_client_requests import RequestsIdentityProvider


load_dotenv()

MC_EMAIL = os.environ.get("MC_EMAIL")
MC_PASSWORD = os.environ.get("MC_PASSWORD")
MC_SECURITY_ANSWERS = os.environ.get("MC_SECURITY_ANSWERS", "")
MC_TARGET_NAME = os.environ.get("MC_TARGET_NAME")
MC_CLAIM_AT = os.environ.get("MC_CLAIM_AT")
MC_CREATE_PROFILE = os.environ.get("MC_CREATE_PROFILE", "")
MC_OMIT_ACCEPT = os.environ.get("MC_OMIT_ACCEPT", "")
MC_LEAD_SECONDS = os.environ.get("MC_LEAD_SECONDS", "20")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logger = logging.getLogger(__name__)


def _is_enabled(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def parse_answers(raw: str) -> List[str]:
    """Split `a|b|c` into answers; an empty value means no answers."""

    if not raw.strip():
        return []
    return [part.strip() for part in raw.split("|")]


def parse_claim_time(raw: Optional[str], now: datetime) -> datetime:
    """Parse an ISO-8601 instant, treating naive values as UTC."""

    if not raw:
        return now
    value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def select_shape(create_profile: bool, omit_accept: bool) -> RequestShape:
    if create_profile:
        return RequestShape.CREATE_PROFILE
    if omit_accept:
        return RequestShape.RENAME_WITHOUT_ACCEPT
    return RequestShape.RENAME


def main() -> None:
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not MC_EMAIL or not MC_PASSWORD:
        raise RuntimeError("MC_EMAIL and MC_PASSWORD environment variables must be set.")
    if not MC_TARGET_NAME:
        raise RuntimeError("MC_TARGET_NAME environment variable is not set.")

    clock = SystemClock()
    target = parse_claim_time(MC_CLAIM_AT, clock.now())
    shape = select_shape(_is_enabled(MC_CREATE_PROFILE), _is_enabled(MC_OMIT_ACCEPT))

    account = Account(
        email=MC_EMAIL,
        password=MC_PASSWORD,
        security_answers=parse_answers(MC_SECURITY_ANSWERS),
    )

    provider = RequestsIdentityProvider()
    try:
        authenticate_account(account, provider)
    finally:
        provider.close()

    scheduler = ClaimScheduler(clock, lead_time=timedelta(seconds=float(MC_LEAD_SECONDS)))
    engine = RawTransmissionEngine(
        host=PROFILE_HOST,
        connection_factory=TlsConnectionFactory(),
        scheduler=scheduler,
        clock=clock,
        build_payload=build_claim_payload,
        parse_status=parse_status_code,
    )

    outcome = claim_name(account, MC_TARGET_NAME, target, engine, shape=shape)
    logger.info(
        "status=%d success=%s sent=%s received=%s",
        outcome.status_code,
        outcome.success,
        outcome.send_time.isoformat() if outcome.send_time else "-",
        outcome.receive_time.isoformat() if outcome.receive_time else "-",
    )


if __name__ == "__main__":
    main()
