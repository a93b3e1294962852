from __future__ import annotations

import logging
from datetime import datetime, timedelta

from domain.ports import Clock

logger = logging.getLogger(__name__)

DEFAULT_LEAD_TIME = timedelta(seconds=20)


class ClaimScheduler:
    """
    Computes and performs the two waits before a timed claim.

    The first wait ends `lead_time` before the target so the connection
    can be opened outside the timing-critical window; the second ends
    exactly at the target. A target at or before now never sleeps.
    """

    def __init__(self, clock: Clock, lead_time: timedelta = DEFAULT_LEAD_TIME) -> None:
        if lead_time < timedelta(0):
            raise ValueError("lead_time must not be negative")
        self._clock = clock
        self.lead_time = lead_time

    def connect_at(self, target: datetime) -> datetime:
        return target - self.lead_time

    def wait_for_connection(self, target: datetime) -> float:
        """Block until the connection should be opened. Returns seconds slept."""

        return self._sleep_until(self.connect_at(target), "connection")

    def wait_for_fire(self, target: datetime) -> float:
        """Block until the request should complete. Returns seconds slept."""

        return self._sleep_until(target, "fire")

    def _sleep_until(self, instant: datetime, label: str) -> float:
        remaining = (instant - self._clock.now()).total_seconds()
        if remaining <= 0:
            return 0.0
        logger.debug("Sleeping %.3fs until %s instant %s", remaining, label, instant.isoformat())
        self._clock.sleep(remaining)
        return remaining
