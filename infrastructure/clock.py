from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional

from domain.ports import Clock


class SystemClock(Clock):
    """
    Live UTC wall clock whose readings never decrease.

    Scheduling follows the system clock, including later adjustments. If
    the clock is stepped backwards, `now()` holds at the last reading so
    a send timestamp can never come after its receive timestamp.
    """

    def __init__(self) -> None:
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        if self._last is not None and current < self._last:
            return self._last
        self._last = current
        return current

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)
