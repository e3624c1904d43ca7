import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

logger = logging.getLogger(__name__)

COOLDOWN = "cooldown"
HOURLY = "hourly"
DAILY = "daily"

HOUR_SECONDS = 60 * 60
DAY_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    reason: Optional[str] = None
    retry_after: int = 0


ALLOW = RateDecision(allowed=True)


def _seconds_past(moment: datetime, now: datetime) -> int:
    # every window is inclusive of its edge, so the slot frees one tick after `moment`
    return max(math.floor((moment - now).total_seconds()) + 1, 1)


class IssuanceLimiter:
    """
    Decides whether another code may be issued to an email.

    Three sliding-window ceilings, checked in order; the first one hit is
    reported. Everything is derived from the issued records themselves, all
    purposes together, so switching purpose does not buy a fresh budget.
    The check is read-only: callers run it inside `store.reserve(email)`
    and insert before leaving the block.
    """

    def __init__(self, store, cooldown_seconds: int = 60, hourly_limit: int = 3, daily_limit: int = 10):
        self.store = store
        self.cooldown_seconds = cooldown_seconds
        self.hourly_limit = hourly_limit
        self.daily_limit = daily_limit

    def check(self, email: str, now: datetime) -> RateDecision:
        last = self.store.latest_issued_at(email)
        if last is not None:
            cooldown_ends = last + timedelta(seconds=self.cooldown_seconds)
            if now <= cooldown_ends:
                return self._deny(email, COOLDOWN, _seconds_past(cooldown_ends, now))

        for reason, window, limit in (
            (HOURLY, HOUR_SECONDS, self.hourly_limit),
            (DAILY, DAY_SECONDS, self.daily_limit),
        ):
            since = now - timedelta(seconds=window)
            if self.store.count_since(email, since) >= limit:
                oldest = self.store.oldest_issued_since(email, since)
                retry_after = _seconds_past(oldest + timedelta(seconds=window), now)
                return self._deny(email, reason, retry_after)

        return ALLOW

    def _deny(self, email: str, reason: str, retry_after: int) -> RateDecision:
        logger.info("otp issuance denied email=%s reason=%s retry_after=%s", email, reason, retry_after)
        return RateDecision(allowed=False, reason=reason, retry_after=retry_after)
