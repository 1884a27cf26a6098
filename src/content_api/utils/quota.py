"""Daily quota arithmetic, independent of the store."""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today(now: Optional[datetime] = None) -> date:
    """Calendar date in UTC; naive datetimes are taken to already be UTC."""
    now = now or utc_now()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.date()


def needs_reset(last_reset_date: Optional[date], now: datetime) -> bool:
    """True when the stored reset date is not the current UTC date."""
    return last_reset_date is None or last_reset_date != utc_today(now)


@dataclass(frozen=True)
class Admitted:
    """Request was counted; ``used`` is the counter after the increment."""

    limit: int
    used: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


@dataclass(frozen=True)
class Rejected:
    """Quota already used up; the counter was left untouched."""

    limit: int
    used: int


Admission = Union[Admitted, Rejected]
