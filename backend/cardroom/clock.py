"""Time helpers. Days are UTC ISO dates (YYYY-MM-DD)."""

from collections.abc import Callable
from datetime import date, datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_key(moment: datetime | date) -> str:
    """ISO date for a moment, taken in UTC when the moment is aware."""
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return moment.date().isoformat()
    return moment.isoformat()
