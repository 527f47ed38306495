"""Time-to-event urgency buckets shared by the dashboard badges and the feed."""

from datetime import date, datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, TypeVar, Union

from .models import Appointment, CLOSED_STATUSES

T = TypeVar("T")

DASHBOARD_UPCOMING_DAYS = 3


class Bucket(str, Enum):
    TODAY = "today"
    TOMORROW = "tomorrow"
    UPCOMING = "upcoming"
    REMINDER = "reminder"

    @property
    def priority(self) -> int:
        return _PRIORITY[self]


_PRIORITY = {Bucket.TODAY: 0, Bucket.TOMORROW: 1, Bucket.UPCOMING: 2, Bucket.REMINDER: 3}


def days_until(event_date: date, now: Union[date, datetime]) -> int:
    today = now.date() if isinstance(now, datetime) else now
    return (event_date - today).days


def classify(appointment: Appointment, now: Union[date, datetime],
             upcoming_days: int = DASHBOARD_UPCOMING_DAYS) -> Optional[Bucket]:
    if appointment.current_status in CLOSED_STATUSES:
        return None
    days = days_until(appointment.event_date, now)
    if days == 0:
        return Bucket.TODAY
    if days == 1:
        return Bucket.TOMORROW
    if 0 < days <= upcoming_days:
        return Bucket.UPCOMING
    return None


def sort_by_urgency(items: Iterable[T], key: Callable[[T], Bucket]) -> List[T]:
    # sorted() is stable: equal buckets keep their incoming order
    return sorted(items, key=lambda item: key(item).priority)


def urgent_appointments(appointments: Iterable[Appointment], now: Union[date, datetime],
                        upcoming_days: int = DASHBOARD_UPCOMING_DAYS):
    """(bucket, appointment) pairs for the dashboard quick view, most urgent first."""
    pairs = []
    for a in appointments:
        bucket = classify(a, now, upcoming_days)
        if bucket is not None:
            pairs.append((bucket, a))
    return sort_by_urgency(pairs, key=lambda pair: pair[0])
