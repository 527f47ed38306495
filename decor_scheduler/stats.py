"""Dashboard counters over a tenant's appointment snapshot."""

from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Union

from .models import Appointment, AppointmentStatus, REVENUE_STATUSES

SUNDAY = 6


@dataclass(frozen=True)
class Stats:
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    completed: int = 0
    cancelled: int = 0
    this_week: int = 0
    this_month: int = 0
    revenue: float = 0

    def as_dict(self) -> dict:
        return asdict(self)


def _as_date(now: Union[date, datetime]) -> date:
    return now.date() if isinstance(now, datetime) else now


def week_bounds(day: date, week_start: int = SUNDAY):
    """First and last day of the calendar week containing ``day``."""
    start = day - timedelta(days=(day.weekday() - week_start) % 7)
    return start, start + timedelta(days=6)


def aggregate(appointments: Iterable[Appointment], now: Union[date, datetime],
              week_start: int = SUNDAY) -> Stats:
    today = _as_date(now)
    week_first, week_last = week_bounds(today, week_start)

    counts = {s: 0 for s in AppointmentStatus}
    total = this_week = this_month = 0
    revenue = 0.0
    for a in appointments:
        total += 1
        status = a.current_status
        counts[status] += 1
        if status in REVENUE_STATUSES:
            revenue += a.value
        if status is AppointmentStatus.CANCELLED or a.event_date < today:
            continue
        if week_first <= a.event_date <= week_last:
            this_week += 1
        if (a.event_date.year, a.event_date.month) == (today.year, today.month):
            this_month += 1

    return Stats(
        total=total,
        pending=counts[AppointmentStatus.PENDING],
        confirmed=counts[AppointmentStatus.CONFIRMED],
        completed=counts[AppointmentStatus.COMPLETED],
        cancelled=counts[AppointmentStatus.CANCELLED],
        this_week=this_week,
        this_month=this_month,
        revenue=revenue,
    )
