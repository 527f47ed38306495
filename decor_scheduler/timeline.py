"""Month-grouped agenda timeline with relative date labels."""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, Iterable, List, Union

from .models import Appointment
from .settings import WEEKDAYS
from .urgency import days_until

SOON_DAYS = 7


@dataclass(frozen=True)
class RelativeLabel:
    text: str
    highlight: bool = False


@dataclass
class TimelineEntry:
    appointment: Appointment
    label: RelativeLabel


@dataclass
class TimelineGroup:
    month_key: str
    entries: List[TimelineEntry] = field(default_factory=list)

    def __len__(self):
        return len(self.entries)


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def _sort_key(a: Appointment):
    # untimed events come first within a day
    return (a.event_date, a.event_time or time.min)


def group_by_month(appointments: Iterable[Appointment]) -> Dict[str, List[Appointment]]:
    groups: Dict[str, List[Appointment]] = {}
    for a in appointments:
        groups.setdefault(month_key(a.event_date), []).append(a)
    return {key: sorted(groups[key], key=_sort_key) for key in sorted(groups)}


def relative_label(event_date: date, now: Union[date, datetime]) -> RelativeLabel:
    days = days_until(event_date, now)
    if days == 0:
        return RelativeLabel("today", highlight=True)
    if days == 1:
        return RelativeLabel("tomorrow", highlight=True)
    if days < 0:
        return RelativeLabel("past")
    if days <= SOON_DAYS:
        return RelativeLabel(f"in {days} days")
    return RelativeLabel(WEEKDAYS[event_date.weekday()])


def build_timeline(appointments: Iterable[Appointment], now: Union[date, datetime]) -> List[TimelineGroup]:
    return [
        TimelineGroup(key, [TimelineEntry(a, relative_label(a.event_date, now)) for a in items])
        for key, items in group_by_month(appointments).items()
    ]
