"""
Recurring series expansion.

A base appointment with a recurrence rule is materialised once, at creation
time, into concrete child appointments; nothing is generated lazily later.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Union

from dateutil import parser
from dateutil.relativedelta import relativedelta

from .models import Appointment, RecurrenceType

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 366

# fields that never travel from a base to its children
_NOT_COPIED = {"id", "event_date", "parent_appointment_id", "recurrence_type",
               "recurrence_end_date", "created_at", "updated_at"}

_FIXED_STEPS = {
    RecurrenceType.WEEKLY: timedelta(weeks=1),
    RecurrenceType.BIWEEKLY: timedelta(weeks=2),
}


@dataclass(frozen=True)
class RecurrenceRule:
    type: Union[RecurrenceType, str]
    end_date: Union[date, datetime, str, None]


def parse_end_date(value) -> Optional[date]:
    """Return the rule's end date as a calendar date, or None if unusable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parser.isoparse(str(value).strip()).date()
    except (ValueError, OverflowError):
        logger.info("Ignoring unparseable recurrence end date %r", value)
        return None


def _recurrence_type(value) -> Optional[RecurrenceType]:
    try:
        kind = RecurrenceType(value)
    except ValueError:
        return None
    return None if kind is RecurrenceType.NONE else kind


def occurrence_dates(start: date, kind: RecurrenceType, end: date,
                     max_occurrences: int = DEFAULT_MAX_OCCURRENCES) -> List[date]:
    """
    Dates strictly after ``start`` and on or before ``end``.

    Monthly steps are computed from ``start`` (start + n months) so the
    day-of-month is kept whenever the target month has it: 31 Jan gives
    29 Feb (leap year), 31 Mar, 30 Apr.
    """
    dates = []
    n = 1
    while len(dates) < max_occurrences:
        if kind is RecurrenceType.MONTHLY:
            current = start + relativedelta(months=n)
        else:
            current = start + _FIXED_STEPS[kind] * n
        if current > end:
            break
        dates.append(current)
        n += 1
    return dates


def expand(base: Appointment, rule: Optional[RecurrenceRule],
           max_occurrences: int = DEFAULT_MAX_OCCURRENCES) -> List[Appointment]:
    """
    Build the child occurrences of ``base`` under ``rule``.

    The base itself is never part of the result. An absent rule, a ``none``
    type, an unparseable end date or an end date before the first step all
    give an empty list.
    """
    if rule is None:
        return []
    kind = _recurrence_type(rule.type)
    end = parse_end_date(rule.end_date)
    if kind is None or end is None:
        return []

    dates = occurrence_dates(base.event_date, kind, end, max_occurrences)
    if len(dates) == max_occurrences:
        logger.warning("Recurring series for appointment %s capped at %d occurrences",
                       base.id, max_occurrences)

    fields = base.model_dump(exclude=_NOT_COPIED)
    return [
        Appointment(**fields, event_date=d, parent_appointment_id=base.id)
        for d in dates
    ]
