import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple, Union

from .errors import RecurrenceInsertFailed, StoreError, ValidationError
from .feed import NotificationEntry, NotificationFeed
from .models import Appointment, RecurrenceType
from .recurrence import DEFAULT_MAX_OCCURRENCES, RecurrenceRule, expand, parse_end_date
from .settings import Settings
from .stats import SUNDAY, Stats, aggregate
from .store import AppointmentStore
from .timeline import TimelineGroup, build_timeline
from .urgency import DASHBOARD_UPCOMING_DAYS, Bucket, urgent_appointments

logger = logging.getLogger(__name__)

RECURRENCE_FIELDS = ("recurrence_type", "recurrence_end_date", "parent_appointment_id")
# NOT NULL columns a partial update may not clear
REQUIRED_FIELDS = ("client_name", "event_date", "status", "estimated_value")

@dataclass
class CreatedSeries:
    base: Appointment
    occurrences: List[Appointment] = field(default_factory=list)

    @property
    def ids(self) -> List[int]:
        return [self.base.id] + [a.id for a in self.occurrences]

@dataclass
class ReadModel:
    stats: Stats
    notifications: List[NotificationEntry]
    unread_count: int
    urgent: List[Tuple[Bucket, Appointment]]
    timeline_groups: List[TimelineGroup]

def _validate(base: Appointment, rule: Optional[RecurrenceRule]):
    if not (base.client_name or "").strip():
        raise ValidationError("client_name is required")
    if base.event_date is None:
        raise ValidationError("event_date is required")
    if (base.estimated_value or 0) < 0:
        raise ValidationError("estimated_value must not be negative")
    if base.parent_appointment_id is not None:
        raise ValidationError("parent_appointment_id is set by the engine, not by callers")
    if rule is not None and RecurrenceType(rule.type) is not RecurrenceType.NONE and rule.end_date is None:
        raise ValidationError("recurrence end date is required when a recurrence type is set")

def create_appointment(store: AppointmentStore, base: Appointment, rule: Optional[RecurrenceRule] = None,
                       max_occurrences: int = DEFAULT_MAX_OCCURRENCES) -> CreatedSeries:
    """
    Store ``base`` and, when a rule is given, its whole recurring series.

    The base is stored first and on its own. If the occurrences then fail to
    store, the batch is rolled back as a unit and RecurrenceInsertFailed is
    raised carrying the stored base id; the base is not removed.
    """
    try:
        _validate(base, rule)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    end_date = parse_end_date(rule.end_date) if rule is not None else None
    if end_date is not None and RecurrenceType(rule.type) is not RecurrenceType.NONE:
        base.recurrence_type = RecurrenceType(rule.type)
        base.recurrence_end_date = end_date
    else:
        # an unusable rule stores a plain appointment, not an error
        base.recurrence_type = None
        base.recurrence_end_date = None
        rule = None

    base = store.insert(base)
    children = expand(base, rule, max_occurrences)
    if not children:
        return CreatedSeries(base)

    try:
        children = store.insert_many(children)
    except StoreError as exc:
        logger.error("Recurring series for appointment %s not stored (%d occurrences)", base.id, len(children))
        raise RecurrenceInsertFailed(base.id, len(children), exc) from exc
    logger.info("Appointment %s stored with %d recurring occurrence(s)", base.id, len(children))
    return CreatedSeries(base, children)

def update_appointment(store: AppointmentStore, tenant_id: int, appointment_id: int, fields: dict) -> Appointment:
    # recurrence is fixed at creation; series are never re-expanded
    blocked = [f for f in RECURRENCE_FIELDS if f in fields]
    if blocked:
        raise ValidationError(f"cannot change {', '.join(blocked)} after creation")
    for name in REQUIRED_FIELDS:
        if name in fields and fields[name] is None:
            raise ValidationError(f"{name} is required")
    if fields.get("estimated_value", 0) < 0:
        raise ValidationError("estimated_value must not be negative")
    if "client_name" in fields and not fields["client_name"].strip():
        raise ValidationError("client_name is required")
    return store.update(tenant_id, appointment_id, fields)

def delete_appointment(store: AppointmentStore, tenant_id: int, appointment_id: int) -> None:
    store.delete(tenant_id, appointment_id)

def build_read_model(appointments: List[Appointment], now: Union[date, datetime], feed: NotificationFeed,
                     settings: Optional[Settings] = None) -> ReadModel:
    week_start = settings.week_start if settings else SUNDAY
    upcoming_days = settings.dashboard_upcoming_days if settings else DASHBOARD_UPCOMING_DAYS
    feed.reseed(appointments, now)
    return ReadModel(
        stats=aggregate(appointments, now, week_start),
        notifications=feed.entries,
        unread_count=feed.unread_count,
        urgent=urgent_appointments(appointments, now, upcoming_days),
        timeline_groups=build_timeline(appointments, now),
    )

def mark_notification_read(feed: NotificationFeed, notification_id: str) -> bool:
    return feed.mark_read(notification_id)

def toggle_notification_preference(feed: NotificationFeed, enabled: bool) -> bool:
    return feed.set_enabled(enabled)
