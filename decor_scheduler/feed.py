"""
Session-local notification feed.

The feed is a view recomputed from the live appointment list; the only state
it owns is which entries were read and whether push delivery is on. Neither is
persisted: a new session starts with everything unread.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Union

from .models import Appointment, utcnow
from .urgency import Bucket, classify, days_until, sort_by_urgency
from .whatsapp import send_whatsapp_text

logger = logging.getLogger(__name__)

FEED_UPCOMING_DAYS = 7


class PushPermission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class PushChannel(Protocol):
    def request_permission(self) -> PushPermission: ...

    def notify(self, title: str, body: str) -> None: ...


class NullPushChannel:
    """Channel used when nothing can receive pushes."""

    def request_permission(self) -> PushPermission:
        return PushPermission.DENIED

    def notify(self, title: str, body: str) -> None:
        pass


class WhatsAppPushChannel:
    """Pushes feed alerts to the business owner's own WhatsApp number."""

    def __init__(self, access_token: str, phone_number_id: str, to: Optional[str]):
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.to = to

    def request_permission(self) -> PushPermission:
        if self.access_token and self.phone_number_id and self.to:
            return PushPermission.GRANTED
        return PushPermission.DENIED

    def notify(self, title: str, body: str) -> None:
        send_whatsapp_text(self.access_token, self.phone_number_id, self.to, f"*{title}*\n{body}")


@dataclass
class NotificationEntry:
    id: str
    bucket: Bucket
    appointment: Appointment
    message: str
    read: bool = False
    created_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict:
        a = self.appointment
        return {
            "id": self.id,
            "type": self.bucket.value,
            "message": self.message,
            "read": self.read,
            "created_at": self.created_at.isoformat(),
            "appointment": {
                "id": a.id,
                "client_name": a.client_name,
                "event_date": a.event_date.isoformat(),
                "event_time": a.event_time.strftime("%H:%M") if a.event_time else None,
                "event_type": a.event_type,
                "location": a.location,
            },
        }


def entry_id(bucket: Bucket, appointment_id) -> str:
    return f"{bucket.value}-{appointment_id}"


def _at(a: Appointment) -> str:
    return f" às {a.event_time.strftime('%H:%M')}" if a.event_time else ""


def entry_message(bucket: Bucket, a: Appointment, now: Union[date, datetime]) -> str:
    if bucket is Bucket.TODAY:
        return f"Evento HOJE: {a.client_name}{_at(a)}"
    if bucket is Bucket.TOMORROW:
        return f"Evento AMANHÃ: {a.client_name}{_at(a)}"
    days = days_until(a.event_date, now)
    return f"Em {days} dias: {a.client_name} - {a.event_date.strftime('%d/%m')}"


class NotificationFeed:
    def __init__(self, channel: Optional[PushChannel] = None, enabled: bool = False,
                 upcoming_days: int = FEED_UPCOMING_DAYS):
        self.channel = channel or NullPushChannel()
        self.upcoming_days = upcoming_days
        self.permission = PushPermission.DEFAULT
        self._enabled = enabled
        self._entries: List[NotificationEntry] = []
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def entries(self) -> List[NotificationEntry]:
        with self._lock:
            return [replace(e) for e in self._entries]

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for e in self._entries if not e.read)

    def counts_by_bucket(self) -> Dict[Bucket, int]:
        with self._lock:
            counts = {b: 0 for b in Bucket}
            for e in self._entries:
                counts[e.bucket] += 1
            return counts

    def reseed(self, appointments: Iterable[Appointment], now: Union[date, datetime]) -> List[NotificationEntry]:
        """
        Rebuild the entries from ``appointments``; returns the entries that
        were not in the feed before.

        Read flags survive for ids still present. An appointment moving to a
        different bucket gets a different id and therefore a fresh unread entry.
        """
        fresh = []
        for a in appointments:
            bucket = classify(a, now, self.upcoming_days)
            if bucket is not None:
                fresh.append(NotificationEntry(entry_id(bucket, a.id), bucket, a, entry_message(bucket, a, now)))
        fresh = sort_by_urgency(fresh, key=lambda e: e.bucket)

        with self._lock:
            previous = {e.id: e for e in self._entries}
            added = []
            for e in fresh:
                old = previous.get(e.id)
                if old is None:
                    added.append(e)
                else:
                    e.read = old.read
                    e.created_at = old.created_at
            self._entries = fresh
            deliver = self._enabled and self.permission is PushPermission.GRANTED

        if deliver:
            for e in added:
                self._push("Evento próximo", e.message)
        return [replace(e) for e in added]

    def mark_read(self, notification_id: str) -> bool:
        with self._lock:
            for e in self._entries:
                if e.id == notification_id:
                    e.read = True
                    return True
        return False

    def mark_all_read(self) -> int:
        with self._lock:
            changed = 0
            for e in self._entries:
                if not e.read:
                    e.read = True
                    changed += 1
            return changed

    def set_enabled(self, enabled: bool) -> bool:
        """
        Toggle push delivery. Turning it on asks the channel for permission
        unless it was already granted; a denial leaves delivery off and the
        feed keeps filling silently.
        """
        with self._lock:
            if not enabled:
                self._enabled = False
                return False
            newly_granted = False
            if self.permission is not PushPermission.GRANTED:
                self.permission = self._request_permission()
                if self.permission is not PushPermission.GRANTED:
                    logger.info("Push permission %s; notifications stay silent", self.permission.value)
                    self._enabled = False
                    return False
                newly_granted = True
            self._enabled = True

        if newly_granted:
            self._push("🎉 Notificações Ativas!", "Você receberá alertas sobre eventos próximos.")
        return True

    def _request_permission(self) -> PushPermission:
        try:
            return PushPermission(self.channel.request_permission())
        except Exception:
            logger.warning("Push permission request failed", exc_info=True)
            return PushPermission.DENIED

    def _push(self, title: str, body: str) -> None:
        # delivery is advisory; the feed is correct without it
        try:
            self.channel.notify(title, body)
        except Exception:
            logger.warning("Push notification failed: %s", title, exc_info=True)


class FeedRegistry:
    """One feed per tenant, created on first use and kept for the process lifetime."""

    def __init__(self, upcoming_days: int = FEED_UPCOMING_DAYS):
        self.upcoming_days = upcoming_days
        self._feeds: Dict[int, NotificationFeed] = {}
        self._lock = threading.Lock()

    def get(self, tenant_id: int, channel: Optional[Callable[[], PushChannel]] = None) -> NotificationFeed:
        """``channel`` builds the push channel if the tenant has no feed yet."""
        with self._lock:
            feed = self._feeds.get(tenant_id)
            if feed is None:
                feed = NotificationFeed(channel() if channel else None, upcoming_days=self.upcoming_days)
                self._feeds[tenant_id] = feed
            return feed

    def tenant_ids(self) -> List[int]:
        with self._lock:
            return list(self._feeds)
