import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import timedelta, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlmodel import Session, col, select

from .errors import StoreError
from .feed import FeedRegistry
from .models import ACTIVE_STATUSES, Appointment, ReminderLog, Tenant, utcnow
from .settings import Settings
from .store import AppointmentStore
from .whatsapp import reminder_message, send_whatsapp_text

logger = logging.getLogger(__name__)

def start_scheduler():
    return BackgroundScheduler(timezone=timezone.utc)

def _list_in_own_session(session_factory: Callable[[], Session], tenant_id: int):
    with session_factory() as session:
        return AppointmentStore(session).list(tenant_id)

def list_with_timeout(session_factory: Callable[[], Session], tenant_id: int, timeout: float):
    """
    List a tenant's appointments on a worker thread that owns its session.

    Only the store call is bounded; the computations over its result are not.
    A call that overruns keeps its own thread and closes its own session
    when it eventually returns.
    """
    worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"store-{tenant_id}")
    try:
        future = worker.submit(_list_in_own_session, session_factory, tenant_id)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout as exc:
            raise StoreError(f"listing appointments for tenant {tenant_id} timed out after {timeout}s") from exc
    finally:
        worker.shutdown(wait=False)

def refresh_feeds(session_factory: Callable[[], Session], feeds: FeedRegistry, settings: Settings):
    """Reseed every live tenant feed from the store; one tenant failing does not stop the others."""
    now = settings.now()
    refreshed = 0
    for tenant_id in feeds.tenant_ids():
        try:
            appts = list_with_timeout(session_factory, tenant_id, settings.store_timeout_seconds)
        except StoreError:
            logger.warning("Feed refresh skipped for tenant %s", tenant_id, exc_info=True)
            continue
        feeds.get(tenant_id).reseed(appts, now)
        refreshed += 1
    logger.debug("Refreshed %d notification feed(s)", refreshed)
    return refreshed

def _already_reminded(session: Session, appointment_id: int) -> bool:
    return session.exec(
        select(ReminderLog.id)
        .where(ReminderLog.appointment_id == appointment_id)
        .where(ReminderLog.status == 'sent')
    ).first() is not None

def send_client_reminders(session: Session, settings: Settings, send: Callable = send_whatsapp_text):
    """
    One WhatsApp reminder per appointment happening today or tomorrow.

    Only pending/confirmed appointments with a client phone are reminded; a
    'sent' ReminderLog row marks an appointment as done.
    """
    today = settings.now().date()
    tomorrow = today + timedelta(days=1)
    appts = session.exec(
        select(Appointment)
        .where(Appointment.event_date >= today)
        .where(Appointment.event_date <= tomorrow)
        .where(col(Appointment.status).in_(list(ACTIVE_STATUSES)))
        .order_by(Appointment.event_date)
    ).all()

    logs = []
    for a in appts:
        if not a.client_phone:
            logger.info("No phone number for appointment %s", a.id)
            continue
        if _already_reminded(session, a.id):
            continue
        tenant = session.get(Tenant, a.tenant_id)
        message = reminder_message(a, tenant.name if tenant else None)
        status = 'sent'
        try:
            send(settings.whatsapp_access_token, settings.whatsapp_phone_number_id, a.client_phone, message)
        except Exception:
            logger.warning("WhatsApp reminder failed for appointment %s", a.id, exc_info=True)
            status = 'failed'
        log = ReminderLog(
            appointment_id=a.id, tenant_id=a.tenant_id, client_name=a.client_name,
            client_phone=a.client_phone, event_date=a.event_date, event_time=a.event_time,
            message=message, status=status,
            sent_at=utcnow() if status == 'sent' else None,
        )
        session.add(log)
        logs.append(log)
    session.commit()
    logger.info("Processed %d reminder(s)", len(logs))
    return logs

def schedule_all(scheduler: BackgroundScheduler, session_factory: Callable[[], Session],
                 feeds: FeedRegistry, settings: Settings):
    scheduler.add_job(refresh_feeds, trigger=IntervalTrigger(seconds=settings.feed_refresh_seconds),
                      args=[session_factory, feeds, settings], id="refresh-feeds", replace_existing=True)

    def _reminders():
        with session_factory() as session:
            send_client_reminders(session, settings)

    scheduler.add_job(_reminders, trigger=IntervalTrigger(minutes=settings.reminder_interval_minutes),
                      id="client-reminders", replace_existing=True)
