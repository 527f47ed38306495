import logging
from contextlib import asynccontextmanager
from datetime import date, time
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Header, Request
from fastapi.responses import JSONResponse
from jose import jwt, JWTError
from sqlmodel import Session, SQLModel

from .db import engine, init_db, get_session
from .errors import AppointmentNotFound, RecurrenceInsertFailed, StoreError, ValidationError
from .feed import FeedRegistry, NotificationFeed, WhatsAppPushChannel
from .logic import (
    build_read_model, create_appointment, delete_appointment, mark_notification_read,
    toggle_notification_preference, update_appointment,
)
from .models import Appointment, AppointmentStatus, RecurrenceType, Tenant
from .recurrence import RecurrenceRule
from .scheduler import schedule_all, start_scheduler
from .settings import load_settings
from .store import AppointmentStore

logger = logging.getLogger(__name__)

# ----------------- App & Settings -----------------
settings = load_settings()
feeds = FeedRegistry(upcoming_days=settings.feed_upcoming_days)

@asynccontextmanager
async def lifespan(_app: FastAPI):
    logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    init_db()
    scheduler = start_scheduler()
    schedule_all(scheduler, lambda: Session(engine), feeds, settings)
    scheduler.start()
    try:
        yield
    finally:
        scheduler.shutdown(wait=False)

app = FastAPI(title="Decor Scheduler", lifespan=lifespan)

# ----------------- Schemas -----------------
class RecurrenceIn(SQLModel):
    type: RecurrenceType
    end_date: Optional[date] = None

class AppointmentIn(SQLModel):
    client_name: str
    client_phone: Optional[str] = None
    event_date: date
    event_time: Optional[time] = None
    event_type: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    estimated_value: float = 0
    recurrence: Optional[RecurrenceIn] = None

class AppointmentPatch(SQLModel):
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    event_date: Optional[date] = None
    event_time: Optional[time] = None
    event_type: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    estimated_value: Optional[float] = None

class PreferenceIn(SQLModel):
    enabled: bool

def appointment_out(a: Appointment) -> dict:
    return {
        "id": a.id,
        "client_name": a.client_name,
        "client_phone": a.client_phone,
        "event_date": a.event_date.isoformat(),
        "event_time": a.event_time.strftime("%H:%M") if a.event_time else None,
        "event_type": a.event_type,
        "location": a.location,
        "notes": a.notes,
        "status": a.current_status.value,
        "estimated_value": a.value,
        "recurrence_type": a.recurrence_type.value if a.recurrence_type else None,
        "recurrence_end_date": a.recurrence_end_date.isoformat() if a.recurrence_end_date else None,
        "parent_appointment_id": a.parent_appointment_id,
    }

# ----------------- Error handlers -----------------
@app.exception_handler(ValidationError)
async def _validation_error(_req: Request, exc: ValidationError):
    return JSONResponse({"detail": str(exc)}, status_code=422)

@app.exception_handler(AppointmentNotFound)
async def _not_found(_req: Request, exc: AppointmentNotFound):
    return JSONResponse({"detail": "Agendamento não encontrado"}, status_code=404)

@app.exception_handler(RecurrenceInsertFailed)
async def _series_failed(_req: Request, exc: RecurrenceInsertFailed):
    return JSONResponse(
        {"detail": str(exc), "base_appointment_id": exc.base_id, "occurrences": exc.occurrences},
        status_code=502,
    )

@app.exception_handler(StoreError)
async def _store_error(_req: Request, exc: StoreError):
    logger.error("Store error: %s", exc)
    return JSONResponse({"detail": "Armazenamento indisponível"}, status_code=503)

# ----------------- Tenant resolution -----------------
def current_tenant(
    authorization: str = Header(None),
    session: Session = Depends(get_session),
) -> Tenant:
    if not authorization:
        raise HTTPException(401, "Auth necessária")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        raise HTTPException(401, "Bearer esperado")
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])
        tenant_id = int(payload["tenant_id"])
    except (JWTError, KeyError, TypeError, ValueError):
        raise HTTPException(401, "Token inválido")
    tenant = session.get(Tenant, tenant_id)
    if not tenant:
        raise HTTPException(401, "Tenant inexistente")
    return tenant

def current_feed(tenant: Tenant = Depends(current_tenant)) -> NotificationFeed:
    return feeds.get(tenant.id, lambda: WhatsAppPushChannel(
        settings.whatsapp_access_token, settings.whatsapp_phone_number_id, tenant.whatsapp_number,
    ))

def get_store(session: Session = Depends(get_session)) -> AppointmentStore:
    return AppointmentStore(session)

# ----------------- Health -----------------
@app.get("/health")
def health():
    return {"ok": True}

# ----------------- Agenda read model -----------------
@app.get("/api/agenda")
def agenda(
    tenant: Tenant = Depends(current_tenant),
    feed: NotificationFeed = Depends(current_feed),
    store: AppointmentStore = Depends(get_store),
):
    model = build_read_model(store.list(tenant.id), settings.now(), feed, settings)
    return {
        "stats": model.stats.as_dict(),
        "notifications": [n.as_dict() for n in model.notifications],
        "unread_count": model.unread_count,
        "notifications_enabled": feed.enabled,
        "urgent": [{"type": b.value, "appointment": appointment_out(a)} for b, a in model.urgent],
        "timeline": [
            {
                "month": g.month_key,
                "appointments": [
                    {**appointment_out(e.appointment), "label": e.label.text, "highlight": e.label.highlight}
                    for e in g.entries
                ],
            }
            for g in model.timeline_groups
        ],
    }

# ----------------- Appointments -----------------
@app.post("/api/appointments", status_code=201)
def post_appointment(
    body: AppointmentIn,
    tenant: Tenant = Depends(current_tenant),
    store: AppointmentStore = Depends(get_store),
):
    base = Appointment(tenant_id=tenant.id, **body.model_dump(exclude={"recurrence"}))
    rule = RecurrenceRule(body.recurrence.type, body.recurrence.end_date) if body.recurrence else None
    series = create_appointment(store, base, rule, settings.max_occurrences)
    return {
        "appointment": appointment_out(series.base),
        "occurrences": [appointment_out(a) for a in series.occurrences],
    }

@app.patch("/api/appointments/{appointment_id}")
def patch_appointment(
    appointment_id: int,
    body: AppointmentPatch,
    tenant: Tenant = Depends(current_tenant),
    store: AppointmentStore = Depends(get_store),
):
    appt = update_appointment(store, tenant.id, appointment_id, body.model_dump(exclude_unset=True))
    return appointment_out(appt)

@app.delete("/api/appointments/{appointment_id}", status_code=204)
def remove_appointment(
    appointment_id: int,
    tenant: Tenant = Depends(current_tenant),
    store: AppointmentStore = Depends(get_store),
):
    delete_appointment(store, tenant.id, appointment_id)

# ----------------- Notifications -----------------
@app.post("/api/notifications/read-all")
def read_all_notifications(feed: NotificationFeed = Depends(current_feed)):
    feed.mark_all_read()
    return {"unread_count": feed.unread_count}

@app.post("/api/notifications/{notification_id}/read")
def read_notification(notification_id: str, feed: NotificationFeed = Depends(current_feed)):
    if not mark_notification_read(feed, notification_id):
        raise HTTPException(404, "Notificação não encontrada")
    return {"unread_count": feed.unread_count}

@app.put("/api/notifications/preference")
def notification_preference(body: PreferenceIn, feed: NotificationFeed = Depends(current_feed)):
    enabled = toggle_notification_preference(feed, body.enabled)
    return {"enabled": enabled, "permission": feed.permission.value}
