import logging
from typing import Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .errors import AppointmentNotFound, StoreError
from .models import Appointment, utcnow

logger = logging.getLogger(__name__)

# fields an edit may never touch
READ_ONLY_FIELDS = frozenset({"id", "tenant_id", "created_at"})


class AppointmentStore:
    """Tenant-scoped reads and writes of appointments."""

    def __init__(self, session: Session):
        self.session = session

    def list(self, tenant_id: int) -> List[Appointment]:
        try:
            return list(self.session.exec(
                select(Appointment)
                .where(Appointment.tenant_id == tenant_id)
                .order_by(Appointment.event_date, Appointment.id)
            ).all())
        except SQLAlchemyError as exc:
            raise StoreError(f"could not list appointments for tenant {tenant_id}") from exc

    def get(self, tenant_id: int, appointment_id: int) -> Appointment:
        appt = self.session.get(Appointment, appointment_id)
        if appt is None or appt.tenant_id != tenant_id:
            raise AppointmentNotFound(tenant_id, appointment_id)
        return appt

    def insert(self, appointment: Appointment) -> Appointment:
        return self.insert_many([appointment])[0]

    def insert_many(self, appointments: Iterable[Appointment]) -> List[Appointment]:
        """Store every appointment or none of them."""
        appointments = list(appointments)
        if not appointments:
            return []
        try:
            self.session.add_all(appointments)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Batch insert of %d appointment(s) rolled back", len(appointments))
            raise StoreError("could not store appointments") from exc
        for a in appointments:
            self.session.refresh(a)
        return appointments

    def update(self, tenant_id: int, appointment_id: int, fields: dict) -> Appointment:
        appt = self.get(tenant_id, appointment_id)
        for name, value in fields.items():
            if name in READ_ONLY_FIELDS:
                continue
            setattr(appt, name, value)
        appt.updated_at = utcnow()
        try:
            self.session.add(appt)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(f"could not update appointment {appointment_id}") from exc
        self.session.refresh(appt)
        return appt

    def delete(self, tenant_id: int, appointment_id: int) -> None:
        appt = self.get(tenant_id, appointment_id)
        try:
            self.session.delete(appt)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(f"could not delete appointment {appointment_id}") from exc
