from enum import Enum
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List
from datetime import date, datetime, time, timezone

class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

# Any status may follow any other; consumers key off the current value only.
ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})
REVENUE_STATUSES = frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED})
CLOSED_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class RecurrenceType(str, Enum):
    NONE = 'none'
    WEEKLY = 'weekly'
    BIWEEKLY = 'biweekly'
    MONTHLY = 'monthly'

class Tenant(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    tenant_key: str
    whatsapp_number: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    appointments: List['Appointment'] = Relationship(back_populates='tenant')

class Appointment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: int = Field(foreign_key='tenant.id', index=True)
    client_name: str
    client_phone: Optional[str] = None
    event_date: date = Field(index=True)
    event_time: Optional[time] = None
    event_type: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    status: AppointmentStatus = Field(default=AppointmentStatus.PENDING)
    estimated_value: float = Field(default=0)
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_end_date: Optional[date] = None
    # weak back-reference to the base of a series; no constraint, no cascade
    parent_appointment_id: Optional[int] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    tenant: Optional[Tenant] = Relationship(back_populates='appointments')

    @property
    def current_status(self) -> AppointmentStatus:
        # rows written by older clients may carry a null status
        return AppointmentStatus(self.status) if self.status else AppointmentStatus.PENDING

    @property
    def is_active(self) -> bool:
        return self.current_status in ACTIVE_STATUSES

    @property
    def value(self) -> float:
        return self.estimated_value or 0

class ReminderLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    appointment_id: int = Field(index=True)
    tenant_id: int = Field(foreign_key='tenant.id')
    client_name: str
    client_phone: Optional[str] = None
    event_date: date
    event_time: Optional[time] = None
    message: str
    status: str = Field(default='sent')
    sent_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
