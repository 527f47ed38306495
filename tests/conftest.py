"""
Test configuration and fixtures.

Provides:
- In-memory SQLite engine and session (fresh schema per test)
- A tenant row to scope appointments to
- An appointment factory for the pure engine tests
"""
import itertools
import os
from datetime import date
from typing import Generator

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from decor_scheduler.db import init_db
from decor_scheduler.models import Appointment, AppointmentStatus, Tenant


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def tenant(db) -> Tenant:
    t = Tenant(name="Bella Arte", tenant_key="bella-arte", whatsapp_number="11999990000")
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


@pytest.fixture
def make_appointment():
    """Unsaved appointments with distinct ids, for code that never touches the store."""
    ids = itertools.count(1)

    def _make(event_date: date, status=AppointmentStatus.PENDING, **fields) -> Appointment:
        fields.setdefault("id", next(ids))
        fields.setdefault("tenant_id", 1)
        fields.setdefault("client_name", f"Cliente {fields['id']}")
        return Appointment(event_date=event_date, status=status, **fields)

    return _make
