from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from decor_scheduler import main
from decor_scheduler.db import get_session
from decor_scheduler.errors import StoreError
from decor_scheduler.feed import FeedRegistry
from decor_scheduler.store import AppointmentStore


@pytest.fixture
def client(engine, db, monkeypatch):
    def _session():
        yield db

    monkeypatch.setattr(main, "feeds", FeedRegistry(upcoming_days=main.settings.feed_upcoming_days))
    main.app.dependency_overrides[get_session] = _session
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def auth(tenant):
    token = jwt.encode({"tenant_id": tenant.id}, main.settings.jwt_secret, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


def _today():
    return main.settings.now().date()


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Basic abc"},
        {"Authorization": "Bearer not-a-token"},
        {"Authorization": "Bearer " + jwt.encode({"tenant_id": 999}, "test-secret", algorithm="HS256")},
    ],
)
def test_agenda_requires_valid_tenant_token(client, tenant, headers):
    assert client.get("/api/agenda", headers=headers).status_code == 401


def test_create_recurring_appointment(client, auth):
    start = _today() + timedelta(days=1)
    body = {
        "client_name": "Maria",
        "event_date": start.isoformat(),
        "event_time": "15:00",
        "status": "confirmed",
        "estimated_value": 350,
        "recurrence": {"type": "weekly", "end_date": (start + timedelta(days=14)).isoformat()},
    }

    resp = client.post("/api/appointments", json=body, headers=auth)

    assert resp.status_code == 201
    data = resp.json()
    assert data["appointment"]["recurrence_type"] == "weekly"
    assert [o["event_date"] for o in data["occurrences"]] == [
        (start + timedelta(days=7)).isoformat(),
        (start + timedelta(days=14)).isoformat(),
    ]
    assert {o["parent_appointment_id"] for o in data["occurrences"]} == {data["appointment"]["id"]}


def test_create_rejects_negative_value(client, auth):
    body = {"client_name": "Maria", "event_date": _today().isoformat(), "estimated_value": -5}

    assert client.post("/api/appointments", json=body, headers=auth).status_code == 422


def test_agenda_read_model_and_notifications(client, auth):
    today = _today()
    client.post("/api/appointments", json={"client_name": "Ana", "event_date": today.isoformat()}, headers=auth)
    client.post("/api/appointments", json={
        "client_name": "Bia", "event_date": (today + timedelta(days=1)).isoformat(),
        "status": "completed", "estimated_value": 120,
    }, headers=auth)

    agenda = client.get("/api/agenda", headers=auth).json()

    assert agenda["stats"]["total"] == 2
    assert agenda["stats"]["revenue"] == 120
    assert agenda["unread_count"] == 1
    assert agenda["notifications_enabled"] is False
    [note] = agenda["notifications"]
    assert note["type"] == "today"
    assert agenda["urgent"][0]["appointment"]["client_name"] == "Ana"
    labels = [a["label"] for g in agenda["timeline"] for a in g["appointments"]]
    assert labels == ["today", "tomorrow"]

    resp = client.post(f"/api/notifications/{note['id']}/read", headers=auth)
    assert resp.json() == {"unread_count": 0}
    assert client.get("/api/agenda", headers=auth).json()["notifications"][0]["read"] is True


def test_read_unknown_notification(client, auth):
    assert client.post("/api/notifications/today-404/read", headers=auth).status_code == 404
    assert client.post("/api/notifications/read-all", headers=auth).json() == {"unread_count": 0}


def test_preference_denied_without_whatsapp_credentials(client, auth, monkeypatch):
    monkeypatch.setattr(main.settings, "whatsapp_access_token", "")

    resp = client.put("/api/notifications/preference", json={"enabled": True}, headers=auth)

    assert resp.json() == {"enabled": False, "permission": "denied"}


def test_patch_and_delete(client, auth):
    created = client.post("/api/appointments", json={
        "client_name": "Ana", "event_date": _today().isoformat(),
    }, headers=auth).json()["appointment"]

    resp = client.patch(f"/api/appointments/{created['id']}", json={"status": "cancelled"}, headers=auth)
    assert resp.json()["status"] == "cancelled"

    assert client.delete(f"/api/appointments/{created['id']}", headers=auth).status_code == 204
    assert client.delete(f"/api/appointments/{created['id']}", headers=auth).status_code == 404


def test_failed_series_answers_502_with_stored_base(client, auth, monkeypatch):
    def fail_batch(store, appointments):
        raise StoreError("disk full")

    monkeypatch.setattr(AppointmentStore, "insert_many", fail_batch)
    start = _today() + timedelta(days=1)
    body = {
        "client_name": "Maria",
        "event_date": start.isoformat(),
        "recurrence": {"type": "weekly", "end_date": (start + timedelta(days=14)).isoformat()},
    }

    resp = client.post("/api/appointments", json=body, headers=auth)

    assert resp.status_code == 502
    data = resp.json()
    assert data["base_appointment_id"] is not None
    assert data["occurrences"] == 2
    agenda = client.get("/api/agenda", headers=auth).json()
    assert agenda["stats"]["total"] == 1
    assert agenda["timeline"][0]["appointments"][0]["id"] == data["base_appointment_id"]


@pytest.mark.parametrize("field", ["status", "estimated_value", "client_name"])
def test_patch_null_required_field_is_rejected(client, auth, field):
    created = client.post("/api/appointments", json={
        "client_name": "Ana", "event_date": _today().isoformat(),
    }, headers=auth).json()["appointment"]

    resp = client.patch(f"/api/appointments/{created['id']}", json={field: None}, headers=auth)

    assert resp.status_code == 422
