from datetime import date, time
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conftest import enable_sqlite_savepoints
from cowork.core.security import create_access_token
from cowork.db import models
from cowork.db.session import Base, get_db
from cowork.main import app


@pytest.fixture()
def api_client():
    engine = enable_sqlite_savepoints(
        create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
    )
    TestingSessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client, TestingSessionLocal
    app.dependency_overrides.clear()


def auth(user_id, **claims):
    token = create_access_token({"sub": str(user_id), **claims})
    return {"Authorization": f"Bearer {token}"}


def seed(SessionLocal):
    with SessionLocal() as db:
        user = models.User(email="api@example.com")
        other = models.User(email="other@example.com")
        desk = models.Workspace(
            name="Hot Desk - Main Floor",
            category=models.WorkspaceCategory.desk,
            capacity=1,
            hourly_rate=Decimal("2.50"),
            min_duration_hours=Decimal("1"),
            max_duration_hours=Decimal("12"),
            opens_at=time(9),
            closes_at=time(17),
        )
        db.add_all([user, other, desk])
        db.commit()
        return user.id, other.id, desk.id


def booking_payload(desk_id, start="09:00", end="13:00"):
    return {
        "workspace_id": desk_id,
        "booking_date": "2026-03-10",
        "start_time": start,
        "end_time": end,
    }


def test_requires_token(api_client):
    client, _ = api_client
    response = client.post("/api/v1/bookings", json=booking_payload(1))
    assert response.status_code == 401


def test_create_booking_and_conflict(api_client):
    client, SessionLocal = api_client
    user_id, other_id, desk_id = seed(SessionLocal)

    created = client.post(
        "/api/v1/bookings", json=booking_payload(desk_id), headers=auth(user_id, nft_holder=True)
    )
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "pending"
    assert Decimal(body["total_price"]) == Decimal("5.45")
    assert body["nft_discount_applied"] is True

    conflict = client.post(
        "/api/v1/bookings",
        json=booking_payload(desk_id, "12:00", "14:00"),
        headers=auth(other_id),
    )
    assert conflict.status_code == 409
    assert conflict.json()["detail"] == "This slot was just booked, please choose another time"

    with SessionLocal() as db:
        assert db.query(models.Booking).count() == 1


def test_availability_and_quote(api_client):
    client, SessionLocal = api_client
    user_id, _, desk_id = seed(SessionLocal)
    client.post("/api/v1/bookings", json=booking_payload(desk_id, "10:00", "12:00"), headers=auth(user_id))

    availability = client.get(f"/api/v1/workspaces/{desk_id}/availability", params={"date": "2026-03-10"})
    assert availability.status_code == 200
    starts = [slot["start_time"] for slot in availability.json()["slots"]]
    assert starts == ["09:00:00", "12:00:00", "13:00:00", "14:00:00", "15:00:00", "16:00:00"]

    quote = client.post(
        f"/api/v1/workspaces/{desk_id}/quote",
        json={"duration_hours": "4"},
        headers=auth(user_id),
    )
    assert quote.status_code == 200
    assert Decimal(quote.json()["total_price"]) == Decimal("10.59")
    assert quote.json()["payment_method"] == "card"


def test_validation_errors_map_to_400(api_client):
    client, SessionLocal = api_client
    user_id, _, desk_id = seed(SessionLocal)
    too_short = client.post(
        "/api/v1/bookings",
        json=booking_payload(desk_id, "09:00", "09:30"),
        headers=auth(user_id),
    )
    assert too_short.status_code == 400
    reversed_ = client.post(
        "/api/v1/bookings",
        json=booking_payload(desk_id, "12:00", "10:00"),
        headers=auth(user_id),
    )
    assert reversed_.status_code == 400
    missing = client.get("/api/v1/workspaces/999/availability", params={"date": "2026-03-10"})
    assert missing.status_code == 404


def test_booking_lifecycle_over_http(api_client):
    client, SessionLocal = api_client
    user_id, other_id, desk_id = seed(SessionLocal)
    booking = client.post("/api/v1/bookings", json=booking_payload(desk_id), headers=auth(user_id)).json()

    assert client.get(f"/api/v1/bookings/{booking['id']}", headers=auth(other_id)).status_code == 404
    forbidden = client.post(f"/api/v1/bookings/{booking['id']}/confirm", headers=auth(user_id))
    assert forbidden.status_code == 403

    early = client.post(f"/api/v1/bookings/{booking['id']}/check-in", headers=auth(user_id))
    assert early.status_code == 409

    confirmed = client.post(
        f"/api/v1/bookings/{booking['id']}/confirm", headers=auth(other_id, role="staff")
    )
    assert confirmed.json()["status"] == "confirmed"
    again = client.post(
        f"/api/v1/bookings/{booking['id']}/confirm", headers=auth(other_id, role="staff")
    )
    assert again.status_code == 200

    cancelled = client.post(
        f"/api/v1/bookings/{booking['id']}/cancel", json={"reason": "meeting moved"}, headers=auth(user_id)
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["booking"]["status"] == "cancelled"
    assert cancelled.json()["should_refund"] is True


def test_credits_endpoints(api_client):
    client, SessionLocal = api_client
    user_id, other_id, _ = seed(SessionLocal)
    allocation = {
        "user_id": user_id,
        "credit_type": "meeting-room",
        "amount": "5",
        "cycle_start": "2026-03-01",
        "cycle_end": "2026-03-31",
    }
    assert client.post("/api/v1/credits/allocate", json=allocation, headers=auth(user_id)).status_code == 403
    allocated = client.post(
        "/api/v1/credits/allocate", json=allocation, headers=auth(other_id, role="billing")
    )
    assert allocated.status_code == 200

    balance = client.get(
        "/api/v1/credits/balance", params={"on": "2026-03-10"}, headers=auth(user_id, member=True)
    )
    assert Decimal(balance.json()["remaining_amount"]) == Decimal("5")
    history = client.get("/api/v1/credits/transactions", headers=auth(user_id))
    assert [row["transaction_type"] for row in history.json()] == ["allocation"]
    assert client.get(
        "/api/v1/credits/balance", params={"on": "2026-05-01"}, headers=auth(user_id)
    ).status_code == 404
