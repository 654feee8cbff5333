from datetime import timedelta

import httpx
import pytest

from busbook.core import get_settings
from busbook.infrastructure import get_session
from busbook.main import create_app
from busbook.roles import Role
from busbook.security import create_token, decode_token, mint_tokens

from factories import make_trip


@pytest.fixture
def app(engine, session_factory, locks, notifier):
    app = create_app(
        get_settings(),
        engine=engine,
        session_factory=session_factory,
        lock_manager=locks,
        notifier=notifier,
    )

    async def override_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def auth(sub="ram@example.com", role="passenger"):
    return {"Authorization": f"Bearer {create_token(sub, role)}"}


PASSENGER = {
    "passenger_name": "Ram Shrestha",
    "passenger_email": "ram@example.com",
    "passenger_phone": "9841234567",
}


async def test_root_and_health(client):
    assert (await client.get("/")).json()["health"] == "/healthz"
    assert (await client.get("/healthz")).json() == {"db": "ok", "locks": "ok"}


async def test_search_and_seat_map(client, session):
    trip = await make_trip(session, total_seats=10)

    resp = await client.get("/api/v1/trips/", params={"origin": "Kathmandu", "destination": "Palung"})
    assert resp.status_code == 200
    [found] = resp.json()
    assert found["id"] == trip.id
    assert found["duration"] == "2h 30m"
    assert found["available_seats"] == 10

    resp = await client.get(f"/api/v1/trips/{trip.id}/seats")
    assert resp.json() == {
        "trip_id": trip.id,
        "total_seats": 10,
        "available_seats": list(range(1, 11)),
        "booked_seats": [],
    }


async def test_unknown_trip_is_404(client):
    resp = await client.get("/api/v1/trips/999")
    assert resp.status_code == 404
    assert resp.json()["details"] == {"entity": "Trip", "id": 999}


async def test_bad_time_of_day_is_rejected(client):
    resp = await client.get("/api/v1/trips/", params={"time_of_day": "evening"})
    assert resp.status_code == 400
    assert resp.json()["details"] == {"field": "time_of_day"}


async def test_booking_requires_a_token(client, session):
    trip = await make_trip(session)
    resp = await client.post("/api/v1/bookings/", json={"trip_id": trip.id, "seat_numbers": [1], **PASSENGER})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Missing credentials", "details": {}}

    resp = await client.get("/api/v1/bookings/", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid or expired token"


async def test_book_conflict_and_cancel(client, session, mail):
    trip = await make_trip(session, total_seats=40, price="500")

    resp = await client.post(
        "/api/v1/bookings/",
        json={"trip_id": trip.id, "seat_numbers": [1, 2, 3], **PASSENGER},
        headers=auth(),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["stage"] == "done"
    assert body["seats_left"] == 37
    assert body["warnings"] == []
    assert body["booking"]["seat_numbers"] == [1, 2, 3]
    assert float(body["booking"]["total_amount"]) == 1500
    assert body["booking"]["passenger_phone"] == "+9779841234567"
    assert body["booking"]["trip"]["bus_number"] == "KTM-001"
    booking_id = body["booking"]["id"]
    assert len(mail.requests) == 1

    resp = await client.post(
        "/api/v1/bookings/",
        json={"trip_id": trip.id, "seat_numbers": [3, 4], **PASSENGER},
        headers=auth(),
    )
    assert resp.status_code == 409
    details = resp.json()["details"]
    assert details["taken_seats"] == [3]
    assert details["available_seats"] == list(range(4, 41))

    resp = await client.get(f"/api/v1/trips/{trip.id}/seats")
    assert resp.json()["booked_seats"] == [1, 2, 3]

    resp = await client.get("/api/v1/bookings/", headers=auth())
    assert [b["id"] for b in resp.json()] == [booking_id]
    assert (await client.get("/api/v1/bookings/", headers=auth("hari@example.com"))).json() == []
    assert (await client.get(f"/api/v1/bookings/{booking_id}", headers=auth("hari@example.com"))).status_code == 404

    resp = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth())
    assert resp.status_code == 200
    assert resp.json()["booking"]["status"] == "cancelled"
    assert resp.json()["seats_left"] == 40

    resp = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth())
    assert resp.status_code == 200
    assert resp.json()["seats_left"] == 40
    assert resp.json()["warnings"] == ["Booking was already cancelled"]


async def test_missing_passenger_details(client, session):
    trip = await make_trip(session)
    resp = await client.post(
        "/api/v1/bookings/",
        json={"trip_id": trip.id, "seat_numbers": [1], "passenger_name": "Ram"},
        headers=auth(),
    )
    assert resp.status_code == 400
    assert "missing: email, phone" in resp.json()["error"]


async def test_email_failure_still_books(client, session, mail):
    trip = await make_trip(session)
    mail.fail = True
    resp = await client.post(
        "/api/v1/bookings/",
        json={"trip_id": trip.id, "seat_numbers": [9], **PASSENGER},
        headers=auth(),
    )
    assert resp.status_code == 201
    assert resp.json()["booking"]["status"] == "confirmed"
    assert len(resp.json()["warnings"]) == 1


async def test_admin_routes_need_admin(client):
    resp = await client.post("/api/v1/admin/trips", json={}, headers=auth())
    assert resp.status_code == 403
    assert resp.json()["error"] == "Access denied"


async def test_admin_trip_lifecycle(client):
    admin = auth("admin@example.com", "admin")
    resp = await client.post(
        "/api/v1/admin/trips",
        json={
            "bus_number": "KTM-200",
            "origin": "Kathmandu",
            "destination": "Palung",
            "departs_at": "2030-01-01T09:00:00",
            "arrives_at": "2030-01-01T11:30:00",
            "price": "500",
            "total_seats": 20,
        },
        headers=admin,
    )
    assert resp.status_code == 201
    trip = resp.json()
    assert trip["available_seats"] == 20
    assert trip["departs_at"] == "2030-01-01T03:15:00"

    resp = await client.post(
        "/api/v1/bookings/",
        json={"trip_id": trip["id"], "seat_numbers": [18], **PASSENGER},
        headers=auth(),
    )
    assert resp.status_code == 201

    resp = await client.patch(f"/api/v1/admin/trips/{trip['id']}", json={"total_seats": 15}, headers=admin)
    assert resp.status_code == 422
    assert resp.json()["details"]["rule"] == "capacity_below_committed_seats"

    resp = await client.patch(f"/api/v1/admin/trips/{trip['id']}", json={"total_seats": 25}, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["available_seats"] == 24

    resp = await client.post(f"/api/v1/admin/trips/{trip['id']}/reconcile", headers=admin)
    assert resp.json() == {"trip_id": trip["id"], "available_seats": 24}

    resp = await client.delete(f"/api/v1/admin/trips/{trip['id']}", headers=admin)
    assert resp.status_code == 409

    resp = await client.get("/api/v1/bookings/", headers=admin)
    assert len(resp.json()) == 1


async def test_admin_rejects_bad_schedule(client):
    resp = await client.post(
        "/api/v1/admin/trips",
        json={
            "bus_number": "KTM-201",
            "origin": "Kathmandu",
            "destination": "Palung",
            "departs_at": "2030-01-01T09:00:00",
            "arrives_at": "2030-01-01T08:00:00",
            "price": "500",
        },
        headers=auth("admin@example.com", "admin"),
    )
    assert resp.status_code == 422


async def test_departed_trip_is_422(client, session):
    trip = await make_trip(session, departs_in=-timedelta(minutes=5))
    resp = await client.post(
        "/api/v1/bookings/",
        json={"trip_id": trip.id, "seat_numbers": [1], **PASSENGER},
        headers=auth(),
    )
    assert resp.status_code == 422
    assert resp.json()["details"]["rule"] == "trip_departed"


async def test_minted_tokens_work_as_cookie(client, session):
    access, refresh = mint_tokens("ram@example.com", Role.passenger)
    assert decode_token(refresh)["role"] == "passenger"

    client.cookies.set("access_token", access)
    resp = await client.get("/api/v1/bookings/")
    assert resp.status_code == 200
    assert resp.json() == []
