"""
API tests

Drive the HTTP surface end to end on an in-memory store:
- Company header enforcement and error bodies
- Availability check, grid, block periods and rules
- Reservation create / conflict / cancel
"""

import inspect
import pytest
from datetime import date, timedelta
from decimal import Decimal

from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from roomstay.database import get_db
from roomstay.main import app
from roomstay.models import Room

HEADERS = {"X-Company-Id": "company-1", "X-User-Id": "operator-1"}

# Inside the global advance window whatever day the suite runs on
CHECK_IN = date.today() + timedelta(days=60)


def iso(d):
    return d.isoformat()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def room_id(db):
    room = Room(company_id="company-1", name="Garden 1", base_price=Decimal("100.00"), max_occupancy=2)
    db.add(room)
    db.commit()
    return room.id


class TestCompanyScope:

    def test_missing_company_header(self, client):
        response = client.get("/api/availability/rules")
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_unknown_room_is_404(self, client):
        response = client.post("/api/availability/check", headers=HEADERS, json={
            "room_id": "missing", "check_in": iso(CHECK_IN), "check_out": iso(CHECK_IN + timedelta(days=1)),
        })
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_health_live(self, client):
        assert client.get("/health/live").json()["status"] == "alive"

    def test_health_ready_reports_short_inventory(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["database"]["status"] == "up"
        assert body["inventory"]["status"] == "short"
        assert body["inventory"]["materialized_until"] is None

    def test_store_endpoints_are_sync(self):
        # Blocking session work must run in the threadpool, not on the event loop
        routes = [r for r in app.routes if isinstance(r, APIRoute) and r.path.startswith(("/api/", "/health/ready"))]
        assert routes
        for route in routes:
            assert not inspect.iscoroutinefunction(route.endpoint), route.path


class TestAvailabilityEndpoints:

    def test_check_available(self, client, room_id):
        response = client.post("/api/availability/check", headers=HEADERS, json={
            "room_id": room_id, "check_in": iso(CHECK_IN), "check_out": iso(CHECK_IN + timedelta(days=2)),
        })
        assert response.status_code == 200
        body = response.json()
        assert body["available"] is True
        assert body["nights"] == 2
        assert Decimal(body["total_price"]) == Decimal("200.00")
        assert len(body["nightly_prices"]) == 2

    def test_reversed_dates_rejected(self, client, room_id):
        response = client.post("/api/availability/check", headers=HEADERS, json={
            "room_id": room_id, "check_in": iso(CHECK_IN), "check_out": iso(CHECK_IN),
        })
        assert response.status_code == 422

    def test_validate(self, client, room_id):
        stay = {"room_id": room_id, "check_in": iso(CHECK_IN), "check_out": iso(CHECK_IN + timedelta(days=2))}

        response = client.post("/api/availability/validate", headers=HEADERS, json=stay)
        assert response.status_code == 200
        assert response.json() == {"is_valid": True}

        client.post("/api/reservations", headers=HEADERS, json={
            "room_id": room_id,
            "check_in_date": stay["check_in"],
            "check_out_date": stay["check_out"],
            "guest_name": "Ana Ruiz",
        })
        assert client.post("/api/availability/validate", headers=HEADERS, json=stay).json() == {"is_valid": False}

    def test_grid(self, client, room_id):
        response = client.get("/api/availability/grid", headers=HEADERS, params={
            "start_date": iso(CHECK_IN), "end_date": iso(CHECK_IN + timedelta(days=6)),
        })
        assert response.status_code == 200
        rooms = response.json()["rooms"]
        assert len(rooms) == 1
        assert len(rooms[0]["cells"]) == 7

    def test_cell_override(self, client, room_id):
        response = client.put(
            f"/api/availability/room/{room_id}/date/{iso(CHECK_IN)}",
            headers=HEADERS,
            json={"custom_price": "150.00"},
        )
        assert response.status_code == 200
        assert Decimal(response.json()["custom_price"]) == Decimal("150.00")

        calendar = client.get(f"/api/availability/room/{room_id}", headers=HEADERS, params={
            "start_date": iso(CHECK_IN), "end_date": iso(CHECK_IN),
        }).json()
        assert Decimal(calendar["cells"][0]["price"]) == Decimal("150.00")

    def test_block_period_lifecycle(self, client, room_id):
        response = client.post("/api/availability/block-periods", headers=HEADERS, json={
            "room_ids": [room_id],
            "start_date": iso(CHECK_IN),
            "end_date": iso(CHECK_IN + timedelta(days=9)),
            "reason": "Renovation",
        })
        assert response.status_code == 201
        period = response.json()
        assert period["cells_blocked"] == 10

        check = client.post("/api/availability/check", headers=HEADERS, json={
            "room_id": room_id,
            "check_in": iso(CHECK_IN + timedelta(days=4)),
            "check_out": iso(CHECK_IN + timedelta(days=6)),
        }).json()
        assert check["available"] is False
        assert len(check["blocked_dates"]) == 2

        response = client.delete(f"/api/availability/block-periods/{period['id']}", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["cells_released"] == 10
        assert response.json()["is_active"] is False

    def test_block_period_list_window(self, client, room_id):
        for offset, reason in ((0, "Renovation"), (20, "Deep clean")):
            client.post("/api/availability/block-periods", headers=HEADERS, json={
                "room_ids": [room_id],
                "start_date": iso(CHECK_IN + timedelta(days=offset)),
                "end_date": iso(CHECK_IN + timedelta(days=offset + 2)),
                "reason": reason,
            })

        response = client.get("/api/availability/block-periods", headers=HEADERS, params={
            "start_date": iso(CHECK_IN + timedelta(days=10)),
            "end_date": iso(CHECK_IN + timedelta(days=30)),
        })
        assert response.status_code == 200
        assert [p["reason"] for p in response.json()] == ["Deep clean"]

        reversed_window = client.get("/api/availability/block-periods", headers=HEADERS, params={
            "start_date": iso(CHECK_IN + timedelta(days=5)),
            "end_date": iso(CHECK_IN),
        })
        assert reversed_window.status_code == 422

    def test_rule_create(self, client, room_id):
        response = client.post("/api/availability/rules", headers=HEADERS, json={
            "room_id": room_id,
            "config": {"type": "min_stay", "min_nights": 3},
        })
        assert response.status_code == 201
        body = response.json()
        assert body["rule_type_label"] == "Minimum Nights"
        assert body["room_name"] == "Garden 1"

        rules = client.get("/api/availability/rules", headers=HEADERS).json()
        assert [r["id"] for r in rules] == [body["id"]]

    def test_stats(self, client, room_id):
        response = client.get("/api/availability/stats", headers=HEADERS, params={
            "start_date": iso(CHECK_IN), "end_date": iso(CHECK_IN + timedelta(days=1)),
        })
        assert response.status_code == 200
        assert response.json()["total_nights"] == 2


class TestReservationEndpoints:

    def create(self, client, room_id, offset=0, nights=2):
        return client.post("/api/reservations", headers=HEADERS, json={
            "room_id": room_id,
            "check_in_date": iso(CHECK_IN + timedelta(days=offset)),
            "check_out_date": iso(CHECK_IN + timedelta(days=offset + nights)),
            "guest_name": "Ana Ruiz",
        })

    def test_create_and_conflict(self, client, room_id):
        first = self.create(client, room_id)
        assert first.status_code == 201
        assert first.json()["status"] == "pending"
        assert first.json()["nights"] == 2

        second = self.create(client, room_id, offset=1)
        assert second.status_code == 409
        body = second.json()
        assert body["error"] == "Conflict"
        assert body["retryable"] is False
        assert body["availability"]["reserved_dates"] == [iso(CHECK_IN + timedelta(days=1))]

    def test_cancel_twice(self, client, room_id):
        reservation = self.create(client, room_id).json()

        first = client.post(f"/api/reservations/{reservation['id']}/cancel", headers=HEADERS,
                            json={"reason": "Guest request"})
        assert first.status_code == 200
        assert first.json()["status"] == "cancelled"

        second = client.post(f"/api/reservations/{reservation['id']}/cancel", headers=HEADERS)
        assert second.status_code == 200
        assert second.json()["cancel_reason"] == "Guest request"

        assert self.create(client, room_id).status_code == 201

    def test_confirm_and_redate(self, client, room_id):
        reservation = self.create(client, room_id).json()

        confirmed = client.post(f"/api/reservations/{reservation['id']}/confirm", headers=HEADERS)
        assert confirmed.json()["status"] == "confirmed"

        moved = client.put(f"/api/reservations/{reservation['id']}/dates", headers=HEADERS, json={
            "check_in_date": iso(CHECK_IN + timedelta(days=5)),
            "check_out_date": iso(CHECK_IN + timedelta(days=8)),
        })
        assert moved.status_code == 200
        assert moved.json()["nights"] == 3

    def test_unknown_reservation(self, client):
        response = client.get("/api/reservations/missing", headers=HEADERS)
        assert response.status_code == 404


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
