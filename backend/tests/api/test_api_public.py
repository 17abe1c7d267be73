"""
Public API tests
Online booking, reference lookup and availability without authentication
"""
from decimal import Decimal
from fastapi.testclient import TestClient


def _book(client, resource_ids, check_in, check_out, **extra):
    payload = {
        "resource_ids": resource_ids,
        "guest_name": "Ravi Kumar",
        "guest_phone": "+91 91234 56789",
        "check_in": check_in,
        "check_out": check_out,
    }
    payload.update(extra)
    return client.post("/public/reservations", json=payload)


class TestPublicBooking:

    def test_book_applies_tax_by_default(self, client: TestClient, sample_room, day_at):
        response = _book(client, [sample_room.id], day_at(1, 14).isoformat(), day_at(3, 11).isoformat())

        assert response.status_code == 201
        data = response.json()
        [booking] = data["reservations"]
        assert booking["status"] == "CONFIRMED"
        assert booking["resource_code"] == "101"
        assert booking["guest_name"] == "Ravi Kumar"
        assert len(booking["reference"]) == 8
        assert Decimal(booking["total"]) == Decimal("5900")
        assert "id" not in booking

    def test_book_without_tax(self, client: TestClient, sample_room, day_at):
        response = _book(client, [sample_room.id], day_at(1, 14).isoformat(), day_at(3, 11).isoformat(),
                         apply_tax=False)

        assert Decimal(response.json()["total_amount"]) == Decimal("5000")

    def test_book_hall_by_date(self, client: TestClient, sample_hall, day_at):
        day = day_at(10).date().isoformat()

        response = _book(client, [sample_hall.id], day, day, guest_count=120)

        assert response.status_code == 201
        assert response.json()["reservations"][0]["resource_kind"] == "HALL"

    def test_book_status_not_accepted(self, client: TestClient, sample_room, day_at):
        response = _book(client, [sample_room.id], day_at(1, 14).isoformat(), day_at(3, 11).isoformat(),
                         status="PENDING")

        assert response.status_code == 422

    def test_book_conflict(self, client: TestClient, sample_room, day_at):
        _book(client, [sample_room.id], day_at(1, 14).isoformat(), day_at(3, 11).isoformat())

        response = _book(client, [sample_room.id], day_at(2, 14).isoformat(), day_at(4, 11).isoformat())

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DATE_CONFLICT"


class TestPublicLookup:

    def test_lookup_by_last_four_digits(self, client: TestClient, sample_room, day_at):
        booked = _book(client, [sample_room.id], day_at(1, 14).isoformat(), day_at(3, 11).isoformat()).json()
        reference = booked["reservations"][0]["reference"]

        response = client.get(f"/public/reservations/lookup?reference={reference}&phone=6789")

        assert response.status_code == 200
        assert response.json()["reference"] == reference
        assert response.json()["payment_status"] == "PENDING"

    def test_lookup_wrong_phone_is_not_found(self, client: TestClient, sample_room, day_at):
        booked = _book(client, [sample_room.id], day_at(1, 14).isoformat(), day_at(3, 11).isoformat()).json()
        reference = booked["reservations"][0]["reference"]

        response = client.get(f"/public/reservations/lookup?reference={reference}&phone=1111")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestPublicAvailability:

    def test_availability(self, client: TestClient, sample_room, second_room, sample_hall, day_at):
        _book(client, [sample_room.id], day_at(1, 14).isoformat(), day_at(3, 11).isoformat())

        response = client.get("/public/availability", params={
            "check_in": day_at(2, 14).isoformat(),
            "check_out": day_at(4, 11).isoformat(),
            "kind": "ROOM",
        })

        assert response.status_code == 200
        assert [r["code"] for r in response.json()] == ["102"]

    def test_availability_bad_date(self, client: TestClient):
        response = client.get("/public/availability", params={"check_in": "soon", "check_out": "later"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DATE_FORMAT"
