"""
Error mapping tests
Every error kind maps to one HTTP status and one response body shape
"""
import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.security.auth import create_access_token
from app.services import reservation_service
from app.services.errors import (
    ERROR_HTTP_STATUS, DateConflictError, DateFormatError, ErrorCode, InternalError,
    InvalidDateError, InvalidStatusTransitionError, NotFoundError, ReservationError,
    ResourceUnavailableError, TransactionTimeoutError, ValidationError,
)


class TestErrorTaxonomy:

    def test_every_code_has_a_status(self):
        assert set(ERROR_HTTP_STATUS) == set(ErrorCode)

    @pytest.mark.parametrize("error,code,status", [
        (InvalidDateError("Check-out must be after check-in"), ErrorCode.INVALID_DATE, 400),
        (DateFormatError("check_in", "x"), ErrorCode.INVALID_DATE_FORMAT, 400),
        (ResourceUnavailableError(1), ErrorCode.RESOURCE_UNAVAILABLE, 409),
        (DateConflictError("Room 101 is already booked"), ErrorCode.DATE_CONFLICT, 409),
        (InvalidStatusTransitionError("CONFIRMED", "CHECKED_OUT"), ErrorCode.INVALID_STATUS_TRANSITION, 400),
        (ValidationError("bad"), ErrorCode.VALIDATION_ERROR, 400),
        (NotFoundError("Reservation", "RES0001"), ErrorCode.NOT_FOUND, 404),
        (InternalError("boom"), ErrorCode.INTERNAL_ERROR, 500),
        (TransactionTimeoutError(31.0, 30.0), ErrorCode.INTERNAL_ERROR, 500),
    ])
    def test_code_and_status(self, error, code, status):
        assert isinstance(error, ReservationError)
        assert error.code == code
        assert error.http_status == status
        assert error.to_dict()["code"] == code.value

    def test_not_found_context(self):
        assert NotFoundError("Reservation", "RES0001").to_dict() == {
            "code": "NOT_FOUND",
            "message": "Reservation not found",
            "context": {"entity": "Reservation", "id": "RES0001"},
        }


class TestErrorResponses:

    def test_request_validation_shape(self, client: TestClient, auth_headers, sample_room):
        response = client.post("/reservations", json={
            "resource_id": sample_room.id,
            "guest_name": "Asha Rao",
            "guest_phone": "9876543210",
            "check_in": "2030-01-01",
            "check_out": "2030-01-02",
            "unexpected": True,
        }, headers=auth_headers)

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert any("unexpected" in e["loc"] for e in body["error"]["context"]["errors"])

    def test_unexpected_error_is_generic(self, db_session, auth_headers, monkeypatch):
        from app.database import get_db

        def explode(self, *args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(reservation_service.ReservationService, "list_reservations", explode)
        app.dependency_overrides[get_db] = lambda: db_session
        try:
            with TestClient(app, raise_server_exceptions=False) as client:
                response = client.get("/reservations", headers=auth_headers)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert "disk on fire" not in body["error"]["message"]
        assert len(body["error"]["context"]["correlation_id"]) == 32

    def test_invalid_token(self, client: TestClient):
        response = client.get("/reservations", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_token_actor_recorded(self, client: TestClient, sample_room, day_at):
        headers = {"Authorization": f"Bearer {create_access_token('manager-7', 'manager')}"}
        response = client.post("/reservations", json={
            "resource_id": sample_room.id,
            "guest_name": "Asha Rao",
            "guest_phone": "9876543210",
            "check_in": day_at(1, 14).isoformat(),
            "check_out": day_at(2, 11).isoformat(),
        }, headers=headers)

        assert response.json()["reservations"][0]["created_by"] == "manager-7"


class TestServiceEndpoints:

    def test_health(self, client: TestClient):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_error_shape_is_documented(self, client: TestClient):
        schema = client.get("/openapi.json").json()

        assert set(schema["components"]["schemas"]["ErrorResponse"]["properties"]) == {"success", "error"}
        conflict = schema["paths"]["/reservations"]["post"]["responses"]["409"]
        assert conflict["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")

    def test_enums(self, client: TestClient):
        enums = client.get("/enums").json()

        assert enums["ReservationStatus"] == ["PENDING", "CONFIRMED", "CHECKED_IN", "CHECKED_OUT", "CANCELLED"]
        assert enums["ResourceKind"] == ["ROOM", "HALL"]
