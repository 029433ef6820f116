import logging
import pytest
from datetime import timedelta
from fastapi import status
from httpx import AsyncClient

from guardforce.core.security import create_access_token


def _guard_body(cnic: str = "35202-1234567-1") -> dict:
    return {
        "first_name": "Asif",
        "last_name": "Khan",
        "cnic": cnic,
        "phone": "0300-1234567",
        "date_of_birth": "1990-05-17",
        "basic_salary": "32000",
    }


@pytest.mark.asyncio
class TestAuthentication:
    async def test_missing_bearer_token(self, client: AsyncClient, profiles):
        response = await client.get("/api/v1/approvals/requests")
        assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)

    async def test_invalid_token(self, client: AsyncClient, profiles):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_expired_token(self, client: AsyncClient, profiles):
        token = create_access_token(profiles["hr_officer"].id, expires_delta=timedelta(minutes=-5))
        response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_inactive_profile(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/auth/me", headers=auth_headers("inactive"))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_current_user(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/auth/me", headers=auth_headers("hr_officer"))
        assert response.status_code == status.HTTP_200_OK

        data = response.json()
        assert data["profile"]["role"] == "hr_officer"
        assert data["access"]["default_route"] == "/guards"
        assert "payroll" not in data["access"]["modules"]
        assert "guards:create" in data["access"]["permissions"]
        assert "guards:approve" not in data["access"]["permissions"]

    async def test_permissions(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/auth/permissions", headers=auth_headers("client_portal"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["modules"] == ["dashboard", "clients", "billing", "tickets"]


@pytest.mark.asyncio
class TestApprovalEndpoints:
    async def test_enrollment_round_trip(self, client: AsyncClient, auth_headers, notifier):
        response = await client.post("/api/v1/guards", json=_guard_body(), headers=auth_headers("hr_officer"))
        assert response.status_code == status.HTTP_202_ACCEPTED
        body = response.json()
        assert body["applied"] is False
        assert body["record"] is None
        request = body["approval_request"]
        assert request["status"] == "pending"
        assert request["requested_by_role"] == "hr_officer"

        response = await client.get("/api/v1/approvals/requests/pending-count", headers=auth_headers("regional_manager"))
        assert response.json() == {"pending": 1}

        response = await client.post(
            f"/api/v1/approvals/requests/{request['id']}/approve",
            headers=auth_headers("system_admin")
        )
        assert response.status_code == status.HTTP_200_OK
        approved = response.json()
        assert approved["status"] == "approved"
        assert approved["approved_by"] is not None
        assert approved["reference_id"] is not None

        response = await client.get(f"/api/v1/guards/{approved['reference_id']}", headers=auth_headers("hr_officer"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["cnic"] == "35202-1234567-1"
        assert response.json()["status"] == "approved"

        assert len(notifier.events) == 2

    async def test_approver_write_is_applied(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/v1/guards", json=_guard_body(), headers=auth_headers("regional_manager"))
        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["applied"] is True
        assert body["approval_request"] is None
        assert body["record"]["guard_code"] == "GRD-00001"

    async def test_request_body_validation(self, client: AsyncClient, auth_headers):
        body = _guard_body(cnic="12345")
        response = await client.post("/api/v1/guards", json=body, headers=auth_headers("hr_officer"))
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_generic_submission(self, client: AsyncClient, auth_headers):
        payload = {
            "request_type": "guard_enrollment",
            "entity_data": _guard_body(),
            "title": "New Guard: Asif Khan",
            "priority": "high",
        }
        response = await client.post("/api/v1/approvals/requests", json=payload, headers=auth_headers("ops_supervisor"))
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["priority"] == "high"

        response = await client.post("/api/v1/approvals/requests", json=payload, headers=auth_headers("auditor_readonly"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

        payload["request_type"] = "bonus_payout"
        response = await client.post("/api/v1/approvals/requests", json=payload, headers=auth_headers("ops_supervisor"))
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_reject_without_reason(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/v1/guards", json=_guard_body(), headers=auth_headers("hr_officer"))
        request_id = response.json()["approval_request"]["id"]

        response = await client.post(
            f"/api/v1/approvals/requests/{request_id}/reject",
            json={"rejection_reason": ""},
            headers=auth_headers("system_admin")
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

        response = await client.get(f"/api/v1/approvals/requests/{request_id}", headers=auth_headers("hr_officer"))
        assert response.json()["status"] == "pending"

    async def test_cancel_rules(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/v1/guards", json=_guard_body(), headers=auth_headers("hr_officer"))
        request_id = response.json()["approval_request"]["id"]

        response = await client.post(f"/api/v1/approvals/requests/{request_id}/cancel", headers=auth_headers("ops_supervisor"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await client.post(f"/api/v1/approvals/requests/{request_id}/cancel", headers=auth_headers("hr_officer"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "cancelled"

        response = await client.post(f"/api/v1/approvals/requests/{request_id}/approve", headers=auth_headers("system_admin"))
        assert response.status_code == status.HTTP_409_CONFLICT

    async def test_other_tenant_gets_not_found(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/v1/guards", json=_guard_body(), headers=auth_headers("hr_officer"))
        request_id = response.json()["approval_request"]["id"]

        response = await client.get(f"/api/v1/approvals/requests/{request_id}", headers=auth_headers("outsider"))
        assert response.status_code == status.HTTP_404_NOT_FOUND

        response = await client.post(f"/api/v1/approvals/requests/{request_id}/approve", headers=auth_headers("outsider"))
        assert response.status_code == status.HTTP_404_NOT_FOUND

        response = await client.get("/api/v1/approvals/requests", headers=auth_headers("outsider"))
        assert response.json()["count"] == 0

    async def test_list_filters(self, client: AsyncClient, auth_headers):
        await client.post("/api/v1/guards", json=_guard_body(), headers=auth_headers("hr_officer"))
        await client.post("/api/v1/guards", json=_guard_body(cnic="35202-7654321-3"), headers=auth_headers("hr_officer"))

        response = await client.get(
            "/api/v1/approvals/requests",
            params={"status": "pending", "request_type": "guard_enrollment", "page_size": 1},
            headers=auth_headers("regional_manager")
        )
        data = response.json()
        assert data["count"] == 2
        assert len(data["data"]) == 1

        response = await client.get(
            "/api/v1/approvals/requests", params={"request_type": "loan_request"}, headers=auth_headers("regional_manager")
        )
        assert response.json()["count"] == 0

    async def test_request_types(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/approvals/request-types", headers=auth_headers("hr_officer"))
        types = {item["request_type"]: item["module"] for item in response.json()}
        assert len(types) == 11
        assert types["salary_adjustment"] == "payroll"
        assert types["expense_approval"] == "billing"


@pytest.mark.asyncio
class TestServiceEndpoints:
    async def test_root_and_health(self, client: AsyncClient):
        response = await client.get("/")
        assert response.json()["service"] == "GuardForce Back Office"

        response = await client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["components"]["database"] == "connected"

    async def test_access_log_names_the_caller(self, client: AsyncClient, auth_headers, ctx_for):
        records = []
        handler = logging.Handler()
        handler.emit = records.append
        access_logger = logging.getLogger("access")
        access_logger.addHandler(handler)
        try:
            await client.get("/api/v1/auth/me", headers=auth_headers("hr_officer"))
            await client.get("/")
        finally:
            access_logger.removeHandler(handler)

        messages = [record.getMessage() for record in records]
        user_id = ctx_for("hr_officer").user_id
        assert any(f"/api/v1/auth/me - User: {user_id} - Status: 200" in m for m in messages)
        assert any("GET / - User: anonymous - Status: 200" in m for m in messages)
