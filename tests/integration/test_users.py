import pytest
from fastapi import status
from httpx import AsyncClient

from guardforce.core.exceptions import NotFoundError, ValidationError
from guardforce.models.shared.enums import UserRole
from guardforce.schemas.auth.profile_schema import ProfileCreate, ProfileUpdate
from guardforce.services.auth.profile_service import ProfileService


@pytest.mark.asyncio
class TestProfileAdministration:
    async def test_list_search_and_role_counts(self, session, ctx_for, profiles):
        service = ProfileService(session)
        ctx = ctx_for("system_admin")

        page = await service.get_profiles(ctx)
        # every role plus the inactive manager; the other tenant's admin is excluded
        assert page["count"] == len(UserRole) + 1

        page = await service.get_profiles(ctx, search="FINANCE")
        assert [p.email for p in page["data"]] == ["finance_officer@guardforce.test"]

        page = await service.get_profiles(ctx, role=UserRole.REGIONAL_MANAGER, is_active=True)
        assert page["count"] == 1

        counts = await service.count_by_role(ctx)
        assert counts[UserRole.REGIONAL_MANAGER.value] == 1
        assert counts[UserRole.CLIENT_PORTAL.value] == 1
        assert set(counts) == {role.value for role in UserRole}

    async def test_create_rejects_duplicate_email(self, session, ctx_for):
        service = ProfileService(session)
        ctx = ctx_for("system_admin")

        created = await service.create_profile(ctx, ProfileCreate(
            full_name="  Sana Malik ", email="Sana.Malik@guardforce.pk", role=UserRole.OPS_SUPERVISOR
        ))
        assert created.full_name == "Sana Malik"
        assert created.email == "sana.malik@guardforce.pk"
        assert created.org_id == ctx.org_id

        with pytest.raises(ValidationError):
            await service.create_profile(ctx, ProfileCreate(
                full_name="Sana M", email="SANA.MALIK@guardforce.pk", role=UserRole.HR_OFFICER
            ))

    async def test_admin_cannot_demote_or_remove_self(self, session, ctx_for, profiles):
        service = ProfileService(session)
        ctx = ctx_for("system_admin")

        with pytest.raises(ValidationError):
            await service.update_profile(ctx, ctx.user_id, ProfileUpdate(role=UserRole.AUDITOR_READONLY))
        with pytest.raises(ValidationError):
            await service.set_active(ctx, ctx.user_id, False)
        with pytest.raises(ValidationError):
            await service.delete_profile(ctx, ctx.user_id)

        updated = await service.update_profile(ctx, ctx.user_id, ProfileUpdate(phone="0300-7654321"))
        assert updated.role == UserRole.SYSTEM_ADMIN
        assert updated.phone == "0300-7654321"

    async def test_other_tenant_profiles_are_invisible(self, session, ctx_for):
        service = ProfileService(session)
        outsider_id = ctx_for("outsider").user_id

        assert await service.get_org_profile(ctx_for("system_admin"), outsider_id) is None
        with pytest.raises(NotFoundError):
            await service.update_profile(ctx_for("system_admin"), outsider_id, ProfileUpdate(is_active=False))

    async def test_soft_delete_blocks_sign_in(self, session, ctx_for):
        service = ProfileService(session)
        target_id = ctx_for("auditor_readonly").user_id

        assert await service.delete_profile(ctx_for("system_admin"), target_id) is True

        assert await service.get_org_profile(ctx_for("system_admin"), target_id) is None
        assert await service.resolve_context(target_id) is None


@pytest.mark.asyncio
class TestUserEndpoints:
    async def test_only_settings_holders_administer_users(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/users", headers=auth_headers("regional_manager"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await client.get("/api/v1/users", params={"search": "hr_officer"}, headers=auth_headers("system_admin"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["count"] == 1
        assert response.json()["data"][0]["role"] == "hr_officer"

        response = await client.get("/api/v1/users/roles", headers=auth_headers("system_admin"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["system_admin"] == 1

    async def test_role_change_applies_on_next_request(self, client: AsyncClient, auth_headers, ctx_for):
        user_id = ctx_for("hr_officer").user_id
        headers = auth_headers("hr_officer")

        response = await client.get("/api/v1/payroll", headers=headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = await client.put(
            f"/api/v1/users/{user_id}", json={"role": "finance_officer"}, headers=auth_headers("system_admin")
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["role"] == "finance_officer"

        # same token, new role
        response = await client.get("/api/v1/payroll", headers=headers)
        assert response.status_code == status.HTTP_200_OK

        response = await client.get("/api/v1/auth/permissions", headers=headers)
        assert response.json()["role"] == "finance_officer"
        assert "payroll" in response.json()["modules"]

    async def test_deactivated_user_is_rejected(self, client: AsyncClient, auth_headers, ctx_for):
        user_id = ctx_for("ops_supervisor").user_id
        headers = auth_headers("ops_supervisor")

        response = await client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == status.HTTP_200_OK

        response = await client.patch(
            f"/api/v1/users/{user_id}/status", json={"is_active": False}, headers=auth_headers("system_admin")
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_active"] is False

        response = await client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_self_role_change_is_refused(self, client: AsyncClient, auth_headers, ctx_for):
        admin_id = ctx_for("system_admin").user_id

        response = await client.put(
            f"/api/v1/users/{admin_id}", json={"role": "auditor_readonly"}, headers=auth_headers("system_admin")
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

        response = await client.delete(f"/api/v1/users/{admin_id}", headers=auth_headers("system_admin"))
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_create_then_delete(self, client: AsyncClient, auth_headers):
        body = {"full_name": "Bilal Ahmed", "email": "bilal@guardforce.pk", "role": "inventory_officer"}
        response = await client.post("/api/v1/users", json=body, headers=auth_headers("system_admin"))
        assert response.status_code == status.HTTP_201_CREATED
        user_id = response.json()["id"]

        response = await client.get(f"/api/v1/users/{user_id}", headers=auth_headers("system_admin"))
        assert response.status_code == status.HTTP_200_OK

        response = await client.delete(f"/api/v1/users/{user_id}", headers=auth_headers("system_admin"))
        assert response.status_code == status.HTTP_200_OK

        response = await client.get(f"/api/v1/users/{user_id}", headers=auth_headers("system_admin"))
        assert response.status_code == status.HTTP_404_NOT_FOUND
