import pytest
from datetime import date
from sqlalchemy import select

from guardforce.core.exceptions import EntityWriteError, InvalidStateError, ValidationError
from guardforce.models.clients.client_branch import ClientBranch
from guardforce.models.guards.guard import Guard
from guardforce.models.shared.enums import ApprovalRequestType, ApprovalStatus, DeploymentStatus, GuardStatus
from guardforce.schemas.approval.approval_request_schema import ApprovalRequestCreate
from guardforce.schemas.clients.client_schema import BranchCreate, BranchData, ClientCreate
from guardforce.schemas.deployments.deployment_schema import DeploymentCreate, DeploymentRevoke, GuardSwap
from guardforce.schemas.guards.guard_schema import GuardCreate
from guardforce.services.clients.client_service import ClientService
from guardforce.services.deployments.deployment_service import DeploymentService
from guardforce.services.guards.guard_service import GuardService


@pytest.fixture
async def staffing(session, ctx_for, guard_data):
    """One client with two branches and three active guards"""
    admin = ctx_for("system_admin")
    clients = ClientService(session)
    client = await clients.create_client(admin, ClientCreate(
        client_name="Meezan Towers",
        branch_data=BranchData(branch_name="Main Gate", city="Lahore", required_guards=2),
    ))
    await clients.create_branch(admin, BranchCreate(client_id=client.id, branch_name="Parking Plaza", required_guards=1))
    branches = await clients.get_client_branches(admin, client.id)

    guards = GuardService(session)
    guard_ids = []
    for cnic in ("35202-0000001-1", "35202-0000002-1", "35202-0000003-1"):
        guard = await guards.create_guard(admin, GuardCreate(**guard_data(cnic=cnic)), initial_status=GuardStatus.ACTIVE)
        guard_ids.append(guard.id)

    return {
        "client_id": client.id,
        "client_code": client.client_code,
        "branch_ids": [branch.id for branch in branches],
        "branch_codes": [branch.branch_code for branch in branches],
        "guard_ids": guard_ids,
    }


def _deployment(staffing, guard_index=0, branch_index=0, **overrides) -> DeploymentCreate:
    values = {
        "guard_id": staffing["guard_ids"][guard_index],
        "client_id": staffing["client_id"],
        "branch_id": staffing["branch_ids"][branch_index],
        "deployment_date": date(2026, 3, 1),
        "shift_type": "day",
    }
    values.update(overrides)
    return DeploymentCreate(**values)


async def _branch(session, branch_id) -> ClientBranch:
    result = await session.execute(
        select(ClientBranch).where(ClientBranch.id == branch_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _guard_status(session, guard_id) -> GuardStatus:
    result = await session.execute(
        select(Guard).where(Guard.id == guard_id).execution_options(populate_existing=True)
    )
    return result.scalar_one().status


@pytest.mark.asyncio
class TestClientSetup:
    async def test_codes_are_generated(self, staffing):
        assert staffing["client_code"] == "CLT-0001"
        assert staffing["branch_codes"] == ["CLT-0001-BR-001", "CLT-0001-BR-002"]


@pytest.mark.asyncio
class TestDeploymentLifecycle:
    async def test_create_updates_guard_and_headcount(self, session, ctx_for, staffing):
        service = DeploymentService(session)
        deployment = await service.create_deployment(ctx_for("regional_manager"), _deployment(staffing))

        assert deployment.status == DeploymentStatus.PLANNED
        assert await _guard_status(session, staffing["guard_ids"][0]) == GuardStatus.DEPLOYED
        assert (await _branch(session, staffing["branch_ids"][0])).current_guards == 1

    async def test_guard_with_open_deployment_is_refused(self, session, ctx_for, staffing):
        service = DeploymentService(session)
        ctx = ctx_for("regional_manager")
        await service.create_deployment(ctx, _deployment(staffing))

        with pytest.raises(InvalidStateError):
            await service.create_deployment(ctx, _deployment(staffing, branch_index=1))

    async def test_branch_must_belong_to_client(self, session, ctx_for, staffing):
        with pytest.raises(ValidationError):
            await DeploymentService(session).create_deployment(
                ctx_for("regional_manager"), _deployment(staffing, client_id="some-other-client")
            )

    async def test_revoke_returns_guard_to_pool(self, session, ctx_for, staffing):
        service = DeploymentService(session)
        ctx = ctx_for("regional_manager")
        deployment = await service.create_deployment(ctx, _deployment(staffing))
        await service.activate_deployment(ctx, deployment.id)

        revoked = await service.revoke_deployment(ctx, deployment.id, DeploymentRevoke(end_reason="Client request"))

        assert revoked.status == DeploymentStatus.REVOKED
        assert revoked.end_reason == "Client request"
        assert await _guard_status(session, staffing["guard_ids"][0]) == GuardStatus.ACTIVE
        assert (await _branch(session, staffing["branch_ids"][0])).current_guards == 0

        with pytest.raises(InvalidStateError):
            await service.revoke_deployment(ctx, deployment.id, DeploymentRevoke(end_reason="Again"))

    async def test_activate_only_planned(self, session, ctx_for, staffing):
        service = DeploymentService(session)
        ctx = ctx_for("regional_manager")
        deployment = await service.create_deployment(ctx, _deployment(staffing))

        activated = await service.activate_deployment(ctx, deployment.id)
        assert activated.status == DeploymentStatus.ACTIVE
        assert activated.deployed_by == ctx.user_id

        with pytest.raises(InvalidStateError):
            await service.activate_deployment(ctx, deployment.id)

    async def test_swap_guards(self, session, ctx_for, staffing):
        service = DeploymentService(session)
        ctx = ctx_for("regional_manager")
        deployment = await service.create_deployment(ctx, _deployment(staffing, shift_type="night"))

        swapped = await service.swap_guards(ctx, GuardSwap(
            deployment_id=deployment.id,
            new_guard_id=staffing["guard_ids"][1],
            swap_date=date(2026, 3, 10),
            reason="Medical leave",
        ))

        assert swapped["revoked"].status == DeploymentStatus.REVOKED
        assert swapped["created"].guard_id == staffing["guard_ids"][1]
        assert swapped["created"].shift_type.value == "night"
        assert await _guard_status(session, staffing["guard_ids"][0]) == GuardStatus.ACTIVE
        assert await _guard_status(session, staffing["guard_ids"][1]) == GuardStatus.DEPLOYED
        assert (await _branch(session, staffing["branch_ids"][0])).current_guards == 1


@pytest.mark.asyncio
class TestDeploymentAggregates:
    async def test_matrix_counts_active_deployments(self, session, ctx_for, staffing):
        service = DeploymentService(session)
        ctx = ctx_for("regional_manager")
        first = await service.create_deployment(ctx, _deployment(staffing, guard_index=0, branch_index=0))
        second = await service.create_deployment(ctx, _deployment(staffing, guard_index=1, branch_index=0))
        await service.create_deployment(ctx, _deployment(staffing, guard_index=2, branch_index=1))
        await service.activate_deployment(ctx, first.id)
        await service.activate_deployment(ctx, second.id)

        matrix = await service.get_deployment_matrix(ctx)

        counts = {branch["branch_id"]: branch["active_guards"] for branch in matrix["branches"]}
        assert counts == {staffing["branch_ids"][0]: 2, staffing["branch_ids"][1]: 0}

        rows = {row["guard_id"]: row["deployments"] for row in matrix["guards"]}
        assert rows[staffing["guard_ids"][0]] == {staffing["branch_ids"][0]: first.id}
        assert rows[staffing["guard_ids"][2]] == {}

    async def test_stats(self, session, ctx_for, staffing):
        service = DeploymentService(session)
        ctx = ctx_for("regional_manager")
        first = await service.create_deployment(ctx, _deployment(staffing, guard_index=0, shift_type="night"))
        await service.create_deployment(ctx, _deployment(staffing, guard_index=1, branch_index=1))
        await service.activate_deployment(ctx, first.id)

        stats = await service.get_deployment_stats(ctx)

        assert stats["total"] == 2
        assert stats["by_status"]["active"] == 1
        assert stats["by_status"]["planned"] == 1
        assert stats["by_shift"]["night"] == 1
        # Main Gate needs two guards and has one
        assert stats["understaffed_branches"] == 1


@pytest.mark.asyncio
class TestDeploymentApproval:
    async def test_supervisor_deployment_applied_on_approval(self, session, approval_service, ctx_for, staffing):
        request = await approval_service.submit(ctx_for("ops_supervisor"), ApprovalRequestCreate(
            request_type=ApprovalRequestType.DEPLOYMENT_CHANGE,
            entity_data=_deployment(staffing).model_dump(),
            title="Deploy guard to Main Gate",
        ))
        assert (await _branch(session, staffing["branch_ids"][0])).current_guards == 0

        approved = await approval_service.approve(ctx_for("regional_manager"), request.id)

        assert approved.status == ApprovalStatus.APPROVED
        deployment = await DeploymentService(session).get_deployment(ctx_for("regional_manager"), approved.reference_id)
        assert deployment.branch_id == staffing["branch_ids"][0]
        assert (await _branch(session, staffing["branch_ids"][0])).current_guards == 1

    async def test_approval_fails_when_guard_was_deployed_meanwhile(self, session, approval_service, ctx_for, staffing):
        manager = ctx_for("regional_manager")
        request = await approval_service.submit(ctx_for("ops_supervisor"), ApprovalRequestCreate(
            request_type=ApprovalRequestType.DEPLOYMENT_CHANGE,
            entity_data=_deployment(staffing, branch_index=1).model_dump(),
            title="Deploy guard to Parking Plaza",
        ))
        request_id = request.id
        await DeploymentService(session).create_deployment(manager, _deployment(staffing))

        with pytest.raises(EntityWriteError):
            await approval_service.approve(manager, request_id)

        current = await approval_service.get_request(manager, request_id)
        assert current.status == ApprovalStatus.PENDING
        assert (await _branch(session, staffing["branch_ids"][1])).current_guards == 0
