import asyncio
import pytest
from datetime import date
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from guardforce.core.exceptions import (
    AuthorizationError, EntityWriteError, InvalidStateError, NotFoundError, ValidationError
)
from guardforce.models import Base
from guardforce.models.attendance.attendance import AttendanceRecord
from guardforce.models.guards.guard import Guard
from guardforce.models.shared.enums import ApprovalRequestType, ApprovalStatus, AttendanceStatus, GuardStatus
from guardforce.schemas.approval.approval_request_schema import ApprovalRequestCreate, ApprovalRequestFilters
from guardforce.schemas.guards.guard_schema import GuardCreate
from guardforce.services.approval.approval_request_repository import ApprovalRequestRepository
from guardforce.services.approval.approval_service import ApprovalService
from guardforce.services.guards.guard_service import GuardService


async def _submit_enrollment(service, ctx, payload, title="New Guard: Asif Khan"):
    return await service.submit(ctx, ApprovalRequestCreate(
        request_type=ApprovalRequestType.GUARD_ENROLLMENT,
        entity_data=payload,
        title=title,
    ))


async def _guard_count(session, cnic: str) -> int:
    return await session.scalar(select(func.count(Guard.id)).where(Guard.cnic == cnic))


@pytest.fixture
async def file_session_maker(tmp_path):
    """Separate connections on one database file, so two sessions really contend"""
    file_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'approvals.db'}",
        connect_args={"timeout": 30},
    )
    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)

    await file_engine.dispose()


@pytest.mark.asyncio
class TestSubmitAndApprove:
    async def test_hr_officer_enrollment_approved_by_admin(self, session, approval_service, ctx_for, guard_data, notifier):
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())

        assert request.status == ApprovalStatus.PENDING
        assert request.requested_by_role == "hr_officer"
        assert request.approved_by is None
        assert request.decided_at is None
        assert request.entity_data["date_of_birth"] == "1990-05-17"

        admin = ctx_for("system_admin")
        approved = await approval_service.approve(admin, request.id)

        assert approved.status == ApprovalStatus.APPROVED
        assert approved.approved_by == admin.user_id
        assert approved.approved_by_name == admin.full_name
        assert approved.decided_at is not None
        assert approved.reference_id is not None

        guard = (await session.execute(select(Guard).where(Guard.id == approved.reference_id))).scalar_one()
        assert guard.cnic == "35202-1234567-1"
        assert guard.first_name == "Asif"
        assert guard.date_of_birth == date(1990, 5, 17)
        assert guard.status == GuardStatus.APPROVED
        assert guard.guard_code == "GRD-00001"

        assert [event for event, _, _ in notifier.events] == [
            "approval.request_created",
            "approval.request_decided",
        ]
        assert notifier.events[0][2] == "guards"

    async def test_submit_rejects_invalid_payload(self, approval_service, ctx_for):
        with pytest.raises(ValidationError):
            await _submit_enrollment(approval_service, ctx_for("hr_officer"), {"first_name": "Asif"})

    async def test_decider_needs_approve_on_module(self, approval_service, ctx_for, guard_data):
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())

        with pytest.raises(AuthorizationError):
            await approval_service.approve(ctx_for("ops_supervisor"), request.id)
        # finance approves payroll and billing, not guards
        with pytest.raises(AuthorizationError):
            await approval_service.approve(ctx_for("finance_officer"), request.id)

        current = await approval_service.get_request(ctx_for("hr_officer"), request.id)
        assert current.status == ApprovalStatus.PENDING

    async def test_regional_manager_can_approve(self, approval_service, ctx_for, guard_data):
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())
        approved = await approval_service.approve(ctx_for("regional_manager"), request.id)
        assert approved.status == ApprovalStatus.APPROVED

    async def test_leave_approval_writes_one_record_per_day(self, session, approval_service, ctx_for, guard_data):
        admin = ctx_for("system_admin")
        guard = await GuardService(session).create_guard(admin, GuardCreate(**guard_data()), initial_status=GuardStatus.ACTIVE)
        guard_id = guard.id

        request = await approval_service.submit(ctx_for("hr_officer"), ApprovalRequestCreate(
            request_type=ApprovalRequestType.LEAVE_REQUEST,
            entity_data={"guard_id": guard_id, "from_date": "2026-04-06", "to_date": "2026-04-08", "remarks": "Family event"},
            title="Leave: Asif Khan",
        ))
        approved = await approval_service.approve(ctx_for("regional_manager"), request.id)

        rows = (await session.execute(
            select(AttendanceRecord).where(AttendanceRecord.guard_id == guard_id).order_by(AttendanceRecord.attendance_date)
        )).scalars().all()
        assert [row.attendance_date for row in rows] == [date(2026, 4, 6), date(2026, 4, 7), date(2026, 4, 8)]
        assert {row.status for row in rows} == {AttendanceStatus.LEAVE}
        assert approved.reference_id == rows[0].id


@pytest.mark.asyncio
class TestRejectAndCancel:
    async def test_reject_requires_reason(self, approval_service, ctx_for, guard_data):
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())

        for reason in ("", "   ", None):
            with pytest.raises(ValidationError):
                await approval_service.reject(ctx_for("system_admin"), request.id, reason)

        current = await approval_service.get_request(ctx_for("hr_officer"), request.id)
        assert current.status == ApprovalStatus.PENDING

    async def test_reject_records_reason(self, session, approval_service, ctx_for, guard_data):
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())
        rejected = await approval_service.reject(ctx_for("regional_manager"), request.id, "  CNIC copy unreadable ")

        assert rejected.status == ApprovalStatus.REJECTED
        assert rejected.rejection_reason == "CNIC copy unreadable"
        assert rejected.reference_id is None
        assert await _guard_count(session, "35202-1234567-1") == 0

    async def test_cancel_by_other_actor_without_override(self, approval_service, ctx_for, guard_data):
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())

        with pytest.raises(AuthorizationError):
            await approval_service.cancel(ctx_for("ops_supervisor"), request.id)
        # approving rights do not imply cancelling someone else's request
        with pytest.raises(AuthorizationError):
            await approval_service.cancel(ctx_for("regional_manager"), request.id)

    async def test_requester_cancels(self, approval_service, ctx_for, guard_data):
        requester = ctx_for("hr_officer")
        request = await _submit_enrollment(approval_service, requester, guard_data())
        cancelled = await approval_service.cancel(requester, request.id)

        assert cancelled.status == ApprovalStatus.CANCELLED
        assert cancelled.cancelled_by == requester.user_id
        assert cancelled.cancelled_at is not None
        assert cancelled.approved_by is None
        assert cancelled.decided_at is None

    async def test_admin_override_cancels(self, approval_service, ctx_for, guard_data):
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())
        cancelled = await approval_service.cancel(ctx_for("system_admin"), request.id)
        assert cancelled.status == ApprovalStatus.CANCELLED


@pytest.mark.asyncio
class TestStateMachine:
    async def test_terminal_states_refuse_other_decisions(self, approval_service, ctx_for, guard_data):
        requester = ctx_for("hr_officer")
        admin = ctx_for("system_admin")
        request = await _submit_enrollment(approval_service, requester, guard_data())
        await approval_service.approve(admin, request.id)

        with pytest.raises(InvalidStateError):
            await approval_service.reject(admin, request.id, "Changed my mind")
        with pytest.raises(InvalidStateError):
            await approval_service.cancel(requester, request.id)

        cancelled = await _submit_enrollment(approval_service, requester, guard_data(cnic="35202-7654321-3"))
        await approval_service.cancel(requester, cancelled.id)
        with pytest.raises(InvalidStateError):
            await approval_service.approve(admin, cancelled.id)

    async def test_repeated_decision_is_replayed(self, session, approval_service, ctx_for, guard_data):
        admin = ctx_for("system_admin")
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())

        first = await approval_service.approve(admin, request.id)
        decided_at = first.decided_at
        reference_id = first.reference_id

        second = await approval_service.approve(admin, request.id)
        assert second.status == ApprovalStatus.APPROVED
        assert second.decided_at == decided_at
        assert second.reference_id == reference_id
        assert await _guard_count(session, "35202-1234567-1") == 1

    async def test_second_decider_loses(self, approval_service, ctx_for, guard_data):
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())
        await approval_service.approve(ctx_for("system_admin"), request.id)

        with pytest.raises(InvalidStateError):
            await approval_service.approve(ctx_for("regional_manager"), request.id)
        with pytest.raises(InvalidStateError):
            await approval_service.reject(ctx_for("regional_manager"), request.id, "Duplicate")

    async def test_conditional_update_only_moves_pending_rows(self, session, approval_service, ctx_for, guard_data):
        admin = ctx_for("system_admin")
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())
        request_id = request.id
        await approval_service.reject(admin, request_id, "Incomplete documents")

        repository = ApprovalRequestRepository(session)
        outcome = await repository.decide(admin, request_id, ApprovalStatus.APPROVED, {"approved_by": admin.user_id})
        assert outcome is None

        current = await repository.get(admin, request_id)
        assert current.status == ApprovalStatus.REJECTED

    async def test_failed_entity_write_leaves_request_pending(self, session, approval_service, ctx_for, guard_data):
        admin = ctx_for("system_admin")
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())
        request_id = request.id

        # Someone enrolls the same CNIC directly before the decision
        await GuardService(session).create_guard(admin, GuardCreate(**guard_data()))

        with pytest.raises(EntityWriteError) as exc_info:
            await approval_service.approve(admin, request_id)
        assert "CNIC" in exc_info.value.detail

        current = await approval_service.get_request(admin, request_id)
        assert current.status == ApprovalStatus.PENDING
        assert current.approved_by is None
        assert current.decided_at is None
        assert await _guard_count(session, "35202-1234567-1") == 1

    async def test_unknown_request(self, approval_service, ctx_for):
        with pytest.raises(NotFoundError):
            await approval_service.approve(ctx_for("system_admin"), "does-not-exist")


@pytest.mark.asyncio
class TestConcurrentDecisions:
    async def test_racing_approve_and_reject(self, file_session_maker, ctx_for, guard_data, notifier):
        admin = ctx_for("system_admin")
        manager = ctx_for("regional_manager")
        async with file_session_maker() as setup_session:
            request = await _submit_enrollment(
                ApprovalService(setup_session, notifier=notifier), ctx_for("hr_officer"), guard_data()
            )
            request_id = request.id

        async with file_session_maker() as session_a, file_session_maker() as session_b:
            outcomes = await asyncio.gather(
                ApprovalService(session_a, notifier=notifier).approve(admin, request_id),
                ApprovalService(session_b, notifier=notifier).reject(manager, request_id, "no"),
                return_exceptions=True,
            )

        winners = [o for o in outcomes if not isinstance(o, Exception)]
        losers = [o for o in outcomes if isinstance(o, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], InvalidStateError)

        async with file_session_maker() as check_session:
            stored = await ApprovalRequestRepository(check_session).get(admin, request_id)
            guards = await _guard_count(check_session, "35202-1234567-1")
        assert stored.status == winners[0].status
        assert guards == (1 if stored.status == ApprovalStatus.APPROVED else 0)
        assert [event for event, _, _ in notifier.events].count("approval.request_decided") == 1

    async def test_decision_on_stale_read_loses_the_swap(self, file_session_maker, ctx_for, guard_data, notifier, monkeypatch):
        admin = ctx_for("system_admin")
        manager = ctx_for("regional_manager")
        async with file_session_maker() as session_a, file_session_maker() as session_b:
            service_a = ApprovalService(session_a, notifier=notifier)
            service_b = ApprovalService(session_b, notifier=notifier)
            request = await _submit_enrollment(service_a, ctx_for("hr_officer"), guard_data())
            request_id = request.id

            # manager's service read the request while it was still pending
            stale = await service_b.get_request(manager, request_id)
            await service_a.approve(admin, request_id)

            real_get = service_b.repository.get
            reads = []

            async def get_once_stale(ctx, rid):
                reads.append(rid)
                if len(reads) == 1:
                    return stale
                return await real_get(ctx, rid)

            monkeypatch.setattr(service_b.repository, "get", get_once_stale)
            with pytest.raises(InvalidStateError):
                await service_b.reject(manager, request_id, "Duplicate")

            assert len(reads) == 2
            current = await real_get(manager, request_id)
            assert current.status == ApprovalStatus.APPROVED
            assert current.approved_by == admin.user_id
            assert await _guard_count(session_b, "35202-1234567-1") == 1


@pytest.mark.asyncio
class TestTenantIsolation:
    async def test_other_tenant_cannot_see_or_decide(self, approval_service, ctx_for, guard_data):
        request = await _submit_enrollment(approval_service, ctx_for("hr_officer"), guard_data())
        outsider = ctx_for("outsider")

        with pytest.raises(NotFoundError):
            await approval_service.get_request(outsider, request.id)
        with pytest.raises(NotFoundError):
            await approval_service.approve(outsider, request.id)

        listing = await approval_service.list_requests(outsider)
        assert listing["count"] == 0
        assert await approval_service.count_pending(outsider) == 0

        own = await approval_service.list_requests(ctx_for("regional_manager"))
        assert [r.id for r in own["data"]] == [request.id]


@pytest.mark.asyncio
class TestGuardedWrites:
    async def test_approver_writes_directly(self, session, approval_service, ctx_for, guard_data):
        outcome = await approval_service.submit_or_apply(
            ctx_for("regional_manager"),
            ApprovalRequestType.GUARD_ENROLLMENT,
            guard_data(),
            title="New Guard: Asif Khan",
        )
        assert outcome.applied is True
        assert outcome.request is None
        assert outcome.record.guard_code == "GRD-00001"
        assert await approval_service.count_pending(ctx_for("regional_manager")) == 0

    async def test_non_approver_gets_pending_request(self, session, approval_service, ctx_for, guard_data):
        outcome = await approval_service.submit_or_apply(
            ctx_for("hr_officer"),
            ApprovalRequestType.GUARD_ENROLLMENT,
            guard_data(),
            title="New Guard: Asif Khan",
        )
        assert outcome.applied is False
        assert outcome.request.status == ApprovalStatus.PENDING
        assert await _guard_count(session, "35202-1234567-1") == 0

    async def test_role_without_create_is_refused(self, approval_service, ctx_for, guard_data):
        with pytest.raises(AuthorizationError):
            await approval_service.submit_or_apply(
                ctx_for("auditor_readonly"),
                ApprovalRequestType.GUARD_ENROLLMENT,
                guard_data(),
                title="New Guard: Asif Khan",
            )


@pytest.mark.asyncio
class TestListing:
    async def test_filters_and_search(self, approval_service, ctx_for, guard_data):
        hr = ctx_for("hr_officer")
        first = await _submit_enrollment(approval_service, hr, guard_data(), title="New Guard: Asif Khan")
        await _submit_enrollment(approval_service, hr, guard_data(cnic="35202-7654321-3"), title="New Guard: Bilal Ahmed")
        await approval_service.reject(ctx_for("system_admin"), first.id, "Duplicate file")

        pending = await approval_service.list_requests(hr, ApprovalRequestFilters(status=ApprovalStatus.PENDING))
        assert [r.title for r in pending["data"]] == ["New Guard: Bilal Ahmed"]

        searched = await approval_service.list_requests(hr, ApprovalRequestFilters(search="asif"))
        assert [r.id for r in searched["data"]] == [first.id]

        assert await approval_service.count_pending(hr) == 1

    async def test_row_cap_keeps_most_recent(self, session, approval_service, ctx_for, guard_data):
        hr = ctx_for("hr_officer")
        for index, cnic in enumerate(["35202-0000001-1", "35202-0000002-1", "35202-0000003-1"], start=1):
            await _submit_enrollment(approval_service, hr, guard_data(cnic=cnic), title=f"Request {index}")

        capped = await ApprovalRequestRepository(session, row_cap=2).list(hr)
        assert [r.title for r in capped] == ["Request 3", "Request 2"]
