import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from fastapi import status
from httpx import AsyncClient

from guardforce.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from guardforce.models.shared.enums import AttendanceStatus, GuardStatus
from guardforce.schemas.attendance.attendance_schema import (
    AttendanceCreate, AttendanceUpdate, AttendanceVerify, BulkAttendanceCreate, LeaveRequestCreate
)
from guardforce.schemas.guards.guard_schema import GuardCreate, GuardTermination
from guardforce.services.attendance.attendance_service import AttendanceService
from guardforce.services.guards.guard_service import GuardService

SHIFT_DAY = date(2026, 3, 2)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
async def guard_ids(session, ctx_for, guard_data):
    service = GuardService(session)
    ids = []
    for cnic in ("35202-0000001-1", "35202-0000002-1"):
        guard = await service.create_guard(
            ctx_for("system_admin"), GuardCreate(**guard_data(cnic=cnic)), initial_status=GuardStatus.ACTIVE
        )
        ids.append(guard.id)
    return ids


@pytest.mark.asyncio
class TestDailyAttendance:
    async def test_hours_and_overtime(self, session, ctx_for, guard_ids):
        record = await AttendanceService(session).create_attendance(ctx_for("ops_supervisor"), AttendanceCreate(
            guard_id=guard_ids[0],
            attendance_date=SHIFT_DAY,
            check_in_time=_at(7),
            check_out_time=_at(19, 30),
        ))

        assert record.status == AttendanceStatus.PRESENT
        assert record.work_hours == Decimal("12.50")
        assert record.overtime_hours == Decimal("4.50")
        assert record.verified is False

    async def test_one_record_per_guard_per_day(self, session, ctx_for, guard_ids):
        service = AttendanceService(session)
        ctx = ctx_for("ops_supervisor")
        await service.create_attendance(ctx, AttendanceCreate(guard_id=guard_ids[0], attendance_date=SHIFT_DAY))

        with pytest.raises(ValidationError):
            await service.create_attendance(
                ctx, AttendanceCreate(guard_id=guard_ids[0], attendance_date=SHIFT_DAY, status="absent")
            )

    async def test_terminated_guard_is_refused(self, session, ctx_for, guard_ids):
        ctx = ctx_for("system_admin")
        await GuardService(session).terminate_guard(ctx, guard_ids[0], GuardTermination(termination_reason="Resigned"))

        with pytest.raises(ValidationError):
            await AttendanceService(session).create_attendance(
                ctx, AttendanceCreate(guard_id=guard_ids[0], attendance_date=SHIFT_DAY)
            )

    async def test_update_recalculates_hours(self, session, ctx_for, guard_ids):
        service = AttendanceService(session)
        ctx = ctx_for("ops_supervisor")
        record = await service.create_attendance(ctx, AttendanceCreate(
            guard_id=guard_ids[0], attendance_date=SHIFT_DAY, check_in_time=_at(8)
        ))
        assert record.work_hours is None

        updated = await service.update_attendance(ctx, record.id, AttendanceUpdate(check_out_time=_at(16)))
        assert updated.work_hours == Decimal("8.00")
        assert updated.overtime_hours == Decimal("0.00")

    async def test_verified_records_are_locked(self, session, ctx_for, guard_ids):
        service = AttendanceService(session)
        record = await service.create_attendance(
            ctx_for("ops_supervisor"), AttendanceCreate(guard_id=guard_ids[0], attendance_date=SHIFT_DAY)
        )
        manager = ctx_for("regional_manager")

        verified = await service.verify_attendance(manager, record.id, AttendanceVerify(remarks="Checked"))
        assert verified.verified is True
        assert verified.verified_by == manager.user_id

        with pytest.raises(InvalidStateError):
            await service.verify_attendance(manager, record.id, AttendanceVerify())
        with pytest.raises(InvalidStateError):
            await service.update_attendance(manager, record.id, AttendanceUpdate(status="absent"))


@pytest.mark.asyncio
class TestBulkAttendance:
    async def test_upsert_counts(self, session, ctx_for, guard_ids):
        service = AttendanceService(session)
        ctx = ctx_for("ops_supervisor")
        await service.create_attendance(ctx, AttendanceCreate(guard_id=guard_ids[0], attendance_date=SHIFT_DAY))

        result = await service.mark_bulk_attendance(ctx, BulkAttendanceCreate(
            attendance_date=SHIFT_DAY,
            records=[
                {"guard_id": guard_ids[0], "status": "late", "remarks": "Traffic"},
                {"guard_id": guard_ids[1], "status": "present"},
            ],
        ))

        assert result["created"] == 1
        assert result["updated"] == 1
        page = await service.get_attendance_records(ctx, from_date=SHIFT_DAY, to_date=SHIFT_DAY)
        statuses = {record.guard_id: record.status for record in page["data"]}
        assert statuses == {guard_ids[0]: AttendanceStatus.LATE, guard_ids[1]: AttendanceStatus.PRESENT}

    async def test_unknown_guard_rejects_whole_batch(self, session, ctx_for, guard_ids):
        service = AttendanceService(session)
        ctx = ctx_for("ops_supervisor")

        with pytest.raises(NotFoundError):
            await service.mark_bulk_attendance(ctx, BulkAttendanceCreate(
                attendance_date=SHIFT_DAY,
                records=[
                    {"guard_id": guard_ids[0], "status": "present"},
                    {"guard_id": "missing-guard", "status": "present"},
                ],
            ))

        page = await service.get_attendance_records(ctx)
        assert page["count"] == 0


@pytest.mark.asyncio
class TestLeaveAndStats:
    async def test_leave_overwrites_unverified_days(self, session, ctx_for, guard_ids):
        service = AttendanceService(session)
        ctx = ctx_for("system_admin")
        await service.create_attendance(ctx, AttendanceCreate(guard_id=guard_ids[0], attendance_date=SHIFT_DAY, status="absent"))

        records = await service.record_leave(ctx, LeaveRequestCreate(
            guard_id=guard_ids[0], from_date=date(2026, 3, 1), to_date=date(2026, 3, 3), remarks="Family event"
        ))

        assert [r.attendance_date for r in records] == [date(2026, 3, 1), date(2026, 3, 2), date(2026, 3, 3)]
        assert all(r.status == AttendanceStatus.LEAVE for r in records)
        assert (await service.get_attendance_records(ctx))["count"] == 3

    async def test_stats(self, session, ctx_for, guard_ids):
        service = AttendanceService(session)
        ctx = ctx_for("ops_supervisor")
        await service.create_attendance(ctx, AttendanceCreate(
            guard_id=guard_ids[0], attendance_date=SHIFT_DAY, check_in_time=_at(6), check_out_time=_at(18)
        ))
        await service.create_attendance(ctx, AttendanceCreate(guard_id=guard_ids[1], attendance_date=SHIFT_DAY, status="absent"))
        await service.create_attendance(ctx, AttendanceCreate(guard_id=guard_ids[1], attendance_date=date(2026, 3, 3), status="holiday"))

        stats = await service.get_attendance_stats(ctx)

        assert stats["total_records"] == 3
        assert stats["by_status"]["present"] == 1
        # holidays are not working days
        assert stats["attendance_rate"] == 50.0
        assert stats["total_work_hours"] == 12.0
        assert stats["total_overtime_hours"] == 4.0


@pytest.mark.asyncio
class TestAttendanceEndpoints:
    async def test_mixed_offset_times_are_a_validation_error(self, client: AsyncClient, auth_headers, guard_ids):
        body = {
            "guard_id": guard_ids[0],
            "attendance_date": "2026-03-02",
            "check_in_time": "2026-03-02T08:00:00+05:00",
            "check_out_time": "2026-03-02T02:00:00",
        }
        response = await client.post("/api/v1/attendance", json=body, headers=auth_headers("ops_supervisor"))
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

        body["check_out_time"] = "2026-03-02T11:30:00"
        response = await client.post("/api/v1/attendance", json=body, headers=auth_headers("ops_supervisor"))
        assert response.status_code == status.HTTP_201_CREATED
        assert Decimal(response.json()["work_hours"]) == Decimal("8.5")
