import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from guardforce.core.config import settings
from guardforce.core.exceptions import NotFoundError, ValidationError, InvalidStateError
from guardforce.db.base import utcnow
from guardforce.models.attendance.attendance import AttendanceRecord
from guardforce.models.guards.guard import Guard
from guardforce.models.shared.enums import AttendanceStatus, GuardStatus
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.attendance.attendance_schema import (
    AttendanceCreate, AttendanceUpdate, AttendanceVerify, BulkAttendanceCreate,
    LeaveRequestCreate, AttendanceResponse
)
from guardforce.utils.date_time_serializer import as_utc

logger = logging.getLogger(__name__)

HOURS = Decimal("0.01")


def calculate_hours(check_in: datetime, check_out: datetime, standard_hours: float) -> Dict[str, Decimal]:
    """Split worked time into regular and overtime hours"""
    worked = (as_utc(check_out) - as_utc(check_in)).total_seconds() / 3600
    if worked <= 0:
        raise ValidationError("Check-out time must be after check-in time")
    work_hours = Decimal(str(worked)).quantize(HOURS, rounding=ROUND_HALF_UP)
    overtime = max(work_hours - Decimal(str(standard_hours)), Decimal("0"))
    return {"work_hours": work_hours, "overtime_hours": overtime.quantize(HOURS)}


class AttendanceService:
    def __init__(self, session: AsyncSession):
        self.session = session

    # ---------- Helpers ----------
    async def _ensure_guard(self, ctx: AuthContext, guard_id: str) -> Guard:
        result = await self.session.execute(
            select(Guard).where(Guard.id == guard_id, Guard.org_id == ctx.org_id, Guard.is_deleted == False)
        )
        guard = result.scalar_one_or_none()
        if not guard:
            raise NotFoundError(f"Guard {guard_id} not found")
        if guard.status in (GuardStatus.TERMINATED, GuardStatus.ARCHIVED):
            raise ValidationError(f"Guard {guard.guard_code} is {guard.status.value}")
        return guard

    async def _existing_by_guard(self, ctx: AuthContext, guard_ids: List[str], attendance_date: date) -> Dict[str, AttendanceRecord]:
        result = await self.session.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.org_id == ctx.org_id,
                AttendanceRecord.guard_id.in_(guard_ids),
                AttendanceRecord.attendance_date == attendance_date,
                AttendanceRecord.is_deleted == False
            )
        )
        return {record.guard_id: record for record in result.scalars().all()}

    # ---------- Create / Update ----------
    async def create_attendance(self, ctx: AuthContext, data: AttendanceCreate, commit: bool = True) -> AttendanceRecord:
        try:
            await self._ensure_guard(ctx, data.guard_id)
            existing = await self._existing_by_guard(ctx, [data.guard_id], data.attendance_date)
            if existing:
                raise ValidationError(f"Attendance already recorded for this guard on {data.attendance_date}")

            record = AttendanceRecord(
                org_id=ctx.org_id,
                created_by=ctx.user_id,
                verified=False,
                **data.model_dump()
            )
            if data.check_in_time and data.check_out_time:
                hours = calculate_hours(data.check_in_time, data.check_out_time, settings.STANDARD_SHIFT_HOURS)
                record.work_hours = hours["work_hours"]
                record.overtime_hours = hours["overtime_hours"]

            self.session.add(record)
            if commit:
                await self.session.commit()
            else:
                await self.session.flush()

            logger.info(f"Attendance recorded: guard {data.guard_id} on {data.attendance_date} ({data.status.value}) by user {ctx.user_id}")
            return record

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating attendance: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating attendance")

    async def mark_bulk_attendance(self, ctx: AuthContext, data: BulkAttendanceCreate) -> Dict[str, Any]:
        """Upsert one record per guard for the date"""
        try:
            guard_ids = [entry.guard_id for entry in data.records]
            known = await self.session.execute(
                select(Guard.id).where(Guard.id.in_(guard_ids), Guard.org_id == ctx.org_id, Guard.is_deleted == False)
            )
            missing = set(guard_ids) - set(known.scalars().all())
            if missing:
                raise NotFoundError(f"Guards not found: {', '.join(sorted(missing))}")

            existing = await self._existing_by_guard(ctx, guard_ids, data.attendance_date)
            created = updated = 0
            for entry in data.records:
                values = entry.model_dump()
                record = existing.get(entry.guard_id)
                if record:
                    if record.verified:
                        raise InvalidStateError(f"Attendance for guard {entry.guard_id} is already verified")
                    for field, value in values.items():
                        if value is not None:
                            setattr(record, field, value)
                    record.updated_by = ctx.user_id
                    record.updated_at = utcnow()
                    updated += 1
                else:
                    self.session.add(AttendanceRecord(
                        org_id=ctx.org_id,
                        attendance_date=data.attendance_date,
                        created_by=ctx.user_id,
                        verified=False,
                        **values
                    ))
                    created += 1

            await self.session.commit()
            logger.info(f"Bulk attendance for {data.attendance_date}: {created} created, {updated} updated by user {ctx.user_id}")
            return {
                "created": created,
                "updated": updated,
                "message": f"Attendance marked for {created + updated} guards",
            }

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error marking bulk attendance: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error marking attendance")

    async def record_leave(self, ctx: AuthContext, data: LeaveRequestCreate, commit: bool = True) -> List[AttendanceRecord]:
        """One leave record per day of the range; existing unverified days are overwritten"""
        try:
            await self._ensure_guard(ctx, data.guard_id)

            days = [data.from_date + timedelta(days=offset) for offset in range((data.to_date - data.from_date).days + 1)]
            result = await self.session.execute(
                select(AttendanceRecord).where(
                    AttendanceRecord.org_id == ctx.org_id,
                    AttendanceRecord.guard_id == data.guard_id,
                    AttendanceRecord.attendance_date.in_(days),
                    AttendanceRecord.is_deleted == False
                )
            )
            existing = {record.attendance_date: record for record in result.scalars().all()}

            records = []
            for day in days:
                record = existing.get(day)
                if record:
                    if record.verified:
                        raise InvalidStateError(f"Attendance on {day} is already verified")
                    record.status = AttendanceStatus.LEAVE
                    record.check_in_time = None
                    record.check_out_time = None
                    record.work_hours = None
                    record.overtime_hours = Decimal("0")
                    record.remarks = data.remarks
                    record.updated_by = ctx.user_id
                    record.updated_at = utcnow()
                else:
                    record = AttendanceRecord(
                        org_id=ctx.org_id,
                        guard_id=data.guard_id,
                        branch_id=data.branch_id,
                        attendance_date=day,
                        status=AttendanceStatus.LEAVE,
                        remarks=data.remarks,
                        verified=False,
                        created_by=ctx.user_id,
                    )
                    self.session.add(record)
                records.append(record)

            if commit:
                await self.session.commit()
            else:
                await self.session.flush()

            logger.info(f"Leave recorded for guard {data.guard_id}: {data.from_date} to {data.to_date} by user {ctx.user_id}")
            return records

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error recording leave: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error recording leave")

    async def update_attendance(self, ctx: AuthContext, attendance_id: str, data: AttendanceUpdate) -> AttendanceRecord:
        try:
            record = await self.get_attendance(ctx, attendance_id)
            if not record:
                raise NotFoundError("Attendance record not found")
            if record.verified:
                raise InvalidStateError("Verified attendance cannot be modified")

            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(record, field, value)

            if record.check_in_time and record.check_out_time:
                hours = calculate_hours(record.check_in_time, record.check_out_time, settings.STANDARD_SHIFT_HOURS)
                record.work_hours = hours["work_hours"]
                record.overtime_hours = hours["overtime_hours"]

            record.updated_by = ctx.user_id
            record.updated_at = utcnow()
            await self.session.commit()

            logger.info(f"Attendance updated: {record.id} by user {ctx.user_id}")
            return record

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating attendance {attendance_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating attendance")

    async def verify_attendance(self, ctx: AuthContext, attendance_id: str, data: AttendanceVerify) -> AttendanceRecord:
        try:
            record = await self.get_attendance(ctx, attendance_id)
            if not record:
                raise NotFoundError("Attendance record not found")
            if record.verified:
                raise InvalidStateError("Attendance is already verified")

            record.verified = True
            record.verified_by = ctx.user_id
            record.verified_at = utcnow()
            if data.remarks:
                record.remarks = data.remarks
            record.updated_by = ctx.user_id
            record.updated_at = utcnow()
            await self.session.commit()

            logger.info(f"Attendance verified: {record.id} by user {ctx.user_id}")
            return record

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error verifying attendance {attendance_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error verifying attendance")

    # ---------- Queries ----------
    async def get_attendance(self, ctx: AuthContext, attendance_id: str) -> Optional[AttendanceRecord]:
        result = await self.session.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.id == attendance_id,
                AttendanceRecord.org_id == ctx.org_id,
                AttendanceRecord.is_deleted == False
            )
        )
        return result.scalar_one_or_none()

    def _range_conditions(
        self,
        ctx: AuthContext,
        from_date: Optional[date],
        to_date: Optional[date],
        guard_id: Optional[str],
        branch_id: Optional[str]
    ) -> list:
        conditions = [AttendanceRecord.org_id == ctx.org_id, AttendanceRecord.is_deleted == False]
        if from_date:
            conditions.append(AttendanceRecord.attendance_date >= from_date)
        if to_date:
            conditions.append(AttendanceRecord.attendance_date <= to_date)
        if guard_id:
            conditions.append(AttendanceRecord.guard_id == guard_id)
        if branch_id:
            conditions.append(AttendanceRecord.branch_id == branch_id)
        return conditions

    async def get_attendance_records(
        self,
        ctx: AuthContext,
        page_index: int = 1,
        page_size: int = 100,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        guard_id: Optional[str] = None,
        branch_id: Optional[str] = None,
        status: Optional[AttendanceStatus] = None
    ) -> Dict[str, Any]:
        conditions = self._range_conditions(ctx, from_date, to_date, guard_id, branch_id)
        if status:
            conditions.append(AttendanceRecord.status == status)

        total_count = await self.session.scalar(select(func.count(AttendanceRecord.id)).where(*conditions))

        skip = (page_index - 1) * page_size
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(*conditions)
            .order_by(AttendanceRecord.attendance_date.desc())
            .offset(skip)
            .limit(page_size)
        )

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total_count or 0,
            "data": [AttendanceResponse.model_validate(r) for r in result.scalars().all()],
        }

    async def get_attendance_stats(
        self,
        ctx: AuthContext,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        guard_id: Optional[str] = None,
        branch_id: Optional[str] = None
    ) -> Dict[str, Any]:
        conditions = self._range_conditions(ctx, from_date, to_date, guard_id, branch_id)

        rows = await self.session.execute(
            select(
                AttendanceRecord.status,
                func.count(AttendanceRecord.id),
                func.coalesce(func.sum(AttendanceRecord.work_hours), 0),
                func.coalesce(func.sum(AttendanceRecord.overtime_hours), 0),
            )
            .where(*conditions)
            .group_by(AttendanceRecord.status)
        )

        by_status = {s.value: 0 for s in AttendanceStatus}
        total_hours = 0.0
        total_overtime = 0.0
        for record_status, count, work_hours, overtime_hours in rows.all():
            by_status[record_status.value] = count
            total_hours += float(work_hours or 0)
            total_overtime += float(overtime_hours or 0)

        total = sum(by_status.values())
        working_days = total - by_status[AttendanceStatus.HOLIDAY.value]
        attendance_rate = round(by_status[AttendanceStatus.PRESENT.value] / working_days * 100, 2) if working_days else 0.0

        return {
            "total_records": total,
            "by_status": by_status,
            "total_work_hours": round(total_hours, 2),
            "total_overtime_hours": round(total_overtime, 2),
            "attendance_rate": attendance_rate,
        }

    async def get_branch_summary(self, ctx: AuthContext, attendance_date: date) -> List[Dict[str, Any]]:
        rows = await self.session.execute(
            select(AttendanceRecord.branch_id, AttendanceRecord.status, func.count(AttendanceRecord.id))
            .where(
                AttendanceRecord.org_id == ctx.org_id,
                AttendanceRecord.attendance_date == attendance_date,
                AttendanceRecord.branch_id.is_not(None),
                AttendanceRecord.is_deleted == False
            )
            .group_by(AttendanceRecord.branch_id, AttendanceRecord.status)
        )

        summary: Dict[str, Dict[str, Any]] = {}
        for branch_id, record_status, count in rows.all():
            entry = summary.setdefault(branch_id, {
                "branch_id": branch_id,
                "total": 0,
                "by_status": {s.value: 0 for s in AttendanceStatus},
            })
            entry["by_status"][record_status.value] = count
            entry["total"] += count
        return list(summary.values())

    async def get_guard_period_summary(
        self,
        ctx: AuthContext,
        guard_ids: List[str],
        from_date: date,
        to_date: date
    ) -> Dict[str, Dict[str, Any]]:
        """Per-guard status counts and overtime hours over a date range"""
        if not guard_ids:
            return {}
        conditions = self._range_conditions(ctx, from_date, to_date, None, None)
        conditions.append(AttendanceRecord.guard_id.in_(guard_ids))

        rows = await self.session.execute(
            select(
                AttendanceRecord.guard_id,
                AttendanceRecord.status,
                func.count(AttendanceRecord.id),
                func.coalesce(func.sum(AttendanceRecord.overtime_hours), 0),
            )
            .where(*conditions)
            .group_by(AttendanceRecord.guard_id, AttendanceRecord.status)
        )

        summary: Dict[str, Dict[str, Any]] = {}
        for guard_id, record_status, count, overtime_hours in rows.all():
            entry = summary.setdefault(guard_id, {
                "by_status": {s.value: 0 for s in AttendanceStatus},
                "overtime_hours": Decimal("0"),
            })
            entry["by_status"][record_status.value] = count
            entry["overtime_hours"] += Decimal(str(overtime_hours or 0))
        return summary
