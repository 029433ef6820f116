import logging
from typing import Any, Dict, Optional
from datetime import date
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_

from guardforce.core.exceptions import NotFoundError, ValidationError, InvalidStateError
from guardforce.db.base import utcnow
from guardforce.models.guards.guard import Guard
from guardforce.models.shared.enums import GuardStatus
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.guards.guard_schema import (
    GuardCreate, GuardUpdate, GuardTermination, SalaryAdjustment, GuardResponse
)
from guardforce.utils.code_generator import generate_sequential_code

logger = logging.getLogger(__name__)

GUARD_CODE_PREFIX = "GRD-"


class GuardService:
    def __init__(self, session: AsyncSession):
        self.session = session

    # ---------- Helpers ----------
    async def _save(self, commit: bool):
        if commit:
            await self.session.commit()
        else:
            await self.session.flush()

    async def _generate_guard_code(self, org_id: str) -> str:
        return await generate_sequential_code(
            self.session, Guard.guard_code, GUARD_CODE_PREFIX, 5, Guard.org_id == org_id
        )

    async def _ensure_unique_cnic(self, org_id: str, cnic: str, exclude_id: Optional[str] = None):
        conditions = [Guard.org_id == org_id, Guard.cnic == cnic, Guard.is_deleted == False]
        if exclude_id:
            conditions.append(Guard.id != exclude_id)
        result = await self.session.execute(select(Guard.id).where(*conditions).limit(1))
        if result.scalar_one_or_none() is not None:
            raise ValidationError(f"Guard with CNIC '{cnic}' already exists")

    async def _get_for_update(self, ctx: AuthContext, guard_id: str) -> Guard:
        guard = await self.get_guard(ctx, guard_id)
        if not guard:
            raise NotFoundError("Guard not found")
        return guard

    # ---------- Create / Update / Delete ----------
    async def create_guard(
        self,
        ctx: AuthContext,
        data: GuardCreate,
        initial_status: GuardStatus = GuardStatus.APPLICANT,
        commit: bool = True
    ) -> Guard:
        try:
            await self._ensure_unique_cnic(ctx.org_id, data.cnic)

            guard = Guard(
                org_id=ctx.org_id,
                guard_code=await self._generate_guard_code(ctx.org_id),
                status=initial_status,
                is_active=True,
                created_by=ctx.user_id,
                **data.model_dump()
            )
            self.session.add(guard)
            await self._save(commit)

            logger.info(f"Guard created: {guard.guard_code} - {guard.first_name} {guard.last_name} by user {ctx.user_id}")
            return guard

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating guard: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating guard")

    async def update_guard(self, ctx: AuthContext, guard_id: str, data: GuardUpdate, commit: bool = True) -> Guard:
        try:
            guard = await self._get_for_update(ctx, guard_id)
            if guard.status == GuardStatus.TERMINATED:
                raise InvalidStateError("Terminated guards cannot be updated")

            changes = data.model_dump(exclude_unset=True)
            if changes.get("cnic") and changes["cnic"] != guard.cnic:
                await self._ensure_unique_cnic(ctx.org_id, changes["cnic"], exclude_id=guard.id)

            for field, value in changes.items():
                setattr(guard, field, value)
            guard.updated_by = ctx.user_id
            guard.updated_at = utcnow()

            await self._save(commit)
            logger.info(f"Guard updated: {guard.guard_code} by user {ctx.user_id}")
            return guard

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating guard {guard_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating guard")

    async def adjust_salary(self, ctx: AuthContext, guard_id: str, data: SalaryAdjustment, commit: bool = True) -> Guard:
        try:
            guard = await self._get_for_update(ctx, guard_id)
            if guard.status == GuardStatus.TERMINATED:
                raise InvalidStateError("Cannot adjust salary of a terminated guard")

            previous = guard.basic_salary
            guard.basic_salary = data.basic_salary
            if data.allowances is not None:
                guard.allowances = data.allowances
            guard.updated_by = ctx.user_id
            guard.updated_at = utcnow()

            await self._save(commit)
            logger.info(f"Guard {guard.guard_code} salary adjusted {previous} -> {data.basic_salary} by user {ctx.user_id}")
            return guard

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error adjusting salary for guard {guard_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error adjusting salary")

    async def update_guard_status(
        self,
        ctx: AuthContext,
        guard_id: str,
        new_status: GuardStatus,
        reason: Optional[str] = None,
        commit: bool = True
    ) -> Guard:
        try:
            guard = await self._get_for_update(ctx, guard_id)
            if guard.status == GuardStatus.TERMINATED and new_status != GuardStatus.ARCHIVED:
                raise InvalidStateError("Terminated guards can only be archived")
            if new_status == GuardStatus.TERMINATED:
                raise ValidationError("Use termination to end a guard's employment")

            guard.status = new_status
            guard.is_active = new_status not in (GuardStatus.SUSPENDED, GuardStatus.ARCHIVED)
            guard.updated_by = ctx.user_id
            guard.updated_at = utcnow()

            await self._save(commit)
            logger.info(f"Guard {guard.guard_code} status -> {new_status.value} by user {ctx.user_id}. Reason: {reason or '-'}")
            return guard

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating status for guard {guard_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating guard status")

    async def terminate_guard(self, ctx: AuthContext, guard_id: str, data: GuardTermination, commit: bool = True) -> Guard:
        try:
            guard = await self._get_for_update(ctx, guard_id)
            if guard.status == GuardStatus.TERMINATED:
                raise InvalidStateError("Guard is already terminated")
            if guard.status == GuardStatus.DEPLOYED:
                raise InvalidStateError("Revoke the guard's active deployment before termination")

            guard.status = GuardStatus.TERMINATED
            guard.is_active = False
            guard.termination_reason = data.termination_reason
            guard.employment_end_date = data.employment_end_date or date.today()
            guard.updated_by = ctx.user_id
            guard.updated_at = utcnow()

            await self._save(commit)
            logger.info(f"Guard terminated: {guard.guard_code} by user {ctx.user_id}")
            return guard

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error terminating guard {guard_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error terminating guard")

    async def delete_guard(self, ctx: AuthContext, guard_id: str) -> bool:
        try:
            guard = await self._get_for_update(ctx, guard_id)
            if guard.status == GuardStatus.DEPLOYED:
                raise InvalidStateError("Cannot delete a deployed guard")

            guard.is_deleted = True
            guard.is_active = False
            guard.updated_by = ctx.user_id
            guard.updated_at = utcnow()
            await self.session.commit()

            logger.info(f"Guard deleted: {guard.guard_code} by user {ctx.user_id}")
            return True

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error deleting guard {guard_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error deleting guard")

    # ---------- Queries ----------
    async def get_guard(self, ctx: AuthContext, guard_id: str) -> Optional[Guard]:
        result = await self.session.execute(
            select(Guard).where(
                Guard.id == guard_id,
                Guard.org_id == ctx.org_id,
                Guard.is_deleted == False
            )
        )
        return result.scalar_one_or_none()

    async def get_guards(
        self,
        ctx: AuthContext,
        page_index: int = 1,
        page_size: int = 50,
        status: Optional[GuardStatus] = None,
        search: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> Dict[str, Any]:
        conditions = [Guard.org_id == ctx.org_id, Guard.is_deleted == False]

        if status:
            conditions.append(Guard.status == status)
        if is_active is not None:
            conditions.append(Guard.is_active == is_active)
        if search:
            term = f"%{search.strip()}%"
            conditions.append(or_(
                Guard.guard_code.ilike(term),
                Guard.first_name.ilike(term),
                Guard.last_name.ilike(term),
                Guard.cnic.ilike(term),
                Guard.phone.ilike(term),
            ))

        total_count = await self.session.scalar(
            select(func.count(Guard.id)).where(*conditions)
        )

        skip = (page_index - 1) * page_size
        result = await self.session.execute(
            select(Guard)
            .where(*conditions)
            .order_by(Guard.guard_code.desc())
            .offset(skip)
            .limit(page_size)
        )
        guards = result.scalars().all()

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total_count or 0,
            "data": [GuardResponse.model_validate(g) for g in guards],
        }

    async def get_guard_counts(self, ctx: AuthContext) -> Dict[str, int]:
        """Guard count per status, zero-filled"""
        result = await self.session.execute(
            select(Guard.status, func.count(Guard.id))
            .where(Guard.org_id == ctx.org_id, Guard.is_deleted == False)
            .group_by(Guard.status)
        )
        counts = {s.value: 0 for s in GuardStatus}
        for guard_status, count in result.all():
            counts[guard_status.value] = count
        counts["total"] = sum(counts.values())
        return counts
