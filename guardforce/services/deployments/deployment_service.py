import logging
from collections import defaultdict
from datetime import date
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from guardforce.core.exceptions import NotFoundError, ValidationError, InvalidStateError
from guardforce.db.base import utcnow
from guardforce.models.clients.client import Client
from guardforce.models.clients.client_branch import ClientBranch
from guardforce.models.deployments.deployment import Deployment
from guardforce.models.guards.guard import Guard
from guardforce.models.shared.enums import DeploymentStatus, GuardStatus, ShiftType, BranchStatus
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.deployments.deployment_schema import (
    DeploymentCreate, DeploymentUpdate, DeploymentRevoke, GuardSwap, DeploymentResponse
)

logger = logging.getLogger(__name__)

# Guards in these states may be assigned to a post
DEPLOYABLE_GUARD_STATUSES = (GuardStatus.APPROVED, GuardStatus.ONBOARDING, GuardStatus.ACTIVE)
OPEN_DEPLOYMENT_STATUSES = (DeploymentStatus.PLANNED, DeploymentStatus.ACTIVE)


class DeploymentService:
    def __init__(self, session: AsyncSession):
        self.session = session

    # region ========== Helpers ==========

    async def _save(self, commit: bool):
        if commit:
            await self.session.commit()
        else:
            await self.session.flush()

    async def _get_guard(self, ctx: AuthContext, guard_id: str) -> Guard:
        result = await self.session.execute(
            select(Guard).where(Guard.id == guard_id, Guard.org_id == ctx.org_id, Guard.is_deleted == False)
        )
        guard = result.scalar_one_or_none()
        if not guard:
            raise NotFoundError("Guard not found")
        return guard

    async def _get_branch(self, ctx: AuthContext, branch_id: str) -> ClientBranch:
        # Row lock: headcount is read-modify-written below
        result = await self.session.execute(
            select(ClientBranch).where(
                ClientBranch.id == branch_id,
                ClientBranch.org_id == ctx.org_id,
                ClientBranch.is_deleted == False
            ).with_for_update()
        )
        branch = result.scalar_one_or_none()
        if not branch:
            raise NotFoundError("Branch not found")
        return branch

    def _adjust_branch_headcount(self, branch: ClientBranch, delta: int):
        branch.current_guards = max((branch.current_guards or 0) + delta, 0)
        branch.updated_at = utcnow()

    async def _open_deployment_for_guard(self, ctx: AuthContext, guard_id: str) -> Optional[Deployment]:
        result = await self.session.execute(
            select(Deployment).where(
                Deployment.guard_id == guard_id,
                Deployment.org_id == ctx.org_id,
                Deployment.status.in_(OPEN_DEPLOYMENT_STATUSES),
                Deployment.is_deleted == False
            ).limit(1)
        )
        return result.scalar_one_or_none()

    # endregion

    # region ========== Create / Update ==========

    async def create_deployment(self, ctx: AuthContext, data: DeploymentCreate, commit: bool = True) -> Deployment:
        try:
            guard = await self._get_guard(ctx, data.guard_id)
            if guard.status not in DEPLOYABLE_GUARD_STATUSES:
                raise InvalidStateError(f"Guard {guard.guard_code} is {guard.status.value} and cannot be deployed")

            if await self._open_deployment_for_guard(ctx, guard.id):
                raise InvalidStateError(f"Guard {guard.guard_code} already has an active deployment")

            branch = await self._get_branch(ctx, data.branch_id)
            if branch.client_id != data.client_id:
                raise ValidationError("Branch does not belong to the selected client")
            if branch.status != BranchStatus.ACTIVE:
                raise InvalidStateError(f"Branch {branch.branch_code} is {branch.status.value}")

            deployment = Deployment(
                org_id=ctx.org_id,
                status=DeploymentStatus.PLANNED,
                created_by=ctx.user_id,
                **data.model_dump()
            )
            self.session.add(deployment)

            guard.status = GuardStatus.DEPLOYED
            guard.updated_by = ctx.user_id
            guard.updated_at = utcnow()
            self._adjust_branch_headcount(branch, 1)

            await self._save(commit)
            logger.info(f"Deployment created: guard {guard.guard_code} -> branch {branch.branch_code} by user {ctx.user_id}")
            return deployment

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating deployment: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating deployment")

    async def update_deployment(self, ctx: AuthContext, deployment_id: str, data: DeploymentUpdate, commit: bool = True) -> Deployment:
        try:
            deployment = await self.get_deployment(ctx, deployment_id)
            if not deployment:
                raise NotFoundError("Deployment not found")
            if deployment.status not in OPEN_DEPLOYMENT_STATUSES:
                raise InvalidStateError(f"Cannot modify a {deployment.status.value} deployment")

            changes = data.model_dump(exclude_unset=True)
            start = changes.get("deployment_date", deployment.deployment_date)
            end = changes.get("end_date", deployment.end_date)
            if end and start and end < start:
                raise ValidationError("End date cannot be before deployment date")

            for field, value in changes.items():
                setattr(deployment, field, value)
            deployment.updated_by = ctx.user_id
            deployment.updated_at = utcnow()

            await self._save(commit)
            logger.info(f"Deployment updated: {deployment.id} by user {ctx.user_id}")
            return deployment

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating deployment {deployment_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating deployment")

    async def activate_deployment(self, ctx: AuthContext, deployment_id: str) -> Deployment:
        try:
            deployment = await self.get_deployment(ctx, deployment_id)
            if not deployment:
                raise NotFoundError("Deployment not found")
            if deployment.status != DeploymentStatus.PLANNED:
                raise InvalidStateError(f"Only planned deployments can be activated (current: {deployment.status.value})")

            deployment.status = DeploymentStatus.ACTIVE
            deployment.deployed_at = utcnow()
            deployment.deployed_by = ctx.user_id
            deployment.updated_by = ctx.user_id
            deployment.updated_at = utcnow()
            await self.session.commit()

            logger.info(f"Deployment activated: {deployment.id} by user {ctx.user_id}")
            return deployment

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error activating deployment {deployment_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error activating deployment")

    async def revoke_deployment(self, ctx: AuthContext, deployment_id: str, data: DeploymentRevoke, commit: bool = True) -> Deployment:
        try:
            deployment = await self.get_deployment(ctx, deployment_id)
            if not deployment:
                raise NotFoundError("Deployment not found")
            if deployment.status not in OPEN_DEPLOYMENT_STATUSES:
                raise InvalidStateError(f"Deployment is already {deployment.status.value}")

            deployment.status = DeploymentStatus.REVOKED
            deployment.end_date = data.end_date or date.today()
            deployment.ended_at = utcnow()
            deployment.end_reason = data.end_reason
            deployment.updated_by = ctx.user_id
            deployment.updated_at = utcnow()

            guard = await self._get_guard(ctx, deployment.guard_id)
            if guard.status == GuardStatus.DEPLOYED:
                guard.status = GuardStatus.ACTIVE
                guard.updated_by = ctx.user_id
                guard.updated_at = utcnow()

            branch = await self._get_branch(ctx, deployment.branch_id)
            self._adjust_branch_headcount(branch, -1)

            await self._save(commit)
            logger.info(f"Deployment revoked: {deployment.id} by user {ctx.user_id}. Reason: {data.end_reason}")
            return deployment

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error revoking deployment {deployment_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error revoking deployment")

    async def swap_guards(self, ctx: AuthContext, data: GuardSwap) -> Dict[str, Deployment]:
        """Replace the guard on an open deployment; old and new rows change in one transaction"""
        try:
            current = await self.get_deployment(ctx, data.deployment_id)
            if not current:
                raise NotFoundError("Deployment not found")
            if current.guard_id == data.new_guard_id:
                raise ValidationError("New guard must differ from the currently deployed guard")

            swap_date = data.swap_date or date.today()
            revoked = await self.revoke_deployment(
                ctx,
                current.id,
                DeploymentRevoke(end_reason=f"Swapped: {data.reason}", end_date=swap_date),
                commit=False
            )
            created = await self.create_deployment(
                ctx,
                DeploymentCreate(
                    guard_id=data.new_guard_id,
                    client_id=current.client_id,
                    branch_id=current.branch_id,
                    deployment_date=swap_date,
                    shift_type=current.shift_type,
                    guard_rate=current.guard_rate,
                    client_rate=current.client_rate,
                    notes=f"Swap for deployment {current.id}",
                ),
                commit=False
            )
            await self.session.commit()

            logger.info(f"Guards swapped on deployment {current.id} -> {created.id} by user {ctx.user_id}")
            return {"revoked": revoked, "created": created}

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error swapping guards on deployment {data.deployment_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error swapping guards")

    # endregion

    # region ========== Queries ==========

    async def get_deployment(self, ctx: AuthContext, deployment_id: str) -> Optional[Deployment]:
        result = await self.session.execute(
            select(Deployment).where(
                Deployment.id == deployment_id,
                Deployment.org_id == ctx.org_id,
                Deployment.is_deleted == False
            )
        )
        return result.scalar_one_or_none()

    async def get_deployments(
        self,
        ctx: AuthContext,
        page_index: int = 1,
        page_size: int = 50,
        status: Optional[DeploymentStatus] = None,
        guard_id: Optional[str] = None,
        client_id: Optional[str] = None,
        branch_id: Optional[str] = None,
        shift_type: Optional[ShiftType] = None
    ) -> Dict[str, Any]:
        conditions = [Deployment.org_id == ctx.org_id, Deployment.is_deleted == False]
        if status:
            conditions.append(Deployment.status == status)
        if guard_id:
            conditions.append(Deployment.guard_id == guard_id)
        if client_id:
            conditions.append(Deployment.client_id == client_id)
        if branch_id:
            conditions.append(Deployment.branch_id == branch_id)
        if shift_type:
            conditions.append(Deployment.shift_type == shift_type)

        total_count = await self.session.scalar(select(func.count(Deployment.id)).where(*conditions))

        skip = (page_index - 1) * page_size
        result = await self.session.execute(
            select(Deployment)
            .where(*conditions)
            .order_by(Deployment.deployment_date.desc(), Deployment.created_at.desc())
            .offset(skip)
            .limit(page_size)
        )

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total_count or 0,
            "data": [DeploymentResponse.model_validate(d) for d in result.scalars().all()],
        }

    async def get_deployment_matrix(self, ctx: AuthContext) -> Dict[str, Any]:
        """Branches as columns, deployable guards as rows, active deployments as cells"""
        active_counts = (
            select(Deployment.branch_id, func.count(Deployment.id).label("active_guards"))
            .where(
                Deployment.org_id == ctx.org_id,
                Deployment.status == DeploymentStatus.ACTIVE,
                Deployment.is_deleted == False
            )
            .group_by(Deployment.branch_id)
            .subquery()
        )
        branch_rows = await self.session.execute(
            select(
                ClientBranch.id,
                ClientBranch.branch_code,
                ClientBranch.branch_name,
                ClientBranch.client_id,
                Client.client_name,
                ClientBranch.required_guards,
                func.coalesce(active_counts.c.active_guards, 0),
            )
            .join(Client, Client.id == ClientBranch.client_id)
            .outerjoin(active_counts, active_counts.c.branch_id == ClientBranch.id)
            .where(
                ClientBranch.org_id == ctx.org_id,
                ClientBranch.status == BranchStatus.ACTIVE,
                ClientBranch.is_deleted == False,
                Client.is_deleted == False
            )
            .order_by(Client.client_name, ClientBranch.branch_code)
        )
        branches = [
            {
                "branch_id": row[0],
                "branch_code": row[1],
                "branch_name": row[2],
                "client_id": row[3],
                "client_name": row[4],
                "required_guards": row[5] or 0,
                "active_guards": row[6] or 0,
            }
            for row in branch_rows.all()
        ]

        deployment_rows = await self.session.execute(
            select(Deployment.guard_id, Deployment.branch_id, Deployment.id).where(
                Deployment.org_id == ctx.org_id,
                Deployment.status == DeploymentStatus.ACTIVE,
                Deployment.is_deleted == False
            )
        )
        cells: Dict[str, Dict[str, str]] = defaultdict(dict)
        for guard_id, branch_id, deployment_id in deployment_rows.all():
            cells[guard_id][branch_id] = deployment_id

        guard_rows = await self.session.execute(
            select(Guard.id, Guard.guard_code, Guard.first_name, Guard.last_name, Guard.status).where(
                Guard.org_id == ctx.org_id,
                Guard.status.in_((GuardStatus.ACTIVE, GuardStatus.DEPLOYED)),
                Guard.is_deleted == False
            ).order_by(Guard.guard_code)
        )
        guards = [
            {
                "guard_id": guard_id,
                "guard_code": code,
                "guard_name": f"{first} {last}",
                "status": guard_status.value,
                "deployments": cells.get(guard_id, {}),
            }
            for guard_id, code, first, last, guard_status in guard_rows.all()
        ]

        return {"branches": branches, "guards": guards}

    async def get_deployment_stats(self, ctx: AuthContext) -> Dict[str, Any]:
        base_conditions = [Deployment.org_id == ctx.org_id, Deployment.is_deleted == False]

        status_rows = await self.session.execute(
            select(Deployment.status, func.count(Deployment.id))
            .where(*base_conditions)
            .group_by(Deployment.status)
        )
        by_status = {s.value: 0 for s in DeploymentStatus}
        for deployment_status, count in status_rows.all():
            by_status[deployment_status.value] = count

        shift_rows = await self.session.execute(
            select(Deployment.shift_type, func.count(Deployment.id))
            .where(*base_conditions, Deployment.status == DeploymentStatus.ACTIVE)
            .group_by(Deployment.shift_type)
        )
        by_shift = {s.value: 0 for s in ShiftType}
        for shift_type, count in shift_rows.all():
            by_shift[shift_type.value] = count

        understaffed = await self.session.scalar(
            select(func.count(ClientBranch.id)).where(
                ClientBranch.org_id == ctx.org_id,
                ClientBranch.status == BranchStatus.ACTIVE,
                ClientBranch.is_deleted == False,
                ClientBranch.current_guards < ClientBranch.required_guards
            )
        )

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_shift": by_shift,
            "understaffed_branches": understaffed or 0,
        }

    # endregion
