import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
from fastapi import HTTPException, status
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from guardforce.core.config import settings
from guardforce.core.exceptions import NotFoundError, EntityWriteError
from guardforce.db.base import utcnow
from guardforce.models.approval.approval_request import ApprovalRequest
from guardforce.models.shared.enums import ApprovalStatus
from guardforce.schemas.approval.approval_request_schema import ApprovalRequestFilters
from guardforce.schemas.auth.profile_schema import AuthContext

logger = logging.getLogger(__name__)

# Runs inside the decision transaction; returns the written record(s)
EntityWrite = Callable[[ApprovalRequest], Awaitable[Any]]


def matches_filters(request: ApprovalRequest, filters: ApprovalRequestFilters) -> bool:
    if filters.status and request.status != filters.status:
        return False
    if filters.request_type and request.request_type != filters.request_type:
        return False
    if filters.search:
        term = filters.search.strip().lower()
        haystack = (
            request.id,
            request.title,
            request.requested_by_name,
            request.description,
        )
        if not any(term in value.lower() for value in haystack if value):
            return False
    return True


class ApprovalRequestRepository:
    """Tenant-scoped persistence for approval requests.

    Status changes go through `decide`, a compare-and-swap on `status = pending`:
    of two concurrent decisions exactly one updates the row.
    """

    def __init__(self, session: AsyncSession, row_cap: Optional[int] = None):
        self.session = session
        self.row_cap = row_cap or settings.APPROVAL_LIST_ROW_CAP

    async def list(self, ctx: AuthContext, filters: Optional[ApprovalRequestFilters] = None) -> List[ApprovalRequest]:
        """Most recent requests first; filters apply to the capped window"""
        filters = filters or ApprovalRequestFilters()
        result = await self.session.execute(
            select(ApprovalRequest)
            .where(ApprovalRequest.org_id == ctx.org_id, ApprovalRequest.is_deleted == False)
            .order_by(ApprovalRequest.requested_at.desc())
            .limit(self.row_cap)
            .execution_options(populate_existing=True)
        )
        return [request for request in result.scalars().all() if matches_filters(request, filters)]

    async def get(self, ctx: AuthContext, request_id: str) -> ApprovalRequest:
        result = await self.session.execute(
            select(ApprovalRequest)
            .where(
                ApprovalRequest.id == request_id,
                ApprovalRequest.org_id == ctx.org_id,
                ApprovalRequest.is_deleted == False
            )
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError("Approval request not found")
        return request

    async def count_pending(self, ctx: AuthContext) -> int:
        count = await self.session.scalar(
            select(func.count(ApprovalRequest.id)).where(
                ApprovalRequest.org_id == ctx.org_id,
                ApprovalRequest.status == ApprovalStatus.PENDING,
                ApprovalRequest.is_deleted == False
            )
        )
        return count or 0

    async def create(self, ctx: AuthContext, values: Dict[str, Any]) -> ApprovalRequest:
        try:
            request = ApprovalRequest(
                org_id=ctx.org_id,
                status=ApprovalStatus.PENDING,
                requested_by=ctx.user_id,
                requested_by_name=ctx.full_name,
                requested_by_role=ctx.role.value,
                requested_at=utcnow(),
                created_by=ctx.user_id,
                **values
            )
            self.session.add(request)
            await self.session.commit()

            logger.info(f"Approval request created: {request.id} ({request.request_type.value}) by user {ctx.user_id}")
            return request

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating approval request: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating approval request")

    async def decide(
        self,
        ctx: AuthContext,
        request_id: str,
        new_status: ApprovalStatus,
        stamp: Dict[str, Any],
        entity_write: Optional[EntityWrite] = None
    ) -> Optional[ApprovalRequest]:
        """Move a pending request to `new_status`.

        Returns None when the row was no longer pending (another decision won).
        With `entity_write`, the status change and the entity write commit
        together; if the write fails both are rolled back and EntityWriteError
        is raised.
        """
        try:
            result = await self.session.execute(
                update(ApprovalRequest)
                .where(
                    ApprovalRequest.id == request_id,
                    ApprovalRequest.org_id == ctx.org_id,
                    ApprovalRequest.status == ApprovalStatus.PENDING
                )
                .values(status=new_status, updated_by=ctx.user_id, updated_at=utcnow(), **stamp)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.session.rollback()
                logger.info(f"Approval request {request_id} was not pending; {new_status.value} not applied")
                return None

            if entity_write is not None:
                request = await self.get(ctx, request_id)
                try:
                    record = await entity_write(request)
                except Exception as e:
                    await self.session.rollback()
                    detail = e.detail if isinstance(e, HTTPException) else str(e)
                    logger.error(f"Entity write for approval request {request_id} failed: {detail}")
                    raise EntityWriteError(detail)

                # multi-row writes (leave) reference their first row
                if isinstance(record, (list, tuple)):
                    record = record[0] if record else None
                reference_id = getattr(record, "id", None)
                if reference_id:
                    request.reference_id = reference_id

            await self.session.commit()

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error deciding approval request {request_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error processing approval request")

        logger.info(f"Approval request {request_id} {new_status.value} by user {ctx.user_id}")
        return await self.get(ctx, request_id)

    async def mark_cancelled(self, ctx: AuthContext, request_id: str) -> Optional[ApprovalRequest]:
        """Withdraw a pending request; None when it was already decided"""
        return await self.decide(
            ctx,
            request_id,
            ApprovalStatus.CANCELLED,
            {"cancelled_by": ctx.user_id, "cancelled_at": utcnow()}
        )
