import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from guardforce.auth.permissions import PermissionEvaluator, permission_evaluator
from guardforce.core.exceptions import AuthorizationError, InvalidStateError, ValidationError
from guardforce.core.logging_config import log_user_action
from guardforce.db.base import utcnow
from guardforce.models.approval.approval_request import ApprovalRequest
from guardforce.models.shared.enums import Action, ApprovalPriority, ApprovalRequestType, ApprovalStatus, UserRole
from guardforce.schemas.approval.approval_request_schema import (
    ApprovalRequestCreate, ApprovalRequestFilters, ApprovalRequestResponse
)
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.services.approval.approval_registry import ApprovalRegistry, RequestTypeHandler, default_registry
from guardforce.services.approval.approval_request_repository import ApprovalRequestRepository
from guardforce.services.notification.approval_notifier import ApprovalNotifier
from guardforce.utils.date_time_serializer import serialize_dates

logger = logging.getLogger(__name__)

# Roles allowed to cancel requests they did not submit
CANCEL_OVERRIDE_ROLES = frozenset({UserRole.SYSTEM_ADMIN})


class DecisionAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


TARGET_STATUS = {
    DecisionAction.APPROVE: ApprovalStatus.APPROVED,
    DecisionAction.REJECT: ApprovalStatus.REJECTED,
    DecisionAction.CANCEL: ApprovalStatus.CANCELLED,
}


@dataclass
class ApprovalDecision:
    action: DecisionAction
    reason: Optional[str] = None


@dataclass
class GuardedWriteResult:
    """Outcome of a write that may be routed through approval"""
    applied: bool
    record: Any = None
    request: Optional[ApprovalRequest] = None


class ApprovalService:
    """
    Approval state machine: submit, approve, reject, cancel.

    pending -> approved | rejected | cancelled, each terminal. Approval runs
    the registered entity write in the same transaction as the status change.
    """

    def __init__(
        self,
        session: AsyncSession,
        registry: Optional[ApprovalRegistry] = None,
        evaluator: Optional[PermissionEvaluator] = None,
        notifier: Optional[ApprovalNotifier] = None
    ):
        self.session = session
        self.repository = ApprovalRequestRepository(session)
        self.registry = registry or default_registry
        self.evaluator = evaluator or permission_evaluator
        self.notifier = notifier or ApprovalNotifier()

    # region ========== Submit ==========

    async def submit(self, ctx: AuthContext, data: ApprovalRequestCreate) -> ApprovalRequest:
        """Validate the payload for its request type and store a pending request"""
        handler = self.registry.resolve(data.request_type)
        handler.validate(data.entity_data, data.entity_id)

        request = await self.repository.create(ctx, {
            "request_type": handler.request_type,
            "entity_type": handler.entity_type,
            "entity_id": data.entity_id,
            "entity_data": serialize_dates(data.entity_data),
            "title": data.title,
            "description": data.description,
            "reason": data.reason,
            "priority": data.priority,
        })
        log_user_action(ctx.user_id, "submit_approval", handler.entity_type, request.id)
        self.notifier.request_created(request, handler.module.value)
        return request

    async def submit_or_apply(
        self,
        ctx: AuthContext,
        request_type: ApprovalRequestType,
        entity_data: Dict[str, Any],
        title: str,
        entity_id: Optional[str] = None,
        description: Optional[str] = None,
        reason: Optional[str] = None,
        priority: ApprovalPriority = ApprovalPriority.NORMAL
    ) -> GuardedWriteResult:
        """Write directly when the caller may approve this type, otherwise open an approval request"""
        handler = self.registry.resolve(request_type)

        if self.evaluator.evaluate(ctx.role, handler.module, Action.APPROVE):
            payload = handler.validate(entity_data, entity_id)
            try:
                record = await handler.apply(self.session, ctx, entity_id, payload)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise
            log_user_action(ctx.user_id, request_type.value, handler.entity_type, getattr(record, "id", entity_id))
            return GuardedWriteResult(applied=True, record=record)

        action = Action.EDIT if entity_id else Action.CREATE
        self.evaluator.require(ctx.role, handler.module, action)
        request = await self.submit(ctx, ApprovalRequestCreate(
            request_type=request_type,
            entity_id=entity_id,
            entity_data=entity_data,
            title=title,
            description=description,
            reason=reason,
            priority=priority,
        ))
        return GuardedWriteResult(applied=False, request=request)

    # endregion

    # region ========== Decisions ==========

    async def approve(self, ctx: AuthContext, request_id: str) -> ApprovalRequest:
        return await self.decide(ctx, request_id, ApprovalDecision(DecisionAction.APPROVE))

    async def reject(self, ctx: AuthContext, request_id: str, rejection_reason: Optional[str]) -> ApprovalRequest:
        return await self.decide(ctx, request_id, ApprovalDecision(DecisionAction.REJECT, rejection_reason))

    async def cancel(self, ctx: AuthContext, request_id: str) -> ApprovalRequest:
        return await self.decide(ctx, request_id, ApprovalDecision(DecisionAction.CANCEL))

    async def decide(self, ctx: AuthContext, request_id: str, decision: ApprovalDecision) -> ApprovalRequest:
        request = await self.repository.get(ctx, request_id)
        handler = self.registry.resolve(request.request_type)
        target = TARGET_STATUS[decision.action]

        if decision.action == DecisionAction.CANCEL:
            self._check_can_cancel(ctx, request)
        else:
            self._check_can_decide(ctx, handler)

        reason = (decision.reason or "").strip()
        if decision.action == DecisionAction.REJECT and not reason:
            raise ValidationError("Rejection reason is required")

        if request.status != ApprovalStatus.PENDING:
            return self._replay_or_conflict(ctx, request, target)

        async def apply_snapshot(pending: ApprovalRequest):
            payload = handler.validate(pending.entity_data, pending.entity_id)
            return await handler.apply(self.session, ctx, pending.entity_id, payload)

        if decision.action == DecisionAction.CANCEL:
            decided = await self.repository.mark_cancelled(ctx, request_id)
        else:
            entity_write = apply_snapshot if decision.action == DecisionAction.APPROVE else None
            decided = await self.repository.decide(
                ctx, request_id, target, self._stamp(ctx, decision.action, reason), entity_write
            )
        if decided is None:
            # Lost the compare-and-swap to a concurrent decision
            current = await self.repository.get(ctx, request_id)
            return self._replay_or_conflict(ctx, current, target)

        log_user_action(ctx.user_id, f"{decision.action.value}_approval", handler.entity_type, request_id)
        self.notifier.request_decided(decided, handler.module.value)
        return decided

    def _check_can_decide(self, ctx: AuthContext, handler: RequestTypeHandler):
        if not self.evaluator.evaluate(ctx.role, handler.module, Action.APPROVE):
            raise AuthorizationError(
                f"Role {ctx.role.value} cannot approve {handler.request_type.value} requests"
            )

    def _check_can_cancel(self, ctx: AuthContext, request: ApprovalRequest):
        if request.requested_by != ctx.user_id and ctx.role not in CANCEL_OVERRIDE_ROLES:
            raise AuthorizationError("Only the requester can cancel this request")

    def _stamp(self, ctx: AuthContext, action: DecisionAction, reason: str) -> Dict[str, Any]:
        stamp = {"approved_by": ctx.user_id, "approved_by_name": ctx.full_name, "decided_at": utcnow()}
        if action == DecisionAction.REJECT:
            stamp["rejection_reason"] = reason
        return stamp

    def _replay_or_conflict(self, ctx: AuthContext, request: ApprovalRequest, target: ApprovalStatus) -> ApprovalRequest:
        """A repeated identical decision returns the stored outcome; anything else is a conflict"""
        decided_by = request.cancelled_by if request.status == ApprovalStatus.CANCELLED else request.approved_by
        if request.status == target and decided_by == ctx.user_id:
            logger.info(f"Replayed {target.value} on approval request {request.id} by user {ctx.user_id}")
            return request
        raise InvalidStateError(f"Approval request is already {request.status.value}")

    # endregion

    # region ========== Queries ==========

    async def list_requests(
        self,
        ctx: AuthContext,
        filters: Optional[ApprovalRequestFilters] = None,
        page_index: int = 1,
        page_size: int = 50
    ) -> Dict[str, Any]:
        requests = await self.repository.list(ctx, filters)
        skip = (page_index - 1) * page_size
        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": len(requests),
            "data": [ApprovalRequestResponse.model_validate(r) for r in requests[skip:skip + page_size]],
        }

    async def get_request(self, ctx: AuthContext, request_id: str) -> ApprovalRequest:
        return await self.repository.get(ctx, request_id)

    async def count_pending(self, ctx: AuthContext) -> int:
        return await self.repository.count_pending(ctx)

    def request_types(self) -> List[Dict[str, str]]:
        return [
            {
                "request_type": request_type.value,
                "module": self.registry.resolve(request_type).module.value,
                "entity_type": self.registry.resolve(request_type).entity_type,
            }
            for request_type in self.registry.request_types()
        ]

    # endregion
