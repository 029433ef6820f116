from typing import Any, Dict, Optional, Type
from fastapi import Response, status
from pydantic import BaseModel

from guardforce.models.shared.enums import ApprovalPriority, ApprovalRequestType
from guardforce.schemas.approval.approval_request_schema import ApprovalRequestResponse, GuardedWriteResponse
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.services.approval.approval_service import ApprovalService


def _dump_record(record_schema: Type[BaseModel], record: Any):
    if isinstance(record, (list, tuple)):
        return [record_schema.model_validate(item) for item in record]
    return record_schema.model_validate(record)


async def guarded_write(
    service: ApprovalService,
    ctx: AuthContext,
    response: Response,
    record_schema: Type[BaseModel],
    request_type: ApprovalRequestType,
    entity_data: Dict[str, Any],
    title: str,
    entity_id: Optional[str] = None,
    reason: Optional[str] = None,
    priority: ApprovalPriority = ApprovalPriority.NORMAL,
    success_message: str = "Saved",
) -> GuardedWriteResponse:
    """201 with the record when written directly, 202 with the approval request otherwise"""
    outcome = await service.submit_or_apply(
        ctx,
        request_type,
        entity_data,
        title=title,
        entity_id=entity_id,
        reason=reason,
        priority=priority,
    )
    if outcome.applied:
        response.status_code = status.HTTP_201_CREATED if entity_id is None else status.HTTP_200_OK
        return GuardedWriteResponse(
            applied=True,
            message=success_message,
            record=_dump_record(record_schema, outcome.record),
        )

    response.status_code = status.HTTP_202_ACCEPTED
    return GuardedWriteResponse(
        applied=False,
        message="Submitted for approval",
        approval_request=ApprovalRequestResponse.model_validate(outcome.request),
    )
