import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Optional

from guardforce.api.dependencies import get_auth_context, get_approval_service, require_permission
from guardforce.api.guarded_write import guarded_write
from guardforce.core.database import get_async_session
from guardforce.models.shared.enums import Action, ApprovalRequestType, GuardStatus, Module
from guardforce.schemas.approval.approval_request_schema import GuardedWriteResponse
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.common.pagination import PaginatedResponse
from guardforce.schemas.guards.guard_schema import (
    GuardCreate, GuardUpdate, GuardStatusUpdate, GuardTermination, SalaryAdjustment, GuardResponse
)
from guardforce.services.approval.approval_service import ApprovalService
from guardforce.services.guards.guard_service import GuardService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=PaginatedResponse[GuardResponse])
async def get_guards(
    status: Optional[GuardStatus] = Query(None),
    search: Optional[str] = Query(None, description="Code, name, CNIC or phone"),
    is_active: Optional[bool] = Query(None),
    page_index: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.GUARDS, Action.VIEW))
):
    service = GuardService(session)
    return await service.get_guards(ctx, page_index, page_size, status=status, search=search, is_active=is_active)


@router.get("/counts", response_model=Dict[str, int])
async def get_guard_counts(
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.GUARDS, Action.VIEW))
):
    return await GuardService(session).get_guard_counts(ctx)


@router.get("/{guard_id}", response_model=GuardResponse)
async def get_guard(
    guard_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.GUARDS, Action.VIEW))
):
    guard = await GuardService(session).get_guard(ctx, guard_id)
    if not guard:
        raise HTTPException(status_code=404, detail="Guard not found")
    return guard


@router.post("", response_model=GuardedWriteResponse[GuardResponse], status_code=status.HTTP_201_CREATED)
async def enroll_guard(
    data: GuardCreate,
    response: Response,
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Enroll a guard, or submit the enrollment for approval"""
    return await guarded_write(
        service, ctx, response, GuardResponse,
        request_type=ApprovalRequestType.GUARD_ENROLLMENT,
        entity_data=data.model_dump(mode="json"),
        title=f"New Guard: {data.first_name} {data.last_name}",
        success_message="Guard enrolled",
    )


@router.put("/{guard_id}", response_model=GuardedWriteResponse[GuardResponse])
async def update_guard(
    data: GuardUpdate,
    response: Response,
    guard_id: str = Path(...),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return await guarded_write(
        service, ctx, response, GuardResponse,
        request_type=ApprovalRequestType.GUARD_UPDATE,
        entity_id=guard_id,
        entity_data=data.model_dump(mode="json", exclude_unset=True),
        title=f"Update Guard {guard_id}",
        success_message="Guard updated",
    )


@router.patch("/{guard_id}/status", response_model=GuardResponse)
async def update_guard_status(
    data: GuardStatusUpdate,
    guard_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.GUARDS, Action.EDIT))
):
    """Move a guard through the hiring / suspension lifecycle"""
    return await GuardService(session).update_guard_status(ctx, guard_id, data.status, data.reason)


@router.post("/{guard_id}/terminate", response_model=GuardedWriteResponse[GuardResponse])
async def terminate_guard(
    data: GuardTermination,
    response: Response,
    guard_id: str = Path(...),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return await guarded_write(
        service, ctx, response, GuardResponse,
        request_type=ApprovalRequestType.GUARD_TERMINATION,
        entity_id=guard_id,
        entity_data=data.model_dump(mode="json"),
        title=f"Terminate Guard {guard_id}",
        reason=data.termination_reason,
        success_message="Guard terminated",
    )


@router.post("/{guard_id}/salary", response_model=GuardedWriteResponse[GuardResponse])
async def adjust_salary(
    data: SalaryAdjustment,
    response: Response,
    guard_id: str = Path(...),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return await guarded_write(
        service, ctx, response, GuardResponse,
        request_type=ApprovalRequestType.SALARY_ADJUSTMENT,
        entity_id=guard_id,
        entity_data=data.model_dump(mode="json", exclude_unset=True),
        title=f"Salary Adjustment: Guard {guard_id}",
        success_message="Salary adjusted",
    )


@router.delete("/{guard_id}")
async def delete_guard(
    guard_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.GUARDS, Action.DELETE))
):
    await GuardService(session).delete_guard(ctx, guard_id)
    return {"message": "Guard deleted successfully"}
