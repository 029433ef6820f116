import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from guardforce.api.dependencies import get_auth_context, get_approval_service, require_permission
from guardforce.api.guarded_write import guarded_write
from guardforce.core.database import get_async_session
from guardforce.models.shared.enums import Action, ApprovalRequestType, AttendanceStatus, Module
from guardforce.schemas.approval.approval_request_schema import GuardedWriteResponse
from guardforce.schemas.attendance.attendance_schema import (
    AttendanceCreate,
    AttendanceResponse,
    AttendanceStatsResponse,
    AttendanceUpdate,
    AttendanceVerify,
    BranchAttendanceSummary,
    BulkAttendanceCreate,
    BulkAttendanceResult,
    LeaveRequestCreate
)
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.common.pagination import PaginatedResponse
from guardforce.services.approval.approval_service import ApprovalService
from guardforce.services.attendance.attendance_service import AttendanceService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=PaginatedResponse[AttendanceResponse])
async def get_attendance_records(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    guard_id: Optional[str] = Query(None),
    branch_id: Optional[str] = Query(None),
    status: Optional[AttendanceStatus] = Query(None),
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.ATTENDANCE, Action.VIEW))
):
    return await AttendanceService(session).get_attendance_records(
        ctx, page_index, page_size,
        from_date=from_date, to_date=to_date, guard_id=guard_id, branch_id=branch_id, status=status
    )


@router.get("/stats", response_model=AttendanceStatsResponse)
async def get_attendance_stats(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    guard_id: Optional[str] = Query(None),
    branch_id: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.ATTENDANCE, Action.VIEW))
):
    return await AttendanceService(session).get_attendance_stats(
        ctx, from_date=from_date, to_date=to_date, guard_id=guard_id, branch_id=branch_id
    )


@router.get("/branches", response_model=List[BranchAttendanceSummary])
async def get_branch_summary(
    attendance_date: date = Query(..., description="Day to summarise"),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.ATTENDANCE, Action.VIEW))
):
    return await AttendanceService(session).get_branch_summary(ctx, attendance_date)


@router.get("/{attendance_id}", response_model=AttendanceResponse)
async def get_attendance(
    attendance_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.ATTENDANCE, Action.VIEW))
):
    record = await AttendanceService(session).get_attendance(ctx, attendance_id)
    if not record:
        raise HTTPException(status_code=404, detail="Attendance record not found")
    return record


@router.post("", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
async def create_attendance(
    data: AttendanceCreate,
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.ATTENDANCE, Action.CREATE))
):
    return await AttendanceService(session).create_attendance(ctx, data)


@router.post("/bulk", response_model=BulkAttendanceResult)
async def mark_bulk_attendance(
    data: BulkAttendanceCreate,
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.ATTENDANCE, Action.CREATE))
):
    """Mark a whole roster for one date; existing rows for the date are updated"""
    return await AttendanceService(session).mark_bulk_attendance(ctx, data)


@router.put("/{attendance_id}", response_model=AttendanceResponse)
async def update_attendance(
    data: AttendanceUpdate,
    attendance_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.ATTENDANCE, Action.EDIT))
):
    return await AttendanceService(session).update_attendance(ctx, attendance_id, data)


@router.post("/{attendance_id}/verify", response_model=AttendanceResponse)
async def verify_attendance(
    data: AttendanceVerify,
    attendance_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.ATTENDANCE, Action.APPROVE))
):
    return await AttendanceService(session).verify_attendance(ctx, attendance_id, data)


@router.post("/leave", response_model=GuardedWriteResponse[List[AttendanceResponse]], status_code=status.HTTP_201_CREATED)
async def request_leave(
    data: LeaveRequestCreate,
    response: Response,
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Record leave days for a guard, or submit the leave for approval"""
    return await guarded_write(
        service, ctx, response, AttendanceResponse,
        request_type=ApprovalRequestType.LEAVE_REQUEST,
        entity_data=data.model_dump(mode="json"),
        title=f"Leave for guard {data.guard_id}: {data.from_date} to {data.to_date}",
        reason=data.remarks,
        success_message="Leave recorded",
    )
