from fastapi import APIRouter, Body, Depends, HTTPException, Query, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from guardforce.api.dependencies import require_permission
from guardforce.core.database import get_async_session
from guardforce.models.shared.enums import Action, Module, PayrollCycleStatus
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.common.pagination import PaginatedResponse
from guardforce.schemas.payroll.payroll_schema import (
    PayrollCalculate,
    PayrollCycleCreate,
    PayrollCycleResponse,
    PayrollCycleSummaryResponse
)
from guardforce.services.payroll.payroll_service import PayrollService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[PayrollCycleSummaryResponse])
async def get_payroll_cycles(
    status: Optional[PayrollCycleStatus] = Query(None),
    page_index: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.PAYROLL, Action.VIEW))
):
    return await PayrollService(session).get_cycles(ctx, page_index, page_size, status=status)


@router.post("", response_model=PayrollCycleResponse, status_code=status.HTTP_201_CREATED)
async def create_payroll_cycle(
    data: PayrollCycleCreate,
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.PAYROLL, Action.CREATE))
):
    return await PayrollService(session).create_cycle(ctx, data)


@router.get("/{cycle_id}", response_model=PayrollCycleResponse)
async def get_payroll_cycle(
    cycle_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.PAYROLL, Action.VIEW))
):
    cycle = await PayrollService(session).get_cycle(ctx, cycle_id)
    if not cycle:
        raise HTTPException(status_code=404, detail="Payroll cycle not found")
    return cycle


@router.post("/{cycle_id}/calculate", response_model=PayrollCycleResponse)
async def calculate_payroll(
    cycle_id: str = Path(...),
    data: Optional[PayrollCalculate] = Body(None),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.PAYROLL, Action.EDIT))
):
    """Replace the cycle's items with a fresh calculation"""
    return await PayrollService(session).calculate_payroll(ctx, cycle_id, data)


@router.post("/{cycle_id}/approve", response_model=PayrollCycleResponse)
async def approve_payroll(
    cycle_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.PAYROLL, Action.APPROVE))
):
    return await PayrollService(session).approve_payroll(ctx, cycle_id)


@router.post("/{cycle_id}/pay", response_model=PayrollCycleResponse)
async def mark_payroll_paid(
    cycle_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.PAYROLL, Action.APPROVE))
):
    return await PayrollService(session).mark_paid(ctx, cycle_id)
