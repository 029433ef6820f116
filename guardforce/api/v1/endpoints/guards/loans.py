from fastapi import APIRouter, Depends, Query, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from guardforce.api.dependencies import get_auth_context, get_approval_service, require_permission
from guardforce.api.guarded_write import guarded_write
from guardforce.core.database import get_async_session
from guardforce.models.shared.enums import Action, ApprovalRequestType, LoanStatus, Module
from guardforce.schemas.approval.approval_request_schema import GuardedWriteResponse
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.guards.loan_schema import LoanCreate, LoanRepayment, LoanResponse
from guardforce.services.approval.approval_service import ApprovalService
from guardforce.services.guards.loan_service import LoanService

router = APIRouter()


@router.get("", response_model=List[LoanResponse])
async def get_loans(
    guard_id: Optional[str] = Query(None),
    status: Optional[LoanStatus] = Query(None),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.PAYROLL, Action.VIEW))
):
    return await LoanService(session).get_loans(ctx, guard_id=guard_id, status=status)


@router.post("", response_model=GuardedWriteResponse[LoanResponse], status_code=status.HTTP_201_CREATED)
async def request_loan(
    data: LoanCreate,
    response: Response,
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return await guarded_write(
        service, ctx, response, LoanResponse,
        request_type=ApprovalRequestType.LOAN_REQUEST,
        entity_data=data.model_dump(mode="json"),
        title=f"{data.loan_type.value.title()} of {data.amount} for guard {data.guard_id}",
        reason=data.reason,
        success_message="Loan issued",
    )


@router.post("/{loan_id}/repayments", response_model=LoanResponse)
async def record_repayment(
    data: LoanRepayment,
    loan_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.PAYROLL, Action.EDIT))
):
    return await LoanService(session).record_repayment(ctx, loan_id, data)
