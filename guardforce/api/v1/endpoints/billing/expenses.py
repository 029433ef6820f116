from datetime import date
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from guardforce.api.dependencies import get_auth_context, get_approval_service, require_permission
from guardforce.api.guarded_write import guarded_write
from guardforce.core.database import get_async_session
from guardforce.models.shared.enums import Action, ApprovalRequestType, ExpenseCategory, Module
from guardforce.schemas.approval.approval_request_schema import GuardedWriteResponse
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.billing.expense_schema import ExpenseCreate, ExpenseResponse
from guardforce.schemas.common.pagination import PaginatedResponse
from guardforce.services.approval.approval_service import ApprovalService
from guardforce.services.billing.expense_service import ExpenseService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[ExpenseResponse])
async def get_expenses(
    category: Optional[ExpenseCategory] = Query(None),
    branch_id: Optional[str] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    page_index: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.BILLING, Action.VIEW))
):
    return await ExpenseService(session).get_expenses(
        ctx, page_index, page_size, category=category, branch_id=branch_id, from_date=from_date, to_date=to_date
    )


@router.post("", response_model=GuardedWriteResponse[ExpenseResponse], status_code=status.HTTP_201_CREATED)
async def submit_expense(
    data: ExpenseCreate,
    response: Response,
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return await guarded_write(
        service, ctx, response, ExpenseResponse,
        request_type=ApprovalRequestType.EXPENSE_APPROVAL,
        entity_data=data.model_dump(mode="json"),
        title=f"{data.category.value.title()} expense: {data.amount}",
        reason=data.description,
        success_message="Expense recorded",
    )
