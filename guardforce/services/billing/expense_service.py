import logging
from datetime import date
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from guardforce.core.exceptions import NotFoundError
from guardforce.models.billing.expense import Expense
from guardforce.models.clients.client_branch import ClientBranch
from guardforce.models.shared.enums import ExpenseCategory
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.billing.expense_schema import ExpenseCreate, ExpenseResponse

logger = logging.getLogger(__name__)


class ExpenseService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_expense(self, ctx: AuthContext, data: ExpenseCreate, commit: bool = True) -> Expense:
        try:
            if data.branch_id:
                branch_res = await self.session.execute(
                    select(ClientBranch.id).where(
                        ClientBranch.id == data.branch_id,
                        ClientBranch.org_id == ctx.org_id,
                        ClientBranch.is_deleted == False
                    )
                )
                if branch_res.scalar_one_or_none() is None:
                    raise NotFoundError("Branch not found")

            expense = Expense(org_id=ctx.org_id, created_by=ctx.user_id, **data.model_dump())
            self.session.add(expense)
            if commit:
                await self.session.commit()
            else:
                await self.session.flush()

            logger.info(f"Expense recorded: {data.category.value} {data.amount} by user {ctx.user_id}")
            return expense

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating expense: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating expense")

    async def get_expenses(
        self,
        ctx: AuthContext,
        page_index: int = 1,
        page_size: int = 50,
        category: Optional[ExpenseCategory] = None,
        branch_id: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None
    ) -> Dict[str, Any]:
        conditions = [Expense.org_id == ctx.org_id, Expense.is_deleted == False]
        if category:
            conditions.append(Expense.category == category)
        if branch_id:
            conditions.append(Expense.branch_id == branch_id)
        if from_date:
            conditions.append(Expense.expense_date >= from_date)
        if to_date:
            conditions.append(Expense.expense_date <= to_date)

        total_count = await self.session.scalar(select(func.count(Expense.id)).where(*conditions))

        skip = (page_index - 1) * page_size
        result = await self.session.execute(
            select(Expense)
            .where(*conditions)
            .order_by(Expense.expense_date.desc(), Expense.created_at.desc())
            .offset(skip)
            .limit(page_size)
        )

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total_count or 0,
            "data": [ExpenseResponse.model_validate(e) for e in result.scalars().all()],
        }
