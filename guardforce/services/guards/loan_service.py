import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from guardforce.core.exceptions import NotFoundError, ValidationError, InvalidStateError
from guardforce.db.base import utcnow
from guardforce.models.guards.guard import Guard
from guardforce.models.guards.guard_loan import GuardLoan
from guardforce.models.shared.enums import GuardStatus, LoanStatus
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.guards.loan_schema import LoanCreate, LoanRepayment

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
OUTSTANDING_LOAN_STATUSES = (LoanStatus.APPROVED, LoanStatus.ACTIVE)


class LoanService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_loan(self, ctx: AuthContext, data: LoanCreate, commit: bool = True) -> GuardLoan:
        try:
            guard_res = await self.session.execute(
                select(Guard).where(
                    Guard.id == data.guard_id,
                    Guard.org_id == ctx.org_id,
                    Guard.is_deleted == False
                )
            )
            guard = guard_res.scalar_one_or_none()
            if not guard:
                raise NotFoundError("Guard not found")
            if guard.status == GuardStatus.TERMINATED:
                raise ValidationError("Cannot issue a loan to a terminated guard")

            installment_amount = (data.amount / data.installment_count).quantize(CENTS, rounding=ROUND_HALF_UP)
            loan = GuardLoan(
                org_id=ctx.org_id,
                guard_id=data.guard_id,
                loan_type=data.loan_type,
                amount=data.amount,
                remaining_amount=data.amount,
                installment_count=data.installment_count,
                installment_amount=installment_amount,
                status=LoanStatus.APPROVED,
                reason=data.reason,
                created_by=ctx.user_id,
            )
            self.session.add(loan)
            if commit:
                await self.session.commit()
            else:
                await self.session.flush()

            logger.info(f"Loan of {data.amount} issued to guard {guard.guard_code} by user {ctx.user_id}")
            return loan

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating loan: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating loan")

    def _repay(self, ctx: AuthContext, loan: GuardLoan, amount: Decimal):
        loan.remaining_amount = loan.remaining_amount - amount
        loan.status = LoanStatus.COMPLETED if loan.remaining_amount <= 0 else LoanStatus.ACTIVE
        loan.updated_by = ctx.user_id
        loan.updated_at = utcnow()

    async def record_repayment(self, ctx: AuthContext, loan_id: str, data: LoanRepayment) -> GuardLoan:
        try:
            loan = await self.get_loan(ctx, loan_id)
            if not loan:
                raise NotFoundError("Loan not found")
            if loan.status not in OUTSTANDING_LOAN_STATUSES:
                raise InvalidStateError(f"Cannot record repayment on a {loan.status.value} loan")
            if data.amount > loan.remaining_amount:
                raise ValidationError(f"Repayment exceeds remaining amount {loan.remaining_amount}")

            self._repay(ctx, loan, data.amount)
            await self.session.commit()

            logger.info(f"Repayment of {data.amount} recorded on loan {loan.id} by user {ctx.user_id}")
            return loan

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error recording repayment on loan {loan_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error recording repayment")

    async def get_loan(self, ctx: AuthContext, loan_id: str) -> Optional[GuardLoan]:
        result = await self.session.execute(
            select(GuardLoan).where(
                GuardLoan.id == loan_id,
                GuardLoan.org_id == ctx.org_id,
                GuardLoan.is_deleted == False
            )
        )
        return result.scalar_one_or_none()

    async def get_loans(
        self,
        ctx: AuthContext,
        guard_id: Optional[str] = None,
        status: Optional[LoanStatus] = None
    ) -> List[GuardLoan]:
        conditions = [GuardLoan.org_id == ctx.org_id, GuardLoan.is_deleted == False]
        if guard_id:
            conditions.append(GuardLoan.guard_id == guard_id)
        if status:
            conditions.append(GuardLoan.status == status)

        result = await self.session.execute(
            select(GuardLoan).where(*conditions).order_by(GuardLoan.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_outstanding_loans(self, ctx: AuthContext, guard_ids: List[str]) -> Dict[str, List[GuardLoan]]:
        """Loans still being repaid, grouped by guard, oldest first"""
        if not guard_ids:
            return {}
        result = await self.session.execute(
            select(GuardLoan).where(
                GuardLoan.org_id == ctx.org_id,
                GuardLoan.guard_id.in_(guard_ids),
                GuardLoan.status.in_(OUTSTANDING_LOAN_STATUSES),
                GuardLoan.remaining_amount > 0,
                GuardLoan.is_deleted == False
            ).order_by(GuardLoan.created_at)
        )
        by_guard: Dict[str, List[GuardLoan]] = {}
        for loan in result.scalars().all():
            by_guard.setdefault(loan.guard_id, []).append(loan)
        return by_guard

    async def apply_installments(self, ctx: AuthContext, installments: Dict[str, Decimal]) -> int:
        """Take payroll installments off their loans. Does not commit; the caller owns the transaction."""
        if not installments:
            return 0
        result = await self.session.execute(
            select(GuardLoan).where(
                GuardLoan.org_id == ctx.org_id,
                GuardLoan.id.in_(list(installments)),
                GuardLoan.is_deleted == False
            ).with_for_update()
        )
        applied = 0
        for loan in result.scalars().all():
            if loan.status not in OUTSTANDING_LOAN_STATUSES:
                continue
            amount = min(Decimal(str(installments[loan.id])), loan.remaining_amount)
            if amount > 0:
                self._repay(ctx, loan, amount)
                applied += 1
        await self.session.flush()
        return applied
