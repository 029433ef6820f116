import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update, delete
from sqlalchemy.orm import selectinload

from guardforce.core.config import settings
from guardforce.core.exceptions import NotFoundError, ValidationError, InvalidStateError
from guardforce.core.logging_config import log_user_action
from guardforce.db.base import utcnow
from guardforce.models.guards.guard import Guard
from guardforce.models.payroll.payroll_cycle import PayrollCycle, PayrollItem
from guardforce.models.shared.enums import (
    AttendanceStatus, GuardStatus, LoanType, PayrollCycleStatus, PayrollPaymentStatus
)
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.payroll.payroll_schema import (
    PayrollCalculate, PayrollCycleCreate, PayrollCycleSummaryResponse
)
from guardforce.services.attendance.attendance_service import AttendanceService
from guardforce.services.guards.loan_service import LoanService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0")
PAYABLE_GUARD_STATUSES = (GuardStatus.ACTIVE, GuardStatus.DEPLOYED)
WORKED_STATUSES = (AttendanceStatus.PRESENT, AttendanceStatus.LATE, AttendanceStatus.HALF_DAY)
RECALCULABLE_STATUSES = (PayrollCycleStatus.DRAFT, PayrollCycleStatus.CALCULATED)


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def _allowance_total(allowances: Optional[Dict[str, Any]]) -> Decimal:
    total = ZERO
    for value in (allowances or {}).values():
        try:
            total += Decimal(str(value))
        except ArithmeticError:
            logger.warning(f"Ignoring non-numeric allowance value {value!r}")
    return _money(total)


class PayrollService:
    """
    Payroll cycles: draft -> calculated -> approved -> paid.

    Calculation can be re-run until the cycle is approved; each run replaces
    the cycle's items. Loan installments are reserved on calculation and taken
    off the loans when the cycle is approved.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.attendance_service = AttendanceService(session)
        self.loan_service = LoanService(session)

    # region ========== Cycles ==========

    async def create_cycle(self, ctx: AuthContext, data: PayrollCycleCreate) -> PayrollCycle:
        try:
            overlap = await self.session.execute(
                select(PayrollCycle.cycle_name).where(
                    PayrollCycle.org_id == ctx.org_id,
                    PayrollCycle.start_date <= data.end_date,
                    PayrollCycle.end_date >= data.start_date,
                    PayrollCycle.is_deleted == False
                ).limit(1)
            )
            existing = overlap.scalar_one_or_none()
            if existing:
                raise ValidationError(f"Period overlaps payroll cycle '{existing}'")

            cycle = PayrollCycle(
                org_id=ctx.org_id,
                cycle_name=data.cycle_name,
                start_date=data.start_date,
                end_date=data.end_date,
                payment_date=data.payment_date,
                status=PayrollCycleStatus.DRAFT,
                total_employees=0,
                total_gross=ZERO,
                total_deductions=ZERO,
                total_net=ZERO,
                created_by=ctx.user_id,
                items=[],
            )
            self.session.add(cycle)
            await self.session.commit()

            logger.info(f"Payroll cycle created: {cycle.cycle_name} ({data.start_date} to {data.end_date}) by user {ctx.user_id}")
            return cycle

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating payroll cycle: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating payroll cycle")

    async def _lock_cycle(self, ctx: AuthContext, cycle_id: str) -> PayrollCycle:
        result = await self.session.execute(
            select(PayrollCycle).where(
                PayrollCycle.id == cycle_id,
                PayrollCycle.org_id == ctx.org_id,
                PayrollCycle.is_deleted == False
            ).with_for_update()
        )
        cycle = result.scalar_one_or_none()
        if not cycle:
            raise NotFoundError("Payroll cycle not found")
        return cycle

    async def _payable_guards(self, ctx: AuthContext, guard_ids: Optional[List[str]]) -> List[Guard]:
        conditions = [
            Guard.org_id == ctx.org_id,
            Guard.status.in_(PAYABLE_GUARD_STATUSES),
            Guard.is_deleted == False,
        ]
        if guard_ids:
            conditions.append(Guard.id.in_(guard_ids))

        result = await self.session.execute(select(Guard).where(*conditions).order_by(Guard.guard_code))
        guards = list(result.scalars().all())

        if guard_ids:
            missing = set(guard_ids) - {g.id for g in guards}
            if missing:
                raise ValidationError(f"Guards not found or not payable: {', '.join(sorted(missing))}")
        return guards

    def _build_item(
        self,
        ctx: AuthContext,
        cycle: PayrollCycle,
        guard: Guard,
        attendance: Optional[Dict[str, Any]],
        loans: list
    ) -> PayrollItem:
        by_status = attendance["by_status"] if attendance else {}
        overtime_hours = attendance["overtime_hours"] if attendance else ZERO

        basic = _money(guard.basic_salary or 0)
        allowances = _allowance_total(guard.allowances)
        hourly_rate = basic / Decimal(settings.PAYROLL_MONTHLY_HOURS)
        overtime_amount = _money(overtime_hours * hourly_rate)
        gross = basic + allowances + overtime_amount

        # installments never take net pay below zero
        available = gross
        reserved: Dict[str, str] = {}
        loan_deduction = ZERO
        advance_deduction = ZERO
        for loan in loans:
            installment = loan.installment_amount or loan.remaining_amount
            amount = min(installment, loan.remaining_amount, available)
            if amount <= 0:
                continue
            reserved[loan.id] = str(amount)
            available -= amount
            if loan.loan_type == LoanType.ADVANCE:
                advance_deduction += amount
            else:
                loan_deduction += amount

        total_deductions = loan_deduction + advance_deduction
        return PayrollItem(
            org_id=ctx.org_id,
            cycle_id=cycle.id,
            guard_id=guard.id,
            basic_salary=basic,
            allowances=allowances,
            overtime_amount=overtime_amount,
            gross_salary=gross,
            deductions=reserved,
            loan_deduction=loan_deduction,
            advance_deduction=advance_deduction,
            total_deductions=total_deductions,
            net_salary=gross - total_deductions,
            days_worked=sum(by_status.get(s.value, 0) for s in WORKED_STATUSES),
            days_absent=by_status.get(AttendanceStatus.ABSENT.value, 0),
            overtime_hours=overtime_hours,
            payment_method="bank_transfer",
            payment_status=PayrollPaymentStatus.PENDING,
            created_by=ctx.user_id,
        )

    async def calculate_payroll(
        self,
        ctx: AuthContext,
        cycle_id: str,
        data: Optional[PayrollCalculate] = None
    ) -> PayrollCycle:
        """Compute one item per payable guard from attendance, salary and outstanding loans"""
        try:
            cycle = await self._lock_cycle(ctx, cycle_id)
            if cycle.status not in RECALCULABLE_STATUSES:
                raise InvalidStateError(f"Cannot recalculate a {cycle.status.value} payroll cycle")

            guards = await self._payable_guards(ctx, data.guard_ids if data else None)
            guard_ids = [g.id for g in guards]
            attendance = await self.attendance_service.get_guard_period_summary(
                ctx, guard_ids, cycle.start_date, cycle.end_date
            )
            loans = await self.loan_service.get_outstanding_loans(ctx, guard_ids)

            await self.session.execute(
                delete(PayrollItem)
                .where(PayrollItem.cycle_id == cycle.id)
                .execution_options(synchronize_session=False)
            )
            items = [
                self._build_item(ctx, cycle, guard, attendance.get(guard.id), loans.get(guard.id, []))
                for guard in guards
            ]
            self.session.add_all(items)

            cycle.total_employees = len(items)
            cycle.total_gross = sum((i.gross_salary for i in items), ZERO)
            cycle.total_deductions = sum((i.total_deductions for i in items), ZERO)
            cycle.total_net = sum((i.net_salary for i in items), ZERO)
            cycle.status = PayrollCycleStatus.CALCULATED
            cycle.calculated_at = utcnow()
            cycle.calculated_by = ctx.user_id
            cycle.updated_by = ctx.user_id
            await self.session.commit()

            logger.info(
                f"Payroll calculated: {cycle.cycle_name} | Guards: {cycle.total_employees} | "
                f"Gross: {cycle.total_gross} | Deductions: {cycle.total_deductions} | Net: {cycle.total_net}"
            )
            return await self.get_cycle(ctx, cycle_id)

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error calculating payroll cycle {cycle_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error calculating payroll")

    async def _advance(
        self,
        ctx: AuthContext,
        cycle_id: str,
        expected: PayrollCycleStatus,
        values: Dict[str, Any]
    ):
        """Move the cycle out of `expected`; a concurrent move makes this a conflict"""
        result = await self.session.execute(
            update(PayrollCycle)
            .where(
                PayrollCycle.id == cycle_id,
                PayrollCycle.org_id == ctx.org_id,
                PayrollCycle.status == expected,
                PayrollCycle.is_deleted == False
            )
            .values(updated_by=ctx.user_id, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await self.get_cycle(ctx, cycle_id)
            if not current:
                raise NotFoundError("Payroll cycle not found")
            raise InvalidStateError(f"Payroll cycle is {current.status.value}, expected {expected.value}")

    async def approve_payroll(self, ctx: AuthContext, cycle_id: str) -> PayrollCycle:
        """Lock the calculated figures and take the reserved installments off the guards' loans"""
        try:
            await self._advance(ctx, cycle_id, PayrollCycleStatus.CALCULATED, {
                "status": PayrollCycleStatus.APPROVED,
                "approved_at": utcnow(),
                "approved_by": ctx.user_id,
            })

            rows = await self.session.execute(
                select(PayrollItem.deductions).where(PayrollItem.cycle_id == cycle_id)
            )
            installments: Dict[str, Decimal] = {}
            for reserved in rows.scalars().all():
                for loan_id, amount in (reserved or {}).items():
                    installments[loan_id] = installments.get(loan_id, ZERO) + Decimal(str(amount))
            repaid = await self.loan_service.apply_installments(ctx, installments)
            await self.session.commit()

            log_user_action(ctx.user_id, "approve_payroll", "payroll_cycle", cycle_id)
            logger.info(f"Payroll cycle {cycle_id} approved by user {ctx.user_id}; {repaid} loan installments applied")
            return await self.get_cycle(ctx, cycle_id)

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error approving payroll cycle {cycle_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error approving payroll")

    async def mark_paid(self, ctx: AuthContext, cycle_id: str) -> PayrollCycle:
        try:
            paid_at = utcnow()
            await self._advance(ctx, cycle_id, PayrollCycleStatus.APPROVED, {
                "status": PayrollCycleStatus.PAID,
                "paid_at": paid_at,
            })
            await self.session.execute(
                update(PayrollItem)
                .where(PayrollItem.cycle_id == cycle_id)
                .values(payment_status=PayrollPaymentStatus.PAID, paid_at=paid_at)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()

            log_user_action(ctx.user_id, "pay_payroll", "payroll_cycle", cycle_id)
            return await self.get_cycle(ctx, cycle_id)

        except HTTPException:
            await self.session.rollback()
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error marking payroll cycle {cycle_id} paid: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error marking payroll paid")

    # endregion

    # region ========== Queries ==========

    async def get_cycle(self, ctx: AuthContext, cycle_id: str) -> Optional[PayrollCycle]:
        result = await self.session.execute(
            select(PayrollCycle)
            .options(selectinload(PayrollCycle.items))
            .where(
                PayrollCycle.id == cycle_id,
                PayrollCycle.org_id == ctx.org_id,
                PayrollCycle.is_deleted == False
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_cycles(
        self,
        ctx: AuthContext,
        page_index: int = 1,
        page_size: int = 20,
        status: Optional[PayrollCycleStatus] = None
    ) -> Dict[str, Any]:
        conditions = [PayrollCycle.org_id == ctx.org_id, PayrollCycle.is_deleted == False]
        if status:
            conditions.append(PayrollCycle.status == status)

        total_count = await self.session.scalar(select(func.count(PayrollCycle.id)).where(*conditions))

        skip = (page_index - 1) * page_size
        result = await self.session.execute(
            select(PayrollCycle)
            .where(*conditions)
            .order_by(PayrollCycle.start_date.desc())
            .offset(skip)
            .limit(page_size)
        )

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total_count or 0,
            "data": [PayrollCycleSummaryResponse.model_validate(c) for c in result.scalars().all()],
        }

    # endregion
