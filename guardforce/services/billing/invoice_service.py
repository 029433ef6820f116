import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from sqlalchemy.orm import selectinload

from guardforce.core.config import settings
from guardforce.core.exceptions import NotFoundError, ValidationError, InvalidStateError
from guardforce.db.base import utcnow
from guardforce.models.billing.invoice import Invoice, InvoiceItem
from guardforce.models.clients.client import Client
from guardforce.models.shared.enums import InvoiceStatus
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.billing.invoice_schema import (
    InvoiceCreate, InvoiceUpdate, PaymentCreate, InvoiceSummaryResponse
)
from guardforce.utils.code_generator import generate_sequential_code

logger = logging.getLogger(__name__)

INVOICE_NUMBER_PREFIX = "INV-"
ZERO = Decimal("0")
# Statuses that still expect money from the client
OPEN_INVOICE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE)
CLOSED_INVOICE_STATUSES = (InvoiceStatus.PAID, InvoiceStatus.CANCELLED)


class InvoiceService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _generate_invoice_number(self, org_id: str) -> str:
        return await generate_sequential_code(
            self.session, Invoice.invoice_number, INVOICE_NUMBER_PREFIX, 5, Invoice.org_id == org_id
        )

    # region ========== Invoices ==========

    async def create_invoice(self, ctx: AuthContext, data: InvoiceCreate) -> Invoice:
        try:
            client_res = await self.session.execute(
                select(Client.id).where(
                    Client.id == data.client_id,
                    Client.org_id == ctx.org_id,
                    Client.is_deleted == False
                )
            )
            if client_res.scalar_one_or_none() is None:
                raise NotFoundError("Client not found")

            items = [
                InvoiceItem(
                    org_id=ctx.org_id,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    amount=item.quantity * item.unit_price,
                    deployment_id=item.deployment_id,
                    branch_id=item.branch_id,
                    created_by=ctx.user_id,
                )
                for item in data.items
            ]
            subtotal = sum((item.amount for item in items), ZERO)
            total = subtotal + data.tax_amount - data.discount_amount
            if total < 0:
                raise ValidationError("Discount cannot exceed invoice subtotal plus tax")

            invoice = Invoice(
                org_id=ctx.org_id,
                invoice_number=await self._generate_invoice_number(ctx.org_id),
                client_id=data.client_id,
                invoice_date=data.invoice_date,
                due_date=data.due_date or data.invoice_date + timedelta(days=settings.INVOICE_PAYMENT_TERMS_DAYS),
                billing_period_start=data.billing_period_start,
                billing_period_end=data.billing_period_end,
                subtotal=subtotal,
                tax_amount=data.tax_amount,
                discount_amount=data.discount_amount,
                total_amount=total,
                paid_amount=ZERO,
                balance=total,
                status=InvoiceStatus.DRAFT,
                notes=data.notes,
                created_by=ctx.user_id,
                items=items,
            )
            self.session.add(invoice)
            await self.session.commit()

            logger.info(f"Invoice created: {invoice.invoice_number} for client {data.client_id} total {total} by user {ctx.user_id}")
            return invoice

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating invoice: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating invoice")

    async def update_invoice(self, ctx: AuthContext, invoice_id: str, data: InvoiceUpdate) -> Invoice:
        try:
            invoice = await self.get_invoice(ctx, invoice_id)
            if not invoice:
                raise NotFoundError("Invoice not found")
            if invoice.status in CLOSED_INVOICE_STATUSES:
                raise InvalidStateError(f"Cannot modify a {invoice.status.value} invoice")
            if data.status in (InvoiceStatus.PAID, InvoiceStatus.PARTIAL):
                raise ValidationError("Payment statuses are set by recording payments")

            changes = data.model_dump(exclude_unset=True)
            if changes.get("due_date") and changes["due_date"] < invoice.invoice_date:
                raise ValidationError("Due date cannot be before invoice date")

            for field, value in changes.items():
                setattr(invoice, field, value)
            invoice.updated_by = ctx.user_id
            invoice.updated_at = utcnow()
            await self.session.commit()

            logger.info(f"Invoice updated: {invoice.invoice_number} by user {ctx.user_id}")
            return invoice

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating invoice {invoice_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating invoice")

    async def record_payment(self, ctx: AuthContext, invoice_id: str, data: PaymentCreate) -> Invoice:
        try:
            invoice = await self.get_invoice(ctx, invoice_id)
            if not invoice:
                raise NotFoundError("Invoice not found")
            if invoice.status in CLOSED_INVOICE_STATUSES or invoice.status == InvoiceStatus.DRAFT:
                raise InvalidStateError(f"Cannot record payment on a {invoice.status.value} invoice")
            if data.amount > invoice.balance:
                raise ValidationError(f"Payment exceeds outstanding balance {invoice.balance}")

            invoice.paid_amount = (invoice.paid_amount or ZERO) + data.amount
            invoice.balance = invoice.total_amount - invoice.paid_amount
            invoice.status = InvoiceStatus.PAID if invoice.balance <= 0 else InvoiceStatus.PARTIAL
            invoice.updated_by = ctx.user_id
            invoice.updated_at = utcnow()
            await self.session.commit()

            logger.info(f"Payment of {data.amount} recorded on {invoice.invoice_number} ({invoice.status.value}) by user {ctx.user_id}")
            return invoice

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error recording payment on invoice {invoice_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error recording payment")

    async def mark_overdue_invoices(self, as_of: Optional[date] = None, org_id: Optional[str] = None) -> int:
        """Flag open invoices past their due date. Runs without a caller context (scheduled job)."""
        as_of = as_of or date.today()
        conditions = [
            Invoice.status.in_((InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.PARTIAL)),
            Invoice.due_date < as_of,
            Invoice.is_deleted == False,
        ]
        if org_id:
            conditions.append(Invoice.org_id == org_id)

        try:
            result = await self.session.execute(
                update(Invoice)
                .where(*conditions)
                .values(status=InvoiceStatus.OVERDUE, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            logger.info(f"Marked {result.rowcount} invoices overdue as of {as_of}")
            return result.rowcount
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error marking overdue invoices: {e}")
            raise

    # endregion

    # region ========== Queries ==========

    async def get_invoice(self, ctx: AuthContext, invoice_id: str) -> Optional[Invoice]:
        result = await self.session.execute(
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(
                Invoice.id == invoice_id,
                Invoice.org_id == ctx.org_id,
                Invoice.is_deleted == False
            )
        )
        return result.scalar_one_or_none()

    async def get_invoices(
        self,
        ctx: AuthContext,
        page_index: int = 1,
        page_size: int = 50,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None
    ) -> Dict[str, Any]:
        conditions = [Invoice.org_id == ctx.org_id, Invoice.is_deleted == False]
        if status:
            conditions.append(Invoice.status == status)
        if client_id:
            conditions.append(Invoice.client_id == client_id)
        if from_date:
            conditions.append(Invoice.invoice_date >= from_date)
        if to_date:
            conditions.append(Invoice.invoice_date <= to_date)

        total_count = await self.session.scalar(select(func.count(Invoice.id)).where(*conditions))

        skip = (page_index - 1) * page_size
        result = await self.session.execute(
            select(Invoice)
            .where(*conditions)
            .order_by(Invoice.invoice_number.desc())
            .offset(skip)
            .limit(page_size)
        )

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total_count or 0,
            "data": [InvoiceSummaryResponse.model_validate(i) for i in result.scalars().all()],
        }

    async def get_billing_stats(self, ctx: AuthContext, as_of: Optional[date] = None) -> Dict[str, Any]:
        as_of = as_of or date.today()
        base_conditions = [Invoice.org_id == ctx.org_id, Invoice.is_deleted == False]

        rows = await self.session.execute(
            select(
                Invoice.status,
                func.count(Invoice.id),
                func.coalesce(func.sum(Invoice.total_amount), 0),
                func.coalesce(func.sum(Invoice.paid_amount), 0),
                func.coalesce(func.sum(Invoice.balance), 0),
            )
            .where(*base_conditions)
            .group_by(Invoice.status)
        )

        by_status = {s.value: 0 for s in InvoiceStatus}
        total_billed = total_collected = outstanding = ZERO
        for invoice_status, count, billed, collected, balance in rows.all():
            by_status[invoice_status.value] = count
            if invoice_status == InvoiceStatus.CANCELLED:
                continue
            total_billed += Decimal(str(billed))
            total_collected += Decimal(str(collected))
            if invoice_status in OPEN_INVOICE_STATUSES:
                outstanding += Decimal(str(balance))

        overdue_row = await self.session.execute(
            select(func.count(Invoice.id), func.coalesce(func.sum(Invoice.balance), 0)).where(
                *base_conditions,
                Invoice.status.in_(OPEN_INVOICE_STATUSES),
                Invoice.due_date < as_of
            )
        )
        overdue_count, overdue_amount = overdue_row.one()

        return {
            "total_invoices": sum(by_status.values()),
            "total_billed": total_billed,
            "total_collected": total_collected,
            "outstanding_amount": outstanding,
            "overdue_amount": Decimal(str(overdue_amount or 0)),
            "overdue_count": overdue_count or 0,
            "by_status": by_status,
        }

    # endregion
