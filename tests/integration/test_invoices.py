import pytest
from datetime import date, timedelta
from decimal import Decimal
from fastapi import status
from httpx import AsyncClient

from guardforce.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from guardforce.models.shared.enums import InvoiceStatus
from guardforce.schemas.billing.invoice_schema import InvoiceCreate, InvoiceUpdate, PaymentCreate
from guardforce.schemas.clients.client_schema import ClientCreate
from guardforce.services.billing.invoice_service import InvoiceService
from guardforce.services.clients.client_service import ClientService

INVOICE_DATE = date(2026, 3, 31)


@pytest.fixture
async def client_id(session, ctx_for):
    client = await ClientService(session).create_client(ctx_for("system_admin"), ClientCreate(client_name="Packages Mall"))
    return client.id


def _invoice(client_id: str, **overrides) -> InvoiceCreate:
    values = {
        "client_id": client_id,
        "invoice_date": INVOICE_DATE,
        "tax_amount": Decimal("1600"),
        "discount_amount": Decimal("600"),
        "items": [
            {"description": "Day shift guards, March", "quantity": "2", "unit_price": "45000"},
            {"description": "Night shift guard, March", "unit_price": "50000"},
        ],
    }
    values.update(overrides)
    return InvoiceCreate(**values)


@pytest.mark.asyncio
class TestInvoiceService:
    async def test_totals_from_items(self, session, ctx_for, client_id):
        invoice = await InvoiceService(session).create_invoice(ctx_for("finance_officer"), _invoice(client_id))

        assert invoice.invoice_number == "INV-00001"
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.subtotal == Decimal("140000")
        assert invoice.total_amount == Decimal("141000")
        assert invoice.balance == Decimal("141000")
        assert invoice.due_date == INVOICE_DATE + timedelta(days=30)
        assert len(invoice.items) == 2

    async def test_unknown_client(self, session, ctx_for):
        with pytest.raises(NotFoundError):
            await InvoiceService(session).create_invoice(ctx_for("finance_officer"), _invoice("missing-client"))

    async def test_discount_cannot_exceed_total(self, session, ctx_for, client_id):
        with pytest.raises(ValidationError):
            await InvoiceService(session).create_invoice(
                ctx_for("finance_officer"), _invoice(client_id, discount_amount=Decimal("500000"))
            )

    async def test_payments(self, session, ctx_for, client_id):
        service = InvoiceService(session)
        ctx = ctx_for("finance_officer")
        invoice = await service.create_invoice(ctx, _invoice(client_id))

        with pytest.raises(InvalidStateError):
            await service.record_payment(ctx, invoice.id, PaymentCreate(amount=Decimal("1000")))

        await service.update_invoice(ctx, invoice.id, InvoiceUpdate(status="sent"))

        with pytest.raises(ValidationError):
            await service.record_payment(ctx, invoice.id, PaymentCreate(amount=Decimal("200000")))

        partial = await service.record_payment(ctx, invoice.id, PaymentCreate(amount=Decimal("41000")))
        assert partial.status == InvoiceStatus.PARTIAL
        assert partial.balance == Decimal("100000")

        paid = await service.record_payment(ctx, invoice.id, PaymentCreate(amount=Decimal("100000")))
        assert paid.status == InvoiceStatus.PAID
        assert paid.balance == Decimal("0")

        with pytest.raises(InvalidStateError):
            await service.update_invoice(ctx, invoice.id, InvoiceUpdate(notes="late edit"))

    async def test_payment_status_cannot_be_set_directly(self, session, ctx_for, client_id):
        service = InvoiceService(session)
        ctx = ctx_for("finance_officer")
        invoice = await service.create_invoice(ctx, _invoice(client_id))

        with pytest.raises(ValidationError):
            await service.update_invoice(ctx, invoice.id, InvoiceUpdate(status="paid"))

    async def test_mark_overdue(self, session, ctx_for, client_id):
        service = InvoiceService(session)
        ctx = ctx_for("finance_officer")
        sent = await service.create_invoice(ctx, _invoice(client_id))
        await service.update_invoice(ctx, sent.id, InvoiceUpdate(status="sent"))
        draft = await service.create_invoice(ctx, _invoice(client_id))

        marked = await service.mark_overdue_invoices(as_of=INVOICE_DATE + timedelta(days=45))

        assert marked == 1
        await session.refresh(sent)
        await session.refresh(draft)
        assert sent.status == InvoiceStatus.OVERDUE
        assert draft.status == InvoiceStatus.DRAFT

    async def test_stats(self, session, ctx_for, client_id):
        service = InvoiceService(session)
        ctx = ctx_for("finance_officer")
        invoice = await service.create_invoice(ctx, _invoice(client_id))
        await service.update_invoice(ctx, invoice.id, InvoiceUpdate(status="sent"))
        await service.record_payment(ctx, invoice.id, PaymentCreate(amount=Decimal("41000")))

        stats = await service.get_billing_stats(ctx, as_of=INVOICE_DATE + timedelta(days=45))

        assert stats["total_invoices"] == 1
        assert stats["by_status"]["partial"] == 1
        assert stats["total_billed"] == Decimal("141000")
        assert stats["total_collected"] == Decimal("41000")
        assert stats["outstanding_amount"] == Decimal("100000")
        assert stats["overdue_count"] == 1


@pytest.mark.asyncio
class TestBillingEndpoints:
    async def test_finance_creates_invoice(self, client: AsyncClient, auth_headers, client_id):
        body = {
            "client_id": client_id,
            "invoice_date": "2026-03-31",
            "items": [{"description": "Guard services, March", "quantity": "3", "unit_price": "45000"}],
        }
        response = await client.post("/api/v1/invoices", json=body, headers=auth_headers("finance_officer"))
        assert response.status_code == status.HTTP_201_CREATED
        assert Decimal(response.json()["total_amount"]) == Decimal("135000")

        response = await client.post("/api/v1/invoices", json=body, headers=auth_headers("hr_officer"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_finance_records_expense_directly(self, client: AsyncClient, auth_headers):
        body = {
            "category": "transport",
            "amount": "4500",
            "expense_date": "2026-03-05",
            "description": "Patrol vehicle fuel",
        }
        response = await client.post("/api/v1/expenses", json=body, headers=auth_headers("finance_officer"))
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["applied"] is True
        assert response.json()["record"]["category"] == "transport"

        response = await client.post("/api/v1/expenses", json=body, headers=auth_headers("auditor_readonly"))
        assert response.status_code == status.HTTP_403_FORBIDDEN
