import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from guardforce.api.dependencies import require_permission
from guardforce.core.database import get_async_session
from guardforce.models.shared.enums import Action, InvoiceStatus, Module
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.billing.invoice_schema import (
    BillingStatsResponse,
    InvoiceCreate,
    InvoiceResponse,
    InvoiceSummaryResponse,
    InvoiceUpdate,
    PaymentCreate
)
from guardforce.schemas.common.pagination import PaginatedResponse
from guardforce.services.billing.invoice_service import InvoiceService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=PaginatedResponse[InvoiceSummaryResponse])
async def get_invoices(
    status: Optional[InvoiceStatus] = Query(None),
    client_id: Optional[str] = Query(None),
    from_date: Optional[date] = Query(None, description="Invoice date from"),
    to_date: Optional[date] = Query(None, description="Invoice date to"),
    page_index: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.BILLING, Action.VIEW))
):
    return await InvoiceService(session).get_invoices(
        ctx, page_index, page_size, status=status, client_id=client_id, from_date=from_date, to_date=to_date
    )


@router.get("/stats", response_model=BillingStatsResponse)
async def get_billing_stats(
    as_of: Optional[date] = Query(None),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.BILLING, Action.VIEW))
):
    return await InvoiceService(session).get_billing_stats(ctx, as_of)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.BILLING, Action.VIEW))
):
    invoice = await InvoiceService(session).get_invoice(ctx, invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    data: InvoiceCreate,
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.BILLING, Action.CREATE))
):
    """Create a draft invoice; totals are computed from the line items"""
    return await InvoiceService(session).create_invoice(ctx, data)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    data: InvoiceUpdate,
    invoice_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.BILLING, Action.EDIT))
):
    return await InvoiceService(session).update_invoice(ctx, invoice_id, data)


@router.post("/{invoice_id}/payments", response_model=InvoiceResponse)
async def record_payment(
    data: PaymentCreate,
    invoice_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.BILLING, Action.EDIT))
):
    return await InvoiceService(session).record_payment(ctx, invoice_id, data)
