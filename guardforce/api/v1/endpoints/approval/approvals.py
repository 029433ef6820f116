import logging
from fastapi import APIRouter, Depends, Query, Path, status
from typing import Dict, List, Optional

from guardforce.api.dependencies import get_auth_context, get_approval_service
from guardforce.models.shared.enums import Action, ApprovalStatus, ApprovalRequestType
from guardforce.schemas.approval.approval_request_schema import (
    ApprovalRequestCreate,
    ApprovalRequestFilters,
    ApprovalRequestResponse,
    ApprovalRejectRequest,
    PendingCountResponse
)
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.common.pagination import PaginatedResponse
from guardforce.services.approval.approval_service import ApprovalService

router = APIRouter()
logger = logging.getLogger(__name__)

# region ========== Approval Requests ==========

@router.get("/requests", response_model=PaginatedResponse[ApprovalRequestResponse])
async def get_approval_requests(
    status: Optional[ApprovalStatus] = Query(None, description="Filter by status"),
    request_type: Optional[ApprovalRequestType] = Query(None, description="Filter by request type"),
    search: Optional[str] = Query(None, description="Search id, title, requester, description"),
    page_index: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Approval requests of the caller's organisation, newest first"""
    filters = ApprovalRequestFilters(status=status, request_type=request_type, search=search)
    return await service.list_requests(ctx, filters, page_index=page_index, page_size=page_size)


@router.get("/requests/pending-count", response_model=PendingCountResponse)
async def get_pending_count(
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return PendingCountResponse(pending=await service.count_pending(ctx))


@router.get("/request-types", response_model=List[Dict[str, str]])
async def get_request_types(
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Approvable request types and the module that gates each"""
    return service.request_types()


@router.get("/requests/{request_id}", response_model=ApprovalRequestResponse)
async def get_approval_request(
    request_id: str = Path(...),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return await service.get_request(ctx, request_id)


@router.post("/requests", response_model=ApprovalRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_approval_request(
    data: ApprovalRequestCreate,
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Submit a change for approval. Requires create (or edit, for existing records) on the module."""
    handler = service.registry.resolve(data.request_type)
    service.evaluator.require(ctx.role, handler.module, Action.EDIT if data.entity_id else Action.CREATE)
    return await service.submit(ctx, data)

# endregion

# region ========== Decisions ==========

@router.post("/requests/{request_id}/approve", response_model=ApprovalRequestResponse)
async def approve_request(
    request_id: str = Path(...),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Approve and apply the requested change"""
    return await service.approve(ctx, request_id)


@router.post("/requests/{request_id}/reject", response_model=ApprovalRequestResponse)
async def reject_request(
    data: ApprovalRejectRequest,
    request_id: str = Path(...),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return await service.reject(ctx, request_id, data.rejection_reason)


@router.post("/requests/{request_id}/cancel", response_model=ApprovalRequestResponse)
async def cancel_request(
    request_id: str = Path(...),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Withdraw a pending request (requester or system admin)"""
    return await service.cancel(ctx, request_id)

# endregion
