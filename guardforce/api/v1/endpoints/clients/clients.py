import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List, Optional

from guardforce.api.dependencies import get_auth_context, get_approval_service, require_permission
from guardforce.api.guarded_write import guarded_write
from guardforce.core.database import get_async_session
from guardforce.models.shared.enums import Action, ApprovalRequestType, ClientStatus, Module
from guardforce.schemas.approval.approval_request_schema import GuardedWriteResponse
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.clients.client_schema import (
    BranchData,
    BranchResponse,
    BranchUpdate,
    ClientCreate,
    ClientDetailResponse,
    ClientResponse,
    ClientUpdate
)
from guardforce.schemas.common.pagination import PaginatedResponse
from guardforce.services.approval.approval_service import ApprovalService
from guardforce.services.clients.client_service import ClientService

router = APIRouter()
logger = logging.getLogger(__name__)

# region ========== Clients ==========

@router.get("", response_model=PaginatedResponse[ClientResponse])
async def get_clients(
    status: Optional[ClientStatus] = Query(None),
    search: Optional[str] = Query(None, description="Code, name, contact person or city"),
    page_index: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.CLIENTS, Action.VIEW))
):
    return await ClientService(session).get_clients(ctx, page_index, page_size, status=status, search=search)


@router.get("/stats", response_model=Dict[str, int])
async def get_client_stats(
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.CLIENTS, Action.VIEW))
):
    return await ClientService(session).get_client_stats(ctx)


@router.get("/{client_id}", response_model=ClientDetailResponse)
async def get_client(
    client_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.CLIENTS, Action.VIEW))
):
    client = await ClientService(session).get_client(ctx, client_id, with_branches=True)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.post("", response_model=GuardedWriteResponse[ClientResponse], status_code=status.HTTP_201_CREATED)
async def create_client(
    data: ClientCreate,
    response: Response,
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Create a client (and optionally its first branch), or submit it for approval"""
    return await guarded_write(
        service, ctx, response, ClientResponse,
        request_type=ApprovalRequestType.CLIENT_CREATION,
        entity_data=data.model_dump(mode="json"),
        title=f"New Client: {data.client_name}",
        success_message="Client created",
    )


@router.put("/{client_id}", response_model=GuardedWriteResponse[ClientResponse])
async def update_client(
    data: ClientUpdate,
    response: Response,
    client_id: str = Path(...),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return await guarded_write(
        service, ctx, response, ClientResponse,
        request_type=ApprovalRequestType.CLIENT_UPDATE,
        entity_id=client_id,
        entity_data=data.model_dump(mode="json", exclude_unset=True),
        title=f"Update Client {client_id}",
        success_message="Client updated",
    )


@router.delete("/{client_id}")
async def delete_client(
    client_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.CLIENTS, Action.DELETE))
):
    await ClientService(session).delete_client(ctx, client_id)
    return {"message": "Client deleted successfully"}

# endregion

# region ========== Branches ==========

@router.get("/{client_id}/branches", response_model=List[BranchResponse])
async def get_client_branches(
    client_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.CLIENTS, Action.VIEW))
):
    return await ClientService(session).get_client_branches(ctx, client_id)


@router.post("/{client_id}/branches", response_model=GuardedWriteResponse[BranchResponse], status_code=status.HTTP_201_CREATED)
async def create_branch(
    data: BranchData,
    response: Response,
    client_id: str = Path(...),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return await guarded_write(
        service, ctx, response, BranchResponse,
        request_type=ApprovalRequestType.CLIENT_BRANCH_CREATION,
        entity_data={**data.model_dump(mode="json"), "client_id": client_id},
        title=f"New Branch: {data.branch_name}",
        success_message="Branch created",
    )


@router.put("/branches/{branch_id}", response_model=BranchResponse)
async def update_branch(
    data: BranchUpdate,
    branch_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.CLIENTS, Action.EDIT))
):
    return await ClientService(session).update_branch(ctx, branch_id, data)

# endregion
