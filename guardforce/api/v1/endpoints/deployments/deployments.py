import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from guardforce.api.dependencies import get_auth_context, get_approval_service, require_permission
from guardforce.api.guarded_write import guarded_write
from guardforce.core.database import get_async_session
from guardforce.models.shared.enums import Action, ApprovalRequestType, DeploymentStatus, Module, ShiftType
from guardforce.schemas.approval.approval_request_schema import GuardedWriteResponse
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.common.pagination import PaginatedResponse
from guardforce.schemas.deployments.deployment_schema import (
    DeploymentCreate,
    DeploymentUpdate,
    DeploymentRevoke,
    GuardSwap,
    DeploymentResponse,
    SwapResponse,
    DeploymentMatrixResponse,
    DeploymentStatsResponse
)
from guardforce.services.approval.approval_service import ApprovalService
from guardforce.services.deployments.deployment_service import DeploymentService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=PaginatedResponse[DeploymentResponse])
async def get_deployments(
    status: Optional[DeploymentStatus] = Query(None),
    guard_id: Optional[str] = Query(None),
    client_id: Optional[str] = Query(None),
    branch_id: Optional[str] = Query(None),
    shift_type: Optional[ShiftType] = Query(None),
    page_index: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.DEPLOYMENTS, Action.VIEW))
):
    return await DeploymentService(session).get_deployments(
        ctx, page_index, page_size,
        status=status, guard_id=guard_id, client_id=client_id, branch_id=branch_id, shift_type=shift_type
    )


@router.get("/matrix", response_model=DeploymentMatrixResponse)
async def get_deployment_matrix(
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.DEPLOYMENTS, Action.VIEW))
):
    """Branch x guard grid of active deployments"""
    return await DeploymentService(session).get_deployment_matrix(ctx)


@router.get("/stats", response_model=DeploymentStatsResponse)
async def get_deployment_stats(
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.DEPLOYMENTS, Action.VIEW))
):
    return await DeploymentService(session).get_deployment_stats(ctx)


@router.get("/{deployment_id}", response_model=DeploymentResponse)
async def get_deployment(
    deployment_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.DEPLOYMENTS, Action.VIEW))
):
    deployment = await DeploymentService(session).get_deployment(ctx, deployment_id)
    if not deployment:
        raise HTTPException(status_code=404, detail="Deployment not found")
    return deployment


@router.post("", response_model=GuardedWriteResponse[DeploymentResponse], status_code=status.HTTP_201_CREATED)
async def create_deployment(
    data: DeploymentCreate,
    response: Response,
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Deploy a guard to a branch, or submit the deployment for approval"""
    return await guarded_write(
        service, ctx, response, DeploymentResponse,
        request_type=ApprovalRequestType.DEPLOYMENT_CHANGE,
        entity_data=data.model_dump(mode="json"),
        title=f"Deploy guard {data.guard_id} to branch {data.branch_id}",
        success_message="Deployment created",
    )


@router.put("/{deployment_id}", response_model=GuardedWriteResponse[DeploymentResponse])
async def update_deployment(
    data: DeploymentUpdate,
    response: Response,
    deployment_id: str = Path(...),
    service: ApprovalService = Depends(get_approval_service),
    ctx: AuthContext = Depends(get_auth_context)
):
    return await guarded_write(
        service, ctx, response, DeploymentResponse,
        request_type=ApprovalRequestType.DEPLOYMENT_CHANGE,
        entity_id=deployment_id,
        entity_data=data.model_dump(mode="json", exclude_unset=True),
        title=f"Update Deployment {deployment_id}",
        success_message="Deployment updated",
    )


@router.post("/{deployment_id}/activate", response_model=DeploymentResponse)
async def activate_deployment(
    deployment_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.DEPLOYMENTS, Action.EDIT))
):
    return await DeploymentService(session).activate_deployment(ctx, deployment_id)


@router.post("/{deployment_id}/revoke", response_model=DeploymentResponse)
async def revoke_deployment(
    data: DeploymentRevoke,
    deployment_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.DEPLOYMENTS, Action.EDIT))
):
    """End a deployment early; the guard returns to the active pool"""
    return await DeploymentService(session).revoke_deployment(ctx, deployment_id, data)


@router.post("/swap", response_model=SwapResponse)
async def swap_guards(
    data: GuardSwap,
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.DEPLOYMENTS, Action.EDIT))
):
    return await DeploymentService(session).swap_guards(ctx, data)
