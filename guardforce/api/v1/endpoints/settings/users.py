from fastapi import APIRouter, Depends, HTTPException, Query, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Optional

from guardforce.api.dependencies import require_permission
from guardforce.core.database import get_async_session
from guardforce.models.shared.enums import Action, Module, UserRole
from guardforce.schemas.auth.profile_schema import (
    AuthContext, ProfileCreate, ProfileResponse, ProfileStatusUpdate, ProfileUpdate
)
from guardforce.schemas.common.pagination import PaginatedResponse
from guardforce.services.auth.profile_service import ProfileService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[ProfileResponse])
async def get_users(
    search: Optional[str] = Query(None, description="Matches name or email"),
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.SETTINGS, Action.VIEW))
):
    return await ProfileService(session).get_profiles(
        ctx, page_index, page_size, search=search, role=role, is_active=is_active
    )


@router.get("/roles", response_model=Dict[str, int])
async def get_role_counts(
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.SETTINGS, Action.VIEW))
):
    """Active users per role"""
    return await ProfileService(session).count_by_role(ctx)


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_user(
    user_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.SETTINGS, Action.VIEW))
):
    profile = await ProfileService(session).get_org_profile(ctx, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="User not found")
    return profile


@router.post("", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: ProfileCreate,
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.SETTINGS, Action.CREATE))
):
    return await ProfileService(session).create_profile(ctx, data)


@router.put("/{user_id}", response_model=ProfileResponse)
async def update_user(
    data: ProfileUpdate,
    user_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.SETTINGS, Action.EDIT))
):
    return await ProfileService(session).update_profile(ctx, user_id, data)


@router.patch("/{user_id}/status", response_model=ProfileResponse)
async def toggle_user_status(
    data: ProfileStatusUpdate,
    user_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.SETTINGS, Action.EDIT))
):
    return await ProfileService(session).set_active(ctx, user_id, data.is_active)


@router.delete("/{user_id}")
async def delete_user(
    user_id: str = Path(...),
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(require_permission(Module.SETTINGS, Action.DELETE))
):
    await ProfileService(session).delete_profile(ctx, user_id)
    return {"message": "User deleted successfully"}
