from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from guardforce.api.dependencies import get_auth_context
from guardforce.auth.permissions import permission_evaluator, default_route
from guardforce.core.database import get_async_session
from guardforce.schemas.auth.profile_schema import (
    AuthContext, CurrentUserResponse, PermissionsResponse, ProfileResponse
)
from guardforce.services.auth.profile_service import ProfileService

router = APIRouter()


def _permissions_for(ctx: AuthContext) -> PermissionsResponse:
    return PermissionsResponse(
        role=ctx.role,
        modules=permission_evaluator.allowed_modules(ctx.role),
        permissions=permission_evaluator.permission_names(ctx.role),
        default_route=default_route(ctx.role),
    )


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(
    session: AsyncSession = Depends(get_async_session),
    ctx: AuthContext = Depends(get_auth_context)
):
    """Current profile with its navigation and permission set"""
    profile = await ProfileService(session).get_profile(ctx.user_id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return CurrentUserResponse(
        profile=ProfileResponse.model_validate(profile),
        access=_permissions_for(ctx),
    )


@router.get("/permissions", response_model=PermissionsResponse)
async def get_permissions(ctx: AuthContext = Depends(get_auth_context)):
    return _permissions_for(ctx)
