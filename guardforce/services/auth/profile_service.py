import logging
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from guardforce.core.exceptions import NotFoundError, ValidationError
from guardforce.core.logging_config import log_user_action
from guardforce.db.base import utcnow
from guardforce.models.auth.profile import Profile
from guardforce.models.shared.enums import UserRole
from guardforce.schemas.auth.profile_schema import (
    AuthContext, ProfileCreate, ProfileResponse, ProfileUpdate
)

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        result = await self.session.execute(
            select(Profile)
            .where(Profile.id == user_id, Profile.is_deleted == False)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def resolve_context(self, user_id: str) -> Optional[AuthContext]:
        """Build the caller context from the stored profile.

        Read on every request so a role change applies to the next request.
        Returns None for unknown or deactivated profiles.
        """
        profile = await self.get_profile(user_id)
        if profile is None:
            logger.warning(f"No profile found for user {user_id}")
            return None
        if not profile.is_active:
            logger.warning(f"Inactive profile {user_id} attempted access")
            return None

        return AuthContext(
            user_id=profile.id,
            role=profile.role,
            org_id=profile.org_id,
            full_name=profile.full_name,
        )

    # region ========== Administration ==========

    async def get_org_profile(self, ctx: AuthContext, profile_id: str) -> Optional[Profile]:
        result = await self.session.execute(
            select(Profile).where(
                Profile.id == profile_id,
                Profile.org_id == ctx.org_id,
                Profile.is_deleted == False
            )
        )
        return result.scalar_one_or_none()

    async def get_profiles(
        self,
        ctx: AuthContext,
        page_index: int = 1,
        page_size: int = 100,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None
    ) -> Dict[str, Any]:
        conditions = [Profile.org_id == ctx.org_id, Profile.is_deleted == False]
        if search:
            search_term = f"%{search}%"
            conditions.append(or_(Profile.full_name.ilike(search_term), Profile.email.ilike(search_term)))
        if role:
            conditions.append(Profile.role == role)
        if is_active is not None:
            conditions.append(Profile.is_active == is_active)

        total_count = await self.session.scalar(select(func.count(Profile.id)).where(*conditions))

        skip = (page_index - 1) * page_size
        result = await self.session.execute(
            select(Profile)
            .where(*conditions)
            .order_by(Profile.created_at.desc())
            .offset(skip)
            .limit(page_size)
        )

        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total_count or 0,
            "data": [ProfileResponse.model_validate(p) for p in result.scalars().all()],
        }

    async def count_by_role(self, ctx: AuthContext) -> Dict[str, int]:
        rows = await self.session.execute(
            select(Profile.role, func.count(Profile.id))
            .where(Profile.org_id == ctx.org_id, Profile.is_deleted == False, Profile.is_active == True)
            .group_by(Profile.role)
        )
        counts = {role.value: 0 for role in UserRole}
        for role, count in rows.all():
            counts[role.value] = count
        return counts

    async def create_profile(self, ctx: AuthContext, data: ProfileCreate) -> Profile:
        try:
            email = data.email.lower()
            existing = await self.session.execute(
                select(Profile.id).where(
                    Profile.org_id == ctx.org_id,
                    func.lower(Profile.email) == email,
                    Profile.is_deleted == False
                )
            )
            if existing.scalar_one_or_none():
                raise ValidationError(f"A user with email {email} already exists")

            values = data.model_dump(exclude_none=True)
            values["email"] = email
            profile = Profile(org_id=ctx.org_id, is_active=True, created_by=ctx.user_id, **values)
            self.session.add(profile)
            await self.session.commit()

            log_user_action(ctx.user_id, "create_user", "profile", profile.id)
            logger.info(f"Profile created: {email} as {data.role.value} by user {ctx.user_id}")
            return profile

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error creating profile: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error creating user")

    async def update_profile(self, ctx: AuthContext, profile_id: str, data: ProfileUpdate) -> Profile:
        """Change a user's details, role or active flag. Applies from the user's next request."""
        try:
            profile = await self.get_org_profile(ctx, profile_id)
            if not profile:
                raise NotFoundError("User not found")

            changes = data.model_dump(exclude_unset=True)
            if profile.id == ctx.user_id:
                if "role" in changes and changes["role"] != profile.role:
                    raise ValidationError("You cannot change your own role")
                if changes.get("is_active") is False:
                    raise ValidationError("You cannot deactivate your own account")

            previous_role = profile.role
            for field, value in changes.items():
                setattr(profile, field, value)
            profile.updated_by = ctx.user_id
            profile.updated_at = utcnow()
            await self.session.commit()

            if profile.role != previous_role:
                log_user_action(ctx.user_id, f"change_role:{previous_role.value}->{profile.role.value}", "profile", profile.id)
            logger.info(f"Profile updated: {profile.email} by user {ctx.user_id}")
            return profile

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error updating profile {profile_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error updating user")

    async def set_active(self, ctx: AuthContext, profile_id: str, is_active: bool) -> Profile:
        return await self.update_profile(ctx, profile_id, ProfileUpdate(is_active=is_active))

    async def delete_profile(self, ctx: AuthContext, profile_id: str) -> bool:
        """Soft delete; the user can no longer sign in"""
        try:
            if profile_id == ctx.user_id:
                raise ValidationError("You cannot delete your own account")
            profile = await self.get_org_profile(ctx, profile_id)
            if not profile:
                raise NotFoundError("User not found")

            profile.is_deleted = True
            profile.is_active = False
            profile.updated_by = ctx.user_id
            profile.updated_at = utcnow()
            await self.session.commit()

            log_user_action(ctx.user_id, "delete_user", "profile", profile_id)
            return True

        except HTTPException:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error deleting profile {profile_id}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error deleting user")

    # endregion
