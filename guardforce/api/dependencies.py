from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from guardforce.core.database import get_async_session
from guardforce.auth.jwt_handler import decode_access_token
from guardforce.auth.permissions import permission_evaluator
from guardforce.models.shared.enums import Module, Action
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.services.approval.approval_service import ApprovalService
from guardforce.services.auth.profile_service import ProfileService
from guardforce.services.notification.approval_notifier import ApprovalNotifier

security = HTTPBearer()
logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_async_session)
) -> AuthContext:
    """Resolve the caller's profile for this request"""
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid authentication credentials")

    ctx = await ProfileService(session).resolve_context(str(payload["sub"]))
    if ctx is None:
        raise _unauthorized("User not found or inactive")

    request.state.auth_context = ctx
    return ctx


def require_permission(module: Module, action: Action):
    """
    Dependency to require a module permission for an endpoint

    Examples:
        @router.get("/guards")
        async def list_guards(ctx: AuthContext = Depends(require_permission(Module.GUARDS, Action.VIEW))):
            ...
    """
    async def permission_dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        permission_evaluator.require(ctx.role, module, action)
        return ctx

    return permission_dependency


def get_approval_notifier() -> ApprovalNotifier:
    return ApprovalNotifier()


async def get_approval_service(
    session: AsyncSession = Depends(get_async_session),
    notifier: ApprovalNotifier = Depends(get_approval_notifier)
) -> ApprovalService:
    return ApprovalService(session, notifier=notifier)
