"""
Request-type registry for the approval workflow.

Every approvable request type maps to the module whose `approve` permission
gates it, the payload schema checked at submission, and the entity write run
on approval. The set is closed: unknown types are rejected at submit time.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from guardforce.core.exceptions import ValidationError
from guardforce.models.shared.enums import ApprovalRequestType, GuardStatus, Module
from guardforce.schemas.auth.profile_schema import AuthContext
from guardforce.schemas.attendance.attendance_schema import LeaveRequestCreate
from guardforce.schemas.billing.expense_schema import ExpenseCreate
from guardforce.schemas.clients.client_schema import ClientCreate, ClientUpdate, BranchCreate
from guardforce.schemas.deployments.deployment_schema import DeploymentCreate, DeploymentUpdate
from guardforce.schemas.guards.guard_schema import GuardCreate, GuardUpdate, GuardTermination, SalaryAdjustment
from guardforce.schemas.guards.loan_schema import LoanCreate
from guardforce.services.attendance.attendance_service import AttendanceService
from guardforce.services.billing.expense_service import ExpenseService
from guardforce.services.clients.client_service import ClientService
from guardforce.services.deployments.deployment_service import DeploymentService
from guardforce.services.guards.guard_service import GuardService
from guardforce.services.guards.loan_service import LoanService

logger = logging.getLogger(__name__)

# (session, ctx, entity_id, validated payload) -> written record(s); must not commit
ApplyFn = Callable[[AsyncSession, AuthContext, Optional[str], BaseModel], Awaitable[Any]]


def _format_errors(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "entity_data"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


@dataclass(frozen=True)
class RequestTypeHandler:
    request_type: ApprovalRequestType
    module: Module
    entity_type: str
    apply: ApplyFn
    create_schema: Optional[Type[BaseModel]] = None
    update_schema: Optional[Type[BaseModel]] = None

    def validate(self, entity_data: Optional[Dict[str, Any]], entity_id: Optional[str] = None) -> BaseModel:
        """Check the payload against the schema for this request shape (new record vs. existing one)"""
        schema = self.update_schema if entity_id else self.create_schema
        if schema is None:
            if entity_id:
                raise ValidationError(f"{self.request_type.value} creates a new {self.entity_type}; entity_id is not allowed")
            raise ValidationError(f"{self.request_type.value} requires entity_id of the target {self.entity_type}")
        try:
            return schema.model_validate(entity_data or {})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {self.entity_type} data: {_format_errors(e)}")


# region ========== Entity writes ==========

async def _enroll_guard(session, ctx, entity_id, payload: GuardCreate):
    return await GuardService(session).create_guard(ctx, payload, initial_status=GuardStatus.APPROVED, commit=False)


async def _update_guard(session, ctx, entity_id, payload: GuardUpdate):
    return await GuardService(session).update_guard(ctx, entity_id, payload, commit=False)


async def _terminate_guard(session, ctx, entity_id, payload: GuardTermination):
    return await GuardService(session).terminate_guard(ctx, entity_id, payload, commit=False)


async def _adjust_salary(session, ctx, entity_id, payload: SalaryAdjustment):
    return await GuardService(session).adjust_salary(ctx, entity_id, payload, commit=False)


async def _change_deployment(session, ctx, entity_id, payload: Union[DeploymentCreate, DeploymentUpdate]):
    service = DeploymentService(session)
    if entity_id:
        return await service.update_deployment(ctx, entity_id, payload, commit=False)
    return await service.create_deployment(ctx, payload, commit=False)


async def _record_leave(session, ctx, entity_id, payload: LeaveRequestCreate):
    return await AttendanceService(session).record_leave(ctx, payload, commit=False)


async def _issue_loan(session, ctx, entity_id, payload: LoanCreate):
    return await LoanService(session).create_loan(ctx, payload, commit=False)


async def _record_expense(session, ctx, entity_id, payload: ExpenseCreate):
    return await ExpenseService(session).create_expense(ctx, payload, commit=False)


async def _create_client(session, ctx, entity_id, payload: ClientCreate):
    return await ClientService(session).create_client(ctx, payload, commit=False)


async def _update_client(session, ctx, entity_id, payload: ClientUpdate):
    return await ClientService(session).update_client(ctx, entity_id, payload, commit=False)


async def _create_branch(session, ctx, entity_id, payload: BranchCreate):
    return await ClientService(session).create_branch(ctx, payload, commit=False)

# endregion


DEFAULT_HANDLERS: List[RequestTypeHandler] = [
    RequestTypeHandler(ApprovalRequestType.GUARD_ENROLLMENT, Module.GUARDS, "guard", _enroll_guard,
                       create_schema=GuardCreate),
    RequestTypeHandler(ApprovalRequestType.GUARD_UPDATE, Module.GUARDS, "guard", _update_guard,
                       update_schema=GuardUpdate),
    RequestTypeHandler(ApprovalRequestType.GUARD_TERMINATION, Module.GUARDS, "guard", _terminate_guard,
                       update_schema=GuardTermination),
    RequestTypeHandler(ApprovalRequestType.SALARY_ADJUSTMENT, Module.PAYROLL, "guard", _adjust_salary,
                       update_schema=SalaryAdjustment),
    RequestTypeHandler(ApprovalRequestType.DEPLOYMENT_CHANGE, Module.DEPLOYMENTS, "deployment", _change_deployment,
                       create_schema=DeploymentCreate, update_schema=DeploymentUpdate),
    RequestTypeHandler(ApprovalRequestType.LEAVE_REQUEST, Module.ATTENDANCE, "attendance", _record_leave,
                       create_schema=LeaveRequestCreate),
    RequestTypeHandler(ApprovalRequestType.LOAN_REQUEST, Module.PAYROLL, "loan", _issue_loan,
                       create_schema=LoanCreate),
    RequestTypeHandler(ApprovalRequestType.EXPENSE_APPROVAL, Module.BILLING, "expense", _record_expense,
                       create_schema=ExpenseCreate),
    RequestTypeHandler(ApprovalRequestType.CLIENT_CREATION, Module.CLIENTS, "client", _create_client,
                       create_schema=ClientCreate),
    RequestTypeHandler(ApprovalRequestType.CLIENT_UPDATE, Module.CLIENTS, "client", _update_client,
                       update_schema=ClientUpdate),
    RequestTypeHandler(ApprovalRequestType.CLIENT_BRANCH_CREATION, Module.CLIENTS, "branch", _create_branch,
                       create_schema=BranchCreate),
]


class ApprovalRegistry:
    """Closed lookup from request type to its handler"""

    def __init__(self, handlers: Iterable[RequestTypeHandler]):
        self._handlers: Dict[ApprovalRequestType, RequestTypeHandler] = {}
        for handler in handlers:
            if handler.request_type in self._handlers:
                raise ValueError(f"Duplicate handler for {handler.request_type.value}")
            self._handlers[handler.request_type] = handler

    def resolve(self, request_type: Union[ApprovalRequestType, str]) -> RequestTypeHandler:
        try:
            key = ApprovalRequestType(request_type)
        except ValueError:
            raise ValidationError(f"Unknown request type: {request_type}")
        handler = self._handlers.get(key)
        if handler is None:
            raise ValidationError(f"Request type {key.value} is not approvable")
        return handler

    def request_types(self) -> List[ApprovalRequestType]:
        return list(self._handlers)

    def __contains__(self, request_type) -> bool:
        return request_type in self._handlers


default_registry = ApprovalRegistry(DEFAULT_HANDLERS)
