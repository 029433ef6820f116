# guardforce/auth/permissions.py

from typing import Dict, FrozenSet, List, Optional, Tuple, Union
import logging

from guardforce.core.exceptions import AuthorizationError
from guardforce.models.shared.enums import UserRole, Module, Action

logger = logging.getLogger(__name__)

ALL_MODULES: Tuple[Module, ...] = tuple(Module)
ALL_ACTIONS: Tuple[Action, ...] = tuple(Action)

# role -> (modules, actions). A role may perform an action on a module only when
# both appear in its sets. system_admin is not listed: it bypasses the table.
ROLE_PERMISSIONS: Dict[UserRole, Tuple[FrozenSet[Module], FrozenSet[Action]]] = {
    UserRole.REGIONAL_MANAGER: (
        frozenset({
            Module.DASHBOARD, Module.GUARDS, Module.CLIENTS, Module.DEPLOYMENTS, Module.ATTENDANCE,
            Module.PAYROLL, Module.BILLING, Module.INVENTORY, Module.TICKETS, Module.REPORTS,
        }),
        frozenset({Action.VIEW, Action.CREATE, Action.EDIT, Action.APPROVE, Action.EXPORT}),
    ),
    UserRole.HR_OFFICER: (
        frozenset({
            Module.DASHBOARD, Module.GUARDS, Module.CLIENTS, Module.DEPLOYMENTS, Module.ATTENDANCE,
            Module.REPORTS,
        }),
        frozenset({Action.VIEW, Action.CREATE, Action.EDIT, Action.EXPORT}),
    ),
    UserRole.OPS_SUPERVISOR: (
        frozenset({
            Module.DASHBOARD, Module.GUARDS, Module.CLIENTS, Module.DEPLOYMENTS, Module.ATTENDANCE,
            Module.TICKETS, Module.REPORTS,
        }),
        frozenset({Action.VIEW, Action.CREATE, Action.EDIT, Action.EXPORT}),
    ),
    UserRole.FINANCE_OFFICER: (
        frozenset({
            Module.DASHBOARD, Module.GUARDS, Module.CLIENTS, Module.PAYROLL, Module.BILLING,
            Module.REPORTS,
        }),
        frozenset({Action.VIEW, Action.CREATE, Action.EDIT, Action.APPROVE, Action.EXPORT}),
    ),
    UserRole.INVENTORY_OFFICER: (
        frozenset({Module.DASHBOARD, Module.GUARDS, Module.INVENTORY, Module.REPORTS}),
        frozenset({Action.VIEW, Action.CREATE, Action.EDIT, Action.DELETE, Action.EXPORT}),
    ),
    UserRole.AUDITOR_READONLY: (
        frozenset({
            Module.DASHBOARD, Module.GUARDS, Module.CLIENTS, Module.DEPLOYMENTS, Module.ATTENDANCE,
            Module.PAYROLL, Module.BILLING, Module.INVENTORY, Module.TICKETS, Module.REPORTS,
        }),
        frozenset({Action.VIEW, Action.EXPORT}),
    ),
    UserRole.CLIENT_PORTAL: (
        frozenset({Module.DASHBOARD, Module.CLIENTS, Module.BILLING, Module.TICKETS}),
        frozenset({Action.VIEW}),
    ),
}

DEFAULT_ROUTES: Dict[UserRole, str] = {
    UserRole.SYSTEM_ADMIN: "/dashboard",
    UserRole.REGIONAL_MANAGER: "/dashboard",
    UserRole.HR_OFFICER: "/guards",
    UserRole.OPS_SUPERVISOR: "/deployments",
    UserRole.FINANCE_OFFICER: "/billing",
    UserRole.INVENTORY_OFFICER: "/inventory",
    UserRole.AUDITOR_READONLY: "/reports",
    UserRole.CLIENT_PORTAL: "/dashboard",
}


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


class PermissionEvaluator:
    """
    Answers whether a role may perform an action on a module.

    Pure lookup over a static table: no I/O, no caching, same answer for the
    same inputs. Unknown roles, modules or actions are denied.
    """

    def __init__(self, table: Optional[Dict[UserRole, Tuple[FrozenSet[Module], FrozenSet[Action]]]] = None):
        self.table = table if table is not None else ROLE_PERMISSIONS

    def evaluate(
        self,
        role: Union[UserRole, str],
        module: Union[Module, str],
        action: Union[Action, str]
    ) -> bool:
        role = _coerce(UserRole, role)
        module = _coerce(Module, module)
        action = _coerce(Action, action)
        if role is None or module is None or action is None:
            return False

        if role == UserRole.SYSTEM_ADMIN:
            return True

        grants = self.table.get(role)
        if grants is None:
            return False
        modules, actions = grants
        return module in modules and action in actions

    def cannot(self, role, module, action) -> bool:
        return not self.evaluate(role, module, action)

    def require(self, role, module, action, custom_message: Optional[str] = None):
        """Raise AuthorizationError unless the role may perform the action"""
        if self.cannot(role, module, action):
            module_name = getattr(module, "value", module)
            action_name = getattr(action, "value", action)
            message = custom_message or f"Insufficient permissions to {action_name} {module_name}"
            logger.warning(f"Permission check failed for role {getattr(role, 'value', role)}: {message}")
            raise AuthorizationError(message)

    def allowed_modules(self, role: Union[UserRole, str]) -> List[Module]:
        """Modules the role can view, in navigation order"""
        return [module for module in ALL_MODULES if self.evaluate(role, module, Action.VIEW)]

    def allowed_actions(self, role: Union[UserRole, str], module: Union[Module, str]) -> List[Action]:
        return [action for action in ALL_ACTIONS if self.evaluate(role, module, action)]

    def permission_names(self, role: Union[UserRole, str]) -> List[str]:
        """Flattened `module:action` grants, e.g. for the client's permission cache"""
        return [
            f"{module.value}:{action.value}"
            for module in ALL_MODULES
            for action in ALL_ACTIONS
            if self.evaluate(role, module, action)
        ]


def default_route(role: Union[UserRole, str]) -> str:
    """Landing page for a role after sign-in"""
    role = _coerce(UserRole, role)
    return DEFAULT_ROUTES.get(role, "/dashboard")


permission_evaluator = PermissionEvaluator()
