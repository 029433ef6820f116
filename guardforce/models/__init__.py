from guardforce.models.base import Base
from guardforce.models.auth.profile import Profile
from guardforce.models.approval.approval_request import ApprovalRequest
from guardforce.models.guards.guard import Guard
from guardforce.models.guards.guard_loan import GuardLoan
from guardforce.models.clients.client import Client
from guardforce.models.clients.client_branch import ClientBranch
from guardforce.models.deployments.deployment import Deployment
from guardforce.models.attendance.attendance import AttendanceRecord
from guardforce.models.billing.invoice import Invoice, InvoiceItem
from guardforce.models.billing.expense import Expense
from guardforce.models.payroll.payroll_cycle import PayrollCycle, PayrollItem

__all__ = [
    "Base",
    "Profile",
    "ApprovalRequest",
    "Guard",
    "GuardLoan",
    "Client",
    "ClientBranch",
    "Deployment",
    "AttendanceRecord",
    "Invoice",
    "InvoiceItem",
    "Expense",
    "PayrollCycle",
    "PayrollItem",
]
