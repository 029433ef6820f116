from enum import Enum

# Auth / permissions
class UserRole(str, Enum):
    SYSTEM_ADMIN = "system_admin"
    REGIONAL_MANAGER = "regional_manager"
    HR_OFFICER = "hr_officer"
    OPS_SUPERVISOR = "ops_supervisor"
    FINANCE_OFFICER = "finance_officer"
    INVENTORY_OFFICER = "inventory_officer"
    AUDITOR_READONLY = "auditor_readonly"
    CLIENT_PORTAL = "client_portal"

class Module(str, Enum):
    DASHBOARD = "dashboard"
    GUARDS = "guards"
    CLIENTS = "clients"
    DEPLOYMENTS = "deployments"
    ATTENDANCE = "attendance"
    PAYROLL = "payroll"
    BILLING = "billing"
    INVENTORY = "inventory"
    TICKETS = "tickets"
    REPORTS = "reports"
    SETTINGS = "settings"

class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    EXPORT = "export"

# Approval
class ApprovalRequestType(str, Enum):
    GUARD_ENROLLMENT = "guard_enrollment"
    GUARD_UPDATE = "guard_update"
    GUARD_TERMINATION = "guard_termination"
    SALARY_ADJUSTMENT = "salary_adjustment"
    DEPLOYMENT_CHANGE = "deployment_change"
    LEAVE_REQUEST = "leave_request"
    LOAN_REQUEST = "loan_request"
    EXPENSE_APPROVAL = "expense_approval"
    CLIENT_CREATION = "client_creation"
    CLIENT_UPDATE = "client_update"
    CLIENT_BRANCH_CREATION = "client_branch_creation"

class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

class ApprovalPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

# Guards
class GuardStatus(str, Enum):
    APPLICANT = "applicant"
    SCREENING = "screening"
    APPROVED = "approved"
    ONBOARDING = "onboarding"
    ACTIVE = "active"
    DEPLOYED = "deployed"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"
    ARCHIVED = "archived"

class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"

class LoanType(str, Enum):
    ADVANCE = "advance"
    LOAN = "loan"
    EMERGENCY = "emergency"

class LoanStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# Clients
class ClientType(str, Enum):
    CORPORATE = "corporate"
    GOVERNMENT = "government"
    INDIVIDUAL = "individual"
    NGO = "ngo"

class ClientStatus(str, Enum):
    PROSPECT = "prospect"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"

class BranchStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CLOSED = "closed"

# Deployments
class ShiftType(str, Enum):
    DAY = "day"
    NIGHT = "night"
    ROTATING = "rotating"
    FULL_DAY = "24hour"

class DeploymentStatus(str, Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    ENDED = "ended"
    REVOKED = "revoked"

# Attendance
class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    HALF_DAY = "half_day"
    LEAVE = "leave"
    HOLIDAY = "holiday"

# Billing
class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"

class ExpenseCategory(str, Enum):
    TRANSPORT = "transport"
    UNIFORM = "uniform"
    EQUIPMENT = "equipment"
    TRAINING = "training"
    UTILITIES = "utilities"
    OTHER = "other"

class ExpenseStatus(str, Enum):
    RECORDED = "recorded"
    REIMBURSED = "reimbursed"

# Payroll
class PayrollCycleStatus(str, Enum):
    DRAFT = "draft"
    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"

class PayrollPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
