from fastapi import APIRouter
from guardforce.api.v1.endpoints.approval import approvals
from guardforce.api.v1.endpoints.attendance import attendance
from guardforce.api.v1.endpoints.auth import me
from guardforce.api.v1.endpoints.billing import expenses, invoices
from guardforce.api.v1.endpoints.clients import clients
from guardforce.api.v1.endpoints.deployments import deployments
from guardforce.api.v1.endpoints.guards import guards, loans
from guardforce.api.v1.endpoints.payroll import payroll
from guardforce.api.v1.endpoints.settings import users

api_router = APIRouter()

# Authentication routes
api_router.include_router(me.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["User Administration"])

# Approval workflow
api_router.include_router(approvals.router, prefix="/approvals", tags=["Approvals"])

# Workforce routes
api_router.include_router(guards.router, prefix="/guards", tags=["Guards"])
api_router.include_router(loans.router, prefix="/loans", tags=["Payroll"])
api_router.include_router(payroll.router, prefix="/payroll", tags=["Payroll"])
api_router.include_router(deployments.router, prefix="/deployments", tags=["Deployments"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])

# Client routes
api_router.include_router(clients.router, prefix="/clients", tags=["Clients"])

# Billing routes
api_router.include_router(invoices.router, prefix="/invoices", tags=["Billing"])
api_router.include_router(expenses.router, prefix="/expenses", tags=["Billing"])
