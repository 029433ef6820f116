"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from guardforce.models.shared.enums import (
    ApprovalPriority, ApprovalRequestType, ApprovalStatus, AttendanceStatus, BranchStatus, ClientStatus,
    ClientType, DeploymentStatus, ExpenseCategory, ExpenseStatus, Gender, GuardStatus, InvoiceStatus,
    LoanStatus, LoanType, ShiftType, UserRole
)


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _common_columns():
    return [
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('org_id', sa.String(length=36), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=True),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.Column('updated_by', sa.String(length=36), nullable=True),
    ]


def upgrade():
    op.create_table(
        'profiles',
        *_common_columns(),
        sa.Column('full_name', sa.String(length=150), nullable=False),
        sa.Column('email', sa.String(length=150), nullable=False, index=True),
        sa.Column('role', sa.Enum(UserRole), nullable=False),
        sa.Column('regional_office_id', sa.String(length=36), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
    )

    op.create_table(
        'approval_requests',
        *_common_columns(),
        sa.Column('request_type', sa.Enum(ApprovalRequestType), nullable=False, index=True),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=36), nullable=True),
        sa.Column('entity_data', sa.JSON(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('priority', sa.Enum(ApprovalPriority), nullable=False),
        sa.Column('status', sa.Enum(ApprovalStatus), nullable=False, index=True),
        sa.Column('requested_by', sa.String(length=36), nullable=False),
        sa.Column('requested_by_name', sa.String(length=150), nullable=True),
        sa.Column('requested_by_role', sa.String(length=50), nullable=True),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('approved_by', sa.String(length=36), nullable=True),
        sa.Column('approved_by_name', sa.String(length=150), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_by', sa.String(length=36), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reference_id', sa.String(length=36), nullable=True),
    )

    op.create_table(
        'guards',
        *_common_columns(),
        sa.Column('guard_code', sa.String(length=20), nullable=False, index=True),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('father_name', sa.String(length=100), nullable=True),
        sa.Column('cnic', sa.String(length=15), nullable=False, index=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('gender', sa.Enum(Gender), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('email', sa.String(length=150), nullable=True),
        sa.Column('permanent_address', sa.Text(), nullable=True),
        sa.Column('current_address', sa.Text(), nullable=True),
        sa.Column('designation', sa.String(length=100), nullable=True),
        sa.Column('status', sa.Enum(GuardStatus), nullable=False, index=True),
        sa.Column('basic_salary', sa.Numeric(12, 2), nullable=True),
        sa.Column('allowances', sa.JSON(), nullable=True),
        sa.Column('employment_start_date', sa.Date(), nullable=True),
        sa.Column('employment_end_date', sa.Date(), nullable=True),
        sa.Column('termination_reason', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.UniqueConstraint('org_id', 'guard_code', name='uq_guards_org_code'),
    )

    op.create_table(
        'guard_loans',
        *_common_columns(),
        sa.Column('guard_id', sa.String(length=36), sa.ForeignKey('guards.id'), nullable=False, index=True),
        sa.Column('loan_type', sa.Enum(LoanType), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('remaining_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('installment_count', sa.Integer(), nullable=True),
        sa.Column('installment_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('status', sa.Enum(LoanStatus), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
    )

    op.create_table(
        'clients',
        *_common_columns(),
        sa.Column('client_code', sa.String(length=20), nullable=False, index=True),
        sa.Column('client_name', sa.String(length=200), nullable=False),
        sa.Column('client_type', sa.Enum(ClientType), nullable=False),
        sa.Column('contact_person', sa.String(length=100), nullable=True),
        sa.Column('contact_email', sa.String(length=150), nullable=True),
        sa.Column('contact_phone', sa.String(length=20), nullable=True),
        sa.Column('billing_address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('ntn_number', sa.String(length=30), nullable=True),
        sa.Column('status', sa.Enum(ClientStatus), nullable=False, index=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.UniqueConstraint('org_id', 'client_code', name='uq_clients_org_code'),
    )

    op.create_table(
        'client_branches',
        *_common_columns(),
        sa.Column('client_id', sa.String(length=36), sa.ForeignKey('clients.id'), nullable=False, index=True),
        sa.Column('branch_code', sa.String(length=30), nullable=False),
        sa.Column('branch_name', sa.String(length=200), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('contact_person', sa.String(length=100), nullable=True),
        sa.Column('contact_phone', sa.String(length=20), nullable=True),
        sa.Column('required_guards', sa.Integer(), nullable=False),
        sa.Column('current_guards', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum(BranchStatus), nullable=False),
        sa.UniqueConstraint('org_id', 'branch_code', name='uq_client_branches_org_code'),
    )

    op.create_table(
        'deployments',
        *_common_columns(),
        sa.Column('guard_id', sa.String(length=36), sa.ForeignKey('guards.id'), nullable=False, index=True),
        sa.Column('client_id', sa.String(length=36), sa.ForeignKey('clients.id'), nullable=False, index=True),
        sa.Column('branch_id', sa.String(length=36), sa.ForeignKey('client_branches.id'), nullable=False, index=True),
        sa.Column('deployment_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('shift_type', sa.Enum(ShiftType), nullable=False),
        sa.Column('status', sa.Enum(DeploymentStatus), nullable=False, index=True),
        sa.Column('guard_rate', sa.Numeric(12, 2), nullable=True),
        sa.Column('client_rate', sa.Numeric(12, 2), nullable=True),
        sa.Column('deployed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deployed_by', sa.String(length=36), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
    )

    op.create_table(
        'attendance_records',
        *_common_columns(),
        sa.Column('guard_id', sa.String(length=36), sa.ForeignKey('guards.id'), nullable=False, index=True),
        sa.Column('deployment_id', sa.String(length=36), sa.ForeignKey('deployments.id'), nullable=True),
        sa.Column('branch_id', sa.String(length=36), sa.ForeignKey('client_branches.id'), nullable=True, index=True),
        sa.Column('attendance_date', sa.Date(), nullable=False, index=True),
        sa.Column('status', sa.Enum(AttendanceStatus), nullable=False),
        sa.Column('check_in_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('check_out_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('work_hours', sa.Numeric(5, 2), nullable=True),
        sa.Column('overtime_hours', sa.Numeric(5, 2), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=True),
        sa.Column('verified_by', sa.String(length=36), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.UniqueConstraint('guard_id', 'attendance_date', name='uq_attendance_guard_date'),
    )

    op.create_table(
        'invoices',
        *_common_columns(),
        sa.Column('invoice_number', sa.String(length=20), nullable=False, index=True),
        sa.Column('client_id', sa.String(length=36), sa.ForeignKey('clients.id'), nullable=False, index=True),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('billing_period_start', sa.Date(), nullable=True),
        sa.Column('billing_period_end', sa.Date(), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('balance', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.Enum(InvoiceStatus), nullable=False, index=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.UniqueConstraint('org_id', 'invoice_number', name='uq_invoices_org_number'),
    )

    op.create_table(
        'invoice_items',
        *_common_columns(),
        sa.Column('invoice_id', sa.String(length=36), sa.ForeignKey('invoices.id'), nullable=False, index=True),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Numeric(10, 2), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('deployment_id', sa.String(length=36), sa.ForeignKey('deployments.id'), nullable=True),
        sa.Column('branch_id', sa.String(length=36), sa.ForeignKey('client_branches.id'), nullable=True),
    )

    op.create_table(
        'expenses',
        *_common_columns(),
        sa.Column('category', sa.Enum(ExpenseCategory), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('expense_date', sa.Date(), nullable=False),
        sa.Column('branch_id', sa.String(length=36), sa.ForeignKey('client_branches.id'), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('receipt_reference', sa.String(length=100), nullable=True),
        sa.Column('status', sa.Enum(ExpenseStatus), nullable=False),
    )


def downgrade():
    for table in (
        'expenses', 'invoice_items', 'invoices', 'attendance_records', 'deployments',
        'client_branches', 'clients', 'guard_loans', 'guards', 'approval_requests', 'profiles',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        ExpenseStatus, ExpenseCategory, InvoiceStatus, AttendanceStatus, DeploymentStatus, ShiftType,
        BranchStatus, ClientStatus, ClientType, LoanStatus, LoanType, GuardStatus, Gender,
        ApprovalStatus, ApprovalPriority, ApprovalRequestType, UserRole,
    ):
        sa.Enum(enum_type).drop(bind, checkfirst=True)
