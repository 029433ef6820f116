"""payroll_cycles

Revision ID: 0002_payroll_cycles
Revises: 0001_initial_schema
Create Date: 2026-10-19 14:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from guardforce.models.shared.enums import PayrollCycleStatus, PayrollPaymentStatus


# revision identifiers, used by Alembic.
revision: str = '0002_payroll_cycles'
down_revision: Union[str, None] = '0001_initial_schema'
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
        'payroll_cycles',
        *_common_columns(),
        sa.Column('cycle_name', sa.String(length=100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('status', sa.Enum(PayrollCycleStatus), nullable=False, index=True),
        sa.Column('total_employees', sa.Integer(), nullable=False),
        sa.Column('total_gross', sa.Numeric(14, 2), nullable=False),
        sa.Column('total_deductions', sa.Numeric(14, 2), nullable=False),
        sa.Column('total_net', sa.Numeric(14, 2), nullable=False),
        sa.Column('calculated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('calculated_by', sa.String(length=36), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', sa.String(length=36), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'payroll_items',
        *_common_columns(),
        sa.Column('cycle_id', sa.String(length=36), sa.ForeignKey('payroll_cycles.id'), nullable=False, index=True),
        sa.Column('guard_id', sa.String(length=36), sa.ForeignKey('guards.id'), nullable=False, index=True),
        sa.Column('basic_salary', sa.Numeric(12, 2), nullable=False),
        sa.Column('allowances', sa.Numeric(12, 2), nullable=False),
        sa.Column('overtime_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('gross_salary', sa.Numeric(12, 2), nullable=False),
        sa.Column('deductions', sa.JSON(), nullable=True),
        sa.Column('loan_deduction', sa.Numeric(12, 2), nullable=False),
        sa.Column('advance_deduction', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_deductions', sa.Numeric(12, 2), nullable=False),
        sa.Column('net_salary', sa.Numeric(12, 2), nullable=False),
        sa.Column('days_worked', sa.Integer(), nullable=False),
        sa.Column('days_absent', sa.Integer(), nullable=False),
        sa.Column('overtime_hours', sa.Numeric(8, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('payment_status', sa.Enum(PayrollPaymentStatus), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('cycle_id', 'guard_id', name='uq_payroll_items_cycle_guard'),
    )


def downgrade():
    op.drop_table('payroll_items')
    op.drop_table('payroll_cycles')

    bind = op.get_bind()
    for enum_type in (PayrollPaymentStatus, PayrollCycleStatus):
        sa.Enum(enum_type).drop(bind, checkfirst=True)
