"""initial_purchase_request_schema

Revision ID: 5a1c2e7b9d01
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5a1c2e7b9d01'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def _person(prefix: str, code_suffix: str, mail_suffix: str) -> list[sa.Column]:
    return [
        sa.Column(f'{prefix}_{code_suffix}', sa.String(50), nullable=True),
        sa.Column(f'{prefix}_name', sa.String(255), nullable=True),
        sa.Column(f'{prefix}_{mail_suffix}', sa.String(255), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        _id_column(),
        sa.Column('emp_code', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('location', sa.String(100), nullable=True),
        sa.Column('entity', sa.String(50), nullable=True),
        sa.Column('manager_name', sa.String(255), nullable=True),
        sa.Column('manager_email', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_emp_code', 'users', ['emp_code'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_name', 'users', ['name'])

    op.create_table(
        'approval_matrix',
        _id_column(),
        sa.Column('emp_code', sa.String(50), nullable=False),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('site', sa.String(100), nullable=True),
        *_person('approver_1', 'emp_code', 'email'),
        *_person('approver_2', 'emp_code', 'email'),
        *_person('approver_3a', 'emp_code', 'email'),
        *_person('approver_3b', 'emp_code', 'email'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_approval_matrix_emp_code', 'approval_matrix', ['emp_code'], unique=True)

    op.create_table(
        'purchase_requests',
        _id_column(),
        sa.Column('pr_number', sa.String(50), nullable=False),
        sa.Column('entity', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('request_date', sa.Date(), nullable=False),
        sa.Column('department', sa.String(100), nullable=False),
        sa.Column('location', sa.String(100), nullable=False),
        sa.Column('requester_emp_code', sa.String(50), nullable=False),
        sa.Column('business_justification_code', sa.String(50), nullable=False),
        sa.Column('business_justification_details', sa.Text(), nullable=False),
        sa.Column('total_estimated_cost', sa.Numeric(18, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('current_approval_level', sa.Integer(), nullable=True),
        sa.Column('current_approver_emp_code', sa.String(50), nullable=True),
        sa.Column('created_by', sa.String(50), nullable=True),
        sa.Column('updated_by', sa.String(50), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "(status = 'pending' AND current_approval_level BETWEEN 1 AND 3) OR "
            "(status <> 'pending' AND current_approval_level IS NULL AND current_approver_emp_code IS NULL)",
            name='ck_purchase_requests_status_level',
        ),
    )
    op.create_index('ix_purchase_requests_pr_number', 'purchase_requests', ['pr_number'], unique=True)
    op.create_index('ix_purchase_requests_requester_emp_code', 'purchase_requests', ['requester_emp_code'])
    op.create_index('ix_purchase_requests_status', 'purchase_requests', ['status'])
    op.create_index('ix_purchase_requests_current_approver_emp_code', 'purchase_requests', ['current_approver_emp_code'])

    op.create_table(
        'line_items',
        _id_column(),
        sa.Column('pr_number', sa.String(50), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('required_quantity', sa.Numeric(18, 4), nullable=False),
        sa.Column('unit_of_measure', sa.String(50), nullable=False),
        sa.Column('vendor_account_number', sa.String(100), nullable=True),
        sa.Column('required_by_date', sa.Date(), nullable=True),
        sa.Column('delivery_location', sa.String(255), nullable=True),
        sa.Column('estimated_cost', sa.Numeric(18, 2), nullable=False),
        sa.Column('item_justification', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['pr_number'], ['purchase_requests.pr_number'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_line_items_pr_number', 'line_items', ['pr_number'])

    op.create_table(
        'escalation_matrix',
        _id_column(),
        sa.Column('pr_number', sa.String(50), nullable=False),
        sa.Column('requester_code', sa.String(50), nullable=False),
        sa.Column('requester_name', sa.String(255), nullable=True),
        sa.Column('requester_mail', sa.String(255), nullable=True),
        *_person('approver_1', 'code', 'mail'),
        *_person('approver_2', 'code', 'mail'),
        *_person('approver_3a', 'code', 'mail'),
        *_person('approver_3b', 'code', 'mail'),
        *_person('manager_1', 'code', 'mail'),
        *_person('manager_2', 'code', 'mail'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['pr_number'], ['purchase_requests.pr_number']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_escalation_matrix_pr_number', 'escalation_matrix', ['pr_number'], unique=True)

    op.create_table(
        'escalation_logs',
        _id_column(),
        sa.Column('pr_number', sa.String(50), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('escalated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('email_sent_to', sa.String(500), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['pr_number'], ['purchase_requests.pr_number']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_escalation_logs_pr_number', 'escalation_logs', ['pr_number'])

    op.create_table(
        'audit_logs',
        _id_column(),
        sa.Column('pr_number', sa.String(50), nullable=False),
        sa.Column('approver_emp_code', sa.String(50), nullable=False),
        sa.Column('approval_level', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('acted_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['pr_number'], ['purchase_requests.pr_number']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_pr_number', 'audit_logs', ['pr_number'])
    op.create_index('ix_audit_logs_approver_emp_code', 'audit_logs', ['approver_emp_code'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('escalation_logs')
    op.drop_table('escalation_matrix')
    op.drop_table('line_items')
    op.drop_table('purchase_requests')
    op.drop_table('approval_matrix')
    op.drop_table('users')
