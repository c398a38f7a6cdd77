"""initial feedback schema

Revision ID: 3f9c1a7e2b64
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c1a7e2b64'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _period_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=True),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f(f'ix_{name}_id'), name, ['id'], unique=False)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('role', sa.String(), nullable=True, server_default='user'),
        sa.Column('position', sa.String(), nullable=True),
        sa.Column('department', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    _period_table('assessment_periods')
    _period_table('pin_periods')

    op.create_table(
        'employee_pins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('giver_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('receiver_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('given_at', sa.DateTime(), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_employee_pins_id'), 'employee_pins', ['id'], unique=False)
    op.create_index(op.f('ix_employee_pins_giver_id'), 'employee_pins', ['giver_id'], unique=False)
    op.create_index(op.f('ix_employee_pins_receiver_id'), 'employee_pins', ['receiver_id'], unique=False)
    op.create_index(op.f('ix_employee_pins_given_at'), 'employee_pins', ['given_at'], unique=False)

    op.create_table(
        'monthly_pin_allowances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('pins_remaining', sa.Integer(), nullable=False),
        sa.Column('pins_used', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'month', 'year', name='uq_allowance_user_month_year'),
        sa.CheckConstraint('pins_remaining >= 0', name='ck_allowance_remaining_non_negative'),
        sa.CheckConstraint('pins_used >= 0', name='ck_allowance_used_non_negative'),
    )
    op.create_index(op.f('ix_monthly_pin_allowances_id'), 'monthly_pin_allowances', ['id'], unique=False)

    op.create_table(
        'assessment_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('assessor_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assessee_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('period_id', sa.Integer(), sa.ForeignKey('assessment_periods.id'), nullable=False),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('assessor_id', 'assessee_id', 'period_id', name='uq_assignment_pair_period'),
    )
    op.create_index(op.f('ix_assessment_assignments_id'), 'assessment_assignments', ['id'], unique=False)
    op.create_index(op.f('ix_assessment_assignments_assessor_id'), 'assessment_assignments', ['assessor_id'], unique=False)
    op.create_index(op.f('ix_assessment_assignments_assessee_id'), 'assessment_assignments', ['assessee_id'], unique=False)

    op.create_table(
        'feedback_responses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column(
            'assignment_id', sa.Integer(),
            sa.ForeignKey('assessment_assignments.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('aspect', sa.String(), nullable=False),
        sa.Column('indicator', sa.Text(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_feedback_responses_id'), 'feedback_responses', ['id'], unique=False)
    op.create_index(op.f('ix_feedback_responses_assignment_id'), 'feedback_responses', ['assignment_id'], unique=False)


def downgrade() -> None:
    op.drop_table('feedback_responses')
    op.drop_table('assessment_assignments')
    op.drop_table('monthly_pin_allowances')
    op.drop_table('employee_pins')
    op.drop_table('pin_periods')
    op.drop_table('assessment_periods')
    op.drop_table('users')
