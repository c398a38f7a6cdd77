"""add triwulan voting

Revision ID: 8d41c6b0e5f3
Revises: 3f9c1a7e2b64
Create Date: 2026-10-19 15:47:03.551920

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8d41c6b0e5f3'
down_revision: Union[str, None] = '3f9c1a7e2b64'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _period_fk() -> sa.Column:
    return sa.Column('period_id', sa.Integer(), sa.ForeignKey('triwulan_periods.id'), nullable=False)


def upgrade() -> None:
    op.create_table(
        'triwulan_periods',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('quarter', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year', 'quarter', name='uq_triwulan_year_quarter'),
    )
    op.create_index(op.f('ix_triwulan_periods_id'), 'triwulan_periods', ['id'], unique=False)

    op.create_table(
        'triwulan_monthly_deficiencies',
        sa.Column('id', sa.Integer(), nullable=False),
        _period_fk(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('deficiency_hours', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('filled_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period_id', 'user_id', 'year', 'month', name='uq_deficiency_period_user_month'),
    )
    op.create_index(op.f('ix_triwulan_monthly_deficiencies_id'), 'triwulan_monthly_deficiencies', ['id'], unique=False)
    op.create_index(
        op.f('ix_triwulan_monthly_deficiencies_period_id'), 'triwulan_monthly_deficiencies', ['period_id'], unique=False
    )

    op.create_table(
        'triwulan_votes',
        sa.Column('id', sa.Integer(), nullable=False),
        _period_fk(),
        sa.Column('voter_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('candidate_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period_id', 'voter_id', 'candidate_id', name='uq_vote_period_voter_candidate'),
    )
    op.create_index(op.f('ix_triwulan_votes_id'), 'triwulan_votes', ['id'], unique=False)
    op.create_index(op.f('ix_triwulan_votes_period_id'), 'triwulan_votes', ['period_id'], unique=False)

    op.create_table(
        'triwulan_vote_completion',
        sa.Column('id', sa.Integer(), nullable=False),
        _period_fk(),
        sa.Column('voter_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period_id', 'voter_id', name='uq_vote_completion_period_voter'),
    )
    op.create_index(op.f('ix_triwulan_vote_completion_id'), 'triwulan_vote_completion', ['id'], unique=False)
    op.create_index(
        op.f('ix_triwulan_vote_completion_period_id'), 'triwulan_vote_completion', ['period_id'], unique=False
    )

    op.create_table(
        'triwulan_ratings',
        sa.Column('id', sa.Integer(), nullable=False),
        _period_fk(),
        sa.Column('rater_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('candidate_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('scores', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period_id', 'rater_id', 'candidate_id', name='uq_rating_period_rater_candidate'),
    )
    op.create_index(op.f('ix_triwulan_ratings_id'), 'triwulan_ratings', ['id'], unique=False)
    op.create_index(op.f('ix_triwulan_ratings_period_id'), 'triwulan_ratings', ['period_id'], unique=False)

    op.create_table(
        'triwulan_winners',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('period_id', sa.Integer(), sa.ForeignKey('triwulan_periods.id'), nullable=False, unique=True),
        sa.Column('winner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('total_score', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_triwulan_winners_id'), 'triwulan_winners', ['id'], unique=False)


def downgrade() -> None:
    op.drop_table('triwulan_winners')
    op.drop_table('triwulan_ratings')
    op.drop_table('triwulan_vote_completion')
    op.drop_table('triwulan_votes')
    op.drop_table('triwulan_monthly_deficiencies')
    op.drop_table('triwulan_periods')
