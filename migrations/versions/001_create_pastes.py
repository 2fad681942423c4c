"""create pastes table

Revision ID: 001_pastes
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_pastes'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'pastes',
        sa.Column('id', sa.String(length=10), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('expires_at', sa.BigInteger(), nullable=True),
        sa.Column('max_views', sa.Integer(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('max_views IS NULL OR max_views >= 1', name='ck_pastes_max_views_min_1'),
        sa.CheckConstraint('view_count >= 0', name='ck_pastes_view_count_non_negative'),
        sa.CheckConstraint('max_views IS NULL OR view_count <= max_views', name='ck_pastes_view_count_within_quota'),
        sa.CheckConstraint('expires_at IS NULL OR expires_at > created_at', name='ck_pastes_expires_after_created'),
    )
    op.create_index('ix_pastes_expires_at', 'pastes', ['expires_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_pastes_expires_at', table_name='pastes')
    op.drop_table('pastes')
