"""Create the gitivity_profiles table.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'gitivity_profiles',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('username', sa.String(255), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('score_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('stats', sa.JSON(), nullable=False),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_gitivity_profiles_username'),
    )
    # Rank and leaderboard queries sort by score
    op.create_index('idx_gitivity_profiles_score', 'gitivity_profiles', ['score'])


def downgrade() -> None:
    op.drop_index('idx_gitivity_profiles_score', table_name='gitivity_profiles')
    op.drop_table('gitivity_profiles')
