"""create_challenges_table

Revision ID: 7c41d2e9a0b3
Revises: 
Create Date: 2026-10-18 21:04:12.518337

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c41d2e9a0b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'challenges',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('room_id', sa.String(length=32), nullable=False),
        sa.Column('sender_id', sa.String(length=128), nullable=False),
        sa.Column('receiver_id', sa.String(length=128), nullable=False),
        sa.Column('card_id', sa.String(length=255), nullable=False),
        sa.Column('card_content', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('penalty', sa.JSON(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_challenges_room_id', 'challenges', ['room_id'])
    op.create_index('ix_challenges_sender_id', 'challenges', ['sender_id'])
    op.create_index('ix_challenges_receiver_id', 'challenges', ['receiver_id'])
    op.create_index('ix_challenges_status', 'challenges', ['status'])
    op.create_index('ix_challenges_sent_at', 'challenges', ['sent_at'])


def downgrade() -> None:
    op.drop_index('ix_challenges_sent_at', 'challenges')
    op.drop_index('ix_challenges_status', 'challenges')
    op.drop_index('ix_challenges_receiver_id', 'challenges')
    op.drop_index('ix_challenges_sender_id', 'challenges')
    op.drop_index('ix_challenges_room_id', 'challenges')
    op.drop_table('challenges')
