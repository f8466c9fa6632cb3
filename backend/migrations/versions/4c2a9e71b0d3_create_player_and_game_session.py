"""create player and game_session tables

Revision ID: 4c2a9e71b0d3
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e71b0d3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('email', sa.String(length=120), nullable=False),
            sa.Column('name', sa.String(length=120), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
            sa.Column('refresh_token', sa.Text(), nullable=True),
            sa.Column('busy_session_id', sa.String(length=32), nullable=True),
        )
        op.create_index('ix_player_username', 'player', ['username'], unique=True)
        op.create_index('ix_player_email', 'player', ['email'], unique=True)
        op.create_index('ix_player_refresh_token', 'player', ['refresh_token'], unique=False)

    if 'game_session' not in existing_tables:
        op.create_table(
            'game_session',
            sa.Column('id', sa.String(length=32), primary_key=True),
            sa.Column('initiator', sa.String(length=64), sa.ForeignKey('player.username'), nullable=False),
            sa.Column('opponent', sa.String(length=64), sa.ForeignKey('player.username'), nullable=False),
            sa.Column('next_move', sa.String(length=64), nullable=False),
            sa.Column('board', sa.JSON(), nullable=True),
            sa.Column('status', sa.String(length=64), nullable=True),
            sa.Column('timestamp', sa.BigInteger(), nullable=False),
            sa.Column('created_at', sa.BigInteger(), nullable=False),
            sa.Column('concluded_at', sa.BigInteger(), nullable=True),
        )
        op.create_index('ix_game_session_initiator', 'game_session', ['initiator'], unique=False)
        op.create_index('ix_game_session_opponent', 'game_session', ['opponent'], unique=False)
        op.create_index('ix_game_session_timestamp', 'game_session', ['timestamp'], unique=False)


def downgrade():
    op.drop_table('game_session')
    op.drop_table('player')
