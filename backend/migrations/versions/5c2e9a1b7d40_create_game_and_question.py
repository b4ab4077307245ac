"""create game and question tables

Revision ID: 5c2e9a1b7d40
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a1b7d40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('code', sa.String(length=6), nullable=True),
            sa.Column('title', sa.String(length=128), nullable=False),
            sa.Column('created_by', sa.String(length=64), nullable=True),
        )
        op.create_index('ix_game_code', 'game', ['code'], unique=True)

    if 'question' not in existing_tables:
        op.create_table(
            'question',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
            sa.Column('question_key', sa.String(length=64), nullable=False),
            sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('type', sa.String(length=32), nullable=False),
            sa.Column('text', sa.Text(), nullable=False),
            sa.Column('options', sa.Text(), nullable=True),
            sa.Column('correct_answers', sa.Text(), nullable=False),
            sa.Column('points', sa.Integer(), nullable=False, server_default='100'),
            sa.Column('time_limit', sa.Integer(), nullable=False, server_default='30'),
        )


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'question' in existing_tables:
        op.drop_table('question')
    if 'game' in existing_tables:
        op.drop_index('ix_game_code', table_name='game')
        op.drop_table('game')
