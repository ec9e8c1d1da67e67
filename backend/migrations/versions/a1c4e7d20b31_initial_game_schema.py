"""initial game schema: rooms, players, rounds, answers, votes

Revision ID: a1c4e7d20b31
Revises:
Create Date: 2026-10-16 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c4e7d20b31'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=8), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
        sa.Column('round_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_rounds', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('timer_duration', sa.Integer(), nullable=True),
        sa.Column('categories', sa.JSON(), nullable=False),
        sa.Column('used_letters', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_room_code', 'room', ['code'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_host', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('token_hash', sa.String(length=128), nullable=True),
        sa.Column('joined_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('room_id', 'name', name='uq_player_room_name'),
    )
    op.create_index('ix_player_room_id', 'player', ['room_id'])

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('letter', sa.String(length=1), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('first_submission_at', sa.DateTime(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('validated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_round_room_id', 'round', ['room_id'])
    op.create_index('ix_round_status', 'round', ['status'])

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('round.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('word', sa.String(length=128), nullable=False),
        sa.Column('is_valid', sa.Boolean(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('validation_reason', sa.Text(), nullable=True),
        sa.Column('community_rejected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('round_id', 'player_id', 'category', name='uq_answer_round_player_category'),
    )
    op.create_index('ix_answer_round_id', 'answer', ['round_id'])

    op.create_table(
        'vote',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('answer_id', sa.Integer(), sa.ForeignKey('answer.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('accepted', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('answer_id', 'player_id', name='uq_vote_answer_player'),
    )
    op.create_index('ix_vote_answer_id', 'vote', ['answer_id'])


def downgrade():
    op.drop_index('ix_vote_answer_id', table_name='vote')
    op.drop_table('vote')
    op.drop_index('ix_answer_round_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_round_status', table_name='round')
    op.drop_index('ix_round_room_id', table_name='round')
    op.drop_table('round')
    op.drop_index('ix_player_room_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_room_code', table_name='room')
    op.drop_table('room')
