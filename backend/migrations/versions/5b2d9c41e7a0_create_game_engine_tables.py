"""create user, playlist, track, game, player, card and timeline_entry tables

Revision ID: 5b2d9c41e7a0
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b2d9c41e7a0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'playlist',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('name', sa.String(length=256), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('imported_at', sa.Float(), nullable=True),
    )
    op.create_index('ix_playlist_owner_id', 'playlist', ['owner_id'])

    op.create_table(
        'track',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('playlist_id', sa.Integer(), sa.ForeignKey('playlist.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=256), nullable=False),
        sa.Column('artist_names_json', sa.Text(), nullable=True),
        sa.Column('release_year', sa.Integer(), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
    )
    op.create_index('ix_track_playlist_id', 'track', ['playlist_id'])

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_code', sa.String(length=8), nullable=True),
        sa.Column('host_user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('mode', sa.String(length=32), nullable=False),
        sa.Column('playlist_id', sa.Integer(), sa.ForeignKey('playlist.id'), nullable=False),
        sa.Column('use_tokens', sa.Boolean(), nullable=False),
        sa.Column('starting_tokens', sa.Integer(), nullable=False),
        sa.Column('max_tokens', sa.Integer(), nullable=False),
        sa.Column('win_condition', sa.Integer(), nullable=False),
        sa.Column('phase', sa.String(length=32), nullable=False),
        sa.Column('current_turn_seat_index', sa.Integer(), nullable=False),
        sa.Column('round_state', sa.Text(), nullable=True),
        sa.Column('win_check_start_seat_index', sa.Integer(), nullable=True),
        sa.Column('tiebreak_player_ids_json', sa.Text(), nullable=True),
        sa.Column('winner_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=True),
        sa.Column('started_at', sa.Float(), nullable=True),
        sa.Column('finished_at', sa.Float(), nullable=True),
    )
    op.create_index('ix_game_game_code', 'game', ['game_code'], unique=True)
    op.create_index('ix_game_host_user_id', 'game', ['host_user_id'])

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('seat_index', sa.Integer(), nullable=False),
        sa.Column('display_name', sa.String(length=64), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('token_balance', sa.Integer(), nullable=False),
        sa.Column('is_host_seat', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_player_game_id', 'player', ['game_id'])

    # game.winner_id and player.game_id reference each other
    with op.batch_alter_table('game') as batch_op:
        batch_op.create_foreign_key('fk_game_winner_id', 'player', ['winner_id'], ['id'])

    op.create_table(
        'card',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('track_id', sa.Integer(), sa.ForeignKey('track.id'), nullable=False),
        sa.Column('release_year', sa.Integer(), nullable=False),
        sa.Column('state', sa.String(length=16), nullable=False),
        sa.Column('owner_player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=True),
        sa.Column('deck_order', sa.Integer(), nullable=True),
    )
    op.create_index('ix_card_game_id', 'card', ['game_id'])
    op.create_index('ix_card_state', 'card', ['state'])

    op.create_table(
        'timeline_entry',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('card_id', sa.Integer(), sa.ForeignKey('card.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.UniqueConstraint('card_id'),
    )
    op.create_index('ix_timeline_entry_player_id', 'timeline_entry', ['player_id'])


def downgrade():
    op.drop_index('ix_timeline_entry_player_id', table_name='timeline_entry')
    op.drop_table('timeline_entry')
    op.drop_index('ix_card_state', table_name='card')
    op.drop_index('ix_card_game_id', table_name='card')
    op.drop_table('card')
    with op.batch_alter_table('game') as batch_op:
        batch_op.drop_constraint('fk_game_winner_id', type_='foreignkey')
    op.drop_index('ix_player_game_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_game_host_user_id', table_name='game')
    op.drop_index('ix_game_game_code', table_name='game')
    op.drop_table('game')
    op.drop_index('ix_track_playlist_id', table_name='track')
    op.drop_table('track')
    op.drop_index('ix_playlist_owner_id', table_name='playlist')
    op.drop_table('playlist')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
