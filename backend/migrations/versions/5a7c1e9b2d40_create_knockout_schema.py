"""create knockout schema: players, games, rounds, leagues, analytics, elo

Revision ID: 5a7c1e9b2d40
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5a7c1e9b2d40'
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
        'player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('initials', sa.String(length=8), nullable=True),
        sa.Column('total_wins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_eliminations', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_games_played', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
    )
    op.create_index('ix_player_created_by', 'player', ['created_by'])

    op.create_table(
        'league',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('players_per_heat', sa.Integer(), nullable=False),
        sa.Column('sets_per_heat', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='setup'),
        sa.Column('current_round', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
    )
    op.create_index('ix_league_created_by', 'league', ['created_by'])

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('game_mode', sa.String(length=32), nullable=False, server_default='firstToX'),
        sa.Column('winning_points', sa.Integer(), nullable=True),
        sa.Column('sets_per_game', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='setup'),
        sa.Column('winner_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=True),
        sa.Column('sets_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('league_id', sa.Integer(), sa.ForeignKey('league.id'), nullable=True),
        sa.Column('league_round', sa.Integer(), nullable=True),
        sa.Column('league_heat_number', sa.Integer(), nullable=True),
        sa.Column('track_analytics', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('track_league_analytics', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
    )
    op.create_index('ix_game_league_id', 'game', ['league_id'])
    op.create_index('ix_game_created_by', 'game', ['created_by'])

    op.create_table(
        'game_participant',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('current_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('eliminations', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_eliminated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('game_id', 'player_id', name='uq_game_participant'),
    )
    op.create_index('ix_game_participant_game_id', 'game_participant', ['game_id'])

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('player_order', sa.Text(), nullable=False),
        sa.Column('current_player_order', sa.Text(), nullable=True),
        sa.Column('server_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='active'),
        sa.Column('winner_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=True),
    )
    op.create_index('ix_round_game_id', 'round', ['game_id'])

    op.create_table(
        'elimination',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('round.id'), nullable=False),
        sa.Column('eliminated_player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('eliminator_player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('elimination_order', sa.Integer(), nullable=False),
        sa.Column('is_reverted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_elimination_game_id', 'elimination', ['game_id'])
    op.create_index('ix_elimination_round_id', 'elimination', ['round_id'])

    op.create_table(
        'league_participant',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('league_id', sa.Integer(), sa.ForeignKey('league.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_eliminations', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('league_id', 'player_id', name='uq_league_participant'),
    )
    op.create_index('ix_league_participant_league_id', 'league_participant', ['league_id'])

    op.create_table(
        'game_analytics',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('eliminations', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('game_id', 'player_id', name='uq_game_analytics'),
    )
    op.create_index('ix_game_analytics_game_id', 'game_analytics', ['game_id'])
    op.create_index('ix_game_analytics_player_id', 'game_analytics', ['player_id'])

    op.create_table(
        'league_analytics',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('league_id', sa.Integer(), sa.ForeignKey('league.id'), nullable=False),
        sa.Column('last_game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=True),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('eliminations', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('league_id', 'player_id', name='uq_league_analytics'),
    )
    op.create_index('ix_league_analytics_league_id', 'league_analytics', ['league_id'])

    op.create_table(
        'player_elo_rating',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False, unique=True),
        sa.Column('current_rating', sa.Integer(), nullable=False),
        sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('peak_rating', sa.Integer(), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
    )
    op.create_index('ix_player_elo_rating_created_by', 'player_elo_rating', ['created_by'])

    op.create_table(
        'elo_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('rating_before', sa.Integer(), nullable=False),
        sa.Column('rating_after', sa.Integer(), nullable=False),
        sa.Column('rating_change', sa.Integer(), nullable=False),
        sa.Column('is_reverted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
    )
    op.create_index('ix_elo_history_game_id', 'elo_history', ['game_id'])
    op.create_index('ix_elo_history_player_id', 'elo_history', ['player_id'])


def downgrade():
    for table in (
        'elo_history', 'player_elo_rating', 'league_analytics', 'game_analytics',
        'league_participant', 'elimination', 'round', 'game_participant', 'game',
        'league', 'player', 'user',
    ):
        op.drop_table(table)
