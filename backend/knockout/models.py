from datetime import datetime, timezone
import json

from flask_login import UserMixin

from knockout import db, bcrypt

GAME_MODES = ('firstToX', 'fixedSets')


def utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    initials = db.Column(db.String(8), nullable=True)
    total_wins = db.Column(db.Integer, default=0, nullable=False)
    total_points = db.Column(db.Integer, default=0, nullable=False)
    total_eliminations = db.Column(db.Integer, default=0, nullable=False)
    total_games_played = db.Column(db.Integer, default=0, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'initials': self.initials,
            'total_wins': self.total_wins,
            'total_points': self.total_points,
            'total_eliminations': self.total_eliminations,
            'total_games_played': self.total_games_played,
        }


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    game_mode = db.Column(db.String(32), nullable=False, default='firstToX')
    winning_points = db.Column(db.Integer, nullable=True)  # firstToX
    sets_per_game = db.Column(db.Integer, nullable=True)  # fixedSets
    status = db.Column(db.String(32), nullable=False, default='setup')  # setup, active, completed, cancelled
    winner_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=True)
    sets_completed = db.Column(db.Integer, nullable=False, default=0)
    # League heat linkage (null for standalone games)
    league_id = db.Column(db.Integer, db.ForeignKey('league.id'), nullable=True, index=True)
    league_round = db.Column(db.Integer, nullable=True)
    league_heat_number = db.Column(db.Integer, nullable=True)
    track_analytics = db.Column(db.Boolean, nullable=False, default=True)
    track_league_analytics = db.Column(db.Boolean, nullable=False, default=False)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)

    participants = db.relationship('GameParticipant', back_populates='game', order_by='GameParticipant.id')

    @property
    def is_league_game(self):
        return self.league_id is not None

    def participant_for(self, player_id):
        for p in self.participants:
            if p.player_id == player_id:
                return p
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'game_mode': self.game_mode,
            'winning_points': self.winning_points,
            'sets_per_game': self.sets_per_game,
            'status': self.status,
            'winner_id': self.winner_id,
            'sets_completed': self.sets_completed,
            'league_id': self.league_id,
            'league_round': self.league_round,
            'league_heat_number': self.league_heat_number,
            'track_analytics': self.track_analytics,
            'track_league_analytics': self.track_league_analytics,
        }


class GameParticipant(db.Model):
    __tablename__ = 'game_participant'
    __table_args__ = (db.UniqueConstraint('game_id', 'player_id', name='uq_game_participant'),)
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    current_points = db.Column(db.Integer, nullable=False, default=0)
    eliminations = db.Column(db.Integer, nullable=False, default=0)
    is_eliminated = db.Column(db.Boolean, nullable=False, default=False)
    game = db.relationship('Game', back_populates='participants')
    player = db.relationship('Player')

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'player_id': self.player_id,
            'current_points': self.current_points,
            'eliminations': self.eliminations,
            'is_eliminated': self.is_eliminated,
            'player': self.player.to_dict() if self.player else None,
        }


class Round(db.Model):
    """One unit of elimination play: a game round, or a set of a league heat."""
    __tablename__ = 'round'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    player_order_json = db.Column('player_order', db.Text, nullable=False)  # JSON list of player ids
    current_player_order_json = db.Column('current_player_order', db.Text, nullable=True)
    server_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    status = db.Column(db.String(32), nullable=False, default='active')  # active, completed, superseded
    winner_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=True)
    game = db.relationship('Game')

    @property
    def player_order(self):
        return json.loads(self.player_order_json or '[]')

    @player_order.setter
    def player_order(self, ids):
        self.player_order_json = json.dumps(list(ids))

    @property
    def current_player_order(self):
        if not self.current_player_order_json:
            return self.player_order
        return json.loads(self.current_player_order_json)

    @current_player_order.setter
    def current_player_order(self, ids):
        self.current_player_order_json = json.dumps(list(ids))

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'round_number': self.round_number,
            'player_order': self.player_order,
            'current_player_order': self.current_player_order,
            'server_id': self.server_id,
            'status': self.status,
            'winner_id': self.winner_id,
        }


class Elimination(db.Model):
    __tablename__ = 'elimination'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    eliminated_player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    eliminator_player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    elimination_order = db.Column(db.Integer, nullable=False)
    is_reverted = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'round_id': self.round_id,
            'eliminated_player_id': self.eliminated_player_id,
            'eliminator_player_id': self.eliminator_player_id,
            'elimination_order': self.elimination_order,
            'is_reverted': self.is_reverted,
        }


class League(db.Model):
    __tablename__ = 'league'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    players_per_heat = db.Column(db.Integer, nullable=False)
    sets_per_heat = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(32), nullable=False, default='setup')  # setup, active, completed
    current_round = db.Column(db.Integer, nullable=False, default=0)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    participants = db.relationship('LeagueParticipant', back_populates='league', order_by='LeagueParticipant.id')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'players_per_heat': self.players_per_heat,
            'sets_per_heat': self.sets_per_heat,
            'status': self.status,
            'current_round': self.current_round,
        }


class LeagueParticipant(db.Model):
    __tablename__ = 'league_participant'
    __table_args__ = (db.UniqueConstraint('league_id', 'player_id', name='uq_league_participant'),)
    id = db.Column(db.Integer, primary_key=True)
    league_id = db.Column(db.Integer, db.ForeignKey('league.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    total_eliminations = db.Column(db.Integer, nullable=False, default=0)
    games_played = db.Column(db.Integer, nullable=False, default=0)
    league = db.relationship('League', back_populates='participants')
    player = db.relationship('Player')

    def to_dict(self):
        return {
            'id': self.id,
            'league_id': self.league_id,
            'player_id': self.player_id,
            'total_points': self.total_points,
            'total_eliminations': self.total_eliminations,
            'games_played': self.games_played,
            'player': self.player.to_dict() if self.player else None,
        }


class GameAnalytics(db.Model):
    __tablename__ = 'game_analytics'
    __table_args__ = (db.UniqueConstraint('game_id', 'player_id', name='uq_game_analytics'),)
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False, index=True)
    points = db.Column(db.Integer, nullable=False, default=0)
    eliminations = db.Column(db.Integer, nullable=False, default=0)
    wins = db.Column(db.Integer, nullable=False, default=0)
    games_played = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'game_id': self.game_id,
            'player_id': self.player_id,
            'points': self.points,
            'eliminations': self.eliminations,
            'wins': self.wins,
            'games_played': self.games_played,
        }


class LeagueAnalytics(db.Model):
    __tablename__ = 'league_analytics'
    __table_args__ = (db.UniqueConstraint('league_id', 'player_id', name='uq_league_analytics'),)
    id = db.Column(db.Integer, primary_key=True)
    league_id = db.Column(db.Integer, db.ForeignKey('league.id'), nullable=False, index=True)
    last_game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=True)  # most recent game rolled in
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    eliminations = db.Column(db.Integer, nullable=False, default=0)
    wins = db.Column(db.Integer, nullable=False, default=0)
    games_played = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'league_id': self.league_id,
            'last_game_id': self.last_game_id,
            'player_id': self.player_id,
            'points': self.points,
            'eliminations': self.eliminations,
            'wins': self.wins,
            'games_played': self.games_played,
        }


class PlayerEloRating(db.Model):
    __tablename__ = 'player_elo_rating'
    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False, unique=True)
    current_rating = db.Column(db.Integer, nullable=False)
    games_played = db.Column(db.Integer, nullable=False, default=0)
    peak_rating = db.Column(db.Integer, nullable=False)
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    player = db.relationship('Player')

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'current_rating': self.current_rating,
            'games_played': self.games_played,
            'peak_rating': self.peak_rating,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None,
        }


class EloHistory(db.Model):
    __tablename__ = 'elo_history'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False, index=True)
    rating_before = db.Column(db.Integer, nullable=False)
    rating_after = db.Column(db.Integer, nullable=False)
    rating_change = db.Column(db.Integer, nullable=False)
    is_reverted = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    def to_dict(self):
        return {
            'game_id': self.game_id,
            'player_id': self.player_id,
            'rating_before': self.rating_before,
            'rating_after': self.rating_after,
            'rating_change': self.rating_change,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
