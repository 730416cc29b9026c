from typing import List, Optional

from flask import current_app

from knockout import db
from knockout.errors import NotFound, Unauthenticated, ValidationError
from knockout.models import Player
from knockout.services import transactional


def _initials(name: str) -> str:
    parts = name.split()
    if len(parts) > 1:
        return ''.join(p[0] for p in parts[:2]).upper()
    return name[:2].upper()


@transactional
def create_player(name: str, created_by: Optional[int], initials: Optional[str] = None) -> Player:
    if created_by is None:
        raise Unauthenticated('Must be logged in to create players')
    name = (name or '').strip()
    if not name:
        raise ValidationError('Player name is required')
    player = Player(
        name=name,
        initials=(initials or '').strip().upper() or _initials(name),
        total_wins=0,
        total_points=0,
        total_eliminations=0,
        total_games_played=0,
        created_by=created_by,
    )
    db.session.add(player)
    db.session.flush()
    current_app.logger.info(f"[player-create] player={player.id} name={player.name!r} by={created_by}")
    return player


def list_players(created_by: Optional[int]) -> List[Player]:
    """The caller's player pool; empty for anonymous callers."""
    if created_by is None:
        return []
    return Player.query.filter_by(created_by=created_by).order_by(Player.name, Player.id).all()


def get_player(player_id: int) -> Player:
    player = db.session.get(Player, player_id)
    if player is None:
        raise NotFound('Player not found')
    return player


@transactional
def update_player_stats(player_id: int, wins=None, points=None, eliminations=None) -> Player:
    """Add manual adjustments to a player's global totals, floored at 0."""
    player = db.session.get(Player, player_id, with_for_update=True)
    if player is None:
        raise NotFound('Player not found')
    for field, delta in (('total_wins', wins), ('total_points', points), ('total_eliminations', eliminations)):
        if delta is None:
            continue
        try:
            delta = int(delta)
        except (TypeError, ValueError):
            raise ValidationError(f'{field} adjustment must be an integer')
        setattr(player, field, max(0, getattr(player, field) + delta))
    current_app.logger.info(
        f"[player-stats] player={player.id} wins={wins} points={points} eliminations={eliminations}"
    )
    return player
