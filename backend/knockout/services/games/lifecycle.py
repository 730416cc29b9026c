from typing import Iterable, List, Optional

from flask import current_app

from knockout import db
from knockout.errors import InvalidState, NotFound, Unauthenticated, ValidationError
from knockout.models import GAME_MODES, Game, GameParticipant, League, Player
from knockout.services import transactional
from knockout.services.games import elo, scoring
from knockout.services.games.engine import FIRST_TO_X


def get_game_or_404(game_id: int, lock: bool = False) -> Game:
    game = db.session.get(Game, game_id, with_for_update=lock)
    if game is None:
        raise NotFound('Game not found')
    return game


def _positive_int(value, field: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} is required')
    if number < 1:
        raise ValidationError(f'{field} must be at least 1')
    return number


def _unique_player_ids(player_ids: Iterable) -> List[int]:
    ids = []
    for pid in player_ids or []:
        try:
            pid = int(pid)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid player id: {pid!r}')
        if pid not in ids:
            ids.append(pid)
    return ids


def _check_players_exist(player_ids: List[int]) -> None:
    found = {p.id for p in Player.query.filter(Player.id.in_(player_ids)).all()} if player_ids else set()
    missing = [pid for pid in player_ids if pid not in found]
    if missing:
        raise NotFound(f'Player(s) not found: {missing}')


@transactional
def create_game(name: str, game_mode: str, winning_points=None, sets_per_game=None,
                player_ids: Iterable = (), created_by: Optional[int] = None,
                track_analytics: bool = True, track_league_analytics: bool = False,
                league_id: Optional[int] = None, league_round: Optional[int] = None,
                league_heat_number: Optional[int] = None) -> Game:
    """Create a game in ``setup`` with its participants at zero points."""
    if created_by is None:
        raise Unauthenticated('Must be logged in to create games')
    if not name or not str(name).strip():
        raise ValidationError('Game name is required')
    if game_mode not in GAME_MODES:
        raise ValidationError(f'Unknown game mode: {game_mode}')

    if game_mode == FIRST_TO_X:
        winning_points = _positive_int(winning_points, 'winning_points')
        sets_per_game = None
    else:
        sets_per_game = _positive_int(sets_per_game, 'sets_per_game')
        winning_points = None

    ids = _unique_player_ids(player_ids)
    min_players = max(2, int(current_app.config.get('MIN_PLAYERS', 2)))
    if len(ids) < min_players:
        raise ValidationError(f'At least {min_players} players are required')
    _check_players_exist(ids)

    if league_id is not None and db.session.get(League, league_id) is None:
        raise NotFound('League not found')

    game = Game(
        name=str(name).strip(),
        game_mode=game_mode,
        winning_points=winning_points,
        sets_per_game=sets_per_game,
        status='setup',
        sets_completed=0,
        track_analytics=bool(track_analytics),
        track_league_analytics=bool(track_league_analytics),
        league_id=league_id,
        league_round=league_round,
        league_heat_number=league_heat_number,
        created_by=created_by,
    )
    db.session.add(game)
    db.session.flush()
    for pid in ids:
        db.session.add(GameParticipant(game_id=game.id, player_id=pid, current_points=0, eliminations=0, is_eliminated=False))
    db.session.flush()
    current_app.logger.info(f"[game-create] game={game.id} mode={game_mode} players={ids} league={league_id}")
    return game


@transactional
def start_game(game_id: int) -> Game:
    game = get_game_or_404(game_id, lock=True)
    if game.status == 'active':
        # Idempotent start: already started
        return game
    if game.status != 'setup':
        raise InvalidState(f'Game is {game.status}')
    game.status = 'active'
    current_app.logger.info(f"[game-start] game={game.id}")
    return game


@transactional
def cancel_game(game_id: int) -> Game:
    game = get_game_or_404(game_id, lock=True)
    if game.status not in ('setup', 'active'):
        raise InvalidState(f'Game is {game.status}')
    game.status = 'cancelled'
    current_app.logger.info(f"[game-cancel] game={game.id}")
    return game


@transactional
def add_participants(game_id: int, player_ids: Iterable) -> List[GameParticipant]:
    """Add players to a game; they are seated from the next round on."""
    game = get_game_or_404(game_id, lock=True)
    if game.status not in ('setup', 'active'):
        raise InvalidState(f'Game is {game.status}')
    ids = _unique_player_ids(player_ids)
    _check_players_exist(ids)
    added = []
    for pid in ids:
        if game.participant_for(pid):
            continue
        participant = GameParticipant(game_id=game.id, player_id=pid, current_points=0, eliminations=0, is_eliminated=False)
        game.participants.append(participant)
        added.append(participant)
    db.session.flush()
    if added:
        current_app.logger.info(f"[game-join] game={game.id} players={[p.player_id for p in added]}")
    return added


def _elo_applies(game: Game) -> bool:
    if not game.is_league_game:
        return True
    return bool(current_app.config.get('ELO_FOR_LEAGUE_GAMES', False))


@transactional
def complete_game(game_id: int, winner_id: int) -> Game:
    """Finish a game and run the scoring cascade and ELO update once."""
    game = get_game_or_404(game_id, lock=True)
    if game.status != 'active':
        raise InvalidState(f'Game is {game.status}')
    if game.participant_for(winner_id) is None:
        raise ValidationError('Winner is not a participant in this game')

    game.status = 'completed'
    game.winner_id = winner_id
    db.session.flush()
    current_app.logger.info(f"[game-complete] game={game.id} winner={winner_id}")

    scoring.apply_game_completion(game)
    if _elo_applies(game):
        elo.apply_game_elo(game, [p.player_id for p in game.participants if not p.is_eliminated])
    return game


def reopen_completed_game(game: Game) -> None:
    """Undo ``complete_game``: analytics, player totals, league rows and ELO.

    Runs inside the caller's transaction, before points or eliminations
    change.
    """
    if game.status != 'completed':
        return
    scoring.revert_game_completion(game)
    elo.revert_game_elo(game)
    game.status = 'active'
    game.winner_id = None
    current_app.logger.info(f"[game-reopen] game={game.id}")


def get_game(game_id: int) -> dict:
    """Game with participants and their non-reverted elimination counts."""
    game = get_game_or_404(game_id)
    counts = scoring.elimination_counts(game.id)
    data = game.to_dict()
    participants = []
    for p in game.participants:
        pd = p.to_dict()
        pd['total_eliminations'] = counts.get(p.player_id, 0)
        participants.append(pd)
    data['participants'] = participants
    return data


def list_games(created_by: Optional[int], league_id: Optional[int] = None) -> List[Game]:
    if created_by is None:
        return []
    query = Game.query.filter_by(created_by=created_by)
    if league_id is not None:
        query = query.filter_by(league_id=league_id)
    return query.order_by(Game.id.desc()).all()
