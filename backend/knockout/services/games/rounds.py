"""Round state machine: seating, eliminations, completion and reversal.

A round is ``active`` from creation until one player is left standing, then
``completed``. Reverting the last elimination of a completed round reopens
it; a next round that was auto-started but not yet played becomes
``superseded``. League heat sets are rounds of a league-linked game.
"""
from typing import List, Optional

from flask import current_app

from knockout import db
from knockout.errors import InvalidState, NotFound
from knockout.models import Elimination, GameParticipant, Round
from knockout.services import transactional
from knockout.services.games import lifecycle, scoring
from knockout.services.games.engine import (
    FIXED_SETS, pick_order_avoiding_server, resolve_eliminator, should_end_game,
)

SUPERSEDED = 'superseded'


def _shuffle_attempts() -> int:
    return int(current_app.config.get('SERVER_SHUFFLE_ATTEMPTS', 10))


def _get_round_or_404(round_id: int, lock: bool = False) -> Round:
    rnd = db.session.get(Round, round_id, with_for_update=lock)
    if rnd is None:
        raise NotFound('Round not found')
    return rnd


def _latest_round(game_id: int, include_superseded: bool = True) -> Optional[Round]:
    query = Round.query.filter_by(game_id=game_id)
    if not include_superseded:
        query = query.filter(Round.status != SUPERSEDED)
    return query.order_by(Round.round_number.desc()).first()


def _active_eliminations(round_id: int) -> List[Elimination]:
    return (
        Elimination.query
        .filter_by(round_id=round_id, is_reverted=False)
        .order_by(Elimination.id)
        .all()
    )


def _active_eliminations_in(round_ids: List[int]) -> int:
    return (
        Elimination.query
        .filter(Elimination.round_id.in_(round_ids), Elimination.is_reverted.is_(False))
        .count()
    )


def _later_rounds(rnd: Round) -> List[Round]:
    """Rounds started after ``rnd`` that are still in play or finished."""
    return (
        Round.query
        .filter(
            Round.game_id == rnd.game_id,
            Round.round_number > rnd.round_number,
            Round.status != SUPERSEDED,
        )
        .order_by(Round.round_number)
        .all()
    )


@transactional
def start_round(game_id: int) -> Round:
    """Seat the game's active participants for a new round."""
    game = lifecycle.get_game_or_404(game_id, lock=True)
    if game.status != 'active':
        raise InvalidState('Game is not active')

    participants = (
        GameParticipant.query
        .filter_by(game_id=game.id, is_eliminated=False)
        .order_by(GameParticipant.id)
        .all()
    )
    if len(participants) < 2:
        raise InvalidState('Need at least 2 players to start a round')

    last_round = _latest_round(game.id)
    previous = _latest_round(game.id, include_superseded=False)
    player_ids = [p.player_id for p in participants]
    order = pick_order_avoiding_server(
        player_ids, previous.server_id if previous else None, _shuffle_attempts()
    )

    rnd = Round(
        game_id=game.id,
        round_number=(last_round.round_number + 1) if last_round else 1,
        server_id=order[0],
        status='active',
    )
    rnd.player_order = player_ids
    rnd.current_player_order = order
    db.session.add(rnd)
    db.session.flush()
    current_app.logger.info(
        f"[round-start] game={game.id} round={rnd.round_number} id={rnd.id} server={rnd.server_id} order={order}"
    )
    return rnd


@transactional
def eliminate_player(game_id: int, round_id: int, player_id: int) -> Round:
    """Knock ``player_id`` out of the round and credit the eliminator."""
    rnd = _get_round_or_404(round_id, lock=True)
    if rnd.game_id != game_id:
        raise NotFound('Round not found')
    if rnd.status != 'active':
        raise InvalidState('Round is not active')
    game = lifecycle.get_game_or_404(game_id, lock=True)
    if game.status != 'active':
        raise InvalidState('Game is not active')

    current = _active_eliminations(rnd.id)
    eliminated_ids = [e.eliminated_player_id for e in current]
    if player_id in eliminated_ids:
        raise InvalidState('Player is already eliminated')

    order = rnd.current_player_order
    eliminator_id = resolve_eliminator(player_id, order, eliminated_ids)

    db.session.add(Elimination(
        game_id=game.id,
        round_id=rnd.id,
        eliminated_player_id=player_id,
        eliminator_player_id=eliminator_id,
        elimination_order=len(current) + 1,
        is_reverted=False,
    ))
    scoring.credit_elimination(game, eliminator_id)
    current_app.logger.info(
        f"[eliminate] game={game.id} round={rnd.round_number} player={player_id} by={eliminator_id} order={len(current) + 1}"
    )

    out = set(eliminated_ids) | {player_id}
    remaining = [pid for pid in order if pid not in out]

    if len(remaining) == 1:
        _complete_round(game, rnd, remaining[0])
    elif len(remaining) > 1:
        # Earliest survivor of the pre-elimination order is the current server
        new_order = pick_order_avoiding_server(remaining, remaining[0], _shuffle_attempts())
        rnd.current_player_order = new_order
        rnd.server_id = new_order[0]
    db.session.flush()
    return rnd


def _complete_round(game, rnd: Round, winner_id: int) -> None:
    rnd.status = 'completed'
    rnd.winner_id = winner_id
    points = scoring.award_round_win(game, winner_id)

    if game.game_mode == FIXED_SETS:
        game.sets_completed = (game.sets_completed or 0) + 1
    current_app.logger.info(
        f"[round-complete] game={game.id} round={rnd.round_number} winner={winner_id} points={points} sets={game.sets_completed}"
    )

    config = {'winning_points': game.winning_points, 'sets_per_game': game.sets_per_game}
    state = {'max_points': points, 'sets_completed': game.sets_completed}
    db.session.flush()
    if should_end_game(game.game_mode, config, state):
        lifecycle.complete_game(game.id, winner_id)
    else:
        start_round(game.id)


@transactional
def revert_last_elimination(round_id: int) -> Round:
    """Undo the most recent elimination of a round, reopening it if needed."""
    rnd = _get_round_or_404(round_id, lock=True)
    game = lifecycle.get_game_or_404(rnd.game_id, lock=True)
    if game.status == 'cancelled':
        raise InvalidState('Game is cancelled')
    if rnd.status == SUPERSEDED:
        raise InvalidState('Round was superseded')

    last = (
        Elimination.query
        .filter_by(round_id=rnd.id, is_reverted=False)
        .order_by(Elimination.id.desc())
        .first()
    )
    if last is None:
        raise InvalidState('No elimination to revert')

    later = []
    if rnd.status == 'completed':
        later = _later_rounds(rnd)
        if later and _active_eliminations_in([r.id for r in later]):
            raise InvalidState('A later round already has eliminations')
        # Analytics and ratings were computed from the pre-revert state
        lifecycle.reopen_completed_game(game)
    for successor in later:
        successor.status = SUPERSEDED
        current_app.logger.info(f"[round-superseded] game={game.id} round={successor.round_number}")

    last.is_reverted = True
    scoring.debit_elimination(game, last.eliminator_player_id)

    still_out = {e.eliminated_player_id for e in _active_eliminations(rnd.id)}
    remaining = [pid for pid in rnd.player_order if pid not in still_out]

    if rnd.status == 'completed':
        if rnd.winner_id is not None:
            scoring.revoke_round_win(game, rnd.winner_id)
        if game.game_mode == FIXED_SETS:
            game.sets_completed = max(0, (game.sets_completed or 0) - 1)
        rnd.status = 'active'
        rnd.winner_id = None

    new_order = pick_order_avoiding_server(remaining)
    rnd.current_player_order = new_order
    if new_order:
        rnd.server_id = new_order[0]
    db.session.flush()
    current_app.logger.info(
        f"[revert] game={game.id} round={rnd.round_number} player={last.eliminated_player_id} "
        f"by={last.eliminator_player_id} server={rnd.server_id}"
    )
    return rnd


def get_current_round(game_id: int) -> Optional[dict]:
    """Active round with its live seating, server and full elimination log."""
    rnd = Round.query.filter_by(game_id=game_id, status='active').order_by(Round.round_number.desc()).first()
    if rnd is None:
        return None

    eliminations = Elimination.query.filter_by(round_id=rnd.id).order_by(Elimination.id).all()
    out = {e.eliminated_player_id for e in eliminations if not e.is_reverted}
    participants = {p.player_id: p for p in GameParticipant.query.filter_by(game_id=game_id).all()}

    players = []
    for pid in rnd.current_player_order:
        if pid in out:
            continue
        participant = participants.get(pid)
        pd = participant.player.to_dict() if participant and participant.player else {'id': pid}
        pd['current_points'] = participant.current_points if participant else 0
        pd['is_eliminated'] = False
        players.append(pd)

    data = rnd.to_dict()
    data['server_id'] = players[0]['id'] if players else rnd.server_id
    data['players'] = players
    data['eliminations'] = [e.to_dict() for e in eliminations]
    return data
