from typing import Dict, List

from flask import current_app
from sqlalchemy import func

from knockout import db
from knockout.models import (
    Elimination, Game, GameAnalytics, LeagueAnalytics, LeagueParticipant, Player,
)


def _league_participant(game: Game, player_id: int):
    """League table row for ``player_id`` when ``game`` feeds a league table."""
    if not (game.league_id and game.track_league_analytics):
        return None
    lp = LeagueParticipant.query.filter_by(league_id=game.league_id, player_id=player_id).first()
    if lp is None:
        current_app.logger.warning(f"[league-missing] league={game.league_id} player={player_id} not a participant")
    return lp


def credit_elimination(game: Game, eliminator_id: int) -> None:
    """+1 elimination for the eliminator, in the game and on the league table."""
    participant = game.participant_for(eliminator_id)
    if participant:
        participant.eliminations += 1
    lp = _league_participant(game, eliminator_id)
    if lp:
        lp.total_eliminations += 1


def debit_elimination(game: Game, eliminator_id: int) -> None:
    participant = game.participant_for(eliminator_id)
    if participant and participant.eliminations > 0:
        participant.eliminations -= 1
    lp = _league_participant(game, eliminator_id)
    if lp and lp.total_eliminations > 0:
        lp.total_eliminations -= 1


def award_round_win(game: Game, winner_id: int) -> int:
    """Give the round winner a point; heat play also scores a league set point.

    Returns the winner's points in this game.
    """
    participant = game.participant_for(winner_id)
    if participant is None:
        return 0
    participant.current_points += 1
    lp = _league_participant(game, winner_id)
    if lp:
        lp.total_points += 1
    return participant.current_points


def revoke_round_win(game: Game, winner_id: int) -> None:
    participant = game.participant_for(winner_id)
    if participant and participant.current_points > 0:
        participant.current_points -= 1
    lp = _league_participant(game, winner_id)
    if lp and lp.total_points > 0:
        lp.total_points -= 1


def elimination_counts(game_id: int) -> Dict[int, int]:
    """Non-reverted eliminations credited to each eliminator in a game."""
    rows = (
        db.session.query(Elimination.eliminator_player_id, func.count(Elimination.id))
        .filter(Elimination.game_id == game_id, Elimination.is_reverted.is_(False))
        .group_by(Elimination.eliminator_player_id)
        .all()
    )
    return {player_id: count for player_id, count in rows}


def completion_deltas(game: Game) -> List[dict]:
    counts = elimination_counts(game.id)
    return [
        {
            'player_id': p.player_id,
            'points': p.current_points,
            'eliminations': counts.get(p.player_id, 0),
            'wins': 1 if p.player_id == game.winner_id else 0,
            'games_played': 1,
        }
        for p in game.participants
    ]


def _add(row, delta: dict, sign: int) -> None:
    for field in ('points', 'eliminations', 'wins', 'games_played'):
        setattr(row, field, max(0, (getattr(row, field) or 0) + sign * delta[field]))


def _apply_player_totals(delta: dict, sign: int) -> None:
    player = db.session.get(Player, delta['player_id'])
    if player is None:
        return
    player.total_points = max(0, player.total_points + sign * delta['points'])
    player.total_eliminations = max(0, player.total_eliminations + sign * delta['eliminations'])
    player.total_wins = max(0, player.total_wins + sign * delta['wins'])
    player.total_games_played = max(0, player.total_games_played + sign * delta['games_played'])


def _apply(game: Game, sign: int) -> List[dict]:
    deltas = completion_deltas(game)
    for delta in deltas:
        pid = delta['player_id']
        if game.track_analytics:
            row = GameAnalytics.query.filter_by(game_id=game.id, player_id=pid).first()
            if row is None:
                row = GameAnalytics(game_id=game.id, player_id=pid, points=0, eliminations=0, wins=0, games_played=0)
                db.session.add(row)
            _add(row, delta, sign)
            _apply_player_totals(delta, sign)

        if game.track_league_analytics and game.league_id:
            row = LeagueAnalytics.query.filter_by(league_id=game.league_id, player_id=pid).first()
            if row is None:
                row = LeagueAnalytics(league_id=game.league_id, player_id=pid, points=0, eliminations=0, wins=0, games_played=0)
                db.session.add(row)
            row.last_game_id = game.id
            _add(row, delta, sign)
            # League points and eliminations are credited per set during heat play
            lp = _league_participant(game, pid)
            if lp:
                lp.games_played = max(0, lp.games_played + sign)
    return deltas


def apply_game_completion(game: Game) -> List[dict]:
    """Roll a completed game into analytics, player totals and league tables."""
    deltas = _apply(game, 1)
    current_app.logger.info(
        f"[analytics] game={game.id} winner={game.winner_id} participants={len(deltas)} "
        f"global={game.track_analytics} league={bool(game.track_league_analytics and game.league_id)}"
    )
    return deltas


def revert_game_completion(game: Game) -> List[dict]:
    """Subtract exactly what ``apply_game_completion`` added for ``game``.

    Must run before the game's points or eliminations change.
    """
    deltas = _apply(game, -1)
    current_app.logger.info(f"[analytics-revert] game={game.id} participants={len(deltas)}")
    return deltas
