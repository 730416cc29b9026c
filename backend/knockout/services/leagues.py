"""Leagues: participants, heat generation and the league table.

A heat is a ``fixedSets`` game linked to its league, so every set of a heat
runs through the same round state machine as a standalone game.
"""
from typing import Iterable, List, Optional

from flask import current_app

from knockout import db
from knockout.errors import InvalidState, NotFound, Unauthenticated, ValidationError
from knockout.models import Game, League, LeagueParticipant, Player
from knockout.services import transactional
from knockout.services.games import lifecycle
from knockout.services.games.engine import FIXED_SETS, shuffle


def get_league_or_404(league_id: int, lock: bool = False) -> League:
    league = db.session.get(League, league_id, with_for_update=lock)
    if league is None:
        raise NotFound('League not found')
    return league


def split_into_heats(player_ids: Iterable[int], players_per_heat: int) -> List[List[int]]:
    """Shuffle and chunk players into heats; a lone leftover joins the last heat."""
    heats: List[List[int]] = []
    shuffled = shuffle(list(player_ids))
    for start in range(0, len(shuffled), players_per_heat):
        chunk = shuffled[start:start + players_per_heat]
        if len(chunk) >= 2:
            heats.append(chunk)
        elif heats:
            heats[-1].extend(chunk)
    return heats


@transactional
def create_league(name: str, players_per_heat, sets_per_heat, player_ids: Iterable = (),
                  created_by: Optional[int] = None) -> League:
    if created_by is None:
        raise Unauthenticated('Must be logged in to create leagues')
    name = (name or '').strip()
    if not name:
        raise ValidationError('League name is required')
    try:
        players_per_heat = int(players_per_heat)
        sets_per_heat = int(sets_per_heat)
    except (TypeError, ValueError):
        raise ValidationError('players_per_heat and sets_per_heat are required')
    if players_per_heat < 2:
        raise ValidationError('players_per_heat must be at least 2')
    if sets_per_heat < 1:
        raise ValidationError('sets_per_heat must be at least 1')

    ids = []
    for pid in player_ids or []:
        try:
            pid = int(pid)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid player id: {pid!r}')
        if pid not in ids:
            ids.append(pid)
    if len(ids) < 2:
        raise ValidationError('At least 2 players are required')
    found = {p.id for p in Player.query.filter(Player.id.in_(ids)).all()}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise NotFound(f'Player(s) not found: {missing}')

    league = League(
        name=name,
        players_per_heat=players_per_heat,
        sets_per_heat=sets_per_heat,
        status='setup',
        current_round=0,
        created_by=created_by,
    )
    db.session.add(league)
    db.session.flush()
    for pid in ids:
        league.participants.append(LeagueParticipant(
            league_id=league.id, player_id=pid, total_points=0, total_eliminations=0, games_played=0,
        ))
    db.session.flush()
    current_app.logger.info(
        f"[league-create] league={league.id} players={ids} per_heat={players_per_heat} sets={sets_per_heat}"
    )
    return league


def _heat_games(league_id: int, round_number: int) -> List[Game]:
    return (
        Game.query
        .filter_by(league_id=league_id, league_round=round_number)
        .order_by(Game.league_heat_number, Game.id)
        .all()
    )


def _unfinished(games: List[Game]) -> List[Game]:
    return [g for g in games if g.status in ('setup', 'active')]


@transactional
def generate_heats(league_id: int) -> List[Game]:
    """Draw the next league round: one started heat game per group of players."""
    league = get_league_or_404(league_id, lock=True)
    if league.status == 'completed':
        raise InvalidState('League is completed')
    if league.current_round and _unfinished(_heat_games(league.id, league.current_round)):
        raise InvalidState('Current round still has unfinished heats')

    heats = split_into_heats([p.player_id for p in league.participants], league.players_per_heat)
    if not heats:
        raise InvalidState('Need at least 2 players to generate heats')

    round_number = league.current_round + 1
    games = []
    for number, heat in enumerate(heats, start=1):
        game = lifecycle.create_game(
            f"{league.name} R{round_number} Heat {number}",
            FIXED_SETS,
            sets_per_game=league.sets_per_heat,
            player_ids=heat,
            created_by=league.created_by,
            track_analytics=True,
            track_league_analytics=True,
            league_id=league.id,
            league_round=round_number,
            league_heat_number=number,
        )
        lifecycle.start_game(game.id)
        games.append(game)

    league.current_round = round_number
    league.status = 'active'
    current_app.logger.info(
        f"[heats] league={league.id} round={round_number} heats={[len(h) for h in heats]}"
    )
    return games


def get_heats(league_id: int, round_number: Optional[int] = None) -> List[dict]:
    """Heats of a league round (current by default) with live league tallies."""
    league = get_league_or_404(league_id)
    if round_number is None:
        round_number = league.current_round
    tallies = {p.player_id: p for p in league.participants}

    heats = []
    for game in _heat_games(league.id, round_number):
        data = game.to_dict()
        players = []
        for participant in game.participants:
            pd = participant.player.to_dict()
            lp = tallies.get(participant.player_id)
            pd['current_points'] = participant.current_points
            pd['league_points'] = lp.total_points if lp else 0
            pd['league_eliminations'] = lp.total_eliminations if lp else 0
            players.append(pd)
        data['players'] = players
        heats.append(data)
    return heats


def get_league(league_id: int) -> dict:
    league = get_league_or_404(league_id)
    data = league.to_dict()
    data['participants'] = [p.to_dict() for p in league.participants]
    return data


def list_leagues(created_by: Optional[int]) -> List[League]:
    if created_by is None:
        return []
    return League.query.filter_by(created_by=created_by).order_by(League.id.desc()).all()


def get_league_table(league_id: int) -> List[dict]:
    """Standings: most points first, more eliminations breaking ties."""
    league = get_league_or_404(league_id)
    rows = sorted(
        league.participants,
        key=lambda p: (-p.total_points, -p.total_eliminations, p.id),
    )
    table = []
    for position, row in enumerate(rows, start=1):
        entry = row.to_dict()
        entry['position'] = position
        table.append(entry)
    return table


@transactional
def complete_league(league_id: int) -> League:
    league = get_league_or_404(league_id, lock=True)
    if league.status == 'completed':
        raise InvalidState('League is already completed')
    if league.current_round and _unfinished(_heat_games(league.id, league.current_round)):
        raise InvalidState('Current round still has unfinished heats')
    league.status = 'completed'
    current_app.logger.info(f"[league-complete] league={league.id} rounds={league.current_round}")
    return league
