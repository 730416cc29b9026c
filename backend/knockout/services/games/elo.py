"""ELO ratings for multiplayer elimination games.

A completed game is resolved pairwise around its single winner:

- the winner is scored as having beaten every opponent, so its actual
  score is ``n - 1`` against the sum of its expected scores;
- every loser is scored as having lost to the winner only.

All "before" ratings are read first, then all updates are applied, so one
resolution pass never sees its own intermediate results.
"""
from typing import Dict, Iterable, List, Optional

from flask import current_app

from knockout import db
from knockout.models import EloHistory, Game, PlayerEloRating, utcnow


def expected_score(rating: float, opponent_rating: float) -> float:
    return 1 / (1 + 10 ** ((opponent_rating - rating) / 400))


def new_rating(rating: int, expected: float, actual: float, k_factor: int) -> int:
    return round(rating + k_factor * (actual - expected))


def calculate_multiplayer_elo_changes(winner_id: int, ratings: Dict[int, int], k_factor: int) -> Dict[int, dict]:
    """Map each player id to ``{'before', 'after', 'change'}``.

    ``ratings`` is the snapshot of every participant's rating, winner
    included.
    """
    winner_rating = ratings[winner_id]
    changes = {}
    for player_id, rating in ratings.items():
        if player_id == winner_id:
            total_expected = sum(
                expected_score(winner_rating, opp_rating)
                for opp_id, opp_rating in ratings.items() if opp_id != winner_id
            )
            after = new_rating(rating, total_expected, len(ratings) - 1, k_factor)
        else:
            after = new_rating(rating, expected_score(rating, winner_rating), 0, k_factor)
        changes[player_id] = {'before': rating, 'after': after, 'change': after - rating}
    return changes


def get_or_create_rating(player_id: int, created_by: int) -> PlayerEloRating:
    rating = PlayerEloRating.query.filter_by(player_id=player_id).first()
    if rating is None:
        default = current_app.config.get('DEFAULT_ELO_RATING', 1200)
        rating = PlayerEloRating(
            player_id=player_id,
            current_rating=default,
            peak_rating=default,
            games_played=0,
            created_by=created_by,
        )
        db.session.add(rating)
        db.session.flush()
    return rating


def apply_game_elo(game: Game, participant_ids: Iterable[int]) -> Dict[int, dict]:
    """Resolve and persist ELO for a completed game with a single winner."""
    participant_ids = list(participant_ids)
    if game.winner_id not in participant_ids or len(participant_ids) < 2:
        return {}

    rows = {pid: get_or_create_rating(pid, game.created_by) for pid in participant_ids}
    snapshot = {pid: row.current_rating for pid, row in rows.items()}
    changes = calculate_multiplayer_elo_changes(
        game.winner_id, snapshot, current_app.config.get('ELO_K_FACTOR', 32)
    )

    now = utcnow()
    for pid, change in changes.items():
        row = rows[pid]
        row.current_rating = change['after']
        row.games_played += 1
        row.peak_rating = max(row.peak_rating, change['after'])
        row.last_updated = now
        db.session.add(EloHistory(
            game_id=game.id,
            player_id=pid,
            rating_before=change['before'],
            rating_after=change['after'],
            rating_change=change['change'],
            created_by=game.created_by,
        ))

    current_app.logger.info(
        f"[elo] game={game.id} winner={game.winner_id} "
        + ' '.join(f"{pid}:{c['change']:+d}" for pid, c in changes.items())
    )
    return changes


def revert_game_elo(game: Game) -> int:
    """Subtract the rating changes ``game`` applied and flag their history rows.

    Peak ratings are left as they are. Returns the number of rows reverted.
    """
    history = EloHistory.query.filter_by(game_id=game.id, is_reverted=False).all()
    for entry in history:
        rating = PlayerEloRating.query.filter_by(player_id=entry.player_id).first()
        if rating is not None:
            rating.current_rating -= entry.rating_change
            rating.games_played = max(0, rating.games_played - 1)
            rating.last_updated = utcnow()
        entry.is_reverted = True
    if history:
        current_app.logger.info(f"[elo-revert] game={game.id} rows={len(history)}")
    return len(history)


def get_player_elo_rating(player_id: int) -> Optional[PlayerEloRating]:
    return PlayerEloRating.query.filter_by(player_id=player_id).first()


def get_elo_leaderboard(created_by: Optional[int] = None) -> List[dict]:
    """Ratings sorted highest first, with player names attached."""
    query = PlayerEloRating.query
    if created_by is not None:
        query = query.filter_by(created_by=created_by)
    board = []
    for rating in query.order_by(PlayerEloRating.current_rating.desc(), PlayerEloRating.id).all():
        entry = rating.to_dict()
        player = rating.player
        entry['player_name'] = player.name if player else 'Unknown'
        entry['player_initials'] = player.initials if player else None
        board.append(entry)
    return board


def get_player_elo_history(player_id: int, limit: Optional[int] = None) -> List[EloHistory]:
    """Most recent rating changes first."""
    if limit is None:
        limit = current_app.config.get('ELO_HISTORY_LIMIT', 50)
    return (
        EloHistory.query
        .filter_by(player_id=player_id, is_reverted=False)
        .order_by(EloHistory.id.desc())
        .limit(limit)
        .all()
    )
