import pytest

from knockout import db
from knockout.errors import InvalidState, NotFound
from knockout.models import Elimination, GameParticipant, Round
from knockout.services.games import lifecycle, rounds


def _active_game(user, players, **kwargs):
    kwargs.setdefault('game_mode', 'firstToX')
    if kwargs['game_mode'] == 'firstToX':
        kwargs.setdefault('winning_points', 2)
    game = lifecycle.create_game(
        'Friday night', player_ids=[p.id for p in players], created_by=user.id, **kwargs
    )
    lifecycle.start_game(game.id)
    return game


def _participant(game_id, player_id):
    return GameParticipant.query.filter_by(game_id=game_id, player_id=player_id).one()


def test_start_round_seats_everyone(user, players):
    game = _active_game(user, players)
    rnd = rounds.start_round(game.id)
    ids = [p.id for p in players]
    assert rnd.round_number == 1
    assert rnd.status == 'active'
    assert rnd.player_order == ids
    assert sorted(rnd.current_player_order) == sorted(ids)
    assert rnd.server_id == rnd.current_player_order[0]


def test_start_round_rotates_server(user, players):
    game = _active_game(user, players)
    first = rounds.start_round(game.id)
    second = rounds.start_round(game.id)
    assert second.round_number == 2
    assert second.server_id != first.server_id


def test_start_round_requires_active_game(user, players):
    game = lifecycle.create_game(
        'Not started', 'firstToX', winning_points=1, player_ids=[p.id for p in players], created_by=user.id
    )
    with pytest.raises(InvalidState):
        rounds.start_round(game.id)
    with pytest.raises(NotFound):
        rounds.start_round(9999)


def test_round_completes_when_one_player_remains(user, players):
    game = _active_game(user, players)
    rnd = rounds.start_round(game.id)
    order = rnd.current_player_order

    rounds.eliminate_player(game.id, rnd.id, order[1])
    rnd = db.session.get(Round, rnd.id)
    assert rnd.status == 'active'
    assert len(rnd.current_player_order) == 2
    assert order[1] not in rnd.current_player_order
    # Eliminator is the seat before the eliminated player
    assert _participant(game.id, order[0]).eliminations == 1

    survivors = rnd.current_player_order
    rounds.eliminate_player(game.id, rnd.id, survivors[0])
    rnd = db.session.get(Round, rnd.id)
    assert rnd.status == 'completed'
    assert rnd.winner_id == survivors[1]
    assert _participant(game.id, survivors[1]).current_points == 1

    # Winning points not reached, so the next round is already seated
    current = rounds.get_current_round(game.id)
    assert current['round_number'] == 2
    assert len(current['players']) == 3


def test_eliminate_rejects_bad_requests(user, players):
    game = _active_game(user, players)
    rnd = rounds.start_round(game.id)
    victim = rnd.current_player_order[1]
    rounds.eliminate_player(game.id, rnd.id, victim)

    with pytest.raises(InvalidState):
        rounds.eliminate_player(game.id, rnd.id, victim)
    with pytest.raises(NotFound):
        rounds.eliminate_player(game.id + 1, rnd.id, victim)
    with pytest.raises(NotFound):
        rounds.eliminate_player(game.id, 9999, victim)
    # Failed calls leave no partial state behind
    assert Elimination.query.filter_by(round_id=rnd.id).count() == 1


def test_eliminate_on_completed_round_is_rejected(user, players):
    game = _active_game(user, players)
    rnd = rounds.start_round(game.id)
    order = rnd.current_player_order
    rounds.eliminate_player(game.id, rnd.id, order[1])
    rounds.eliminate_player(game.id, rnd.id, db.session.get(Round, rnd.id).current_player_order[0])
    with pytest.raises(InvalidState):
        rounds.eliminate_player(game.id, rnd.id, order[0])


def test_revert_restores_eliminator_tally(user, players):
    game = _active_game(user, players)
    rnd = rounds.start_round(game.id)
    order = rnd.current_player_order
    eliminator = order[0]

    rounds.eliminate_player(game.id, rnd.id, order[1])
    assert _participant(game.id, eliminator).eliminations == 1

    rnd = rounds.revert_last_elimination(rnd.id)
    assert _participant(game.id, eliminator).eliminations == 0
    assert rnd.status == 'active'
    assert sorted(rnd.current_player_order) == sorted(order)
    assert rnd.server_id == rnd.current_player_order[0]
    eliminations = Elimination.query.filter_by(round_id=rnd.id).all()
    assert [e.is_reverted for e in eliminations] == [True]


def _finish_round(game_id, rnd):
    """Eliminate down to one player; returns the round winner."""
    rounds.eliminate_player(game_id, rnd.id, rnd.current_player_order[1])
    survivors = db.session.get(Round, rnd.id).current_player_order
    rounds.eliminate_player(game_id, rnd.id, survivors[0])
    return survivors[1]


def test_revert_reopens_completed_round_mid_game(user, players):
    game = _active_game(user, players, winning_points=3)
    rnd = rounds.start_round(game.id)
    winner = _finish_round(game.id, rnd)
    assert _participant(game.id, winner).current_points == 1
    tally_before = _participant(game.id, winner).eliminations
    next_round = rounds.get_current_round(game.id)
    assert next_round['round_number'] == 2

    reopened = rounds.revert_last_elimination(rnd.id)
    assert reopened.status == 'active'
    assert reopened.winner_id is None
    assert len(reopened.current_player_order) == 2
    assert _participant(game.id, winner).current_points == 0
    assert _participant(game.id, winner).eliminations == tally_before - 1
    assert db.session.get(Round, next_round['id']).status == 'superseded'
    assert rounds.get_current_round(game.id)['id'] == rnd.id

    # Play resumes in the reopened round and numbering stays monotonic
    survivors = reopened.current_player_order
    rounds.eliminate_player(game.id, rnd.id, survivors[0])
    assert db.session.get(Round, rnd.id).winner_id == survivors[1]
    assert rounds.get_current_round(game.id)['round_number'] == 3

    with pytest.raises(InvalidState):
        rounds.revert_last_elimination(next_round['id'])


def test_revert_rejected_once_next_round_is_played(user, players):
    game = _active_game(user, players, winning_points=3)
    rnd = rounds.start_round(game.id)
    _finish_round(game.id, rnd)
    next_round = db.session.get(Round, rounds.get_current_round(game.id)['id'])
    rounds.eliminate_player(game.id, next_round.id, next_round.current_player_order[1])

    with pytest.raises(InvalidState):
        rounds.revert_last_elimination(rnd.id)
    assert db.session.get(Round, rnd.id).status == 'completed'

    rounds.revert_last_elimination(next_round.id)
    assert rounds.revert_last_elimination(rnd.id).status == 'active'


def test_revert_reopened_set_decrements_sets_completed(user, players):
    game = _active_game(user, players, game_mode='fixedSets', sets_per_game=3)
    rnd = rounds.start_round(game.id)
    _finish_round(game.id, rnd)
    assert lifecycle.get_game_or_404(game.id).sets_completed == 1

    rounds.revert_last_elimination(rnd.id)
    game = lifecycle.get_game_or_404(game.id)
    assert game.sets_completed == 0
    assert game.status == 'active'


def test_revert_on_cancelled_game_is_rejected(user, players):
    game = _active_game(user, players)
    rnd = rounds.start_round(game.id)
    eliminator = rnd.current_player_order[0]
    rounds.eliminate_player(game.id, rnd.id, rnd.current_player_order[1])
    lifecycle.cancel_game(game.id)

    with pytest.raises(InvalidState):
        rounds.revert_last_elimination(rnd.id)
    assert _participant(game.id, eliminator).eliminations == 1


def test_revert_past_completed_game(user, players):
    from knockout.models import GameAnalytics, PlayerEloRating

    game = _active_game(user, players, winning_points=1)
    rnd = rounds.start_round(game.id)
    rounds.eliminate_player(game.id, rnd.id, rnd.current_player_order[1])
    survivors = db.session.get(Round, rnd.id).current_player_order
    rounds.eliminate_player(game.id, rnd.id, survivors[0])

    game = lifecycle.get_game_or_404(game.id)
    assert game.status == 'completed'
    assert game.winner_id == survivors[1]
    assert GameAnalytics.query.filter_by(game_id=game.id, wins=1).count() == 1

    rnd = rounds.revert_last_elimination(rnd.id)
    game = lifecycle.get_game_or_404(game.id)
    assert rnd.status == 'active'
    assert rnd.winner_id is None
    assert game.status == 'active'
    assert game.winner_id is None
    assert _participant(game.id, survivors[1]).current_points == 0
    assert all(row.games_played == 0 for row in GameAnalytics.query.filter_by(game_id=game.id))
    assert all(r.current_rating == 1200 for r in PlayerEloRating.query.all())
    assert len(rnd.current_player_order) == 2


def test_revert_without_eliminations(user, players):
    game = _active_game(user, players)
    rnd = rounds.start_round(game.id)
    with pytest.raises(InvalidState):
        rounds.revert_last_elimination(rnd.id)
    with pytest.raises(NotFound):
        rounds.revert_last_elimination(9999)


def test_fixed_sets_counts_sets(user, players):
    game = _active_game(user, players, game_mode='fixedSets', sets_per_game=2)
    for expected_sets in (1, 2):
        current = rounds.get_current_round(game.id) or rounds.start_round(game.id).to_dict()
        rid = current['id']
        order = db.session.get(Round, rid).current_player_order
        rounds.eliminate_player(game.id, rid, order[1])
        rounds.eliminate_player(game.id, rid, db.session.get(Round, rid).current_player_order[0])
        assert lifecycle.get_game_or_404(game.id).sets_completed == expected_sets

    game = lifecycle.get_game_or_404(game.id)
    assert game.status == 'completed'
    assert rounds.get_current_round(game.id) is None


def test_current_round_view(user, players):
    game = _active_game(user, players)
    assert rounds.get_current_round(game.id) is None
    rnd = rounds.start_round(game.id)
    victim = rnd.current_player_order[2]
    rounds.eliminate_player(game.id, rnd.id, victim)

    view = rounds.get_current_round(game.id)
    assert view['id'] == rnd.id
    assert victim not in [p['id'] for p in view['players']]
    assert view['server_id'] == view['players'][0]['id']
    assert [e['eliminated_player_id'] for e in view['eliminations']] == [victim]
