import pytest

from knockout import db
from knockout.errors import InvalidState, Unauthenticated, ValidationError
from knockout.models import Player, Round
from knockout.services import leagues
from knockout.services.games import lifecycle, rounds


@pytest.fixture()
def pool(user):
    pool = [Player(name=f'Player {i}', created_by=user.id) for i in range(7)]
    db.session.add_all(pool)
    db.session.commit()
    return pool


def _finish_heat(game_id):
    """Play every set of a heat, always eliminating the last seat."""
    while lifecycle.get_game_or_404(game_id).status == 'active':
        current = rounds.get_current_round(game_id) or rounds.start_round(game_id).to_dict()
        order = db.session.get(Round, current['id']).current_player_order
        rounds.eliminate_player(game_id, current['id'], order[-1])


def test_split_into_heats_merges_lone_leftover():
    heats = leagues.split_into_heats(range(7), 3)
    assert [len(h) for h in heats] == [3, 4]
    assert sorted(pid for heat in heats for pid in heat) == list(range(7))

    assert [len(h) for h in leagues.split_into_heats(range(8), 3)] == [3, 3, 2]
    assert leagues.split_into_heats([1], 3) == []


def test_create_league_validation(user, pool):
    ids = [p.id for p in pool]
    with pytest.raises(Unauthenticated):
        leagues.create_league('Spring', 3, 2, ids, created_by=None)
    with pytest.raises(ValidationError):
        leagues.create_league('Spring', 1, 2, ids, created_by=user.id)
    with pytest.raises(ValidationError):
        leagues.create_league('Spring', 3, 0, ids, created_by=user.id)
    with pytest.raises(ValidationError):
        leagues.create_league('', 3, 2, ids, created_by=user.id)

    league = leagues.create_league('Spring', 3, 2, ids, created_by=user.id)
    assert league.status == 'setup'
    assert league.current_round == 0
    assert len(leagues.get_league(league.id)['participants']) == 7


def test_generate_heats_creates_linked_games(user, pool):
    league = leagues.create_league('Spring', 3, 2, [p.id for p in pool], created_by=user.id)
    games = leagues.generate_heats(league.id)

    assert [len(g.participants) for g in games] == [3, 4]
    for number, game in enumerate(games, start=1):
        assert game.status == 'active'
        assert game.game_mode == 'fixedSets'
        assert game.sets_per_game == 2
        assert game.league_id == league.id
        assert game.league_round == 1
        assert game.league_heat_number == number
        assert game.track_league_analytics is True

    league = leagues.get_league_or_404(league.id)
    assert league.status == 'active'
    assert league.current_round == 1
    assert len(leagues.get_heats(league.id)) == 2


def test_next_round_waits_for_unfinished_heats(user, pool):
    league = leagues.create_league('Spring', 3, 1, [p.id for p in pool], created_by=user.id)
    games = leagues.generate_heats(league.id)
    with pytest.raises(InvalidState):
        leagues.generate_heats(league.id)
    with pytest.raises(InvalidState):
        leagues.complete_league(league.id)

    for game in games:
        _finish_heat(game.id)
    second = leagues.generate_heats(league.id)
    assert all(g.league_round == 2 for g in second)


def test_league_table_orders_by_points_then_eliminations(user, pool):
    league = leagues.create_league('Spring', 3, 2, [p.id for p in pool], created_by=user.id)
    for game in leagues.generate_heats(league.id):
        _finish_heat(game.id)

    table = leagues.get_league_table(league.id)
    keys = [(row['total_points'], row['total_eliminations']) for row in table]
    assert keys == sorted(keys, reverse=True)
    assert [row['position'] for row in table] == list(range(1, 8))
    # Two sets per heat across two heats
    assert sum(row['total_points'] for row in table) == 4
    assert all(row['games_played'] == 1 for row in table)

    heats = leagues.get_heats(league.id)
    assert all(h['status'] == 'completed' for h in heats)

    league = leagues.complete_league(league.id)
    assert league.status == 'completed'
    with pytest.raises(InvalidState):
        leagues.generate_heats(league.id)


def test_list_leagues_is_scoped_to_creator(user, pool):
    leagues.create_league('Spring', 3, 1, [p.id for p in pool], created_by=user.id)
    assert len(leagues.list_leagues(user.id)) == 1
    assert leagues.list_leagues(None) == []
    assert leagues.list_leagues(user.id + 1) == []
