from flask import Blueprint, jsonify, request

from knockout.api import current_user_id, int_field, json_body, require_user_id
from knockout.services.games import lifecycle, rounds
from knockout.socketio_events import notify_game


games = Blueprint('games', __name__)


@games.route('/', methods=['GET'])
def list_games():
    league_id = request.args.get('league_id', type=int)
    return jsonify([g.to_dict() for g in lifecycle.list_games(current_user_id(), league_id=league_id)])


@games.route('/create', methods=['POST'])
def create_game():
    user_id = require_user_id()
    data = json_body()
    game = lifecycle.create_game(
        data.get('name'),
        data.get('game_mode') or 'firstToX',
        winning_points=data.get('winning_points'),
        sets_per_game=data.get('sets_per_game'),
        player_ids=data.get('player_ids') or [],
        created_by=user_id,
        track_analytics=data.get('track_analytics', True),
    )
    if data.get('start'):
        lifecycle.start_game(game.id)
        rounds.start_round(game.id)
    return jsonify(lifecycle.get_game(game.id)), 201


@games.route('/<int:game_id>', methods=['GET'])
def get_game(game_id):
    return jsonify(lifecycle.get_game(game_id))


@games.route('/<int:game_id>/start', methods=['POST'])
def start_game(game_id):
    game = lifecycle.start_game(game_id)
    notify_game(game.id)
    return jsonify(game.to_dict())


@games.route('/<int:game_id>/cancel', methods=['POST'])
def cancel_game(game_id):
    game = lifecycle.cancel_game(game_id)
    notify_game(game.id)
    return jsonify(game.to_dict())


@games.route('/<int:game_id>/participants', methods=['POST'])
def add_participants(game_id):
    data = json_body()
    added = lifecycle.add_participants(game_id, data.get('player_ids') or [])
    notify_game(game_id)
    return jsonify([p.to_dict() for p in added]), 201


@games.route('/<int:game_id>/complete', methods=['POST'])
def complete_game(game_id):
    data = json_body()
    game = lifecycle.complete_game(game_id, int_field(data, 'winner_id'))
    notify_game(game.id)
    return jsonify(lifecycle.get_game(game.id))


@games.route('/<int:game_id>/rounds/current', methods=['GET'])
def current_round(game_id):
    lifecycle.get_game_or_404(game_id)
    return jsonify({'round': rounds.get_current_round(game_id)})


@games.route('/<int:game_id>/rounds', methods=['POST'])
def start_round(game_id):
    rnd = rounds.start_round(game_id)
    notify_game(game_id)
    return jsonify(rounds.get_current_round(game_id) or rnd.to_dict()), 201


@games.route('/<int:game_id>/rounds/<int:round_id>/eliminate', methods=['POST'])
def eliminate(game_id, round_id):
    data = json_body()
    rounds.eliminate_player(game_id, round_id, int_field(data, 'player_id'))
    notify_game(game_id)
    return jsonify({
        'game': lifecycle.get_game(game_id),
        'round': rounds.get_current_round(game_id),
    })


@games.route('/rounds/<int:round_id>/revert', methods=['POST'])
def revert_elimination(round_id):
    rnd = rounds.revert_last_elimination(round_id)
    notify_game(rnd.game_id)
    return jsonify({
        'game': lifecycle.get_game(rnd.game_id),
        'round': rounds.get_current_round(rnd.game_id),
    })
