from flask import Blueprint, jsonify, request

from knockout.api import current_user_id, json_body, require_user_id
from knockout.services import players as player_service
from knockout.services.games import elo as elo_service


players = Blueprint('players', __name__)
elo = Blueprint('elo', __name__)


@players.route('/', methods=['GET'])
def list_players():
    return jsonify([p.to_dict() for p in player_service.list_players(current_user_id())])


@players.route('/create', methods=['POST'])
def create_player():
    user_id = require_user_id()
    data = json_body()
    player = player_service.create_player(data.get('name'), user_id, initials=data.get('initials'))
    return jsonify(player.to_dict()), 201


@players.route('/<int:player_id>', methods=['GET'])
def get_player(player_id):
    return jsonify(player_service.get_player(player_id).to_dict())


@players.route('/<int:player_id>/stats', methods=['POST'])
def update_player_stats(player_id):
    require_user_id()
    data = json_body()
    player = player_service.update_player_stats(
        player_id,
        wins=data.get('wins'),
        points=data.get('points'),
        eliminations=data.get('eliminations'),
    )
    return jsonify(player.to_dict())


@players.route('/<int:player_id>/elo', methods=['GET'])
def player_elo(player_id):
    player_service.get_player(player_id)
    rating = elo_service.get_player_elo_rating(player_id)
    return jsonify({'rating': rating.to_dict() if rating else None})


@players.route('/<int:player_id>/elo/history', methods=['GET'])
def player_elo_history(player_id):
    player_service.get_player(player_id)
    limit = request.args.get('limit', type=int)
    return jsonify([h.to_dict() for h in elo_service.get_player_elo_history(player_id, limit=limit)])


@elo.route('/leaderboard', methods=['GET'])
def leaderboard():
    user_id = current_user_id()
    if user_id is None:
        return jsonify([])
    return jsonify(elo_service.get_elo_leaderboard(created_by=user_id))
