from flask import Blueprint, jsonify, request

from knockout.api import current_user_id, json_body, require_user_id
from knockout.services import leagues as league_service


leagues = Blueprint('leagues', __name__)


@leagues.route('/', methods=['GET'])
def list_leagues():
    return jsonify([league.to_dict() for league in league_service.list_leagues(current_user_id())])


@leagues.route('/create', methods=['POST'])
def create_league():
    user_id = require_user_id()
    data = json_body()
    league = league_service.create_league(
        data.get('name'),
        data.get('players_per_heat'),
        data.get('sets_per_heat'),
        player_ids=data.get('player_ids') or [],
        created_by=user_id,
    )
    return jsonify(league_service.get_league(league.id)), 201


@leagues.route('/<int:league_id>', methods=['GET'])
def get_league(league_id):
    return jsonify(league_service.get_league(league_id))


@leagues.route('/<int:league_id>/heats', methods=['POST'])
def generate_heats(league_id):
    require_user_id()
    league_service.generate_heats(league_id)
    return jsonify(league_service.get_heats(league_id)), 201


@leagues.route('/<int:league_id>/heats', methods=['GET'])
def get_heats(league_id):
    round_number = request.args.get('round', type=int)
    return jsonify(league_service.get_heats(league_id, round_number=round_number))


@leagues.route('/<int:league_id>/table', methods=['GET'])
def league_table(league_id):
    return jsonify(league_service.get_league_table(league_id))


@leagues.route('/<int:league_id>/complete', methods=['POST'])
def complete_league(league_id):
    league = league_service.complete_league(league_id)
    return jsonify(league.to_dict())
