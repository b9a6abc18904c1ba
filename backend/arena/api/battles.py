from flask import Blueprint, jsonify, request, current_app
from arena.errors import GameError
from arena.models import slot_from_player, player_label
from arena.services.battle import project_state

battles = Blueprint('battles', __name__)


def _registry():
    return current_app.extensions['battle_sessions']


@battles.errorhandler(GameError)
def handle_game_error(exc):
    return jsonify(exc.to_dict()), exc.status


@battles.route('/create', methods=['POST'])
def create_game():
    code = _registry().create_session()
    return jsonify({
        'message': 'New game created!',
        'game_code': code
    }), 201


@battles.route('/join/<string:game_code>', methods=['POST'])
def join_game(game_code):
    """Assign the caller the first free player slot."""
    session = _registry().get_session(game_code)
    slot = session.claim_slot()
    return jsonify({
        'message': f'Successfully joined game {session.code}',
        'game_code': session.code,
        'player': player_label(slot),
        'state': project_state(session, slot),
    }), 200


@battles.route('/<string:game_code>/connect/<player>', methods=['POST'])
def connect_player(game_code, player):
    slot = slot_from_player(player)
    session = _registry().get_session(game_code)
    session.connect(slot)
    return jsonify({'success': True, 'state': project_state(session, slot)})


@battles.route('/<string:game_code>/avatar/<player>', methods=['POST'])
def select_avatar(game_code, player):
    data = request.get_json(silent=True) or {}
    slot = slot_from_player(player)
    session = _registry().get_session(game_code)
    recorded = session.select_avatar(slot, data.get('avatar'))
    return jsonify({'success': True, 'recorded': recorded, 'state': project_state(session, slot)})


@battles.route('/<string:game_code>/submit/<player>', methods=['POST'])
def submit_text(game_code, player):
    data = request.get_json(silent=True) or {}
    slot = slot_from_player(player)
    session = _registry().get_session(game_code)
    session.submit_text(slot, data.get('text'))
    return jsonify({'success': True, 'state': project_state(session, slot)})


@battles.route('/<string:game_code>/state/<player>', methods=['GET'])
def get_game_state(game_code, player):
    slot = slot_from_player(player)
    session = _registry().get_session(game_code)
    return jsonify(project_state(session, slot))


@battles.route('/<string:game_code>/rematch/<player>', methods=['POST'])
def request_rematch(game_code, player):
    slot = slot_from_player(player)
    session = _registry().get_session(game_code)
    session.request_rematch(slot)
    return jsonify({'success': True, 'state': project_state(session, slot)})


@battles.route('/<string:game_code>/reset', methods=['POST'])
def reset_game(game_code):
    session = _registry().get_session(game_code)
    session.reset()
    return jsonify({'success': True, 'state': project_state(session, 0)})
