from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from wordrush.errors import Forbidden, ValidationError
from wordrush.services.games import rooms as room_service
from wordrush.services.games.rounds import finish_round_manually, submit_answers
from wordrush.services.games.voting import cast_vote


rooms = Blueprint('rooms', __name__)

UNSET = room_service.UNSET


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _viewer():
    return current_user if current_user.is_authenticated else None


def _require_member(room):
    if current_user.room_id != room.id:
        raise Forbidden('You are not a player in this room')


def _require_host(room):
    _require_member(room)
    if not current_user.is_host:
        raise Forbidden('Only the host may do that')


@rooms.route('', methods=['POST'])
def create_room():
    data = _json_body()
    room, player, token = room_service.create_room(
        data.get('playerName'),
        total_rounds=data.get('totalRounds'),
        categories=data.get('categories'),
        timer_duration=data['timerDuration'] if 'timerDuration' in data else UNSET,
    )
    return jsonify({'code': room.code, 'playerId': player.id, 'token': token}), 201


@rooms.route('/join', methods=['POST'])
def join_room():
    data = _json_body()
    if not data.get('code'):
        raise ValidationError('Room code is required')
    room, player, token = room_service.join_room(data.get('code'), data.get('playerName'))
    return jsonify({'code': room.code, 'playerId': player.id, 'token': token}), 200


@rooms.route('/<string:code>', methods=['GET'])
def get_room_state(code):
    room = room_service.get_room_by_code(code)
    return jsonify(room_service.room_state(room, viewer=_viewer()))


@rooms.route('/<string:code>/start', methods=['POST'])
@login_required
def start_game(code):
    room = room_service.get_room_by_code(code)
    _require_host(room)
    room_service.start_game(room)
    return jsonify({'success': True})


@rooms.route('/<string:code>/submit', methods=['POST'])
@login_required
def submit(code):
    room = room_service.get_room_by_code(code)
    _require_member(room)
    data = _json_body()
    if 'answers' not in data:
        raise ValidationError('answers are required')
    round_over = submit_answers(room, current_user, data.get('answers'))
    return jsonify({'success': True, 'roundCompleted': round_over})


@rooms.route('/<string:code>/round/finish', methods=['POST'])
@login_required
def finish_round(code):
    room = room_service.get_room_by_code(code)
    _require_host(room)
    if room_service.current_round(room) is None:
        raise ValidationError('No round to finish')
    finish_round_manually(room)
    return jsonify({'success': True})


@rooms.route('/<string:code>/round/next', methods=['POST'])
def next_round(code):
    room = room_service.get_room_by_code(code)
    room_service.next_round(room)
    return jsonify({'success': True})


@rooms.route('/<string:code>/answers/<int:answer_id>/vote', methods=['POST'])
@login_required
def vote(code, answer_id):
    room = room_service.get_room_by_code(code)
    data = _json_body()
    rejected = cast_vote(answer_id, current_user, data.get('accepted'), room=room)
    return jsonify({'success': True, 'rejected': rejected})


@rooms.route('/<string:code>/categories', methods=['POST'])
def update_categories(code):
    room = room_service.get_room_by_code(code)
    data = _json_body()
    room_service.update_categories(room, data.get('categories'))
    return jsonify({'success': True})


@rooms.route('/<string:code>/settings', methods=['POST'])
def update_settings(code):
    room = room_service.get_room_by_code(code)
    data = _json_body()
    room_service.update_settings(
        room,
        total_rounds=data['totalRounds'] if 'totalRounds' in data else UNSET,
        timer_duration=data['timerDuration'] if 'timerDuration' in data else UNSET,
    )
    return jsonify({'success': True})
