from flask import Blueprint, jsonify, request, current_app
from quizsync import engine
from quizsync.services.session.errors import SessionError, ValidationFailed
import uuid


sessions = Blueprint('sessions', __name__)

# Host commands: url segment -> engine method
_HOST_COMMANDS = {
    'start': 'start',
    'pause': 'pause',
    'resume': 'resume',
    'results': 'reveal_results',
    'leaderboard': 'reveal_leaderboard',
    'end': 'end',
    'restart': 'restart',
    'full-restart': 'full_restart',
}


@sessions.errorhandler(SessionError)
def handle_session_error(exc):
    current_app.logger.info(f"[rejected] {request.path} {exc.kind}: {exc.message}")
    return jsonify(exc.to_dict()), exc.status_code


def _body():
    return request.get_json(silent=True) or {}


def _required(data, key):
    value = data.get(key)
    if value is None or str(value).strip() == '':
        raise ValidationFailed(f'{key} is required')
    return str(value).strip()


@sessions.route('/<int:game_id>', methods=['POST'])
def create_session(game_id):
    data = _body()
    snapshot = engine.create_session(game_id, _required(data, 'host_id'))
    return jsonify(snapshot), 201


@sessions.route('/<int:game_id>', methods=['GET'])
def get_session(game_id):
    return jsonify(engine.get_snapshot(game_id))


@sessions.route('/<int:game_id>/<string:command>', methods=['POST'])
def host_command(game_id, command):
    method = _HOST_COMMANDS.get(command)
    if method is None:
        return jsonify({'error': f'Unknown command {command}'}), 404
    host_id = _required(_body(), 'host_id')
    return jsonify(getattr(engine, method)(game_id, host_id))


@sessions.route('/<int:game_id>/advance', methods=['POST'])
def advance(game_id):
    data = _body()
    host_id = _required(data, 'host_id')
    return jsonify(engine.advance(game_id, host_id, data.get('index')))


@sessions.route('/<int:game_id>/join', methods=['POST'])
def join(game_id):
    data = _body()
    player_id = data.get('player_id') or f"player_{uuid.uuid4().hex[:12]}"
    player = engine.presence.join(game_id, str(player_id), data.get('nickname'), data.get('avatar') or '')
    return jsonify(player), 201


@sessions.route('/<int:game_id>/answers', methods=['POST'])
def submit_answer(game_id):
    data = _body()
    player_id = _required(data, 'player_id')
    recorded = engine.submit_answer(game_id, player_id, data.get('answer'))
    return jsonify(recorded), 201


@sessions.route('/<int:game_id>/presence', methods=['POST'])
def set_presence(game_id):
    data = _body()
    player_id = _required(data, 'player_id')
    engine.presence.set_presence(game_id, player_id, bool(data.get('is_connected', True)))
    return jsonify({'ok': True})


@sessions.route('/<int:game_id>/players/<string:player_id>/kick', methods=['POST'])
def kick_player(game_id, player_id):
    data = _body()
    host_id = _required(data, 'host_id')
    return jsonify(engine.presence.kick(game_id, host_id, player_id, data.get('reason')))


@sessions.route('/<int:game_id>/players/<string:player_id>/warn', methods=['POST'])
def warn_player(game_id, player_id):
    host_id = _required(_body(), 'host_id')
    return jsonify({'warnings': engine.presence.warn(game_id, host_id, player_id)})


@sessions.route('/<int:game_id>/players/<string:player_id>/mute', methods=['POST'])
def mute_player(game_id, player_id):
    data = _body()
    host_id = _required(data, 'host_id')
    muted = bool(data.get('muted', True))
    engine.presence.set_muted(game_id, host_id, player_id, muted)
    return jsonify({'muted': muted})


@sessions.route('/<int:game_id>/standings', methods=['GET'])
def standings(game_id):
    return jsonify([s.to_dict() for s in engine.leaderboard(game_id)])


@sessions.route('/<int:game_id>/podium', methods=['GET'])
def podium(game_id):
    return jsonify([slot.to_dict() for slot in engine.podium(game_id)])


@sessions.route('/<int:game_id>/view', methods=['GET'])
def view(game_id):
    return jsonify(engine.view(game_id, request.args.get('player_id')))
