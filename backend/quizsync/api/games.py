from flask import Blueprint, jsonify, request, current_app
from quizsync import db
from quizsync.models import Game, Question
from quizsync.services.session.errors import SessionError
from quizsync.services.session.questions import questions_from_list


games = Blueprint('games', __name__)


@games.errorhandler(SessionError)
def handle_session_error(exc):
    return jsonify(exc.to_dict()), exc.status_code


@games.route('', methods=['POST'])
def create_game():
    """Store a game definition. Authoring happens elsewhere; this only persists the result."""
    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    if not title:
        return jsonify({'error': 'Title is required'}), 400
    parsed = questions_from_list(data.get('questions') or [])
    if not parsed:
        return jsonify({'error': 'At least one question is required'}), 400

    new_game = Game(title=title, created_by=data.get('created_by'))
    new_game.questions = [Question.from_domain(q, i) for i, q in enumerate(parsed)]
    db.session.add(new_game)
    db.session.commit()
    current_app.logger.info(f"[game-create] game={new_game.id} code={new_game.code} questions={len(parsed)}")
    return jsonify(new_game.to_dict()), 201


@games.route('/<int:game_id>', methods=['GET'])
def get_game(game_id):
    game = db.get_or_404(Game, game_id)
    include_answers = request.args.get('answers', '1') != '0'
    return jsonify(game.to_dict(include_answers=include_answers))


@games.route('/code/<string:code>', methods=['GET'])
def find_game_by_code(code):
    game = Game.query.filter_by(code=code.strip().upper()).first()
    if not game:
        return jsonify({'error': 'Game not found'}), 404
    return jsonify(game.to_dict(include_answers=False))
