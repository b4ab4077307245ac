from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config
from quizsync.services.session import SessionEngine

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)
engine = SessionEngine()

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Fresh session store per app; snapshots fan out to Socket.IO rooms
    engine.init_app(flask_app)

    from quizsync.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from quizsync.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    from quizsync.socketio_events import register_socketio_handlers, broadcast_snapshot
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))
    engine.store.add_listener(broadcast_snapshot)

    @flask_app.route('/')
    def index():
        return jsonify({'ok': True, 'service': 'quizsync'})

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with a demo quiz."""
        from quizsync.models import Game, Question
        from quizsync.services.session.questions import questions_from_list
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            demo = Game(title='Demo quiz', created_by='seed')
            seed = questions_from_list([
                {'id': 'q1', 'type': 'single_choice', 'text': 'Capital of France?',
                 'options': ['Berlin', 'Madrid', 'Paris', 'Rome'], 'correctAnswers': [2],
                 'points': 100, 'timeLimit': 30},
                {'id': 'q2', 'type': 'multi_select', 'text': 'Pick the prime numbers',
                 'options': ['2', '4', '5', '9'], 'correctAnswers': [0, 2],
                 'points': 200, 'timeLimit': 20},
                {'id': 'q3', 'type': 'true_false', 'text': 'Water boils at 100C at sea level',
                 'correctAnswers': [0], 'points': 50, 'timeLimit': 10},
                {'id': 'q4', 'type': 'free_text', 'text': 'Largest planet?',
                 'correctAnswers': ['Jupiter'], 'points': 150, 'timeLimit': 25},
            ])
            demo.questions = [Question.from_domain(q, i) for i, q in enumerate(seed)]
            db.session.add(demo)
            db.session.commit()
            print(f'Database has been reset and seeded! Demo game id={demo.id} code={demo.code}')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
