import os
import sys
import pytest

# Ensure the backend root (containing the `quizsync` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quizsync import create_app, db, socketio
from quizsync.services.session import EngineSettings, GameDefinition, SessionEngine, SessionStore
from quizsync.services.session.questions import questions_from_list


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:3000']
    MIN_PLAYERS = 1
    KICK_GRACE_SEC = 2
    FULL_RESTART_GRACE_SEC = 2
    MAX_NICKNAME_LENGTH = 20
    DEFAULT_KICK_REASON = 'Rule violation'


SAMPLE_QUESTIONS = [
    {'id': 'q1', 'type': 'multiple_choice', 'text': 'Capital of France?',
     'options': ['Berlin', 'Madrid', 'Paris', 'Rome'], 'correctAnswers': [2],
     'points': 100, 'timeLimit': 30},
    {'id': 'q2', 'type': 'multi_select', 'text': 'Pick the primes',
     'options': ['2', '4', '5', '9'], 'correctAnswers': [0, 2],
     'points': 200, 'timeLimit': 20},
    {'id': 'q3', 'type': 'free_text', 'text': 'Largest planet?',
     'correctAnswers': ['Jupiter'], 'points': 150, 'timeLimit': 25},
]


class FakeClock:
    """Epoch-millisecond clock the tests move by hand."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
        return self.now


class RecordingScheduler:
    """Collects grace timers instead of sleeping; ``run_all`` fires them."""

    def __init__(self):
        self.calls = []

    def __call__(self, delay, key, fn, *args):
        self.calls.append((delay, key, fn, args))
        return True

    def keys(self):
        return [call[1] for call in self.calls]

    def run_all(self):
        pending, self.calls = self.calls, []
        return [fn(*args) for _, _, fn, args in pending]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler():
    return RecordingScheduler()


@pytest.fixture()
def questions():
    return tuple(questions_from_list(SAMPLE_QUESTIONS))


@pytest.fixture()
def session_engine(clock, scheduler, questions):
    """Standalone engine over game 1 with the sample questions."""
    definitions = {1: GameDefinition(id=1, code='ABC123', questions=questions)}
    return SessionEngine(
        store=SessionStore(),
        definition_loader=definitions.get,
        clock=clock,
        schedule=scheduler,
        settings=EngineSettings(min_players=1, kick_grace_sec=2, full_restart_grace_sec=2),
    )


@pytest.fixture()
def lobby(session_engine):
    """Game 1 with host 'host' and players alice, bob, zoe connected."""
    session_engine.create_session(1, 'host')
    session_engine.presence.join(1, 'alice', 'Alice', 'cat')
    session_engine.presence.join(1, 'bob', 'Bob', 'dog')
    session_engine.presence.join(1, 'zoe', 'Zoe', 'fox')
    return session_engine


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import quizsync.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def game_id(client):
    res = client.post('/api/games', json={'title': 'Sample', 'questions': SAMPLE_QUESTIONS})
    assert res.status_code == 201
    return res.get_json()['id']
