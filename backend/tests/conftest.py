import os
import sys
import pytest

# Ensure the backend root (containing the `wordrush` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from wordrush import create_app, db
from wordrush.config import Config


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    JUDGE_API_URL = None
    JUDGE_API_KEY = None
    LOG_LEVEL = 'WARNING'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import wordrush.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def auth(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture()
def make_room(client):
    """Create a room over HTTP and return the host session."""
    def _make(name='Host', **settings):
        body = {'playerName': name}
        body.update(settings)
        res = client.post('/api/rooms', json=body)
        assert res.status_code == 201, res.get_json()
        return res.get_json()
    return _make


@pytest.fixture()
def join(client):
    def _join(code, name):
        res = client.post('/api/rooms/join', json={'code': code, 'playerName': name})
        assert res.status_code == 200, res.get_json()
        return res.get_json()
    return _join


@pytest.fixture()
def started_game(client, make_room, join):
    """Three players in a playing room; returns (code, [host, bob, cara])."""
    def _start(timer=10, rounds=5, categories=None):
        settings = {'timerDuration': timer, 'totalRounds': rounds}
        if categories is not None:
            settings['categories'] = categories
        host = make_room('Ann', **settings)
        code = host['code']
        bob = join(code, 'Bob')
        cara = join(code, 'Cara')
        res = client.post(f'/api/rooms/{code}/start', headers=auth(host['token']))
        assert res.status_code == 200, res.get_json()
        return code, [host, bob, cara]
    return _start


def current_letter(client, code):
    return client.get(f'/api/rooms/{code}').get_json()['currentRound']['letter']
