import os
import sys
import pytest

# Ensure the backend root (containing the `rockpaperbeer` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from rockpaperbeer import create_app, db, shutdown_game_services, socketio
from rockpaperbeer.config import Config
from rockpaperbeer.services import get_services


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ROOM_STORE = 'memory'
    MOVE_TIMEOUT_MS = 15000
    ROOM_TTL_SEC = 3600
    ENABLE_DEBUG_ROUTES = True


class SqlTestConfig(TestConfig):
    ROOM_STORE = 'sql'


def _make_app(config_class):
    application = create_app(config_class)
    with application.app_context():
        db.create_all()
        yield application
        shutdown_game_services(application)
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def flask_app():
    yield from _make_app(TestConfig)


@pytest.fixture()
def sql_app():
    yield from _make_app(SqlTestConfig)


@pytest.fixture()
def services(flask_app):
    return get_services(flask_app)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def connect(flask_app):
    """Factory for Socket.IO test clients; each one is a separate player."""
    clients = []

    def _connect():
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        test_client.get_received()  # flush 'connected'
        clients.append(test_client)
        return test_client

    yield _connect
    for test_client in clients:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except Exception:
            pass

