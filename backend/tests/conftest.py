import os
import sys
import pytest

# Ensure the backend root (containing the `tictactoe` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from tictactoe import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    JWT_SECRET_KEY = 'test-jwt-secret-with-enough-bytes-for-hs256'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MOVE_BROADCAST_EVENT = 'board_update'
    CORS_ORIGINS = ['http://localhost:5173']


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    # Tables are created up front; the context is not held across requests
    # so Flask-Login resolves the bearer token of each request on its own.
    with application.app_context():
        import tictactoe.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def app_ctx(flask_app):
    with flask_app.app_context():
        yield flask_app
        db.session.remove()


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


def register(client, username, password='password'):
    res = client.post('/register', json={
        'username': username,
        'email': f'{username}@example.com',
        'password': password,
        'name': username.title(),
    })
    assert res.status_code == 201
    return res.get_json()


def login(client, username, password='password'):
    res = client.post('/login', json={'username': username, 'password': password})
    assert res.status_code == 200
    return res.get_json()


def auth_headers(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture()
def players(client):
    """Register alice, bob and carol; map each name to auth headers."""
    headers = {}
    for name in ('alice', 'bob', 'carol'):
        register(client, name)
        headers[name] = auth_headers(login(client, name)['access_token'])
    return headers
