import os
import sys
import pytest

# Ensure the backend root (containing the `knockout` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from knockout import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = []
    MIN_PLAYERS = 2
    SERVER_SHUFFLE_ATTEMPTS = 10
    DEFAULT_ELO_RATING = 1200
    ELO_K_FACTOR = 32
    ELO_HISTORY_LIMIT = 50
    ELO_FOR_LEAGUE_GAMES = False


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import knockout.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def user(flask_app):
    from knockout.models import User
    u = User(username='host')
    u.set_password('password')
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture()
def auth_client(client, user):
    res = client.post('/login', json={'username': 'host', 'password': 'password'})
    assert res.status_code == 200
    return client


@pytest.fixture()
def players(user):
    """Three pool players A, B, C owned by ``user``."""
    from knockout.models import Player
    pool = [Player(name=name, initials=name[0], created_by=user.id) for name in ('Alice', 'Bob', 'Cara')]
    db.session.add_all(pool)
    db.session.commit()
    return pool


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
