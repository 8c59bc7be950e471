import os
import sys
import pytest

# Ensure the backend root (containing the `yearline` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from yearline import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = []
    DEFAULT_USE_TOKENS = True
    DEFAULT_STARTING_TOKENS = 2
    DEFAULT_MAX_TOKENS = 5
    DEFAULT_WIN_CONDITION = 10
    MIN_EXTRA_TRACKS = 10
    SKIP_COST = 1
    BET_COST = 1
    TRADE_COST = 3
    JOIN_CODE_LENGTH = 6


# Draw order used by most tests: seat 0 is dealt 1980, seat 1 is dealt 1990,
# then the deck is drawn front to back.
DECK_YEARS = [1980, 1990, 2000, 1970, 2010, 1985, 1960, 2020, 1975, 1999, 2001, 2002, 2003, 2004]


class KeepOrder:
    """Stand-in for ``random`` that makes the deck shuffle a no-op."""

    def randint(self, low, high):
        return high


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import yearline.models  # noqa: F401
        db.create_all()
    # Requests must each push their own context so flask.g (and the
    # Flask-Login user cached on it) is not shared between clients
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def login(flask_app):
    """Return a factory producing one logged-in test client per username."""
    def _login(username):
        user_client = flask_app.test_client()
        res = user_client.post('/api/auth/register', json={'username': username, 'password': 'password'})
        assert res.status_code == 201
        user_client.user_id = res.get_json()['user']['id']
        return user_client
    return _login


@pytest.fixture()
def make_playlist():
    def _make_playlist(user_client, years=None, name='Decades'):
        years = DECK_YEARS if years is None else years
        tracks = [
            {'title': f'Song {i}', 'artist_names': [f'Artist {i}'], 'release_year': year}
            for i, year in enumerate(years)
        ]
        res = user_client.post('/api/playlists', json={'name': name, 'tracks': tracks})
        assert res.status_code == 201
        return res.get_json()['id']
    return _make_playlist


@pytest.fixture()
def fixed_deck(monkeypatch):
    from yearline.services.games import deck
    monkeypatch.setattr(deck, 'random', KeepOrder())


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
