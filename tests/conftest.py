"""
Test fixtures and configuration for pytest.
"""

import pytest

from api import create_app
from models import storage as app_storage
from models.db_storage import DBStorage
from models.refresh_token import RefreshToken
from services.authentication import AuthenticationFlow
from services.settings import TokenSettings

PASSWORD = "correct horse battery staple"
SECRET = "unit-test-secret-that-is-long-enough-for-hs256"


@pytest.fixture
def settings():
    return TokenSettings(jwt_secret=SECRET, lock_timeout=5.0)


@pytest.fixture
def storage(tmp_path):
    """A fresh SQLite file database for each test."""
    db = DBStorage(f"sqlite:///{tmp_path / 'tokens.db'}")
    db.reload()
    yield db
    db.dispose()


@pytest.fixture
def flow(storage, settings):
    return AuthenticationFlow(storage, settings)


@pytest.fixture
def user(flow):
    return flow.register("alice", PASSWORD, "Alice", "Liddell")


@pytest.fixture
def login(flow, user):
    """Authenticate alice; returns (user, access_token, refresh_token)."""
    def _login(ip="10.0.0.1"):
        return flow.authenticate("alice", PASSWORD, ip)
    return _login


@pytest.fixture
def reload_tokens(storage):
    """Committed refresh tokens of a user, keyed by token string."""
    def _reload(user_id):
        session = storage.get_session()
        session.expire_all()
        rows = session.query(RefreshToken).filter(RefreshToken.user_id == user_id).all()
        return {rt.token: rt for rt in rows}
    return _reload


@pytest.fixture
def backdate(storage):
    """Move a stored token's timestamps into the past."""
    def _backdate(token, created=None, expires=None):
        session = storage.get_session()
        session.expire_all()
        record = session.query(RefreshToken).filter(RefreshToken.token == token).one()
        if created is not None:
            record.created_at = record.created_at - created
        if expires is not None:
            record.expires_at = record.expires_at - expires
        storage.save()
        return record
    return _backdate


# ============== API Fixtures ==============


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", DATABASE_URL=f"sqlite:///{tmp_path / 'api.db'}")
    yield app
    app_storage.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registered(client):
    resp = client.post(
        "/api/v1/users/register",
        json={"username": "bob", "password": PASSWORD, "f_name": "Bob", "l_name": "Builder"},
    )
    assert resp.status_code == 201
    return resp.get_json()["data"]
