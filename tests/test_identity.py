"""Tests for the identity session lifecycle."""
import pytest

import actions
from errors import AuthError
from identity import IdentitySession, LocalAccountProvider


class BrokenProvider:
    def init(self):
        raise RuntimeError("sdk unavailable")


class NoEmailProvider:
    def init(self):
        pass

    def connect(self, **_):
        return {"name": "Ghost"}

    def logout(self):
        pass


@pytest.fixture
def account(app):
    with app.app_context():
        actions.create_user("ravi@example.com", "Ravi", password="secret")
        yield


def test_connect_requires_init(account):
    session = IdentitySession(LocalAccountProvider())
    with pytest.raises(AuthError):
        session.connect(email="ravi@example.com", password="secret")


def test_connect_and_logout(account):
    session = IdentitySession(LocalAccountProvider()).init()
    assert not session.connected
    info = session.connect(email="Ravi@Example.com", password="secret")
    assert info == {"email": "ravi@example.com", "name": "Ravi"}
    assert session.connected
    assert session.get_user_info()["name"] == "Ravi"
    session.logout()
    assert not session.connected
    with pytest.raises(AuthError):
        session.get_user_info()


def test_bad_password(account):
    session = IdentitySession(LocalAccountProvider()).init()
    with pytest.raises(AuthError, match="Invalid credentials"):
        session.connect(email="ravi@example.com", password="nope")
    assert not session.connected


def test_init_failure_is_auth_error():
    with pytest.raises(AuthError, match="initializing"):
        IdentitySession(BrokenProvider()).init()


def test_provider_without_email_is_rejected():
    session = IdentitySession(NoEmailProvider()).init()
    with pytest.raises(AuthError):
        session.connect()


def test_context_manager_disposes(account):
    with IdentitySession(LocalAccountProvider()) as session:
        session.connect(email="ravi@example.com", password="secret")
        assert session.connected
    assert not session.connected
    with pytest.raises(AuthError):
        session.logout()
