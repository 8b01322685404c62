"""Unit tests for auth/store.py -- UserStore users and sessions.

Covers:
- create_user() / get_by_username() round trip, duplicate username rejected
- sessions: create, resolve by token hash, delete
- expired sessions resolve to None and are removed by purge_expired_sessions()
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Session, SessionUser, User
from auth.store import UserStore


@pytest.fixture
def store(tmp_path):
    s = UserStore(f"sqlite:///{tmp_path / 'users.db'}")
    yield s
    s.close()


@pytest.fixture
def viewer(store):
    uid = store.create_user(User(username="reader", role="viewer", hashed_password="$2b$12$notarealhash"))
    return SessionUser(id=uid, username="reader", role="viewer")


def _iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


class TestUsers:
    def test_create_and_get(self, store):
        uid = store.create_user(User(username="boss", role="admin", hashed_password="hash"))
        user = store.get_by_username("boss")
        assert user.id == uid
        assert user.role == "admin"
        assert user.hashed_password == "hash"
        assert user.created_at

    def test_username_lookup_is_exact(self, store):
        store.create_user(User(username="boss", role="admin", hashed_password="hash"))
        assert store.get_by_username("Boss") is None
        assert store.get_by_username("nobody") is None

    def test_duplicate_username(self, store):
        store.create_user(User(username="boss", role="admin", hashed_password="hash"))
        with pytest.raises(IntegrityError):
            store.create_user(User(username="boss", role="viewer", hashed_password="other"))


class TestSessions:
    def test_create_and_resolve(self, store, viewer):
        store.create_session(Session(token_hash="a" * 64, user=viewer, expires_at=_iso(timedelta(hours=1))))
        session = store.get_session("a" * 64)
        assert session is not None
        assert session.user == viewer
        assert session.created_at

    def test_unknown_hash(self, store):
        assert store.get_session("b" * 64) is None

    def test_delete(self, store, viewer):
        store.create_session(Session(token_hash="c" * 64, user=viewer, expires_at=_iso(timedelta(hours=1))))
        assert store.delete_session("c" * 64) is True
        assert store.get_session("c" * 64) is None
        assert store.delete_session("c" * 64) is False

    def test_expired_session_is_absent(self, store, viewer):
        store.create_session(Session(token_hash="d" * 64, user=viewer, expires_at=_iso(-timedelta(seconds=1))))
        assert store.get_session("d" * 64) is None

    def test_purge_removes_only_expired(self, store, viewer):
        store.create_session(Session(token_hash="e" * 64, user=viewer, expires_at=_iso(-timedelta(hours=2))))
        store.create_session(Session(token_hash="f" * 64, user=viewer, expires_at=_iso(-timedelta(minutes=1))))
        store.create_session(Session(token_hash="g" * 64, user=viewer, expires_at=_iso(timedelta(hours=1))))

        assert store.purge_expired_sessions() == 2
        assert store.get_session("g" * 64) is not None
        assert store.purge_expired_sessions() == 0
