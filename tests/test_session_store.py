"""Unit tests for auth/store.py -- SessionStore.

Covers:
- create() stores only the HMAC of the refresh token
- find_valid() requires matching hash, matching user and expires_at > now
- delete_by_token() / delete_all_for_user() / delete_expired()
- rotate() replaces a live session once and only once
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from auth.db import sessions


def _in(**kwargs) -> datetime:
    return datetime.now(timezone.utc) + timedelta(**kwargs)


@pytest.fixture
def user(user_store):
    return user_store.create("sess@example.com", "hash", "Session Owner")


@pytest.fixture
def other_user(user_store):
    return user_store.create("other@example.com", "hash", "Other Owner")


def test_create_stores_hash_not_raw_token(db, session_store, user):
    session = session_store.create(user.id, "raw-refresh-token", _in(days=7))
    assert session.refresh_token_hash != "raw-refresh-token"
    with db.engine.connect() as conn:
        stored = conn.execute(select(sessions.c.refresh_token_hash)).scalars().all()
    assert stored == [session.refresh_token_hash]


def test_find_valid_live_session(session_store, user):
    created = session_store.create(user.id, "tok-1", _in(days=7))
    found = session_store.find_valid("tok-1", user.id)
    assert found is not None
    assert found.id == created.id


def test_find_valid_wrong_user(session_store, user, other_user):
    session_store.create(user.id, "tok-1", _in(days=7))
    assert session_store.find_valid("tok-1", other_user.id) is None


def test_find_valid_unknown_token(session_store, user):
    assert session_store.find_valid("never-issued", user.id) is None


def test_find_valid_expired(session_store, user):
    session_store.create(user.id, "tok-old", _in(seconds=-1))
    assert session_store.find_valid("tok-old", user.id) is None


def test_delete_by_token(session_store, user):
    session_store.create(user.id, "tok-1", _in(days=7))
    assert session_store.delete_by_token("tok-1") == 1
    assert session_store.find_valid("tok-1", user.id) is None


def test_delete_by_token_is_idempotent(session_store, user):
    session_store.create(user.id, "tok-1", _in(days=7))
    session_store.delete_by_token("tok-1")
    assert session_store.delete_by_token("tok-1") == 0
    assert session_store.delete_by_token("never-issued") == 0


def test_delete_all_for_user(session_store, user, other_user):
    session_store.create(user.id, "tok-a", _in(days=7))
    session_store.create(user.id, "tok-b", _in(days=7))
    session_store.create(other_user.id, "tok-c", _in(days=7))
    assert session_store.delete_all_for_user(user.id) == 2
    assert session_store.count_for_user(user.id) == 0
    assert session_store.count_for_user(other_user.id) == 1


def test_delete_expired_keeps_live_sessions(session_store, user):
    session_store.create(user.id, "tok-live", _in(days=7))
    session_store.create(user.id, "tok-dead-1", _in(seconds=-5))
    session_store.create(user.id, "tok-dead-2", _in(days=-1))
    assert session_store.delete_expired() == 2
    assert session_store.find_valid("tok-live", user.id) is not None
    assert session_store.delete_expired() == 0


def test_rotate_replaces_session(session_store, user):
    session_store.create(user.id, "tok-old", _in(days=7))
    rotated = session_store.rotate("tok-old", user.id, "tok-new", _in(days=7))
    assert rotated is not None
    assert session_store.find_valid("tok-old", user.id) is None
    assert session_store.find_valid("tok-new", user.id) is not None
    assert session_store.count_for_user(user.id) == 1


def test_rotate_only_once(session_store, user):
    session_store.create(user.id, "tok-old", _in(days=7))
    assert session_store.rotate("tok-old", user.id, "tok-new-1", _in(days=7)) is not None
    assert session_store.rotate("tok-old", user.id, "tok-new-2", _in(days=7)) is None
    assert session_store.find_valid("tok-new-2", user.id) is None


def test_rotate_expired_session_fails(session_store, user):
    session_store.create(user.id, "tok-old", _in(seconds=-1))
    assert session_store.rotate("tok-old", user.id, "tok-new", _in(days=7)) is None


def test_rotate_wrong_user_fails(session_store, user, other_user):
    session_store.create(user.id, "tok-old", _in(days=7))
    assert session_store.rotate("tok-old", other_user.id, "tok-new", _in(days=7)) is None
    assert session_store.find_valid("tok-old", user.id) is not None


def test_count_for_user_ignores_expired(session_store, user):
    session_store.create(user.id, "tok-live", _in(days=7))
    session_store.create(user.id, "tok-dead", _in(seconds=-1))
    assert session_store.count_for_user(user.id) == 1
