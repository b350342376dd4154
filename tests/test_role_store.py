"""Unit tests for auth/store.py -- RoleStore.

Covers:
- ensure_default_roles() seeds "user" and "admin" once
- assign() is idempotent and rejects unknown roles
- roles surface on User records loaded by UserStore
- UserStore.create(role=...) writes the user and its role together
"""

import pytest

from auth.store import DEFAULT_ROLES


def test_default_roles_seeded(role_store):
    names = [r.name for r in role_store.list_roles()]
    assert names == sorted(name for name, _ in DEFAULT_ROLES)


def test_ensure_default_roles_is_idempotent(role_store):
    assert role_store.ensure_default_roles() == 0
    assert len(role_store.list_roles()) == len(DEFAULT_ROLES)


def test_find_by_name(role_store):
    role = role_store.find_by_name("admin")
    assert role is not None
    assert role.description
    assert role_store.find_by_name("superuser") is None


def test_assign_and_query(role_store, user_store):
    user = user_store.create("roles@example.com", "hash", "Role Holder")
    assert role_store.assign(user.id, "admin") is True
    assert role_store.user_has_role(user.id, "admin")
    assert not role_store.user_has_role(user.id, "user")
    assert role_store.roles_for_user(user.id) == ["admin"]


def test_assign_twice_returns_false(role_store, user_store):
    user = user_store.create("twice@example.com", "hash", "Role Holder")
    role_store.assign(user.id, "user")
    assert role_store.assign(user.id, "user") is False
    assert role_store.roles_for_user(user.id) == ["user"]


def test_assign_unknown_role(role_store, user_store):
    user = user_store.create("unknown@example.com", "hash", "Role Holder")
    with pytest.raises(ValueError):
        role_store.assign(user.id, "superuser")


def test_user_record_carries_roles(role_store, user_store):
    user = user_store.create("carry@example.com", "hash", "Role Holder")
    role_store.assign(user.id, "user")
    role_store.assign(user.id, "admin")
    assert user_store.find_by_id(user.id).roles == ["admin", "user"]
    assert user_store.find_by_email("carry@example.com").user.roles == ["admin", "user"]


def test_create_with_role_writes_both_rows(role_store, user_store):
    user = user_store.create("withrole@example.com", "hash", "Role Holder", role="user")
    assert user.roles == ["user"]
    assert role_store.roles_for_user(user.id) == ["user"]


def test_create_with_unseeded_role_skips_it(role_store, user_store):
    user = user_store.create("unseeded@example.com", "hash", "Role Holder", role="superuser")
    assert user.roles == []
    assert user_store.email_exists("unseeded@example.com")
