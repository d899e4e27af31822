"""
Name: In-Memory Repository Tests

Responsibilities:
  - Refresh-token store contract (put / find_valid / deletes)
  - User store contract (unique email, copies, cascade on delete)
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from postflow.identity.users import UserRole
from postflow.infrastructure.repositories import (
    InMemoryRefreshTokenRepository,
    InMemoryUserRepository,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def tokens(clock) -> InMemoryRefreshTokenRepository:
    return InMemoryRefreshTokenRepository(clock=clock)


@pytest.fixture
def user_repo(tokens, clock) -> InMemoryUserRepository:
    return InMemoryUserRepository(refresh_tokens=tokens, clock=clock)


class TestRefreshTokenStore:
    def test_find_valid_matches_token_and_owner(self, tokens, clock):
        owner = uuid4()
        tokens.put("tok", owner, clock() + timedelta(days=7))

        assert tokens.find_valid("tok", owner).user_id == owner
        assert tokens.find_valid("tok", uuid4()) is None
        assert tokens.find_valid("other", owner) is None

    def test_expired_record_is_absent_and_deleted(self, tokens, clock):
        owner = uuid4()
        tokens.put("tok", owner, clock() + timedelta(seconds=10))
        clock.advance(seconds=10)

        assert tokens.find_valid("tok", owner) is None
        assert tokens.list_tokens() == []

    def test_duplicate_token_is_rejected(self, tokens, clock):
        tokens.put("tok", uuid4(), clock() + timedelta(days=1))

        with pytest.raises(ValueError):
            tokens.put("tok", uuid4(), clock() + timedelta(days=1))

    def test_delete_by_token_reports_rows(self, tokens, clock):
        tokens.put("tok", uuid4(), clock() + timedelta(days=1))

        assert tokens.delete_by_token("tok") == 1
        assert tokens.delete_by_token("tok") == 0

    def test_delete_all_for_user_only_touches_that_user(self, tokens, clock):
        owner, other = uuid4(), uuid4()
        expires = clock() + timedelta(days=1)
        tokens.put("a", owner, expires)
        tokens.put("b", owner, expires)
        tokens.put("c", other, expires)

        assert tokens.delete_all_for_user(owner) == 2
        assert [r.token for r in tokens.list_tokens()] == ["c"]

    def test_delete_expired(self, tokens, clock):
        tokens.put("short", uuid4(), clock() + timedelta(minutes=1))
        tokens.put("long", uuid4(), clock() + timedelta(days=1))
        clock.advance(minutes=5)

        assert tokens.delete_expired() == 1
        assert [r.token for r in tokens.list_tokens()] == ["long"]

    def test_list_tokens_newest_first(self, tokens, clock):
        expires = clock() + timedelta(days=1)
        tokens.put("old", uuid4(), expires)
        clock.advance(seconds=1)
        tokens.put("new", uuid4(), expires)

        assert [r.token for r in tokens.list_tokens()] == ["new", "old"]


class TestUserStore:
    def test_email_is_unique_case_insensitively(self, user_repo):
        user_repo.create_user(email="Ana@Example.com", name="Ana", role=UserRole.USER)

        with pytest.raises(ValueError):
            user_repo.create_user(email="ana@example.com", name="Ana 2", role=UserRole.USER)
        assert user_repo.get_user_by_email("ANA@example.com").name == "Ana"

    def test_new_user_defaults_to_password_setup(self, user_repo):
        user = user_repo.create_user(email="a@b.co", name="A", role=UserRole.USER)

        assert user.password_hash is None
        assert user.needs_password_setup

    def test_returned_users_are_copies(self, user_repo):
        user = user_repo.create_user(email="a@b.co", name="A", role=UserRole.USER)
        user.name = "mutated"

        assert user_repo.get_user_by_id(user.id).name == "A"

    def test_update_user_patches_only_given_fields(self, user_repo, clock):
        user = user_repo.create_user(email="a@b.co", name="A", role=UserRole.USER)
        clock.advance(seconds=5)

        updated = user_repo.update_user(user.id, role=UserRole.ADMIN)

        assert updated.role is UserRole.ADMIN
        assert updated.name == "A"
        assert updated.updated_at > user.updated_at
        assert user_repo.update_user(uuid4(), name="x") is None

    def test_delete_user_cascades_to_refresh_tokens(self, user_repo, tokens, clock):
        user = user_repo.create_user(email="a@b.co", name="A", role=UserRole.USER)
        tokens.put("tok", user.id, clock() + timedelta(days=1))

        assert user_repo.delete_user(user.id) is True
        assert tokens.list_tokens() == []
        assert user_repo.delete_user(user.id) is False
