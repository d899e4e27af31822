"""
Name: Token Codec Tests

Responsibilities:
  - Access/refresh lifetimes and claim shapes
  - VALID / EXPIRED / INVALID classification
  - Token type confusion (access presented as refresh and vice versa)
"""

from datetime import timedelta
from uuid import uuid4

import jwt
import pytest

from postflow.identity.tokens import (
    JWT_ALGORITHM,
    TokenCodec,
    TokenSettings,
    TokenStatus,
)
from postflow.identity.users import User, UserRole

pytestmark = pytest.mark.unit

ACCESS_SECRET = "access-secret-for-tests"
REFRESH_SECRET = "refresh-secret-for-tests"


def _user(role: UserRole = UserRole.ADMIN) -> User:
    return User(id=uuid4(), email="admin@example.com", name="Admin", role=role)


@pytest.fixture
def codec(clock) -> TokenCodec:
    return TokenCodec(
        TokenSettings(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET),
        clock=clock,
    )


def _decode(token: str, secret: str) -> dict:
    return jwt.decode(
        token, secret, algorithms=[JWT_ALGORITHM], options={"verify_exp": False}
    )


def test_access_token_lives_five_minutes(codec):
    user = _user()
    claims = _decode(codec.issue_access_token(user), ACCESS_SECRET)

    assert claims["exp"] - claims["iat"] == 300
    assert claims["sub"] == str(user.id)
    assert claims["email"] == user.email
    assert claims["role"] == "ADMIN"
    assert claims["typ"] == "access"


def test_refresh_token_lives_seven_days_and_is_minimal(codec, clock):
    user = _user()
    token, expires_at = codec.issue_refresh_token(user)
    claims = _decode(token, REFRESH_SECRET)

    assert claims["exp"] - claims["iat"] == 7 * 24 * 3600
    assert expires_at == clock() + timedelta(days=7)
    assert claims["typ"] == "refresh"
    assert "email" not in claims
    assert "role" not in claims


def test_refresh_tokens_are_unique_within_the_same_second(codec):
    user = _user()
    first, _ = codec.issue_refresh_token(user)
    second, _ = codec.issue_refresh_token(user)

    assert first != second


def test_verify_access_token_returns_claims(codec):
    user = _user(UserRole.USER)
    check = codec.verify_access_token(codec.issue_access_token(user))

    assert check.status is TokenStatus.VALID
    assert check.claims.user_id == user.id
    assert check.claims.role is UserRole.USER


def test_expired_access_token_is_distinguished_from_invalid(codec, clock):
    token = codec.issue_access_token(_user())
    clock.advance(seconds=300)

    check = codec.verify_access_token(token)

    assert check.status is TokenStatus.EXPIRED
    assert check.claims is None


def test_access_token_valid_one_second_before_expiry(codec, clock):
    token = codec.issue_access_token(_user())
    clock.advance(seconds=299)

    assert codec.verify_access_token(token).is_valid


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_garbage_access_tokens_are_invalid(codec, token):
    assert codec.verify_access_token(token).status is TokenStatus.INVALID


def test_access_token_signed_with_other_secret_is_invalid(codec, clock):
    forged = TokenCodec(
        TokenSettings(access_secret="attacker", refresh_secret="attacker"), clock=clock
    ).issue_access_token(_user())

    assert codec.verify_access_token(forged).status is TokenStatus.INVALID


def test_refresh_token_rejected_as_access_token(clock):
    shared = TokenCodec(
        TokenSettings(access_secret="same-secret", refresh_secret="same-secret"),
        clock=clock,
    )
    refresh, _ = shared.issue_refresh_token(_user())

    assert shared.verify_access_token(refresh).status is TokenStatus.INVALID


def test_access_token_rejected_as_refresh_token(clock):
    shared = TokenCodec(
        TokenSettings(access_secret="same-secret", refresh_secret="same-secret"),
        clock=clock,
    )
    access = shared.issue_access_token(_user())

    check = shared.verify_refresh_token(access)

    assert check.status is TokenStatus.INVALID
    assert check.reason == "wrong token type"


def test_expired_refresh_token_collapses_to_invalid(codec, clock):
    token, _ = codec.issue_refresh_token(_user())
    clock.advance(days=7)

    assert codec.verify_refresh_token(token).status is TokenStatus.INVALID


def test_seconds_remaining_counts_down(codec, clock):
    check = codec.verify_access_token(codec.issue_access_token(_user()))
    clock.advance(seconds=250)

    assert codec.seconds_remaining(check.claims) == 50


def test_empty_secrets_are_refused():
    with pytest.raises(ValueError):
        TokenCodec(TokenSettings(access_secret="", refresh_secret="x"))
