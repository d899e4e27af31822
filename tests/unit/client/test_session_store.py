"""
Name: Session Store Tests

Responsibilities:
  - ClientSession reads expiry from the access token
  - FileSessionStore round-trip, owner-only permissions, corrupt file handling
"""

import os
import stat

import jwt
import pytest

from postflow.client.session import ClientSession, FileSessionStore, MemorySessionStore

pytestmark = pytest.mark.unit


def _token(exp: int) -> str:
    return jwt.encode({"sub": "u", "exp": exp}, "irrelevant", algorithm="HS256")


def test_session_expiry_comes_from_token():
    session = ClientSession.from_tokens(_token(1_000_300), "refresh", {"id": "u"})

    assert session.expires_at == 1_000_300
    assert session.seconds_until_expiry(1_000_000) == 300


def test_with_access_token_keeps_refresh_token():
    session = ClientSession.from_tokens(_token(100), "refresh")

    renewed = session.with_access_token(_token(500))

    assert renewed.refresh_token == "refresh"
    assert renewed.expires_at == 500


def test_memory_store():
    store = MemorySessionStore()
    session = ClientSession.from_tokens(_token(100), "refresh")

    store.save(session)
    assert store.load() == session
    store.clear()
    assert store.load() is None


def test_file_store_round_trip(tmp_path):
    path = tmp_path / "nested" / "session.json"
    store = FileSessionStore(path)
    session = ClientSession.from_tokens(_token(100), "refresh", {"email": "a@b.co"})

    store.save(session)

    assert FileSessionStore(path).load() == session
    if os.name == "posix":
        assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_file_store_discards_corrupt_file(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")

    assert FileSessionStore(path).load() is None
    assert not path.exists()


def test_file_store_clear_is_idempotent(tmp_path):
    store = FileSessionStore(tmp_path / "session.json")

    store.clear()
    store.clear()

    assert store.load() is None
