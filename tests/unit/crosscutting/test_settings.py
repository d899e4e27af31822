"""
Name: Settings Tests

Responsibilities:
  - Defaults match the session protocol (300s / 7d / 60s threshold)
  - Production secret requirements and backend checks
  - Rate-limit and refresh-secret fallbacks
"""

import pytest
from pydantic import ValidationError

from postflow.crosscutting.config import Settings

pytestmark = pytest.mark.unit

STRONG_ACCESS = "a" * 40
STRONG_REFRESH = "b" * 40


def _production(**overrides) -> Settings:
    values = dict(
        app_env="production",
        database_url="postgresql://db/postflow",
        jwt_secret=STRONG_ACCESS,
        jwt_refresh_secret=STRONG_REFRESH,
    )
    values.update(overrides)
    return Settings(**values)


def test_protocol_defaults():
    settings = Settings(auth_store_backend="memory")

    assert settings.jwt_access_ttl_seconds == 300
    assert settings.jwt_refresh_ttl_days == 7
    assert settings.auto_refresh_threshold_seconds == 60


def test_postgres_backend_requires_database_url():
    with pytest.raises(ValidationError, match="DATABASE_URL"):
        Settings(auth_store_backend="postgres", database_url="")


def test_unknown_backend_rejected():
    with pytest.raises(ValidationError):
        Settings(auth_store_backend="redis")


def test_backend_is_case_insensitive():
    assert Settings(auth_store_backend=" MEMORY ").auth_store_backend == "memory"


def test_non_positive_ttl_rejected():
    with pytest.raises(ValidationError):
        Settings(auth_store_backend="memory", jwt_access_ttl_seconds=0)


def test_refresh_secret_falls_back_outside_production():
    settings = Settings(auth_store_backend="memory", jwt_secret="dev-only")

    assert settings.get_refresh_secret() == "dev-only"


def test_production_accepts_strong_distinct_secrets():
    settings = _production()

    assert settings.is_production()
    assert settings.get_refresh_secret() == STRONG_REFRESH


@pytest.mark.parametrize(
    "overrides",
    [
        {"jwt_secret": "dev-secret"},
        {"jwt_secret": "short"},
        {"jwt_refresh_secret": ""},
        {"jwt_refresh_secret": STRONG_ACCESS},
        {"auth_store_backend": "memory"},
    ],
)
def test_production_rejects_weak_configuration(overrides):
    with pytest.raises(ValidationError):
        _production(**overrides)


def test_rate_limiting_defaults_to_production_only():
    assert Settings(auth_store_backend="memory").is_rate_limiting_enabled() is False
    assert _production().is_rate_limiting_enabled() is True
    assert Settings(
        auth_store_backend="memory", rate_limit_enabled=True
    ).is_rate_limiting_enabled() is True


def test_allowed_origins_list():
    settings = Settings(
        auth_store_backend="memory", allowed_origins=" http://a.test , ,http://b.test"
    )

    assert settings.get_allowed_origins_list() == ["http://a.test", "http://b.test"]
