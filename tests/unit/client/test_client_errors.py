"""
Name: Client Error Classification Tests

Responsibilities:
  - ApiError parsing from problem documents
  - Transient vs permanent classification for refresh retries
  - ClientSettings -> MonitorPolicy
"""

import httpx
import pytest

from postflow.client.config import ClientSettings
from postflow.client.errors import ApiError, SessionExpiredError, is_transient_error

pytestmark = pytest.mark.unit


def test_api_error_reads_top_level_code():
    response = httpx.Response(
        401, json={"code": "TOKEN_EXPIRED", "detail": "Access token has expired"}
    )

    error = ApiError.from_response(response)

    assert error.status_code == 401
    assert error.code == "TOKEN_EXPIRED"
    assert error.message == "Access token has expired"


def test_api_error_reads_nested_error_object():
    response = httpx.Response(
        403, json={"error": {"code": "INVALID_REFRESH_TOKEN", "message": "nope"}}
    )

    error = ApiError.from_response(response)

    assert error.code == "INVALID_REFRESH_TOKEN"
    assert error.message == "nope"


def test_api_error_tolerates_non_json_body():
    error = ApiError.from_response(httpx.Response(502, text="<html>bad gateway</html>"))

    assert error.status_code == 502
    assert error.code is None


@pytest.mark.parametrize(
    "exc,expected",
    [
        (ApiError(503, None, "down"), True),
        (ApiError(429, "RATE_LIMITED", "slow"), True),
        (ApiError(500, "INTERNAL_ERROR", "boom"), True),
        (ApiError(400, "VALIDATION_ERROR", "bad"), False),
        (ApiError(403, "INVALID_REFRESH_TOKEN", "no"), False),
        (SessionExpiredError(503, None, "gone"), False),
        (httpx.ConnectError("refused"), True),
        (httpx.ReadTimeout("slow"), True),
        (ValueError("bug"), False),
    ],
)
def test_is_transient_error(exc, expected):
    assert is_transient_error(exc) is expected


def test_client_settings_build_monitor_policy(monkeypatch):
    monkeypatch.setenv("POSTFLOW_SESSION_WINDOW_SECONDS", "600")
    monkeypatch.setenv("POSTFLOW_REFRESH_MAX_ATTEMPTS", "5")

    policy = ClientSettings(_env_file=None).monitor_policy()

    assert policy.window_seconds == 600
    assert policy.refresh_max_attempts == 5
    assert policy.warning_seconds == 60
