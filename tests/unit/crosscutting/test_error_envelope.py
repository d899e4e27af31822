"""
Name: Error Envelope Tests

Responsibilities:
  - RFC 7807 fields plus success/error for every taxonomy factory
  - Validation failures become 400 without echoing submitted values
  - Unexpected exceptions become 500 INTERNAL_ERROR
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from postflow.api.exception_handlers import register_exception_handlers
from postflow.crosscutting import error_responses as errors
from postflow.crosscutting.exceptions import DatabaseError

pytestmark = pytest.mark.unit


class _Secret(BaseModel):
    password: int


def _app(expose_errors: bool = False) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app, expose_errors=expose_errors)

    @app.get("/expired")
    def expired():
        raise errors.token_expired()

    @app.post("/validate")
    def validate(body: _Secret):
        return {"ok": True}

    @app.get("/db")
    def db():
        raise DatabaseError("connection refused")

    @app.get("/boom")
    def boom():
        raise RuntimeError("kaboom")

    return app


@pytest.mark.parametrize(
    "factory,status,code",
    [
        (errors.invalid_credentials, 401, "INVALID_CREDENTIALS"),
        (errors.access_token_required, 401, "ACCESS_TOKEN_REQUIRED"),
        (errors.token_expired, 401, "TOKEN_EXPIRED"),
        (errors.invalid_token, 401, "INVALID_TOKEN"),
        (errors.invalid_refresh_token, 403, "INVALID_REFRESH_TOKEN"),
        (errors.insufficient_permissions, 403, "INSUFFICIENT_PERMISSIONS"),
        (errors.user_not_found, 404, "USER_NOT_FOUND"),
        (errors.password_already_set, 400, "PASSWORD_ALREADY_SET"),
        (errors.user_exists, 409, "USER_EXISTS"),
        (errors.self_deletion_not_allowed, 400, "SELF_DELETION_NOT_ALLOWED"),
    ],
)
def test_taxonomy(factory, status, code):
    exc = factory()

    assert exc.status_code == status
    assert exc.code.value == code


def test_problem_document_shape():
    response = TestClient(_app()).get("/expired")

    assert response.status_code == 401
    body = response.json()
    assert body["type"].endswith("/token_expired")
    assert body["title"] == "Token Expired"
    assert body["status"] == 401
    assert body["success"] is False
    assert body["error"] == {"code": "TOKEN_EXPIRED", "message": "Access token has expired"}
    assert body["instance"].endswith("/expired")


def test_validation_error_does_not_echo_input():
    response = TestClient(_app()).post("/validate", json={"password": "hunter2"})

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["errors"][0]["field"] == "password"
    assert "hunter2" not in response.text


def test_database_error_hides_details_by_default():
    response = TestClient(_app()).get("/db")

    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"
    assert "connection refused" not in response.text


def test_unexpected_exception_detail_exposed_in_development():
    client = TestClient(_app(expose_errors=True), raise_server_exceptions=False)

    response = client.get("/boom")

    assert response.status_code == 500
    assert response.json()["detail"] == "kaboom"
