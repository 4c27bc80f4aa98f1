"""
Auth Middleware Tests

The gate must:
1. Let public paths through without a token
2. Reject missing, malformed, tampered, and expired tokens identically
3. Bind the token subject to request.state for downstream handlers
"""

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from middleware.auth import AuthMiddleware, current_user_id, extract_bearer_token
from services.token import TokenService

SECRET = "test-secret-key-that-is-at-least-32-chars"


@pytest.fixture
def tokens(clock):
    return TokenService(SECRET, expiration_hours=1, clock=clock.as_datetime)


@pytest.fixture
def client(tokens):
    app = FastAPI()
    app.add_middleware(AuthMiddleware, tokens=tokens)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/auth/username-check/{username}")
    async def username_check(username: str):
        return {"username": username, "available": True}

    @app.get("/todos")
    async def todos(user_id: str = Depends(current_user_id)):
        return {"user_id": user_id}

    return TestClient(app)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestPublicPaths:

    @pytest.mark.unit
    @pytest.mark.auth
    def test_health_needs_no_token(self, client):
        assert client.get("/health").status_code == 200

    @pytest.mark.unit
    @pytest.mark.auth
    def test_auth_prefix_needs_no_token(self, client):
        assert client.get("/auth/username-check/alice").status_code == 200


class TestRejection:

    @pytest.mark.unit
    @pytest.mark.auth
    def test_missing_header(self, client):
        response = client.get("/todos")
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.unit
    @pytest.mark.auth
    def test_tampered_token_indistinguishable_from_missing(self, client, tokens):
        header, _, signature = tokens.issue("u123").split(".")
        other_payload = tokens.issue("admin").split(".")[1]
        tampered = f"{header}.{other_payload}.{signature}"

        missing = client.get("/todos")
        forged = client.get("/todos", headers=bearer(tampered))

        assert forged.status_code == missing.status_code == 401
        assert forged.json() == missing.json()
        assert forged.headers["WWW-Authenticate"] == missing.headers["WWW-Authenticate"]

    @pytest.mark.unit
    @pytest.mark.auth
    def test_expired_token_indistinguishable_from_missing(self, client, tokens, clock):
        token = tokens.issue("u123")
        clock.advance(61 * 60)

        response = client.get("/todos", headers=bearer(token))

        assert response.status_code == 401
        assert response.json() == client.get("/todos").json()

    @pytest.mark.unit
    @pytest.mark.auth
    @pytest.mark.parametrize("header", [
        "Bearer",
        "Basic dXNlcjpwYXNz",
        "Token abc",
        "Bearer a b",
    ])
    def test_malformed_header(self, client, header):
        response = client.get("/todos", headers={"Authorization": header})
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}


class TestIdentityBinding:

    @pytest.mark.unit
    @pytest.mark.auth
    def test_subject_reaches_handler(self, client, tokens):
        response = client.get("/todos", headers=bearer(tokens.issue("u123")))
        assert response.status_code == 200
        assert response.json() == {"user_id": "u123"}

    @pytest.mark.unit
    @pytest.mark.auth
    def test_scheme_is_case_insensitive(self, client, tokens):
        headers = {"Authorization": f"bearer {tokens.issue('u123')}"}
        assert client.get("/todos", headers=headers).status_code == 200


class TestExtractBearerToken:

    @pytest.mark.unit
    def test_extracts_credential(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.unit
    @pytest.mark.parametrize("value", [None, "", "Bearer", "Bearer ", "abc", "Bearer  abc"])
    def test_rejects(self, value):
        assert extract_bearer_token(value) is None
