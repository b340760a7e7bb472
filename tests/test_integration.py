"""
Integration tests for the session-auth Flask application.

Configuration comes from environment variables, the provider is an
httpx.MockTransport, and the whole login -> API -> logout cycle runs through
the Flask test client.
"""

from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from flask import Flask

from session_auth import AppConfig, InMemoryUserStore, create_app

TOKEN_URL = "https://auth.provider.test/oauth/token"
USERINFO_URL = "https://api.provider.test/v2/user/me"


class ProviderStub:
    """Token and user-info endpoints; flip ``down`` to make every call time out."""

    def __init__(self):
        self.down = False
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(str(request.url))
        if self.down:
            raise httpx.ConnectTimeout("provider unreachable", request=request)
        if str(request.url) == TOKEN_URL:
            code = parse_qs(request.content.decode())["code"][0]
            return httpx.Response(200, json={"access_token": f"provider-token-for-{code}", "token_type": "bearer"})
        if str(request.url) == USERINFO_URL:
            return httpx.Response(
                200,
                json={"id": 42, "kakao_account": {"email": "a@x.com", "profile": {"nickname": "Alice"}}},
            )
        return httpx.Response(404)


@pytest.fixture
def provider() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def app_with_auth(provider: ProviderStub, store: InMemoryUserStore) -> Flask:
    """Create the app from environment variables, as in production."""
    with patch.dict(
        "os.environ",
        {
            "JWT_SECRET": "integration-secret-key-of-sufficient-length",
            "OAUTH_PROVIDER": "kakao",
            "OAUTH_CLIENT_ID": "test-client-id",
            "OAUTH_CLIENT_SECRET": "test-client-secret",
            "OAUTH_REDIRECT_URI": "http://localhost:8080/auth/kakao/callback",
            "OAUTH_TOKEN_URL": TOKEN_URL,
            "OAUTH_USERINFO_URL": USERINFO_URL,
            "APP_PROFILE": "local",
        },
    ):
        config = AppConfig.from_env()

    app = create_app(
        config,
        user_store=store,
        http_client=httpx.Client(transport=httpx.MockTransport(provider)),
    )
    app.config["TESTING"] = True
    return app


class TestLoginLifecycle:
    """Test the full browser session lifecycle."""

    def test_login_use_logout(self, app_with_auth: Flask, store: InMemoryUserStore):
        client = app_with_auth.test_client()

        login_url = client.get("/auth/kakao/login-url").get_data(as_text=True)
        assert parse_qs(urlsplit(login_url).query)["client_id"] == ["test-client-id"]

        assert client.get("/api/check-auth").status_code == 401

        r = client.get("/auth/kakao/callback?code=first-code")
        assert r.status_code == 302
        assert r.headers["Location"] == "/home.html"
        assert len(store) == 1

        assert client.get("/api/check-auth").status_code == 200
        assert client.get("/api/users/me/info").get_json() == {"nickname": "Alice"}

        r = client.post("/auth/kakao/logout")
        assert r.status_code == 200
        assert client.get("/api/check-auth").status_code == 401

    def test_repeat_login_reuses_user(self, app_with_auth: Flask, store: InMemoryUserStore):
        first = app_with_auth.test_client()
        second = app_with_auth.test_client()

        first.get("/auth/kakao/callback?code=code-a")
        second.get("/auth/kakao/callback?code=code-b")

        assert len(store) == 1
        assert first.get("/api/users/me/info").get_json() == second.get("/api/users/me/info").get_json()

    def test_withdraw_then_login_creates_new_user(self, app_with_auth: Flask, store: InMemoryUserStore):
        client = app_with_auth.test_client()
        client.get("/auth/kakao/callback?code=code-a")
        old_id = store.find_by_external_id(42).id

        assert client.delete("/api/users/me/withdraw").status_code == 200
        assert len(store) == 0

        client.get("/auth/kakao/callback?code=code-b")
        assert store.find_by_external_id(42).id != old_id


class TestProviderFailures:
    """Test that provider outages end in a failure redirect."""

    def test_provider_down_redirects_with_login_failed(
        self, app_with_auth: Flask, provider: ProviderStub, store: InMemoryUserStore
    ):
        provider.down = True
        client = app_with_auth.test_client()

        r = client.get("/auth/kakao/callback?code=first-code")

        location = urlsplit(r.headers["Location"])
        assert r.status_code == 302
        assert location.path == "/main.html"
        assert parse_qs(location.query)["error"] == ["login_failed"]
        assert len(store) == 0
        assert client.get("/api/check-auth").status_code == 401

    def test_consent_denied_never_calls_provider(self, app_with_auth: Flask, provider: ProviderStub):
        r = app_with_auth.test_client().get(
            "/auth/kakao/callback?error=access_denied&error_description=raw+provider+text"
        )

        query = parse_qs(urlsplit(r.headers["Location"]).query)
        assert query["error"] == ["access_denied"]
        assert "raw provider text" not in query["message"][0]
        assert provider.calls == []


class TestTokenHandling:
    """Test bearer access for API clients."""

    def test_bearer_token_from_test_user_route(self, app_with_auth: Flask):
        client = app_with_auth.test_client()
        token = client.post("/test/auth/create-test-user").get_json()["accessToken"]

        anonymous = app_with_auth.test_client()
        r = anonymous.get("/api/check-auth", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 200

    def test_garbage_cookie_is_anonymous_not_error(self, app_with_auth: Flask):
        client = app_with_auth.test_client()
        client.set_cookie("accessToken", "definitely-not-a-jwt")

        r = client.get("/api/check-auth")
        assert r.status_code == 401
        assert r.get_data(as_text=True) == "Not authenticated"
