from typing import Any

import httpx
import pytest
from flask import Flask

import session_auth as m

SECRET = "test-secret-key-that-is-long-enough-for-hs256"
START = 1_700_000_000.0


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.config["TESTING"] = True
    return app


class FakeClock:
    """Settable time source; call it like time.time."""

    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def signing_key() -> m.SigningKey:
    return m.SigningKey.from_secret(SECRET)


@pytest.fixture
def codec(signing_key: m.SigningKey, clock: FakeClock) -> m.TokenCodec:
    return m.TokenCodec(signing_key, clock=clock)


@pytest.fixture
def store() -> m.InMemoryUserStore:
    return m.InMemoryUserStore()


@pytest.fixture
def provider_settings() -> m.ProviderSettings:
    return m.ProviderSettings(
        name="kakao",
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://localhost:8080/auth/kakao/callback",
    )


class FakeProvider:
    """
    httpx.MockTransport handler standing in for the provider endpoints.

    Records every request. Responses are plain attributes so a test can
    change them before the call; ``errors`` maps a URL to an exception to raise.
    """

    def __init__(self, settings: m.ProviderSettings):
        self.settings = settings
        self.requests: list[httpx.Request] = []
        self.errors: dict[str, Exception] = {}
        self.token_status = 200
        self.token_body: Any = {
            "access_token": "provider-access-token",
            "token_type": "bearer",
            "expires_in": 21599,
        }
        self.userinfo_status = 200
        self.userinfo_body: Any = {
            "id": 42,
            "kakao_account": {
                "email": "a@x.com",
                "profile": {
                    "nickname": "Alice",
                    "profile_image_url": "https://img.example.com/alice.png",
                },
            },
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self.errors:
            raise self.errors[url]
        if url == self.settings.token_url:
            return httpx.Response(self.token_status, json=self.token_body)
        if url == self.settings.userinfo_url:
            return httpx.Response(self.userinfo_status, json=self.userinfo_body)
        return httpx.Response(404, json={"error": "not_found"})

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture
def fake_provider(provider_settings: m.ProviderSettings) -> FakeProvider:
    return FakeProvider(provider_settings)


@pytest.fixture
def exchanger(provider_settings: m.ProviderSettings, fake_provider: FakeProvider) -> m.ProviderExchanger:
    return m.ProviderExchanger(provider_settings, fake_provider.client())


@pytest.fixture
def make_config(provider_settings: m.ProviderSettings):
    """
    Factory fixture for AppConfig.

    Usage in tests:
        config = make_config(profile="prod")
    """

    def _make(**overrides: Any) -> m.AppConfig:
        values: dict[str, Any] = {"jwt_secret": SECRET, "provider": provider_settings, "profile": "local"}
        values.update(overrides)
        return m.AppConfig(**values)

    return _make


@pytest.fixture
def make_app(make_config, store: m.InMemoryUserStore, fake_provider: FakeProvider, clock: FakeClock):
    """Factory fixture building the full application around the fakes above."""

    def _make(**overrides: Any) -> Flask:
        application = m.create_app(
            make_config(**overrides),
            user_store=store,
            http_client=fake_provider.client(),
            clock=clock,
        )
        application.config["TESTING"] = True
        return application

    return _make
