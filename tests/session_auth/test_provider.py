"""
Tests for ProviderExchanger.

Provider HTTP is served by httpx.MockTransport (see FakeProvider in conftest),
except for the silent-server tests, which use a real socket.
"""

import socket
import time
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

import session_auth as m


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class TestAuthorizeUrl:
    """Test consent URL construction."""

    def test_authorize_url_contains_client_redirect_and_scope(self, exchanger: m.ProviderExchanger):
        url = urlsplit(exchanger.authorize_url())
        query = parse_qs(url.query)

        assert f"{url.scheme}://{url.netloc}{url.path}" == "https://kauth.kakao.com/oauth/authorize"
        assert query["client_id"] == ["client-id"]
        assert query["redirect_uri"] == ["http://localhost:8080/auth/kakao/callback"]
        assert query["response_type"] == ["code"]
        assert query["scope"] == ["profile_nickname profile_image account_email"]

    def test_name_comes_from_settings(self, exchanger: m.ProviderExchanger):
        assert exchanger.name == "kakao"

    def test_settings_repr_hides_secret(self, provider_settings: m.ProviderSettings):
        assert "client-secret" not in repr(provider_settings)


class TestExchangeCode:
    """Test the authorization-code exchange."""

    @pytest.mark.parametrize("code", [None, "", "   "])
    def test_blank_code_makes_no_network_call(self, exchanger, fake_provider, code):
        result = exchanger.exchange_code(code)

        assert isinstance(result, m.Err)
        assert isinstance(result.error, m.InvalidRequest)
        assert fake_provider.requests == []

    def test_success_returns_provider_token(self, exchanger, fake_provider):
        result = exchanger.exchange_code("auth-code")

        assert isinstance(result, m.Ok)
        assert result.value.value == "provider-access-token"
        assert result.value.expires_in == 21599
        assert len(fake_provider.requests) == 1

    def test_posts_form_to_token_endpoint(self, exchanger, fake_provider):
        exchanger.exchange_code("auth-code")
        request = fake_provider.requests[0]

        assert request.method == "POST"
        assert str(request.url) == "https://kauth.kakao.com/oauth/token"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert _form(request) == {
            "grant_type": "authorization_code",
            "client_id": "client-id",
            "client_secret": "client-secret",
            "redirect_uri": "http://localhost:8080/auth/kakao/callback",
            "code": "auth-code",
        }

    def test_each_call_carries_five_second_timeout(self, exchanger, fake_provider):
        exchanger.exchange_code("auth-code")
        timeout = fake_provider.requests[0].extensions["timeout"]

        assert timeout["connect"] == 5.0
        assert timeout["read"] == 5.0

    def test_timeout_becomes_external_service_error(self, exchanger, fake_provider, provider_settings):
        fake_provider.errors[provider_settings.token_url] = httpx.ReadTimeout("timed out")

        result = exchanger.exchange_code("auth-code")
        assert isinstance(result, m.Err)
        assert isinstance(result.error, m.ExternalServiceError)
        assert result.error.description == m.ExternalServiceError.default_description

    def test_transport_failure_becomes_external_service_error(self, exchanger, fake_provider, provider_settings):
        fake_provider.errors[provider_settings.token_url] = httpx.ConnectError("refused")

        result = exchanger.exchange_code("auth-code")
        assert isinstance(result, m.Err)
        assert isinstance(result.error, m.ExternalServiceError)

    def test_non_2xx_carries_provider_error_code(self, exchanger, fake_provider):
        fake_provider.token_status = 400
        fake_provider.token_body = {"error": "invalid_grant", "error_description": "authorization code not found"}

        result = exchanger.exchange_code("stale-code")
        assert isinstance(result, m.Err)
        assert isinstance(result.error, m.ExternalServiceError)
        assert result.error.provider_error == "invalid_grant"
        assert "authorization code not found" not in result.error.description

    def test_error_body_with_200_is_failure(self, exchanger, fake_provider):
        fake_provider.token_body = {"error": "unauthorized_client"}

        result = exchanger.exchange_code("auth-code")
        assert isinstance(result, m.Err)
        assert result.error.provider_error == "unauthorized_client"

    @pytest.mark.parametrize("body", [{}, {"access_token": ""}, {"access_token": 123}, ["not", "an", "object"]])
    def test_unusable_token_body(self, exchanger, fake_provider, body):
        fake_provider.token_body = body

        result = exchanger.exchange_code("auth-code")
        assert isinstance(result, m.Err)
        assert isinstance(result.error, m.ExternalServiceError)

    def test_non_json_body(self, provider_settings):
        client = httpx.Client(transport=httpx.MockTransport(lambda req: httpx.Response(200, text="<html>oops</html>")))
        exchanger = m.ProviderExchanger(provider_settings, client)

        result = exchanger.exchange_code("auth-code")
        assert isinstance(result, m.Err)
        assert isinstance(result.error, m.ExternalServiceError)


class TestFetchProfile:
    """Test the user-info call and lenient parsing."""

    def test_sends_bearer_header(self, exchanger, fake_provider):
        exchanger.fetch_profile(m.ProviderAccessToken("provider-access-token"))
        request = fake_provider.requests[0]

        assert request.method == "GET"
        assert request.headers["Authorization"] == "Bearer provider-access-token"

    def test_full_profile(self, exchanger):
        result = exchanger.fetch_profile("provider-access-token")

        assert isinstance(result, m.Ok)
        assert result.value == m.ProviderProfile(
            external_id=42,
            email="a@x.com",
            nickname="Alice",
            avatar_url="https://img.example.com/alice.png",
        )

    def test_missing_account_gives_empty_optionals(self, exchanger, fake_provider):
        fake_provider.userinfo_body = {"id": 7}

        result = exchanger.fetch_profile("t")
        assert isinstance(result, m.Ok)
        assert result.value == m.ProviderProfile(external_id=7)

    def test_malformed_optionals_become_none(self, exchanger, fake_provider):
        fake_provider.userinfo_body = {
            "id": 7,
            "kakao_account": {"email": ["not", "a", "string"], "profile": "not-an-object"},
        }

        result = exchanger.fetch_profile("t")
        assert isinstance(result, m.Ok)
        assert result.value == m.ProviderProfile(external_id=7)

    def test_wrong_shaped_account_becomes_none(self, exchanger, fake_provider):
        fake_provider.userinfo_body = {"id": 7, "kakao_account": 5}

        result = exchanger.fetch_profile("t")
        assert isinstance(result, m.Ok)
        assert result.value.email is None

    def test_missing_id_is_failure(self, exchanger, fake_provider):
        fake_provider.userinfo_body = {"kakao_account": {"email": "a@x.com"}}

        result = exchanger.fetch_profile("t")
        assert isinstance(result, m.Err)
        assert isinstance(result.error, m.ExternalServiceError)

    def test_unauthorized_is_failure(self, exchanger, fake_provider):
        fake_provider.userinfo_status = 401
        fake_provider.userinfo_body = {"msg": "this access token does not exist", "code": -401}

        result = exchanger.fetch_profile("t")
        assert isinstance(result, m.Err)
        assert result.error.provider_error is None

    def test_timeout_becomes_external_service_error(self, exchanger, fake_provider, provider_settings):
        fake_provider.errors[provider_settings.userinfo_url] = httpx.ReadTimeout("timed out")

        result = exchanger.fetch_profile("t")
        assert isinstance(result, m.Err)
        assert isinstance(result.error, m.ExternalServiceError)


@pytest.fixture
def silent_server():
    """A listening socket that completes the TCP handshake but never answers."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(8)
    host, port = server.getsockname()
    yield f"http://{host}:{port}"
    server.close()


class TestUnresponsiveProvider:
    """Test the timeout against a provider that accepts connections and stays silent."""

    TIMEOUT = 0.5

    def _exchanger(self, provider_settings: m.ProviderSettings, base_url: str) -> m.ProviderExchanger:
        settings = m.ProviderSettings(
            name=provider_settings.name,
            client_id=provider_settings.client_id,
            client_secret=provider_settings.client_secret,
            redirect_uri=provider_settings.redirect_uri,
            token_url=f"{base_url}/oauth/token",
            userinfo_url=f"{base_url}/v2/user/me",
            timeout=self.TIMEOUT,
        )
        return m.ProviderExchanger(settings, httpx.Client(trust_env=False))

    def test_exchange_code_fails_within_timeout(self, provider_settings, silent_server):
        exchanger = self._exchanger(provider_settings, silent_server)

        started = time.monotonic()
        result = exchanger.exchange_code("auth-code")
        elapsed = time.monotonic() - started
        exchanger.close()

        assert isinstance(result, m.Err)
        assert isinstance(result.error, m.ExternalServiceError)
        assert self.TIMEOUT * 0.8 <= elapsed < self.TIMEOUT + 1.0

    def test_fetch_profile_fails_within_timeout(self, provider_settings, silent_server):
        exchanger = self._exchanger(provider_settings, silent_server)

        started = time.monotonic()
        result = exchanger.fetch_profile("provider-access-token")
        elapsed = time.monotonic() - started
        exchanger.close()

        assert isinstance(result, m.Err)
        assert isinstance(result.error, m.ExternalServiceError)
        assert elapsed < self.TIMEOUT + 1.0
