"""Authorization-code exchange with the external OAuth2 identity provider.

Flow handled here (server side of the authorization code grant):

1. ``authorize_url()`` builds the provider's consent URL the browser is sent to.
2. ``exchange_code(code)`` POSTs the one-time code to the token endpoint and
   returns the provider access token.
3. ``fetch_profile(token)`` GETs the user-info endpoint with that token and
   returns a typed ProviderProfile.

Failure policy
--------------
Every provider call has a fixed timeout (5 seconds). httpx applies it to each
phase of the call (connect, write, pool acquisition, and every read), so a
silent endpoint fails within 5 seconds while a response that keeps trickling
in can take longer overall. A timeout, a transport
failure, a non-2xx status or an undecodable body all collapse into a single
``ExternalServiceError``. The provider's raw response text is written to the
server log and never placed in the returned error's client-facing description.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Final

import httpx
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri
from pydantic import ValidationError

from .errors import AuthError, ExternalServiceError, InvalidRequest
from .models import ProviderAccessToken, ProviderProfile
from .result import Err, Ok, Result
from .schemas import TokenResponse, UserInfoResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: Final[float] = 5.0
"""Seconds allowed for each provider call."""

_LOGGED_BODY_LIMIT: Final[int] = 500


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    """Registration of this application with the identity provider.

    Attributes:
        name: Path segment used in ``/auth/<name>/...`` routes.
        client_id: Registered client id (Kakao: REST API key).
        client_secret: Registered client secret.
        redirect_uri: Registered callback URL; must match exactly.
        authorize_url: Provider consent page.
        token_url: Token endpoint.
        userinfo_url: User-info endpoint.
        scope: Space-separated scope string requested at login.
        timeout: Per-call timeout in seconds.
    """

    name: str
    client_id: str
    client_secret: str
    redirect_uri: str
    authorize_url: str = "https://kauth.kakao.com/oauth/authorize"
    token_url: str = "https://kauth.kakao.com/oauth/token"
    userinfo_url: str = "https://kapi.kakao.com/v2/user/me"
    scope: str = "profile_nickname profile_image account_email"
    timeout: float = DEFAULT_TIMEOUT

    def __repr__(self) -> str:
        return f"ProviderSettings(name={self.name!r}, client_id={self.client_id!r}, redirect_uri={self.redirect_uri!r})"


class ProviderExchanger:
    """Talks to one OAuth2 provider over a blocking httpx client.

    The two calls are sequential from the caller's point of view; with the
    default timeout a full login against an unresponsive provider spends about
    10 seconds waiting before failing.

    Example:
        ```python
        exchanger = ProviderExchanger(settings)

        match exchanger.exchange_code(code):
            case Ok(token):
                profile_result = exchanger.fetch_profile(token)
            case Err(error):
                ...
        ```

    Attributes:
        _settings: Client registration.
        _http: Shared httpx client; injectable so tests can use MockTransport.
    """

    def __init__(self, settings: ProviderSettings, http: httpx.Client | None = None) -> None:
        self._settings = settings
        self._http = http or httpx.Client(timeout=settings.timeout)

    @property
    def name(self) -> str:
        return self._settings.name

    def authorize_url(self) -> str:
        """Return the consent URL with client id, redirect URI, response type and scope."""
        return prepare_grant_uri(
            self._settings.authorize_url,
            self._settings.client_id,
            "code",
            redirect_uri=self._settings.redirect_uri,
            scope=self._settings.scope,
        )

    def exchange_code(self, code: str | None) -> Result[ProviderAccessToken, AuthError]:
        """Trade a one-time authorization code for a provider access token.

        A missing or blank code is rejected before any network call.
        """
        if code is None or not code.strip():
            return Err(InvalidRequest("Authorization code is required"))

        form = {
            "grant_type": "authorization_code",
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "redirect_uri": self._settings.redirect_uri,
            "code": code,
        }
        result = self._call("token exchange", "POST", self._settings.token_url, data=form)
        if isinstance(result, Err):
            return result
        body = result.value

        if "error" in body:
            # Some providers report OAuth errors with a 200 status
            logger.warning("Provider token endpoint returned an error body: %s", _truncate(str(body)))
            return Err(ExternalServiceError("Token exchange rejected", provider_error=_error_code(body)))

        try:
            token = TokenResponse.model_validate(body)
        except ValidationError as e:
            logger.warning("Provider token response failed validation: %s", e)
            return Err(ExternalServiceError("Token response is missing access_token"))

        return Ok(token.to_access_token())

    def fetch_profile(self, access_token: ProviderAccessToken | str) -> Result[ProviderProfile, AuthError]:
        """Fetch the user profile that ``access_token`` was issued for."""
        value = access_token.value if isinstance(access_token, ProviderAccessToken) else access_token

        result = self._call(
            "user info",
            "GET",
            self._settings.userinfo_url,
            headers={"Authorization": f"Bearer {value}"},
        )
        if isinstance(result, Err):
            return result
        body = result.value

        try:
            info = UserInfoResponse.model_validate(body)
        except ValidationError as e:
            logger.warning("Provider user-info response failed validation: %s", e)
            return Err(ExternalServiceError("User info response is missing the user id"))

        return Ok(info.to_profile())

    def close(self) -> None:
        self._http.close()

    def _call(self, operation: str, method: str, url: str, **kwargs: Any) -> Result[dict[str, Any], ExternalServiceError]:
        headers = {"Accept": "application/json", **kwargs.pop("headers", {})}
        try:
            response = self._http.request(
                method, url, headers=headers, timeout=self._settings.timeout, **kwargs
            )
        except httpx.TimeoutException as e:
            logger.warning("Provider %s timed out after %ss: %r", operation, self._settings.timeout, e)
            return Err(ExternalServiceError(f"Provider {operation} timed out"))
        except httpx.HTTPError as e:
            logger.warning("Provider %s transport failure: %r", operation, e)
            return Err(ExternalServiceError(f"Provider {operation} failed"))

        if not response.is_success:
            logger.warning(
                "Provider %s failed: status=%s body=%s",
                operation,
                response.status_code,
                _truncate(response.text),
            )
            return Err(
                ExternalServiceError(
                    f"Provider {operation} returned HTTP {response.status_code}",
                    provider_error=_error_code(_json_or_none(response)),
                )
            )

        body = _json_or_none(response)
        if not isinstance(body, dict):
            logger.warning("Provider %s returned a non-object body: %s", operation, _truncate(response.text))
            return Err(ExternalServiceError(f"Provider {operation} returned an unreadable body"))

        return Ok(body)


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_code(body: Any) -> str | None:
    if isinstance(body, dict):
        code = body.get("error")
        if isinstance(code, str) and code:
            return code
    return None


def _truncate(text: str) -> str:
    return text if len(text) <= _LOGGED_BODY_LIMIT else text[:_LOGGED_BODY_LIMIT] + "..."
