"""OAuth2 callback handling: from authorization code to session cookies.

One login attempt walks a fixed sequence of states::

    START -> CODE_RECEIVED -> PROVIDER_TOKEN_OBTAINED -> PROFILE_OBTAINED
          -> IDENTITY_RESOLVED -> LOCAL_TOKENS_ISSUED -> COOKIES_SET -> REDIRECTED

Any step may instead end in FAILURE_REDIRECTED, carrying a classified error
code. Nothing is retried; the browser lands on the failure page with
``?error=<code>&message=<text>`` and may start over.

Provider error codes are classified into a small fixed vocabulary before they
reach the redirect URL. Provider-supplied descriptions are logged, never
forwarded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Final
from urllib.parse import urlencode

from flask import redirect

from .errors import ExternalServiceError, IdentityConflict, InvalidRequest
from .result import Err

if TYPE_CHECKING:
    from werkzeug.wrappers import Response

    from .cookies import SessionCookieWriter
    from .errors import AuthError
    from .identity import IdentityResolver
    from .provider import ProviderExchanger
    from .tokens import TokenCodec

logger = logging.getLogger(__name__)


class LoginState(StrEnum):
    START = "start"
    CODE_RECEIVED = "code_received"
    PROVIDER_TOKEN_OBTAINED = "provider_token_obtained"
    PROFILE_OBTAINED = "profile_obtained"
    IDENTITY_RESOLVED = "identity_resolved"
    LOCAL_TOKENS_ISSUED = "local_tokens_issued"
    COOKIES_SET = "cookies_set"
    REDIRECTED = "redirected"
    FAILURE_REDIRECTED = "failure_redirected"


@dataclass(frozen=True, slots=True)
class LoginFailure:
    """Classified failure placed in the redirect query string.

    Attributes:
        code: One of the fixed error codes below.
        message: Fixed human-readable text for ``code``.
    """

    code: str
    message: str


ACCESS_DENIED: Final = LoginFailure("access_denied", "The login was cancelled.")
INVALID_REQUEST: Final = LoginFailure("invalid_request", "The login request was invalid.")
UNAUTHORIZED_CLIENT: Final = LoginFailure(
    "unauthorized_client", "This application is not authorized by the login provider."
)
SERVER_ERROR: Final = LoginFailure("server_error", "The login provider reported a server error.")
UNKNOWN_ERROR: Final = LoginFailure("unknown_error", "An unknown error occurred during login.")
LOGIN_FAILED: Final = LoginFailure("login_failed", "Login failed. Please try again.")
AUTH_PROCESSING_FAILED: Final = LoginFailure(
    "auth_processing_failed", "Your login could not be completed. Please try again."
)

_PROVIDER_ERRORS: Final[dict[str, LoginFailure]] = {
    failure.code: failure
    for failure in (ACCESS_DENIED, INVALID_REQUEST, UNAUTHORIZED_CLIENT, SERVER_ERROR)
}


def classify_provider_error(code: str | None) -> LoginFailure:
    """Map a provider OAuth2 error code onto the fixed vocabulary."""
    return _PROVIDER_ERRORS.get(code or "", UNKNOWN_ERROR)


def classify_error(error: AuthError) -> LoginFailure:
    """Map an error returned by a login step onto the fixed vocabulary."""
    if isinstance(error, InvalidRequest):
        return INVALID_REQUEST
    if isinstance(error, ExternalServiceError):
        if error.provider_error:
            return classify_provider_error(error.provider_error)
        return LOGIN_FAILED
    if isinstance(error, IdentityConflict):
        return AUTH_PROCESSING_FAILED
    return UNKNOWN_ERROR


@dataclass(slots=True)
class LoginOutcome:
    """Result of one callback.

    Attributes:
        response: Redirect to send to the browser.
        trail: States visited, in order, ending in REDIRECTED or FAILURE_REDIRECTED.
        user_id: Local user id on success.
        failure: Classified failure, when the attempt failed.
    """

    response: Response
    trail: list[LoginState] = field(default_factory=list)
    user_id: int | None = None
    failure: LoginFailure | None = None

    @property
    def state(self) -> LoginState:
        return self.trail[-1]

    @property
    def succeeded(self) -> bool:
        return self.state is LoginState.REDIRECTED


class LoginFlowOrchestrator:
    """Runs the callback half of the login flow.

    Collaborators are passed in explicitly; the orchestrator holds no per-login
    state between calls.

    Example:
        ```python
        flow = LoginFlowOrchestrator(exchanger, resolver, codec, cookie_writer)
        outcome = flow.handle_callback(request.args.get("code"))
        return outcome.response
        ```
    """

    def __init__(
        self,
        exchanger: ProviderExchanger,
        resolver: IdentityResolver,
        codec: TokenCodec,
        cookies: SessionCookieWriter,
        *,
        success_redirect: str = "/home.html",
        failure_redirect: str = "/main.html",
    ) -> None:
        self._exchanger = exchanger
        self._resolver = resolver
        self._codec = codec
        self._cookies = cookies
        self._success_redirect = success_redirect
        self._failure_redirect = failure_redirect

    def failure_url(self, failure: LoginFailure) -> str:
        return f"{self._failure_redirect}?{urlencode({'error': failure.code, 'message': failure.message})}"

    def handle_callback(
        self,
        code: str | None,
        *,
        error: str | None = None,
        error_description: str | None = None,
    ) -> LoginOutcome:
        """Process one provider callback.

        Args:
            code: The ``code`` query parameter.
            error: The provider's ``error`` query parameter, if consent failed.
            error_description: The provider's free-text description (logged only).
        """
        trail = [LoginState.START]

        if error:
            logger.warning("Provider returned error on callback: %s - %s", error, error_description)
            return self._fail(trail, classify_provider_error(error))

        if code is None or not code.strip():
            logger.warning("Callback arrived without an authorization code")
            return self._fail(trail, INVALID_REQUEST)
        trail.append(LoginState.CODE_RECEIVED)

        token_result = self._exchanger.exchange_code(code)
        if isinstance(token_result, Err):
            return self._fail(trail, classify_error(token_result.error), token_result.error)
        trail.append(LoginState.PROVIDER_TOKEN_OBTAINED)

        profile_result = self._exchanger.fetch_profile(token_result.value)
        if isinstance(profile_result, Err):
            return self._fail(trail, classify_error(profile_result.error), profile_result.error)
        trail.append(LoginState.PROFILE_OBTAINED)
        profile = profile_result.value

        identity_result = self._resolver.resolve(profile)
        if isinstance(identity_result, Err):
            return self._fail(trail, classify_error(identity_result.error), identity_result.error)
        trail.append(LoginState.IDENTITY_RESOLVED)
        user_id = identity_result.value

        access_token = self._codec.issue_access(user_id)
        refresh_token = self._codec.issue_refresh(user_id)
        trail.append(LoginState.LOCAL_TOKENS_ISSUED)
        logger.debug("Session tokens issued for user %s", user_id)

        response = redirect(self._success_redirect, code=302)
        self._cookies.set_session_cookies(response, access_token, refresh_token)
        trail.append(LoginState.COOKIES_SET)

        trail.append(LoginState.REDIRECTED)
        logger.info("Login successful for user %s (external id %s)", user_id, profile.external_id)
        return LoginOutcome(response=response, trail=trail, user_id=user_id)

    def _fail(
        self,
        trail: list[LoginState],
        failure: LoginFailure,
        cause: AuthError | None = None,
    ) -> LoginOutcome:
        logger.warning(
            "Login failed at %s: code=%s cause=%r",
            trail[-1].value,
            failure.code,
            cause,
        )
        trail.append(LoginState.FAILURE_REDIRECTED)
        return LoginOutcome(
            response=redirect(self.failure_url(failure), code=302),
            trail=trail,
            failure=failure,
        )
