"""
Self-contained session tokens and OAuth2 login for Flask.

High-level flow (login)
-----------------------
1. The frontend fetches `GET /auth/<provider>/login-url` and sends the browser there.
2. The provider redirects back to `GET /auth/<provider>/callback?code=...`.
3. `LoginFlowOrchestrator.handle_callback(code)`:
   - `ProviderExchanger.exchange_code` trades the code for a provider token
   - `ProviderExchanger.fetch_profile` reads the provider profile
   - `IdentityResolver.resolve` finds or creates the local user
   - `TokenCodec` issues access and refresh tokens
   - `SessionCookieWriter` sets them as HttpOnly cookies
4. The browser is redirected to the success page, or to the failure page with
   `?error=<code>&message=<text>`.

High-level flow (per request)
-----------------------------
1. `AuthenticationMiddleware` runs before every view.
2. The token is read from the `accessToken` cookie, else `Authorization: Bearer`.
3. `TokenCodec.validate(token)` returns `Ok(SessionClaims)` or `Err(AuthError)`.
4. On `Ok`, a `Principal` is published for the request; on `Err`, nothing is.
5. Views opt in with `@auth.with_principal` or `@auth.require()`.

Security notes
--------------
- Tokens are HS256 with a secret of at least 256 bits, checked at startup.
- Only HS256 is accepted on validation (no algorithm confusion).
- Provider error text is logged, never sent to the browser.
- Tokens and client secrets are never logged.

Example usage
-----------

.. code-block:: python

    from session_auth import AppConfig, create_app

    app = create_app(AppConfig.from_env())
"""

# Application
from .app import create_app
from .config import AppConfig

# Cookies
from .cookies import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, SessionCookieWriter

# Environment
from .environment import ProfileEnvironmentPolicy

# Errors
from .errors import (
    AuthError,
    DuplicateExternalId,
    ExpiredToken,
    ExternalServiceError,
    IdentityConflict,
    InvalidRequest,
    InvalidToken,
    MalformedToken,
    WeakSigningKey,
)

# Extractors
from .extractors import BearerExtractor, CookieExtractor, FirstMatchExtractor

# Identity
from .identity import IdentityResolver

# Keys
from .keys import SigningKey

# Login flow
from .login_flow import LoginFailure, LoginFlowOrchestrator, LoginOutcome, LoginState

# Middleware
from .middleware import AuthenticationMiddleware, current_principal

# Models
from .models import LocalUser, Principal, ProviderAccessToken, ProviderProfile

# Protocols
from .protocols import Claims, Clock, EnvironmentPolicy, Extractor, UserStore, ViewFunc

# Provider
from .provider import ProviderExchanger, ProviderSettings

# Results
from .result import Err, Ok, Result

# Tokens
from .tokens import SessionClaims, TokenCodec

# User stores
from .user_stores import InMemoryUserStore

__all__ = [
    # Application
    "AppConfig",
    "create_app",
    # Errors
    "AuthError",
    "DuplicateExternalId",
    "ExpiredToken",
    "ExternalServiceError",
    "IdentityConflict",
    "InvalidRequest",
    "InvalidToken",
    "MalformedToken",
    "WeakSigningKey",
    # Results
    "Err",
    "Ok",
    "Result",
    # Protocols
    "Claims",
    "Clock",
    "EnvironmentPolicy",
    "Extractor",
    "UserStore",
    "ViewFunc",
    # Models
    "LocalUser",
    "Principal",
    "ProviderAccessToken",
    "ProviderProfile",
    # Keys and tokens
    "SigningKey",
    "SessionClaims",
    "TokenCodec",
    # Extractors
    "BearerExtractor",
    "CookieExtractor",
    "FirstMatchExtractor",
    # Middleware
    "AuthenticationMiddleware",
    "current_principal",
    # Provider
    "ProviderExchanger",
    "ProviderSettings",
    # Identity
    "IdentityResolver",
    "InMemoryUserStore",
    # Cookies
    "ACCESS_TOKEN_COOKIE",
    "REFRESH_TOKEN_COOKIE",
    "SessionCookieWriter",
    # Environment
    "ProfileEnvironmentPolicy",
    # Login flow
    "LoginFailure",
    "LoginFlowOrchestrator",
    "LoginOutcome",
    "LoginState",
]
