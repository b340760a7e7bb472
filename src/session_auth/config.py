"""Application configuration loaded from the environment (and a .env file)."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv

from .environment import LOCAL
from .provider import ProviderSettings

_REQUIRED = (
    "JWT_SECRET",
    "OAUTH_CLIENT_ID",
    "OAUTH_CLIENT_SECRET",
    "OAUTH_REDIRECT_URI",
)

DEFAULT_CORS_ORIGINS: Final[tuple[str, ...]] = ("http://localhost:3000", "http://localhost:8080")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Everything ``create_app`` needs, validated once at startup.

    Attributes:
        jwt_secret: HS256 secret; checked for length by SigningKey.
        access_token_ttl: Lifetime of access tokens and of the access cookie.
        refresh_token_ttl: Lifetime of refresh tokens and of the refresh cookie.
        provider: OAuth2 client registration.
        profile: Deployment profile (local, dev, prod).
        cors_origins: Origins allowed to call the API with credentials.
        log_level: Level for the ``session_auth`` loggers.
        success_redirect: Landing page after a successful login.
        failure_redirect: Landing page after a failed login.
    """

    jwt_secret: str
    provider: ProviderSettings
    access_token_ttl: timedelta = timedelta(hours=1)
    refresh_token_ttl: timedelta = timedelta(days=7)
    profile: str = LOCAL
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    log_level: str = "INFO"
    success_redirect: str = "/home.html"
    failure_redirect: str = "/main.html"

    def __post_init__(self) -> None:
        if self.access_token_ttl <= timedelta(0) or self.refresh_token_ttl <= timedelta(0):
            raise ValueError("Token expiration time must be positive")

    def __repr__(self) -> str:
        return f"AppConfig(profile={self.profile!r}, provider={self.provider!r})"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppConfig:
        """Build the config from ``environ`` (default: ``os.environ`` after load_dotenv).

        Raises:
            ValueError: If a required variable is missing or a number is invalid.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        missing = [name for name in _REQUIRED if not environ.get(name)]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        defaults = ProviderSettings(name="kakao", client_id="", client_secret="", redirect_uri="")
        provider = ProviderSettings(
            name=environ.get("OAUTH_PROVIDER", defaults.name),
            client_id=environ["OAUTH_CLIENT_ID"],
            client_secret=environ["OAUTH_CLIENT_SECRET"],
            redirect_uri=environ["OAUTH_REDIRECT_URI"],
            authorize_url=environ.get("OAUTH_AUTHORIZE_URL", defaults.authorize_url),
            token_url=environ.get("OAUTH_TOKEN_URL", defaults.token_url),
            userinfo_url=environ.get("OAUTH_USERINFO_URL", defaults.userinfo_url),
            scope=environ.get("OAUTH_SCOPE", defaults.scope),
        )

        origins = environ.get("CORS_ORIGINS")
        return cls(
            jwt_secret=environ["JWT_SECRET"],
            provider=provider,
            access_token_ttl=timedelta(seconds=int(environ.get("ACCESS_TOKEN_TTL_SECONDS", 3600))),
            refresh_token_ttl=timedelta(seconds=int(environ.get("REFRESH_TOKEN_TTL_SECONDS", 604800))),
            profile=environ.get("APP_PROFILE", LOCAL),
            cors_origins=(
                tuple(o.strip() for o in origins.split(",") if o.strip())
                if origins
                else DEFAULT_CORS_ORIGINS
            ),
            log_level=environ.get("LOG_LEVEL", "INFO"),
            success_redirect=environ.get("SUCCESS_REDIRECT", "/home.html"),
            failure_redirect=environ.get("FAILURE_REDIRECT", "/main.html"),
        )
