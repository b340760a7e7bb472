"""Value types shared by the login flow and the request pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Principal:
    """The authenticated identity attached to one request.

    Built only from a verified session token; never stored.

    Attributes:
        user_id: Local user id taken from the token's ``sub`` claim.
        scopes: Scope strings from the optional ``scope`` claim.
    """

    user_id: int
    scopes: frozenset[str] = frozenset()

    @property
    def name(self) -> str:
        return str(self.user_id)


@dataclass(frozen=True, slots=True)
class ProviderAccessToken:
    """Access token issued by the identity provider for one login attempt."""

    value: str
    token_type: str = "bearer"
    expires_in: int | None = None

    def __repr__(self) -> str:
        return f"ProviderAccessToken(token_type={self.token_type!r}, expires_in={self.expires_in!r})"


@dataclass(frozen=True, slots=True)
class ProviderProfile:
    """User profile as reported by the identity provider.

    Only ``external_id`` is guaranteed; everything else depends on the consent
    the user gave.
    """

    external_id: int
    email: str | None = None
    nickname: str | None = None
    avatar_url: str | None = None


@dataclass(slots=True)
class LocalUser:
    """A user of this application, keyed by the provider's external id.

    ``id`` is ``None`` until the user store assigns one on first save.
    """

    external_id: int
    nickname: str
    email: str | None = None
    avatar_url: str | None = None
    id: int | None = None
    created_by: str | None = None
    modified_by: str | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
