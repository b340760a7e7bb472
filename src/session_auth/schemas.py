"""Pydantic models for identity-provider responses.

Provider JSON is validated here, at the edge, so nothing past the exchanger
handles loosely-typed dicts. Optional fields are lenient: a value that is
missing *or* has the wrong shape becomes None instead of failing the login.
Only the fields the login flow cannot do without (``access_token``, the user
``id``) are strict.

The user-info shape follows Kakao's ``/v2/user/me``::

    {
        "id": 123456789,
        "kakao_account": {
            "email": "alice@example.com",
            "profile": {"nickname": "Alice", "profile_image_url": "https://..."}
        }
    }
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    WrapValidator,
)

from .models import ProviderAccessToken, ProviderProfile


def _none_if_invalid(value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
    try:
        return handler(value)
    except ValidationError:
        return None


LenientStr = Annotated[str | None, WrapValidator(_none_if_invalid)]
LenientInt = Annotated[int | None, WrapValidator(_none_if_invalid)]


class _ProviderModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class TokenResponse(_ProviderModel):
    """Token endpoint response (RFC 6749 section 5.1)."""

    access_token: str = Field(..., min_length=1)
    token_type: str = "bearer"
    expires_in: LenientInt = None

    def to_access_token(self) -> ProviderAccessToken:
        return ProviderAccessToken(
            value=self.access_token,
            token_type=self.token_type,
            expires_in=self.expires_in,
        )


class ProfileSection(_ProviderModel):
    nickname: LenientStr = None
    profile_image_url: LenientStr = None


class AccountSection(_ProviderModel):
    email: LenientStr = None
    profile: Annotated[ProfileSection | None, WrapValidator(_none_if_invalid)] = None


class UserInfoResponse(_ProviderModel):
    """User-info endpoint response."""

    id: int
    kakao_account: Annotated[AccountSection | None, WrapValidator(_none_if_invalid)] = None

    def to_profile(self) -> ProviderProfile:
        account = self.kakao_account
        profile = account.profile if account else None
        return ProviderProfile(
            external_id=self.id,
            email=account.email if account else None,
            nickname=profile.nickname if profile else None,
            avatar_url=profile.profile_image_url if profile else None,
        )
