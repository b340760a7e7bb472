"""Authentication and login-flow errors.

This module defines the error hierarchy for session tokens and the OAuth2 login
flow. All errors inherit from AuthError to allow catch-all handling.

Inside the core these errors are *returned* (wrapped in ``Err``), not raised:
a bad token or a failed provider call is a routine outcome. They are still
Exception subclasses so the Flask layer can hand one to ``abort`` when it has to.

Security Note:
    ``description`` is the client-safe text. Anything more specific (provider
    error bodies, decode failures) goes to the server log only.
"""

from __future__ import annotations

from typing import ClassVar


class AuthError(Exception):
    """Base class for every authentication failure.

    Attributes:
        status_code: HTTP status the error maps to when surfaced to a client.
        description: Generic, client-safe message.
    """

    status_code: ClassVar[int] = 401
    default_description: ClassVar[str] = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_description)

    @property
    def description(self) -> str:
        return self.default_description


class InvalidRequest(AuthError):  # noqa: N818
    """The request itself is unusable.

    This occurs when:
    - The authorization code is missing or blank
    - A token string does not have the three-part JWS structure

    Maps to HTTP 400.
    """

    status_code = 400
    default_description = "Invalid request"


class MalformedToken(InvalidRequest):  # noqa: N818
    """A token was presented but cannot be parsed as a compact JWS."""

    default_description = "Malformed token"


class InvalidToken(AuthError):  # noqa: N818
    """A well-formed token failed verification.

    This occurs when:
    - The signature does not match (wrong key or tampered token)
    - A required claim (sub, iat, exp) is missing
    - The subject is not a local user id
    """

    default_description = "Invalid token"


class ExpiredToken(InvalidToken):  # noqa: N818
    """The token's ``exp`` claim is in the past.

    Kept apart from InvalidToken for logging only; both mean "no principal".
    """

    default_description = "Expired token"


class ExternalServiceError(AuthError):  # noqa: N818
    """The identity provider could not be used.

    This occurs when:
    - A provider call timed out
    - The provider answered with a non-2xx status
    - The transport failed, or the body could not be decoded

    Attributes:
        provider_error: The OAuth2 ``error`` code from the provider's response
            body, when one was present. Used for classification only.
    """

    status_code = 502
    default_description = "External authentication service failed"

    def __init__(self, message: str | None = None, *, provider_error: str | None = None) -> None:
        super().__init__(message)
        self.provider_error = provider_error


class IdentityConflict(AuthError):  # noqa: N818
    """Two first logins for the same external id raced and the store refused one."""

    status_code = 409
    default_description = "Account is being created, please retry"


class WeakSigningKey(ValueError):  # noqa: N818
    """Raised at startup when the signing secret is shorter than 256 bits."""


class DuplicateExternalId(Exception):  # noqa: N818
    """Raised by a user store when an external id is already mapped."""

    def __init__(self, external_id: int) -> None:
        super().__init__(f"external id {external_id} is already registered")
        self.external_id = external_id
