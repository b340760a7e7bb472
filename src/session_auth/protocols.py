"""Protocol definitions for the session-auth collaborators.

This module defines structural interfaces using Protocol (PEP 544) for:
- User storage (find-or-create by external id)
- Deployment environment policy
- Token extraction from a request

Using protocols allows duck-typing and easy test doubles without requiring
explicit inheritance. Any class with the required methods satisfies the protocol.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from werkzeug.wrappers import Request

    from .models import LocalUser

# ============================================================================
# Type Aliases
# ============================================================================

type Claims = Mapping[str, Any]
"""Decoded session-token payload as an immutable mapping."""

type ViewFunc = Callable[..., Any]
"""Flask view function (any args, any return)."""

type Clock = Callable[[], float]
"""Returns the current Unix time in seconds."""


# ============================================================================
# Collaborator Protocols
# ============================================================================


class UserStore(Protocol):
    """Persistence for local users.

    The core only needs lookup by external id (login) and by local id (user
    endpoints), plus save and delete. Implementations must enforce uniqueness
    of ``external_id``.
    """

    def find_by_external_id(self, external_id: int) -> LocalUser | None:
        """Return the user mapped to ``external_id``, or None."""
        ...

    def find_by_id(self, user_id: int) -> LocalUser | None:
        """Return the user with local id ``user_id``, or None."""
        ...

    def save(self, user: LocalUser, *, actor: str | None = None) -> LocalUser:
        """Insert or update ``user`` and return the stored copy.

        Raises:
            DuplicateExternalId: If a *different* user already holds the
                external id (the first-login race backstop).
        """
        ...

    def delete(self, user: LocalUser) -> None:
        """Remove ``user``. Deleting an unknown user is a no-op."""
        ...


class EnvironmentPolicy(Protocol):
    """Answers questions about the deployment environment."""

    def is_plaintext_http(self) -> bool:
        """True when the app is served over plain HTTP (cookies must not be Secure)."""
        ...

    def is_local(self) -> bool: ...

    def is_dev(self) -> bool: ...


class Extractor(Protocol):
    """Pulls a raw session token out of an HTTP request.

    Returns None when the source holds no usable value. Absence is a normal
    outcome, so extractors never raise for it.
    """

    def extract(self, request: Request) -> str | None: ...
