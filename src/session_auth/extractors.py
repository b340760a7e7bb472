"""Token extraction strategies for HTTP requests.

This module provides implementations of the Extractor protocol for pulling a
session token out of a request.

Implementations:
- CookieExtractor: reads the ``accessToken`` cookie set at login (browser flow)
- BearerExtractor: reads ``Authorization: Bearer <token>`` (API clients)
- FirstMatchExtractor: tries several extractors in order

Absence is not an error here: every extractor returns None when its source is
empty or malformed, and the middleware carries on unauthenticated.

Security Considerations:
- Never extract tokens from URL query parameters (visible in logs/history)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from .cookies import ACCESS_TOKEN_COOKIE

if TYPE_CHECKING:
    from werkzeug.wrappers import Request

    from .protocols import Extractor


class BearerExtractor:
    """Extracts a token from the Authorization header using the Bearer scheme.

    Expects:
        Authorization: Bearer <token>

    The scheme is matched case-insensitively. Any other shape yields None.
    """

    def extract(self, request: Request) -> str | None:
        auth_header = request.headers.get("Authorization", "").strip()
        if not auth_header:
            return None

        parts = auth_header.split(" ", 1)
        if len(parts) != 2:
            return None

        scheme, token = parts
        if scheme.lower() != "bearer":
            return None

        return token.strip() or None


class CookieExtractor:
    """Extracts a token from an HTTP cookie.

    Attributes:
        _name: Name of the cookie holding the token.
    """

    def __init__(self, cookie_name: str = ACCESS_TOKEN_COOKIE) -> None:
        """Initialize cookie extractor.

        Raises:
            ValueError: If cookie_name is empty.
        """
        if not cookie_name or not cookie_name.strip():
            raise ValueError("cookie_name cannot be empty")
        self._name = cookie_name

    def extract(self, request: Request) -> str | None:
        token = request.cookies.get(self._name, "").strip()
        return token or None


class FirstMatchExtractor:
    """Returns the first non-empty token produced by a list of extractors.

    Example:
        ```python
        extractor = FirstMatchExtractor([CookieExtractor(), BearerExtractor()])
        ```
    """

    def __init__(self, extractors: Sequence[Extractor]) -> None:
        if not extractors:
            raise ValueError("at least one extractor is required")
        self._extractors = tuple(extractors)

    def extract(self, request: Request) -> str | None:
        for extractor in self._extractors:
            token = extractor.extract(request)
            if token:
                return token
        return None


def default_extractor() -> FirstMatchExtractor:
    """Cookie first, then the Authorization header."""
    return FirstMatchExtractor([CookieExtractor(), BearerExtractor()])
