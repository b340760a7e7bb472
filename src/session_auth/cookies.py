"""Session cookie serialization.

Every cookie written here is ``HttpOnly; Path=/; SameSite=Lax``. ``Secure`` is
added unless the environment policy says the app runs over plain HTTP.

Cookie lifetimes come from the token lifetimes, so a cookie never outlives the
token it carries, and the refresh cookie has one lifetime on every code path.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Final

from werkzeug.http import dump_cookie

if TYPE_CHECKING:
    from werkzeug.wrappers import Response

    from .protocols import EnvironmentPolicy

ACCESS_TOKEN_COOKIE: Final[str] = "accessToken"
REFRESH_TOKEN_COOKIE: Final[str] = "refreshToken"

_PATH: Final[str] = "/"
_SAME_SITE: Final[str] = "Lax"


class SessionCookieWriter:
    """Builds Set-Cookie values for the session tokens.

    Attributes:
        _env: Decides the Secure flag.
        _access_max_age: Max-Age of the access cookie in seconds.
        _refresh_max_age: Max-Age of the refresh cookie in seconds.
    """

    def __init__(
        self,
        environment: EnvironmentPolicy,
        *,
        access_max_age: timedelta | int = timedelta(hours=1),
        refresh_max_age: timedelta | int = timedelta(days=7),
    ) -> None:
        self._env = environment
        self._access_max_age = _seconds(access_max_age)
        self._refresh_max_age = _seconds(refresh_max_age)

    def secure(self) -> bool:
        return not self._env.is_plaintext_http()

    def build_cookie(
        self,
        name: str,
        value: str,
        max_age: timedelta | int,
        secure: bool | None = None,
    ) -> str:
        """Serialize one cookie into a Set-Cookie header value.

        Args:
            name: Cookie name.
            value: Cookie value (a token, or "" when expiring).
            max_age: Lifetime; 0 tells the browser to drop the cookie now.
            secure: Override for the Secure flag; defaults to the environment policy.
        """
        return dump_cookie(
            name,
            value,
            max_age=_seconds(max_age),
            path=_PATH,
            secure=self.secure() if secure is None else secure,
            httponly=True,
            samesite=_SAME_SITE,
        )

    def set_session_cookies(self, response: Response, access_token: str, refresh_token: str) -> None:
        response.headers.add(
            "Set-Cookie", self.build_cookie(ACCESS_TOKEN_COOKIE, access_token, self._access_max_age)
        )
        response.headers.add(
            "Set-Cookie", self.build_cookie(REFRESH_TOKEN_COOKIE, refresh_token, self._refresh_max_age)
        )

    def expire_session_cookies(self, response: Response) -> None:
        """Overwrite both session cookies with empty, already-expired values."""
        for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
            response.headers.add("Set-Cookie", self.build_cookie(name, "", 0))


def _seconds(value: timedelta | int) -> int:
    return int(value.total_seconds()) if isinstance(value, timedelta) else int(value)
