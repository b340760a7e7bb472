"""Session token issuance and validation using PyJWT.

Tokens are compact HS256 JWS strings, ``base64url(header).base64url(payload).
base64url(signature)``, whose payload carries:

- ``sub``: local user id as a string
- ``iat``: issue time (Unix seconds)
- ``exp``: expiry time (Unix seconds)

Access and refresh tokens share this format and differ only in lifetime.

Validation never raises for bad input. PyJWT exceptions are mapped to the
domain errors in :mod:`session_auth.errors` and returned inside ``Err``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Final

import jwt

from .errors import AuthError, ExpiredToken, InvalidToken, MalformedToken
from .models import Principal
from .result import Err, Ok, Result
from .scopes import ScopeAccess

if TYPE_CHECKING:
    from .keys import SigningKey
    from .protocols import Claims, Clock

logger = logging.getLogger(__name__)

_REQUIRED_CLAIMS: Final[list[str]] = ["sub", "iat", "exp"]

_DECODE_OPTIONS: Final[dict[str, Any]] = {
    "require": _REQUIRED_CLAIMS,
    # Expiry is checked against the injected clock below; a future iat is accepted.
    "verify_exp": False,
    "verify_iat": False,
}


@dataclass(frozen=True, slots=True)
class SessionClaims:
    """Verified contents of a session token.

    Attributes:
        subject: Local user id.
        issued_at: ``iat`` in Unix seconds.
        expires_at: ``exp`` in Unix seconds.
        scopes: Scopes from the optional ``scope`` claim.
    """

    subject: int
    issued_at: int
    expires_at: int
    scopes: frozenset[str] = frozenset()

    def to_principal(self) -> Principal:
        return Principal(user_id=self.subject, scopes=self.scopes)


class TokenCodec:
    """Issues and validates signed session tokens.

    Thread Safety:
        Holds only immutable state (the signing key, lifetimes, the clock
        callable), so one instance is shared by every request.

    Example:
        ```python
        codec = TokenCodec(SigningKey.from_secret(secret))

        token = codec.issue_access(user.id)

        match codec.validate(token):
            case Ok(claims):
                principal = claims.to_principal()
            case Err(error):
                ...  # routine: treat as anonymous
        ```

    Attributes:
        _key: Process-wide signing key.
        _access_ttl: Default access-token lifetime.
        _refresh_ttl: Default refresh-token lifetime.
        _clock: Source of the current time; ``time.time`` outside tests.
    """

    def __init__(
        self,
        key: SigningKey,
        *,
        access_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Clock = time.time,
        scope_access: ScopeAccess | None = None,
    ) -> None:
        if access_ttl <= timedelta(0) or refresh_ttl <= timedelta(0):
            raise ValueError("Token expiration time must be positive")

        self._key = key
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._clock = clock
        self._scopes = scope_access or ScopeAccess()

    @property
    def access_ttl(self) -> timedelta:
        return self._access_ttl

    @property
    def refresh_ttl(self) -> timedelta:
        return self._refresh_ttl

    def issue(self, subject: int, lifetime: timedelta | int) -> str:
        """Sign a token for ``subject`` valid for ``lifetime``.

        Args:
            subject: Local user id.
            lifetime: A timedelta or a number of seconds.

        Returns:
            Compact JWS string.
        """
        seconds = int(lifetime.total_seconds()) if isinstance(lifetime, timedelta) else int(lifetime)
        if seconds <= 0:
            raise ValueError("Token lifetime must be positive")

        issued_at = int(self._clock())
        payload = {
            "sub": str(subject),
            "iat": issued_at,
            "exp": issued_at + seconds,
        }
        return jwt.encode(payload, self._key.secret, algorithm=self._key.algorithm)

    def issue_access(self, subject: int) -> str:
        return self.issue(subject, self._access_ttl)

    def issue_refresh(self, subject: int) -> str:
        return self.issue(subject, self._refresh_ttl)

    def validate(self, token: str) -> Result[SessionClaims, AuthError]:
        """Verify ``token`` and return its claims.

        Checks, in order:
        1. Three-part structure and decodable segments (else MalformedToken)
        2. Algorithm allowlist and HMAC signature, compared in constant time
           by PyJWT (else InvalidToken)
        3. Presence and types of sub/iat/exp (else InvalidToken)
        4. ``now > exp`` (else ExpiredToken)

        Returns:
            ``Ok(SessionClaims)`` or ``Err`` carrying one of the errors above.
        """
        try:
            payload: Claims = jwt.decode(
                token,
                self._key.secret,
                algorithms=[self._key.algorithm],
                options=_DECODE_OPTIONS,
            )
        except jwt.InvalidSignatureError as e:
            # InvalidSignatureError subclasses DecodeError; keep it first.
            logger.debug("Session token signature mismatch: %s", e)
            return Err(InvalidToken("Signature verification failed"))
        except jwt.DecodeError as e:
            logger.debug("Session token is malformed: %s", e)
            return Err(MalformedToken(f"Token could not be decoded: {e}"))
        except jwt.InvalidTokenError as e:
            logger.debug("Session token rejected: %s", e)
            return Err(InvalidToken(f"Token validation failed: {e}"))

        claims = self._read_claims(payload)
        if claims is None:
            return Err(InvalidToken("Token claims have unexpected types"))

        if self._clock() > claims.expires_at:
            return Err(ExpiredToken("Token has expired"))

        return Ok(claims)

    def _read_claims(self, payload: Claims) -> SessionClaims | None:
        sub = payload.get("sub")
        iat = payload.get("iat")
        exp = payload.get("exp")

        if not isinstance(sub, str) or not sub.isdigit():
            return None
        # bool is an int subclass; a boolean exp is never legitimate
        for value in (iat, exp):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None

        return SessionClaims(
            subject=int(sub),
            issued_at=int(iat),
            expires_at=int(exp),
            scopes=self._scopes.scopes(payload),
        )
