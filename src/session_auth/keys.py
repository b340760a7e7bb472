"""Process-wide HMAC signing key for session tokens."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .errors import WeakSigningKey

MIN_KEY_BYTES: Final[int] = 32
"""HS256 keys shorter than 256 bits are refused."""


@dataclass(frozen=True, slots=True)
class SigningKey:
    """Symmetric secret shared read-only by token issuance and validation.

    Loaded once at startup. Construction fails if the secret is too short, which
    stops ``create_app`` before the server accepts a request.

    Attributes:
        secret: Raw key bytes.
        algorithm: JWS algorithm used with the key.
    """

    secret: bytes
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if len(self.secret) < MIN_KEY_BYTES:
            raise WeakSigningKey(
                f"JWT secret key must be at least {MIN_KEY_BYTES * 8} bits "
                f"({MIN_KEY_BYTES} bytes), got {len(self.secret)} bytes"
            )

    @classmethod
    def from_secret(cls, secret: str) -> SigningKey:
        return cls(secret.encode("utf-8"))

    def __repr__(self) -> str:
        return f"SigningKey(algorithm={self.algorithm!r}, bytes={len(self.secret)})"
