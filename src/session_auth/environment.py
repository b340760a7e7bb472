"""Deployment-profile policy (local / dev / prod)."""

from __future__ import annotations

from typing import Final

LOCAL: Final[str] = "local"
DEV: Final[str] = "dev"
PROD: Final[str] = "prod"

KNOWN_PROFILES: Final[frozenset[str]] = frozenset({LOCAL, DEV, PROD})


class ProfileEnvironmentPolicy:
    """EnvironmentPolicy driven by the active profile name.

    ``local`` is plain HTTP on a developer machine. ``dev`` and ``prod`` are
    served over HTTPS, so cookies there carry the Secure flag.
    """

    def __init__(self, profile: str = LOCAL) -> None:
        profile = profile.strip().lower()
        if profile not in KNOWN_PROFILES:
            raise ValueError(f"Unknown APP_PROFILE {profile!r}, expected one of {sorted(KNOWN_PROFILES)}")
        self._profile = profile

    @property
    def profile(self) -> str:
        return self._profile

    def is_local(self) -> bool:
        return self._profile == LOCAL

    def is_dev(self) -> bool:
        return self._profile == DEV

    def is_plaintext_http(self) -> bool:
        return self._profile == LOCAL
