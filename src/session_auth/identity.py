"""Mapping of provider identities to local users (find-or-create)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from .errors import DuplicateExternalId, IdentityConflict
from .models import LocalUser
from .result import Err, Ok, Result

if TYPE_CHECKING:
    from .models import ProviderProfile
    from .protocols import UserStore

logger = logging.getLogger(__name__)

DEFAULT_NICKNAME: Final[str] = "Unknown"
SYSTEM_ACTOR: Final[str] = "system"


class IdentityResolver:
    """Finds the local user for a provider profile, creating it on first login.

    Lookup-then-create is not atomic. Two concurrent first logins for the same
    external id can both miss the lookup; the store's unique index rejects the
    second insert, which is returned as ``Err(IdentityConflict)``.
    """

    def __init__(self, store: UserStore) -> None:
        self._store = store

    def resolve(self, profile: ProviderProfile) -> Result[int, IdentityConflict]:
        existing = self._store.find_by_external_id(profile.external_id)
        if existing is not None and existing.id is not None:
            return Ok(existing.id)

        new_user = LocalUser(
            external_id=profile.external_id,
            nickname=profile.nickname or DEFAULT_NICKNAME,
            email=profile.email,
            avatar_url=profile.avatar_url,
        )
        try:
            saved = self._store.save(new_user, actor=SYSTEM_ACTOR)
        except DuplicateExternalId as e:
            logger.warning("Concurrent first login for external id %s: %s", profile.external_id, e)
            return Err(IdentityConflict(str(e)))

        logger.info("New user created: id=%s external_id=%s", saved.id, saved.external_id)
        return Ok(saved.id)  # type: ignore[arg-type]
