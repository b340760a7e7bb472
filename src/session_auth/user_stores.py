"""User store implementations.

Relational persistence is outside this package; the login flow only talks to the
UserStore protocol. This module provides an in-process implementation, used by
default wiring and by the test suite.

The store enforces the one rule the core relies on: an external id maps to at
most one local user. A second insert for the same external id raises
DuplicateExternalId, which is how a first-login race is detected.
"""

from __future__ import annotations

import copy
import itertools
import threading
from datetime import UTC, datetime

from .errors import DuplicateExternalId
from .models import LocalUser


class InMemoryUserStore:
    """In-process user table with a unique index on ``external_id``.

    Storage Behavior:
        - Ids are assigned from a counter starting at 1 and never reused
        - Callers receive copies; mutating them does not touch the store
        - ``created_*`` audit fields are stamped on insert, ``modified_*`` on
          every save

    Thread Safety:
        All operations hold an internal lock.

    Example:
        ```python
        store = InMemoryUserStore()
        user = store.save(LocalUser(external_id=42, nickname="Alice"), actor="system")
        assert store.find_by_external_id(42).id == user.id
        ```

    Attributes:
        _users: Local id -> user.
        _by_external_id: Unique index, external id -> local id.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._users: dict[int, LocalUser] = {}
        self._by_external_id: dict[int, int] = {}

    def find_by_external_id(self, external_id: int) -> LocalUser | None:
        with self._lock:
            user_id = self._by_external_id.get(external_id)
            if user_id is None:
                return None
            return copy.copy(self._users[user_id])

    def find_by_id(self, user_id: int) -> LocalUser | None:
        with self._lock:
            user = self._users.get(user_id)
            return copy.copy(user) if user else None

    def save(self, user: LocalUser, *, actor: str | None = None) -> LocalUser:
        """Insert a new user or update an existing one.

        Raises:
            DuplicateExternalId: If another user already holds ``user.external_id``.
            ValueError: If an update changes the stored user's external id.
        """
        now = datetime.now(UTC)
        stored = copy.copy(user)

        with self._lock:
            holder = self._by_external_id.get(stored.external_id)
            if holder is not None and holder != stored.id:
                raise DuplicateExternalId(stored.external_id)

            if stored.id is None:
                stored.id = next(self._ids)
                stored.created_by = actor
                stored.created_at = now
            elif stored.id not in self._users:
                raise KeyError(f"user {stored.id} does not exist")
            elif self._users[stored.id].external_id != stored.external_id:
                raise ValueError(f"external id of user {stored.id} cannot change")

            stored.modified_by = actor
            stored.modified_at = now

            self._users[stored.id] = stored
            self._by_external_id[stored.external_id] = stored.id
            return copy.copy(stored)

    def delete(self, user: LocalUser) -> None:
        if user.id is None:
            return
        with self._lock:
            removed = self._users.pop(user.id, None)
            if removed is not None:
                self._by_external_id.pop(removed.external_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)
