"""Scope extraction from verified session-token claims.

Extraction is fail-closed: malformed or unexpected claim formats give an empty
set rather than an error, so a principal never gains scopes by accident.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import cast

from .protocols import Claims


class ScopeAccess:
    """Reads the scope claim of a session token into a frozenset.

    Supports:
    - List/tuple/set of strings: ``["read", "write"]``
    - Space-separated string: ``"read write"``

    Non-string items are dropped. Any other type yields ``frozenset()``.

    Examples:
        >>> ScopeAccess().scopes({"scope": "read write"})
        frozenset({'read', 'write'})

        >>> ScopeAccess().scopes({"scope": ["read", 123]})
        frozenset({'read'})

        >>> ScopeAccess().scopes({})
        frozenset()
    """

    def __init__(self, claim: str = "scope") -> None:
        self._claim = claim

    def scopes(self, claims: Claims) -> frozenset[str]:
        raw = claims.get(self._claim)

        if isinstance(raw, str):
            return frozenset(raw.split())

        if isinstance(raw, (list, tuple, set, frozenset)):
            raw_seq = cast(Sequence[object], raw)
            return frozenset(item for item in raw_seq if isinstance(item, str))

        return frozenset()
