"""Explicit success/failure values for expected outcomes.

Token validation and provider calls fail routinely (expired cookies, users
cancelling consent, provider hiccups). Those paths return ``Ok`` or ``Err``
instead of raising, so callers handle them with ``match``:

.. code-block:: python

    match codec.validate(raw):
        case Ok(claims):
            ...
        case Err(error):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import AuthError


@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Err[E: AuthError]:
    error: E

    @property
    def ok(self) -> bool:
        return False


type Result[T, E: AuthError] = Ok[T] | Err[E]
