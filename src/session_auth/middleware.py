"""Per-request authentication for Flask applications.

This module is the integration point between the token codec and Flask. It
installs a ``before_request`` hook that runs ahead of every view.

Pipeline (per request):
1. Extract a token: ``accessToken`` cookie first, then ``Authorization: Bearer``
2. Validate it with the TokenCodec
3. On success, store a Principal in the request's WSGI environ
4. On any failure, store nothing and let the request continue

The hook never rejects a request. Views decide what they need:
- ``@auth.with_principal``: the view receives ``principal`` (may be None)
- ``@auth.require()``: 401 when there is no principal, otherwise as above

The principal is per-request data handed to the view as an argument; nothing is
kept in module or thread-local state.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Final

from flask import Flask, abort, request

from .extractors import default_extractor
from .result import Err, Ok

if TYPE_CHECKING:
    from werkzeug.wrappers import Request

    from .models import Principal
    from .protocols import Extractor, ViewFunc
    from .tokens import TokenCodec

logger = logging.getLogger(__name__)

_EXT_KEY: Final[str] = "session_auth"
"""Flask extensions registry key for AuthenticationMiddleware."""

PRINCIPAL_ENVIRON_KEY: Final[str] = "session_auth.principal"
"""WSGI environ key holding the request's Principal (or None)."""


class AuthenticationMiddleware:
    """
    Flask glue that turns a session token into a request-scoped principal.

    Responsibilities:
    - Extract the token from the request (Extractor)
    - Validate it (TokenCodec)
    - Publish the Principal on the request for the view
    - Provide decorators that pass the principal into views

    Pattern:
        auth = AuthenticationMiddleware(codec)
        auth.init_app(app)

    Usage:
        @app.get("/api/users/me/info")
        @auth.require()
        def info(principal: Principal): ...
    """

    def __init__(self, codec: TokenCodec, extractor: Extractor | None = None) -> None:
        self._codec: TokenCodec = codec
        self._extractor: Extractor = extractor or default_extractor()

    def init_app(
        self,
        app: Flask,
        *,
        codec: TokenCodec | None = None,
        extractor: Extractor | None = None,
    ) -> None:
        """Register the authentication hook on ``app``.

        Args:
            app (Flask): The Flask application instance.
            codec (TokenCodec | None, optional): Replaces the codec given at construction.
            extractor (Extractor | None, optional): Replaces the token extractor.
        """
        if codec is not None:
            self._codec = codec
        if extractor is not None:
            self._extractor = extractor

        app.before_request(self._before_request)
        app.extensions[_EXT_KEY] = self

    def authenticate(self, req: Request) -> Principal | None:
        """Return the principal for ``req``, or None if it carries no valid token."""
        token = self._extractor.extract(req)
        if not token:
            return None

        match self._codec.validate(token):
            case Ok(claims):
                return claims.to_principal()
            case Err(error):
                logger.debug("Ignoring presented token on %s %s: %s", req.method, req.path, error)
                return None

    def _before_request(self) -> None:
        request.environ[PRINCIPAL_ENVIRON_KEY] = self.authenticate(request)

    def with_principal(self, view: ViewFunc) -> ViewFunc:
        """Call ``view`` with ``principal=<Principal | None>``."""

        @wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return view(*args, principal=current_principal(request), **kwargs)

        return wrapper

    def require(self):
        """Decorator that answers 401 unless the request has a principal.

        The view is called with ``principal=<Principal>``.

        Returns:
            Callable[[ViewFunc], ViewFunc]: the decorator.
        """

        def decorator(view: ViewFunc) -> ViewFunc:
            @wraps(view)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                principal = current_principal(request)
                if principal is None:
                    abort(401, description="Authentication required")
                return view(*args, principal=principal, **kwargs)

            return wrapper

        return decorator


def current_principal(req: Request) -> Principal | None:
    """Principal published for ``req`` by the middleware, if any."""
    return req.environ.get(PRINCIPAL_ENVIRON_KEY)
