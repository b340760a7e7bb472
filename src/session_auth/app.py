"""
Session Auth - Flask Application

Wires the session-token middleware and the OAuth2 login flow into a Flask app.
Every component is built here from an AppConfig and handed its collaborators
explicitly.

Routes:
- GET    /auth/<provider>/login-url     authorize URL as plain text
- GET    /auth/<provider>/callback      provider redirect target, sets cookies
- POST   /auth/<provider>/logout        expires both session cookies
- GET    /api/check-auth                200 or 401
- GET    /api/users/me/info             nickname of the signed-in user
- DELETE /api/users/me/withdraw         deletes the signed-in user
- POST   /test/auth/create-test-user    local profile only
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from flask import Flask, abort, jsonify, make_response, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .config import AppConfig
from .cookies import SessionCookieWriter
from .environment import ProfileEnvironmentPolicy
from .errors import AuthError
from .identity import IdentityResolver
from .keys import SigningKey
from .logging_config import setup_logging
from .login_flow import LoginFlowOrchestrator
from .middleware import AuthenticationMiddleware
from .models import Principal, ProviderProfile
from .provider import ProviderExchanger
from .result import Err
from .tokens import TokenCodec
from .user_stores import InMemoryUserStore

if TYPE_CHECKING:
    import httpx
    from werkzeug.wrappers import Request

    from .protocols import Clock, UserStore

logger = logging.getLogger(__name__)

TEST_USER_EXTERNAL_ID = 999999
TEST_USER_NICKNAME = "Test User"
TEST_USER_EMAIL = "test@example.com"

_MESSAGES = {
    400: ("error", "Bad request."),
    401: ("denied", "Access Denied - Please login first"),
    403: ("denied", "Access Denied - You do not have permission to access this resource"),
    404: ("error", "Resource not found."),
    500: ("error", "An unexpected error occurred. Please try again later."),
}


def client_ip(req: Request) -> str:
    """Best-effort client address: first X-Forwarded-For hop, X-Real-IP, then the socket peer."""
    forwarded = req.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = req.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return req.remote_addr or "unknown"


def create_app(
    config: AppConfig | None = None,
    *,
    user_store: UserStore | None = None,
    http_client: httpx.Client | None = None,
    clock: Clock = time.time,
) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config: Application settings; read from the environment when omitted.
        user_store: Persistence for local users; in-memory when omitted.
        http_client: httpx client used for provider calls.
        clock: Time source for token issuance and validation.

    Returns:
        Flask: Configured Flask application instance
    """
    config = config or AppConfig.from_env()

    app = Flask(__name__)

    environment = ProfileEnvironmentPolicy(config.profile)
    codec = TokenCodec(
        SigningKey.from_secret(config.jwt_secret),
        access_ttl=config.access_token_ttl,
        refresh_ttl=config.refresh_token_ttl,
        clock=clock,
    )
    store = user_store if user_store is not None else InMemoryUserStore()
    exchanger = ProviderExchanger(config.provider, http_client)
    resolver = IdentityResolver(store)
    cookies = SessionCookieWriter(
        environment,
        access_max_age=config.access_token_ttl,
        refresh_max_age=config.refresh_token_ttl,
    )
    flow = LoginFlowOrchestrator(
        exchanger,
        resolver,
        codec,
        cookies,
        success_redirect=config.success_redirect,
        failure_redirect=config.failure_redirect,
    )

    auth = AuthenticationMiddleware(codec)
    auth.init_app(app)

    CORS(
        app,
        origins=list(config.cors_origins),
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        methods=["GET", "POST", "DELETE", "OPTIONS"],
        max_age=3600,
    )

    def check_provider(provider: str) -> None:
        if provider != exchanger.name:
            abort(404, description=f"Unknown provider {provider!r}")

    # ==================== Login flow ====================

    @app.get("/auth/<provider>/login-url")
    def login_url(provider: str):
        """Return the provider consent URL for the frontend to navigate to."""
        check_provider(provider)
        return exchanger.authorize_url(), 200, {"Content-Type": "text/plain; charset=utf-8"}

    @app.get("/auth/<provider>/callback")
    def callback(provider: str):
        """
        Handle the OAuth callback from the provider.

        Exchanges the authorization code, resolves the local user, stores the
        session tokens in HTTP-only cookies and redirects to the landing page.
        """
        check_provider(provider)
        outcome = flow.handle_callback(
            request.args.get("code"),
            error=request.args.get("error"),
            error_description=request.args.get("error_description"),
        )
        if outcome.failure is not None:
            logger.warning(
                "Login failed: error=%s ip=%s user_agent=%s",
                outcome.failure.code,
                client_ip(request),
                request.user_agent.string or "unknown",
            )
        return outcome.response

    @app.post("/auth/<provider>/logout")
    def logout(provider: str):
        """Log out the user by expiring both session cookies."""
        check_provider(provider)
        resp = make_response("Logout successful", 200)
        cookies.expire_session_cookies(resp)
        return resp

    # ==================== API ====================

    @app.get("/api/check-auth")
    @auth.with_principal
    def check_auth(principal: Principal | None):
        if principal is None:
            return "Not authenticated", 401
        return "Authenticated", 200

    @app.get("/api/users/me/info")
    @auth.require()
    def user_info(principal: Principal):
        user = store.find_by_id(principal.user_id)
        if user is None:
            abort(404, description="User not found")
        return jsonify({"nickname": user.nickname})

    @app.delete("/api/users/me/withdraw")
    @auth.require()
    def withdraw(principal: Principal):
        """Delete the signed-in user and end the session."""
        user = store.find_by_id(principal.user_id)
        if user is None:
            abort(404, description="User not found")
        store.delete(user)
        logger.info("User withdrawn: id=%s", user.id)

        resp = make_response("Account withdrawn", 200)
        cookies.expire_session_cookies(resp)
        return resp

    if environment.is_local():

        @app.post("/test/auth/create-test-user")
        def create_test_user():
            """Find or create a fixed test user and return an access token for it."""
            result = resolver.resolve(
                ProviderProfile(
                    external_id=TEST_USER_EXTERNAL_ID,
                    email=TEST_USER_EMAIL,
                    nickname=TEST_USER_NICKNAME,
                )
            )
            if isinstance(result, Err):
                raise result.error
            user = store.find_by_id(result.value)
            if user is None:
                abort(404, description="User not found")
            return jsonify(
                {
                    "userId": user.id,
                    "nickname": user.nickname,
                    "accessToken": codec.issue_access(result.value),
                }
            )

    # ==================== Error Handlers ====================

    show_details = environment.is_local() or environment.is_dev()

    def error_body(status_code: int, details: str | None) -> dict[str, str]:
        status, message = _MESSAGES.get(status_code, ("error", "Request failed."))
        body = {"status": status, "message": message}
        if show_details and details:
            body["details"] = details
        return body

    @app.errorhandler(AuthError)
    def auth_error(error: AuthError):
        """Handle auth errors raised out of a view."""
        return jsonify(error_body(error.status_code, error.description)), error.status_code

    @app.errorhandler(400)
    @app.errorhandler(401)
    @app.errorhandler(403)
    @app.errorhandler(404)
    def client_error(error: HTTPException):
        """Handle 4xx errors raised with abort()."""
        return jsonify(error_body(error.code, error.description)), error.code

    @app.errorhandler(500)
    def internal_error(error: HTTPException):
        """Handle internal server errors."""
        original = getattr(error, "original_exception", None)
        logger.error("Unhandled error on %s %s: %r", request.method, request.path, original or error)
        details = repr(original) if original is not None else error.description
        return jsonify(error_body(500, details)), 500

    return app


def main() -> None:
    """Run the development server with configuration from the environment."""
    config = AppConfig.from_env()
    setup_logging(config.log_level)
    app = create_app(config)
    app.run(host="0.0.0.0", port=8080, debug=False)


if __name__ == "__main__":
    main()
