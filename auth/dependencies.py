"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

The session token is read from, in priority order (a token that does not
resolve falls through to the next source):
  1. The session cookie (Settings.session_cookie_name) -- set by POST /api/auth/login.
  2. Authorization: Bearer <token> header -- API clients and scripts.

Both converge on resolve_session(), a pure function of (token, store): the
request object is only used to find the token and the store.

try_get_session() is the soft variant (returns None on failure).
get_current_user() wraps it and raises AuthenticationError (401).
require_role() / require_admin add an exact role check (403).
require_permission() consults the capability table in auth.permissions (403).

Layer rule: no imports from api/ or inventory/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.models import Session, SessionUser
from auth.permissions import Action, Role, has_permission
from auth.store import UserStore
from auth.tokens import hash_session_token
from core.config import get_settings
from core.errors import AuthenticationError, AuthorizationError

_UNAUTHENTICATED_MESSAGE = "You must be logged in to access this resource."


def resolve_session(store: UserStore, token: str | None) -> Session | None:
    """Map a raw session token to its live Session, or None."""
    if not token:
        return None
    return store.get_session(hash_session_token(token))


def session_tokens_from(request: Request) -> list[str]:
    """Return the raw session tokens carried by the request, cookie first."""
    tokens: list[str] = []
    cookie_token = request.cookies.get(get_settings().session_cookie_name)
    if cookie_token:
        tokens.append(cookie_token)
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        bearer_token = auth_header[7:].strip()
        if bearer_token and bearer_token not in tokens:
            tokens.append(bearer_token)
    return tokens


def try_get_session(request: Request) -> Session | None:
    """Return the request's live Session, or None. Never raises.

    A stale cookie does not shadow a valid Bearer token: each candidate is
    tried in turn and the first live session wins.
    """
    user_store: UserStore = request.app.state.user_store
    for token in session_tokens_from(request):
        session = resolve_session(user_store, token)
        if session is not None:
            return session
    return None


def get_current_user(request: Request) -> SessionUser:
    """Require authentication. Raises AuthenticationError (401) if absent.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: SessionUser = Depends(get_current_user)): ...
    """
    session = try_get_session(request)
    if session is None:
        raise AuthenticationError(_UNAUTHENTICATED_MESSAGE)
    request.state.user = session.user
    request.state.session = session
    return session.user


def require_role(role: Role) -> Callable[[Request], SessionUser]:
    """Build a dependency that admits only users whose role is exactly `role`.

    No hierarchy: require_role(Role.VIEWER) rejects admins. Use
    require_permission() when the question is "may this user do X".
    """

    def dependency(request: Request) -> SessionUser:
        user = get_current_user(request)
        if user.role != role.value:
            raise AuthorizationError(
                f"Role '{role.value}' is required to access this resource. Your role is '{user.role}'."
            )
        return user

    return dependency


require_admin = require_role(Role.ADMIN)


def require_permission(action: Action) -> Callable[[Request], SessionUser]:
    """Build a dependency that admits users whose role grants `action`.

    Use as a FastAPI dependency:
        @router.get("/products")
        def route(user: SessionUser = Depends(require_permission(Action.READ))): ...
    """

    def dependency(request: Request) -> SessionUser:
        user = get_current_user(request)
        if not has_permission(user.role, action):
            raise AuthorizationError(
                f"You do not have permission to perform '{action.value}' with role '{user.role}'."
            )
        return user

    return dependency
