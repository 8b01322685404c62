"""
api/routes/auth.py -- Session login/logout and identity endpoints.

Routes:
  POST /api/auth/login   -- password login; creates a session, sets the cookie
  POST /api/auth/logout  -- destroys the session, clears the cookie
  GET  /api/auth/me      -- current user (requires auth)
  GET  /api/auth/status  -- current user or {authenticated: false} (never 401)

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_username() + verify_password().
  Unknown username and wrong password produce the same response.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.limiter import limiter
from api.models import ErrorResponse, LoginRequest, LoginResponse, MeResponse, MessageResponse, StatusResponse, UserInfo
from auth.dependencies import get_current_user, try_get_session
from auth.models import Session, SessionUser
from auth.store import UserStore
from auth.tokens import (
    authenticate_user,
    clear_session_cookie,
    generate_session_token,
    hash_session_token,
    session_expiry,
    set_session_cookie,
)
from core.config import get_settings
from core.errors import InternalError, InvalidCredentialsError

logger = logging.getLogger("inventory.auth")

# Auth policy:
# - POST /api/auth/login:   public -- login endpoint must be unauthenticated
# - POST /api/auth/logout:  requires auth (get_current_user)
# - GET  /api/auth/me:      requires auth (get_current_user)
# - GET  /api/auth/status:  public -- reports state instead of rejecting
router = APIRouter()

_BAD_CREDENTIALS_MESSAGE = "Invalid username or password."


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@limiter.limit(get_settings().login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password and start a session.

    The body has already been sanitized and validated by LoginRequest. The
    raw session token goes to the client as an httpOnly cookie; only its
    HMAC digest is stored.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        logger.warning("Failed login for %r from %s", body.username, _client_host(request))
        error = InvalidCredentialsError(_BAD_CREDENTIALS_MESSAGE)
        resp = JSONResponse(
            status_code=error.status_code,
            content=ErrorResponse(**error.to_dict()).model_dump(exclude_none=True),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    session_user = SessionUser(id=user.id, username=user.username, role=user.role)
    token = generate_session_token()
    try:
        user_store.create_session(
            Session(token_hash=hash_session_token(token), user=session_user, expires_at=session_expiry())
        )
    except SQLAlchemyError as exc:
        logger.exception("Could not persist session for %s", user.username)
        raise InternalError("Could not start the session.") from exc

    logger.info("User %s (%s) logged in from %s", user.username, user.role, _client_host(request))
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(user=UserInfo(**session_user.to_dict())).model_dump(),
    )
    set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_user: SessionUser = Depends(get_current_user)) -> JSONResponse:
    """Destroy the current session and clear the session cookie."""
    user_store: UserStore = request.app.state.user_store
    session: Session = request.state.session
    user_store.delete_session(session.token_hash)
    logger.info("User %s logged out from %s", current_user.username, _client_host(request))
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: SessionUser = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(user=UserInfo(**current_user.to_dict()))


@router.get("/auth/status", response_model=StatusResponse)
def status(request: Request) -> StatusResponse:
    """Report whether the request carries a live session. Never rejects."""
    session = try_get_session(request)
    if session is None:
        return StatusResponse(authenticated=False, user=None)
    return StatusResponse(authenticated=True, user=UserInfo(**session.user.to_dict()))
