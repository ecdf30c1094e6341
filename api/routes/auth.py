"""
api/routes/auth.py -- Login, logout, current user and self-registration.

Routes:
  POST /api/login     -- authenticate per AUTH_MODE; sets session cookie
  POST /api/logout    -- destroys the session; idempotent
  GET  /api/user      -- current user (requires session)
  POST /api/register  -- username/password account for an allow-listed CNIC

Security:
  POST /login and POST /register are rate-limited per client IP. The limit is
  a callable, so slowapi treats it as dynamic and only the decorator enforces
  it: @limiter.limit must sit BELOW @router.post so the router registers the
  wrapped function.
  Login responses (success and failure) carry Cache-Control: no-store.
  Any session already presented on login is destroyed before a new one is
  issued, so a planted cookie cannot survive authentication.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, MessageResponse, RegisterRequest, UserResponse
from auth.dependencies import get_session_token, require_authenticated, try_get_current_user
from auth.models import CnicCredentials, Credentials, PasswordCredentials, User
from auth.policy import AuthorizationPolicy
from auth.sessions import SessionManager, clear_session_cookie, set_session_cookie
from core.config import AuthMode, get_settings
from core.errors import InvalidFormat, LostFoundError

logger = logging.getLogger("lostfound.api.auth")

# Auth policy:
# - POST /api/login:     public, rate limited
# - POST /api/logout:    public -- destroying a missing session is a no-op
# - GET  /api/user:      requires session (require_authenticated)
# - POST /api/register:  public, rate limited; CNIC must be allow-listed
router = APIRouter()


def _credentials_from(body: LoginRequest, mode: AuthMode) -> Credentials:
    if mode is AuthMode.password:
        if not body.username or not body.password:
            raise InvalidFormat("Username and password are required.")
        return PasswordCredentials(username=body.username, password=body.password)
    return CnicCredentials(cnic=body.cnic or "")


@router.post("/login", response_model=UserResponse)
@limiter.limit(login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate and open a session.

    Failures are rendered here rather than by the global handler so the
    error response also gets Cache-Control: no-store.
    """
    policy: AuthorizationPolicy = request.app.state.policy
    sessions: SessionManager = request.app.state.session_manager
    settings = get_settings()

    try:
        user = policy.authenticate(_credentials_from(body, policy.mode))
    except LostFoundError as exc:
        resp = JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
        resp.headers["Cache-Control"] = "no-store"
        return resp

    sessions.destroy_session(get_session_token(request))
    session = sessions.create_session(user.id)

    resp = JSONResponse(status_code=200, content=UserResponse.from_user(user).model_dump())
    set_session_cookie(resp, session, max_age=sessions.ttl_seconds, secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Destroy the current session (if any) and clear the cookie."""
    sessions: SessionManager = request.app.state.session_manager
    user = try_get_current_user(request)
    sessions.destroy_session(get_session_token(request))
    if user is not None:
        logger.info("User %s logged out", user.id)
    resp = JSONResponse(content={"message": "Logged out."})
    clear_session_cookie(resp)
    return resp


@router.get("/user", response_model=UserResponse)
def current_user(user: User = Depends(require_authenticated)) -> UserResponse:
    """Return the user behind the current session, re-read from the store."""
    return UserResponse.from_user(user)


@router.post("/register", response_model=UserResponse, status_code=201)
@limiter.limit(login_rate_limit)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a username/password account for an allow-listed CNIC.

    Does not log the new user in; the client follows up with POST /login.
    """
    policy: AuthorizationPolicy = request.app.state.policy
    user = policy.register_user(body.username, body.password, body.cnic)
    return UserResponse.from_user(user)
