"""
auth/dependencies.py -- Request Gate: FastAPI Depends() helpers for auth.

Two token carriers are checked in priority order:
  1. Session cookie ("session_id") -- set by POST /api/login.
  2. Authorization: Bearer <token> header -- API clients holding the same token.

Checks compose in a fixed order and never reorder:
  try_get_current_user()   soft variant, returns None on failure
  require_authenticated()  raises Unauthenticated (401)
  require_admin()          authenticates first, then Forbidden (403) if not admin
  require_ownership()      takes an already-authenticated User, so it cannot
                           run before authentication succeeds

The LostFoundError subclasses raised here are rendered by the single
exception handler in api/main.py.

Layer rule: no imports from api/ or items/.
  This module may import from fastapi because it is part of the FastAPI
  dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import User
from auth.sessions import SESSION_COOKIE, SessionManager
from core.errors import Forbidden, Unauthenticated


def get_session_token(request: Request) -> str | None:
    """Return the session token carried by the request, if any."""
    token: str | None = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


def try_get_current_user(request: Request) -> User | None:
    """Resolve the request's session to a User. Never raises."""
    token = get_session_token(request)
    if token is None:
        return None
    manager: SessionManager = request.app.state.session_manager
    try:
        return manager.resolve_session(token)
    except Unauthenticated:
        return None


def require_authenticated(request: Request) -> User:
    """Require a live session. Raises Unauthenticated (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(require_authenticated)): ...
    """
    token = get_session_token(request)
    manager: SessionManager = request.app.state.session_manager
    return manager.resolve_session(token)


def require_admin(request: Request) -> User:
    """Require the admin flag. 401 if unauthenticated, 403 if not admin."""
    user = require_authenticated(request)
    if not user.is_admin:
        raise Forbidden("Admin access required.")
    return user


def require_ownership(user: User, owner_cnic: str) -> None:
    """Raise Forbidden unless user's CNIC matches the resource owner's CNIC."""
    if user.cnic != owner_cnic:
        raise Forbidden("You can only modify your own reports.")
