"""
auth/sessions.py -- Session store backends and the Session Manager.

A session is an opaque random token held by the client (cookie or Bearer
header) and a server-side mapping token -> user id with a fixed expiry.

Security design:
  Tokens: secrets.token_urlsafe(32) gives 256 bits of entropy.
  Storage key: HMAC-SHA256(SECRET_KEY, token). The raw token is never
      persisted, so a copy of the session table cannot be replayed as
      cookies without also knowing SECRET_KEY.
  Resolution always re-reads the User from the CredentialStore, so a change
      to the admin flag takes effect on the very next request instead of
      being frozen into the session.

Backends implement SessionStore, a minimal key-value-with-TTL interface:
  MemorySessionStore -- in-process dict, for tests and single-process dev.
  SqlSessionStore    -- SQLAlchemy Core table, survives restarts.

Layer rule: no imports from api/ or items/.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import threading
import time
from abc import ABC, abstractmethod

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, delete, select

from auth.models import Session, User
from auth.store import CredentialStore, make_engine
from core.config import SessionBackend, Settings, get_settings
from core.errors import Unauthenticated

logger = logging.getLogger("lostfound.auth.sessions")

SESSION_COOKIE = "session_id"


# ---------------------------------------------------------------------------
# Session store interface
# ---------------------------------------------------------------------------


class SessionStore(ABC):
    """Key-value mapping with a per-entry TTL.

    get() must never return an expired entry, whether or not purge_expired()
    has run since it expired.
    """

    @abstractmethod
    def set(self, key: str, user_id: int, ttl_seconds: int) -> float:
        """Store user_id under key and return the absolute expiry (epoch seconds)."""

    @abstractmethod
    def get(self, key: str) -> tuple[int, float] | None:
        """Return (user_id, expires_at) or None if missing or expired."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Missing keys are not an error."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""

    def close(self) -> None:
        """Release backend resources. No-op by default."""


class MemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._entries: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, user_id: int, ttl_seconds: int) -> float:
        expires_at = time.time() + ttl_seconds
        with self._lock:
            self._entries[key] = (user_id, expires_at)
        return expires_at

    def get(self, key: str) -> tuple[int, float] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry[1] <= time.time():
                del self._entries[key]
                return None
            return entry

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        now = time.time()
        with self._lock:
            expired = [k for k, (_, exp) in self._entries.items() if exp <= now]
            for k in expired:
                del self._entries[k]
        return len(expired)


_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("key", String(64), primary_key=True),  # HMAC-SHA256 hex of the token
    Column("user_id", Integer, nullable=False, index=True),
    Column("expires_at", Float, nullable=False, index=True),
)


class SqlSessionStore(SessionStore):
    """Sessions in a relational table. Expired rows are filtered on read."""

    def __init__(self, db_url: str | None = None) -> None:
        self.engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    def set(self, key: str, user_id: int, ttl_seconds: int) -> float:
        expires_at = time.time() + ttl_seconds
        with self.engine.connect() as conn:
            conn.execute(delete(_sessions).where(_sessions.c.key == key))
            conn.execute(_sessions.insert().values(key=key, user_id=user_id, expires_at=expires_at))
            conn.commit()
        return expires_at

    def get(self, key: str) -> tuple[int, float] | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_sessions.c.user_id, _sessions.c.expires_at).where(
                    (_sessions.c.key == key) & (_sessions.c.expires_at > time.time())
                )
            ).fetchone()
        return (row.user_id, row.expires_at) if row is not None else None

    def delete(self, key: str) -> None:
        with self.engine.connect() as conn:
            conn.execute(delete(_sessions).where(_sessions.c.key == key))
            conn.commit()

    def purge_expired(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(delete(_sessions).where(_sessions.c.expires_at <= time.time()))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


def build_session_store(settings: Settings) -> SessionStore:
    """Construct the backend selected by SESSION_BACKEND."""
    if settings.session_backend is SessionBackend.memory:
        return MemorySessionStore()
    return SqlSessionStore(settings.database_url)


# ---------------------------------------------------------------------------
# Session Manager
# ---------------------------------------------------------------------------


class SessionManager:
    """Issue, resolve and destroy login sessions.

    Usage:
        manager = SessionManager(SqlSessionStore(url), credential_store, secret_key)
        session = manager.create_session(user.id)
        user = manager.resolve_session(session.token)
        manager.destroy_session(session.token)
    """

    def __init__(
        self,
        store: SessionStore,
        credentials: CredentialStore,
        secret_key: str,
        ttl_seconds: int = 24 * 60 * 60,
    ) -> None:
        self.store = store
        self.credentials = credentials
        self.ttl_seconds = ttl_seconds
        self._secret = secret_key.encode("utf-8")

    def _key(self, token: str) -> str:
        return hmac.new(self._secret, token.encode("utf-8"), hashlib.sha256).hexdigest()

    def create_session(self, user_id: int) -> Session:
        token = secrets.token_urlsafe(32)
        expires_at = self.store.set(self._key(token), user_id, self.ttl_seconds)
        logger.debug("Session created for user %s", user_id)
        return Session(token=token, user_id=user_id, expires_at=expires_at)

    def resolve_session(self, token: str | None) -> User:
        """Return the current User behind token, or raise Unauthenticated."""
        if not token:
            raise Unauthenticated()
        entry = self.store.get(self._key(token))
        if entry is None:
            raise Unauthenticated("Session is missing or has expired.")
        user = self.credentials.find_user_by_id(entry[0])
        if user is None:
            # Dangling session; clean it up so the next lookup is cheap.
            self.store.delete(self._key(token))
            raise Unauthenticated()
        return user

    def destroy_session(self, token: str | None) -> None:
        """Idempotent: unknown, expired or empty tokens are ignored."""
        if token:
            self.store.delete(self._key(token))

    def purge_expired(self) -> int:
        removed = self.store.purge_expired()
        if removed:
            logger.info("Purged %d expired session(s)", removed)
        return removed


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, session: Session, max_age: int, secure: bool = False) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POSTs (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true (production).
    max_age: matches the server-side TTL so both expire together.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=session.token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE)
