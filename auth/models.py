"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in items/models.py -- dataclasses own domain shape; stores, the policy and
routes do the work.

Layer rule: no imports from api/ or items/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """An identity record keyed by CNIC.

    username / hashed_password are None for users created by a CNIC-only
    login. If username is set, hashed_password is set too -- the store
    rejects anything else and the table carries a CHECK constraint for it.

    is_admin bypasses the CNIC allow-list so the bootstrap admin can always
    log in, even before any allow-list entries exist.
    """

    cnic: str
    id: int | None = None
    username: str | None = None
    hashed_password: str | None = None
    is_admin: bool = False
    created_at: str | None = None


@dataclass
class AuthorizedCnic:
    """An allow-list entry: an admin pre-approved this CNIC to use the system."""

    cnic: str
    added_by: int  # id of the admin who added it
    added_at: str | None = None


@dataclass
class Session:
    """A live login session.

    token is the raw value handed to the client. It is never persisted; the
    session store only sees HMAC-SHA256(SECRET_KEY, token).
    """

    token: str
    user_id: int
    expires_at: float  # epoch seconds


@dataclass(frozen=True)
class CnicCredentials:
    """Login payload for AuthMode.cnic."""

    cnic: str


@dataclass(frozen=True)
class PasswordCredentials:
    """Login payload for AuthMode.password."""

    username: str
    password: str


Credentials = CnicCredentials | PasswordCredentials
