"""
auth/policy.py -- Authorization Policy: who may log in, and the admin bootstrap.

The system historically supported two ways to log in. They are reconciled
here into one configured AuthMode:

  AuthMode.cnic      A well-formed CNIC that is allow-listed (or belongs to an
                     admin) authenticates the bearer. The first login creates
                     the User row; later logins return the same row.

  AuthMode.password  Username + password. The password check runs first
                     (InvalidCredentials on failure), then the allow-list
                     check (NotAuthorized unless admin or allow-listed).

The admin flag bypasses the allow-list so the bootstrap admin, who predates
every allow-list entry, can always get in.

Admin bootstrap: NoAdminExists -> AdminExists fires once, on the first
successful register_admin(). The transition is decided by the store's
single-row admin_bootstrap table, not by the has_admin() pre-check, so two
racing callers cannot both win.

Timing: an unknown username still pays for one bcrypt comparison against
DUMMY_HASH so response time does not reveal which usernames exist.

Layer rule: no imports from api/ or items/.
"""

from __future__ import annotations

import logging
import re

from auth.models import CnicCredentials, Credentials, PasswordCredentials, User
from auth.passwords import DUMMY_HASH, compare_passwords, hash_password
from auth.store import CredentialStore
from core.config import AuthMode
from core.errors import ConflictError, InvalidCredentials, InvalidFormat, NotAuthorized

logger = logging.getLogger("lostfound.auth.policy")

CNIC_PATTERN = r"^\d{13}$"
USERNAME_PATTERN = r"^[a-zA-Z0-9_-]{3,50}$"
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 72
# bcrypt only accepts the first 72 bytes of a password; newer releases reject more.
PASSWORD_MAX_BYTES = 72

_CNIC_RE = re.compile(CNIC_PATTERN)
_USERNAME_RE = re.compile(USERNAME_PATTERN)


def is_valid_cnic(cnic: str | None) -> bool:
    """True for exactly 13 ASCII digits."""
    return bool(cnic) and cnic.isascii() and _CNIC_RE.fullmatch(cnic) is not None


def mask_cnic(cnic: str | None) -> str:
    """Render a CNIC for logs: everything but the last four digits hidden."""
    if not cnic:
        return "<none>"
    return "*" * max(len(cnic) - 4, 0) + cnic[-4:]


def validate_registration(username: str, password: str, cnic: str) -> None:
    """Raise InvalidFormat if any registration field is malformed."""
    if not is_valid_cnic(cnic):
        raise InvalidFormat("CNIC must be exactly 13 digits.")
    if not _USERNAME_RE.fullmatch(username or ""):
        raise InvalidFormat(
            "Username must be 3-50 characters of letters, numbers, underscores and dashes."
        )
    if not PASSWORD_MIN_LENGTH <= len(password or "") <= PASSWORD_MAX_LENGTH:
        raise InvalidFormat(
            f"Password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters."
        )
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise InvalidFormat(f"Password must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded.")


class AuthorizationPolicy:
    """Accept/reject decisions for login and registration.

    Stateless apart from the injected CredentialStore; one instance is shared
    by every request.
    """

    def __init__(self, store: CredentialStore, mode: AuthMode = AuthMode.cnic) -> None:
        self.store = store
        self.mode = mode

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def authenticate(self, credentials: Credentials) -> User:
        """Return the authenticated User or raise.

        Raises InvalidFormat if the credential variant does not match the
        configured mode, otherwise whatever the mode-specific check raises.
        """
        if self.mode is AuthMode.cnic and isinstance(credentials, CnicCredentials):
            return self.authenticate_cnic(credentials.cnic)
        if self.mode is AuthMode.password and isinstance(credentials, PasswordCredentials):
            return self.authenticate_password(credentials.username, credentials.password)
        raise InvalidFormat(f"Login requires {self.mode.value} credentials.")

    def authenticate_cnic(self, cnic: str) -> User:
        if not is_valid_cnic(cnic):
            logger.info("Login rejected: malformed CNIC")
            raise NotAuthorized()

        user = self.store.find_user_by_cnic(cnic)
        if not self.store.is_cnic_authorized(cnic) and not (user is not None and user.is_admin):
            logger.info("Login rejected: CNIC %s not authorized", mask_cnic(cnic))
            raise NotAuthorized()

        if user is None:
            try:
                user = self.store.create_user(User(cnic=cnic))
                logger.info("Created user %s for CNIC %s on first login", user.id, mask_cnic(cnic))
            except ConflictError:
                # A concurrent first login created the row between our read and insert.
                user = self.store.find_user_by_cnic(cnic)
                if user is None:
                    raise
        logger.info("Login accepted for user %s", user.id)
        return user

    def authenticate_password(self, username: str, password: str) -> User:
        user = self.store.find_user_by_username(username)
        if user is None or user.hashed_password is None:
            # Equalize timing -- do NOT return before running bcrypt.
            compare_passwords(password, DUMMY_HASH)
            logger.info("Login rejected: bad credentials")
            raise InvalidCredentials()
        if not compare_passwords(password, user.hashed_password):
            logger.info("Login rejected: bad credentials")
            raise InvalidCredentials()
        if not user.is_admin and not self.store.is_cnic_authorized(user.cnic):
            logger.info("Login rejected: CNIC %s not authorized", mask_cnic(user.cnic))
            raise NotAuthorized()
        logger.info("Login accepted for user %s", user.id)
        return user

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def admin_exists(self) -> bool:
        return self.store.has_admin()

    def register_admin(self, username: str, password: str, cnic: str) -> User:
        """Create the one and only bootstrap admin.

        Raises InvalidFormat on malformed fields and ConflictError if an admin
        already exists (including when a concurrent call won the race).
        """
        validate_registration(username, password, cnic)
        # Early exit only. The store's bootstrap row decides races.
        if self.store.has_admin():
            raise ConflictError("An admin account already exists.")
        admin = self.store.create_admin(
            User(cnic=cnic, username=username, hashed_password=hash_password(password), is_admin=True)
        )
        logger.info("Admin bootstrap complete: user %s (CNIC %s)", admin.id, mask_cnic(cnic))
        return admin

    def register_user(self, username: str, password: str, cnic: str) -> User:
        """Create a username/password account for an allow-listed CNIC."""
        validate_registration(username, password, cnic)
        if not self.store.is_cnic_authorized(cnic):
            logger.info("Registration rejected: CNIC %s not authorized", mask_cnic(cnic))
            raise NotAuthorized()
        user = self.store.create_user(
            User(cnic=cnic, username=username, hashed_password=hash_password(password))
        )
        logger.info("Registered user %s (CNIC %s)", user.id, mask_cnic(cnic))
        return user
