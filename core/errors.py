"""
core/errors.py -- Error taxonomy for the Lost & Found service.

Every failure the auth slice can produce is one of these classes. They carry
their own HTTP status and machine-readable code so the API layer can render
all of them through a single exception handler (see api/main.py) using the
same {"error": {"code", "message"}} envelope as every other error.

None of these are fatal to the process. Each is a terminal outcome for the
request that raised it.

Layer rule: core/ is the kernel. No imports from api/, auth/, or items/.
"""

from __future__ import annotations


class LostFoundError(Exception):
    """Base class. Subclasses set status_code, code and a default message."""

    status_code: int = 400
    code: str = "error"
    default_message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidFormat(LostFoundError):
    """Malformed CNIC, username, password or other credential field."""

    status_code = 400
    code = "invalid_format"
    default_message = "Malformed request."


class InvalidCredentials(LostFoundError):
    """Unknown username or wrong password. Deliberately indistinguishable."""

    status_code = 401
    code = "bad_credentials"
    default_message = "Invalid username or password."


class NotAuthorized(LostFoundError):
    """Valid identity that is neither allow-listed nor an admin."""

    status_code = 401
    code = "not_authorized"
    default_message = "Your CNIC is not authorized."


class Unauthenticated(LostFoundError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required."


class Forbidden(LostFoundError):
    """Authenticated, but the wrong role or not the owner of the resource."""

    status_code = 403
    code = "forbidden"
    default_message = "You are not allowed to perform this action."


class ConflictError(LostFoundError):
    """Uniqueness violation: duplicate CNIC/username, second admin, etc."""

    status_code = 400
    code = "conflict"
    default_message = "A conflicting record already exists."


class NotFound(LostFoundError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."
