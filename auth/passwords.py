"""
auth/passwords.py -- Password hashing and constant-time comparison.

bcrypt directly (no passlib wrapper). gensalt() draws a fresh random salt on
every call and the salt is embedded in the returned hash string, so the same
password hashed twice yields two different stored values that both verify.

bcrypt.checkpw() compares in constant time, so response timing does not leak
how much of a guess matched.

bcrypt reads at most 72 bytes of a password, and bcrypt 5 raises ValueError
for anything longer. Registration rejects such passwords up front
(auth/policy.py), and compare_passwords() treats the ValueError as a mismatch
so an over-long login attempt is simply bad credentials.

Layer rule: no imports from api/ or items/.
"""

from __future__ import annotations

import bcrypt


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def compare_passwords(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the stored bcrypt hash.

    A malformed stored hash is treated as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization: computed once at import so the first login against an
# unknown username costs the same bcrypt work as a real comparison.
DUMMY_HASH: str = hash_password("lostfound_timing_dummy")
