"""Unit tests for auth/passwords.py -- salted hashing and comparison."""

from auth.passwords import DUMMY_HASH, compare_passwords, hash_password


def test_same_password_hashes_differently() -> None:
    """A fresh salt per call: two hashes of one password are never equal."""
    first = hash_password("hunter22")
    second = hash_password("hunter22")
    assert first != second
    assert compare_passwords("hunter22", first) is True
    assert compare_passwords("hunter22", second) is True


def test_wrong_password_rejected() -> None:
    hashed = hash_password("hunter22")
    assert compare_passwords("hunter23", hashed) is False
    assert compare_passwords("", hashed) is False


def test_hash_is_not_plaintext() -> None:
    hashed = hash_password("hunter22")
    assert "hunter22" not in hashed
    assert hashed.startswith("$2")


def test_malformed_hash_is_a_mismatch() -> None:
    assert compare_passwords("hunter22", "not-a-bcrypt-hash") is False


def test_dummy_hash_is_a_real_bcrypt_hash() -> None:
    assert DUMMY_HASH.startswith("$2")
    assert compare_passwords("anything", DUMMY_HASH) is False


def test_over_long_password_is_a_mismatch() -> None:
    """More than 72 bytes never verifies (and never raises)."""
    hashed = hash_password("a" * 72)
    assert compare_passwords("a" * 80, DUMMY_HASH) is False
    assert compare_passwords("é" * 40, hashed) is False
