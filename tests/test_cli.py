"""Unit tests for the operator CLI in main.py (allow-list subcommands)."""

import pytest

import main
from auth.models import User
from auth.passwords import hash_password
from auth.store import CredentialStore


@pytest.fixture
def seeded(store: CredentialStore) -> CredentialStore:
    store.create_admin(User(cnic="9999999999999", username="root", hashed_password=hash_password("secret1")))
    return store


def test_authorize_requires_admin(store: CredentialStore) -> None:
    with pytest.raises(SystemExit):
        main.cmd_authorize(store, "1234567890123")
    assert store.is_cnic_authorized("1234567890123") is False


def test_authorize_rejects_bad_cnic(seeded: CredentialStore, capsys) -> None:
    assert main.cmd_authorize(seeded, "12345") == 1
    assert "not a valid CNIC" in capsys.readouterr().out


def test_authorize_list_revoke(seeded: CredentialStore, capsys) -> None:
    assert main.cmd_authorize(seeded, "1234567890123") == 0
    assert main.cmd_authorize(seeded, "1234567890123") == 0
    out = capsys.readouterr().out
    assert "Authorized *********0123" in out
    assert "already authorized" in out
    assert seeded.list_authorized_cnics()[0].added_by == seeded.first_admin_id()

    main.cmd_list(seeded)
    assert "1234567890123" in capsys.readouterr().out

    main.cmd_revoke(seeded, "1234567890123")
    main.cmd_revoke(seeded, "1234567890123")
    out = capsys.readouterr().out
    assert "Revoked" in out
    assert "was not on the allow-list" in out


def test_list_empty(store: CredentialStore, capsys) -> None:
    main.cmd_list(store)
    assert "Allow-list is empty" in capsys.readouterr().out


def test_no_command_prints_help(capsys) -> None:
    assert main.main([]) == 0
    assert "authorize-cnic" in capsys.readouterr().out
