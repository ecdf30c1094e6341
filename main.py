#!/usr/bin/env python3
"""
Lost & Found -- operator CLI.

Usage:
  python main.py serve [--host 0.0.0.0] [--port 5000] [--reload]
  python main.py authorize-cnic 1234567890123
  python main.py revoke-cnic 1234567890123
  python main.py list-cnics
  python main.py purge-sessions

Environment variables (see core/config.py):
  SECRET_KEY    Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL  SQLAlchemy URL. Defaults to a SQLite file beside the code.
  AUTH_MODE     cnic (default) or password.

Allow-list changes made here are attributed to the bootstrap admin, so the
admin must have been registered (POST /api/admin/register) first.
"""

import argparse
import sys

from auth.policy import is_valid_cnic, mask_cnic
from auth.sessions import SessionManager, build_session_store
from auth.store import CredentialStore
from core.config import get_settings
from core.errors import ConflictError


def _bootstrap_admin_id(store: CredentialStore) -> int:
    """Return the id of an admin user, or exit if none exists yet."""
    if not store.has_admin():
        print("  [!] No admin exists yet. Register one via POST /api/admin/register first.")
        sys.exit(1)
    admin_id = store.first_admin_id()
    if admin_id is None:
        print("  [!] Admin bootstrap row exists but no admin user was found.")
        sys.exit(1)
    return admin_id


def cmd_authorize(store: CredentialStore, cnic: str) -> int:
    if not is_valid_cnic(cnic):
        print(f"  [!] '{cnic}' is not a valid CNIC. Expected exactly 13 digits.")
        return 1
    try:
        store.authorize_cnic(cnic, added_by=_bootstrap_admin_id(store))
    except ConflictError:
        print(f"  {mask_cnic(cnic)} is already authorized.")
        return 0
    print(f"  Authorized {mask_cnic(cnic)}.")
    return 0


def cmd_revoke(store: CredentialStore, cnic: str) -> int:
    if store.revoke_cnic(cnic):
        print(f"  Revoked {mask_cnic(cnic)}.")
    else:
        print(f"  {mask_cnic(cnic)} was not on the allow-list.")
    return 0


def cmd_list(store: CredentialStore) -> int:
    entries = store.list_authorized_cnics()
    if not entries:
        print("  Allow-list is empty.")
        return 0
    print(f"  {'CNIC':<15} {'ADDED BY':<9} ADDED AT")
    for e in entries:
        print(f"  {e.cnic:<15} {e.added_by:<9} {e.added_at}")
    return 0


def cmd_purge(store: CredentialStore) -> int:
    settings = get_settings()
    session_store = build_session_store(settings)
    try:
        manager = SessionManager(session_store, store, settings.secret_key, settings.session_expire_seconds)
        removed = manager.purge_expired()
    finally:
        session_store.close()
    print(f"  Removed {removed} expired session(s).")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="lostfound",
        description="Lost & Found service: run the API and manage the CNIC allow-list.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --port 5000
  python main.py authorize-cnic 3520212345678
  python main.py list-cnics
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=5000, help="Bind port (default: 5000)")
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")

    authorize = sub.add_parser("authorize-cnic", help="Add a CNIC to the allow-list")
    authorize.add_argument("cnic", metavar="CNIC")

    revoke = sub.add_parser("revoke-cnic", help="Remove a CNIC from the allow-list")
    revoke.add_argument("cnic", metavar="CNIC")

    sub.add_parser("list-cnics", help="Print the allow-list")
    sub.add_parser("purge-sessions", help="Delete expired sessions from the session store")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "serve":
        import uvicorn

        settings = get_settings()
        uvicorn.run(
            "api.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            proxy_headers=settings.trust_proxy,
        )
        return 0

    store = CredentialStore(get_settings().database_url)
    try:
        if args.command == "authorize-cnic":
            return cmd_authorize(store, args.cnic)
        if args.command == "revoke-cnic":
            return cmd_revoke(store, args.cnic)
        if args.command == "list-cnics":
            return cmd_list(store)
        return cmd_purge(store)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
