"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as items/store.py).
CredentialStore is the repository; _row_to_user / _row_to_authorized_cnic are
the mappers. Policy, session and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness is enforced by the database, never by check-then-insert alone:
  users.cnic, users.username and authorized_cnics.cnic are UNIQUE, and the
  admin_bootstrap table holds at most one row (id = 1 CHECK). create_admin()
  inserts that row in the same transaction as the admin user, so of two
  concurrent first-admin registrations exactly one commits and the other sees
  an IntegrityError, surfaced as ConflictError.

  SQLite treats NULLs as distinct in UNIQUE constraints, which is what we want
  for username: many CNIC-only users may have no username.

Lifecycle: constructed explicitly at process start (api/main.py lifespan or
the CLI) and closed at shutdown. There is no module-level instance.

Layer rule: no imports from api/ or items/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import AuthorizedCnic, User
from core.config import get_settings
from core.errors import ConflictError, InvalidFormat

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("cnic", String(13), nullable=False, unique=True),
    Column("username", String(50), unique=True),  # NULL for CNIC-only users
    Column("hashed_password", Text),
    Column("is_admin", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    CheckConstraint("username IS NULL OR hashed_password IS NOT NULL", name="ck_users_username_has_password"),
)

_authorized_cnics = Table(
    "authorized_cnics",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("cnic", String(13), nullable=False, unique=True),
    Column("added_by", Integer, nullable=False),
    Column("added_at", String(32), nullable=False),
)

# Single-row marker for the NoAdminExists -> AdminExists transition.
_admin_bootstrap = Table(
    "admin_bootstrap",
    _metadata,
    Column("id", Integer, primary_key=True),
    Column("created_at", String(32), nullable=False),
    CheckConstraint("id = 1", name="ck_admin_bootstrap_single_row"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite tweaks every store in this repo needs."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # The ASGI server may touch one pooled connection from several threads.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for User and AuthorizedCnic entities.

    Usage:
        store = CredentialStore("sqlite:///lostfound.db")
        store.authorize_cnic("1234567890123", added_by=admin.id)
        user = store.find_user_by_cnic("1234567890123")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def find_user_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_user_by_cnic(self, cnic: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.cnic == cnic)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_user_by_username(self, username: str) -> User | None:
        """Exact, case-sensitive match. Only meaningful in password mode."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with id and created_at filled in.

        Raises ConflictError if the CNIC or username already exists, and
        InvalidFormat if a username is given without a password hash.
        """
        _check_username_invariant(user)
        with self.engine.connect() as conn:
            try:
                user_id = self._insert_user(conn, user)
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                raise ConflictError("A user with that CNIC or username already exists.") from exc
        return self.find_user_by_id(user_id)

    def create_admin(self, user: User) -> User:
        """Create the bootstrap admin. Succeeds at most once per database.

        The bootstrap row and the user row commit together. A second call, or
        the loser of a concurrent race, raises ConflictError and leaves no
        partial state behind.
        """
        _check_username_invariant(user)
        with self.engine.connect() as conn:
            try:
                conn.execute(_admin_bootstrap.insert().values(id=1, created_at=_now_iso()))
                admin = User(
                    cnic=user.cnic,
                    username=user.username,
                    hashed_password=user.hashed_password,
                    is_admin=True,
                )
                user_id = self._insert_user(conn, admin)
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                raise ConflictError("An admin already exists, or that CNIC/username is taken.") from exc
        return self.find_user_by_id(user_id)

    def has_admin(self) -> bool:
        """Return True once the admin bootstrap has happened."""
        with self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(_admin_bootstrap)).scalar()
        return (count or 0) > 0

    def first_admin_id(self) -> int | None:
        """Return the lowest admin user id, or None before the bootstrap."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_users.c.id).where(_users.c.is_admin.is_(True)).order_by(_users.c.id).limit(1)
            ).fetchone()
        return row.id if row is not None else None

    def _insert_user(self, conn, user: User) -> int:
        result = conn.execute(
            _users.insert().values(
                cnic=user.cnic,
                username=user.username,
                hashed_password=user.hashed_password,
                is_admin=user.is_admin,
                created_at=_now_iso(),
            )
        )
        return result.inserted_primary_key[0]

    # ------------------------------------------------------------------
    # CNIC allow-list
    # ------------------------------------------------------------------

    def is_cnic_authorized(self, cnic: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_authorized_cnics.c.id).where(_authorized_cnics.c.cnic == cnic)
            ).fetchone()
        return row is not None

    def list_authorized_cnics(self) -> list[AuthorizedCnic]:
        """Return every allow-list entry, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _authorized_cnics.select().order_by(_authorized_cnics.c.added_at, _authorized_cnics.c.cnic)
            ).fetchall()
        return [_row_to_authorized_cnic(r) for r in rows]

    def authorize_cnic(self, cnic: str, added_by: int) -> AuthorizedCnic:
        """Add a CNIC to the allow-list. Raises ConflictError if already present."""
        entry = AuthorizedCnic(cnic=cnic, added_by=added_by, added_at=_now_iso())
        with self.engine.connect() as conn:
            try:
                conn.execute(
                    _authorized_cnics.insert().values(cnic=entry.cnic, added_by=entry.added_by, added_at=entry.added_at)
                )
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                raise ConflictError("That CNIC is already authorized.") from exc
        return entry

    def revoke_cnic(self, cnic: str) -> bool:
        """Remove a CNIC from the allow-list.

        Returns True if a row was removed, False if the CNIC was not listed.
        Existing sessions of the matching user are left alone.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_authorized_cnics.delete().where(_authorized_cnics.c.cnic == cnic))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Cheap connectivity probe for the health endpoint."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Helpers and row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _check_username_invariant(user: User) -> None:
    if user.username is not None and not user.hashed_password:
        raise InvalidFormat("A username requires a password.")


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        cnic=row.cnic,
        username=row.username,
        hashed_password=row.hashed_password,
        is_admin=bool(row.is_admin),
        created_at=row.created_at,
    )


def _row_to_authorized_cnic(row) -> AuthorizedCnic:
    return AuthorizedCnic(
        cnic=row.cnic,
        added_by=row.added_by,
        added_at=row.added_at,
    )
