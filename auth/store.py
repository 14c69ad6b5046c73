"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  hashed_password is not part of the default projection. Only callers that
  pass include_password=True (credential verification) ever see the hash.

  Email uniqueness is enforced twice: a UNIQUE index on the normalized email
  column, and a lookup before insert in the registration path. The index is
  the one that wins a race.

DB URL: Settings.database_url (sqlite file next to the project by default).

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine

from auth.models import SignupProvider, User
from core.config import get_settings

logger = logging.getLogger("fitapp.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),  # stored normalized
    Column("hashed_password", Text),  # NULL for OAuth-only users
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False, server_default=""),
    Column("image", Text),
    Column("email_verified", String(32)),
    Column("provider", String(20), nullable=False, server_default="credentials"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Default projection: every column except the password hash.
_public_columns = [c for c in _users.c if c.name != "hashed_password"]


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    """Return the canonical form of an email address (stripped, lowercased)."""
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User accounts.

    Usage:
        store = UserStore("sqlite:///:memory:")
        uid = store.create_user(User(email="a@b.com", first_name="Ann", hashed_password=hash_password("secret")))
        user = store.get_by_email("A@B.com")   # hashed_password is None
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Database ping failed")
            return False
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        The caller is responsible for hashing the password first; this method
        stores hashed_password as given.

        Raises sqlalchemy.exc.IntegrityError if the email is already taken.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=normalize_email(user.email),
                    hashed_password=user.hashed_password,
                    first_name=user.first_name.strip(),
                    last_name=user.last_name.strip(),
                    image=user.image,
                    email_verified=user.email_verified,
                    provider=SignupProvider(user.provider).value,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_image(self, user_id: int, image: str | None) -> bool:
        """Replace the profile image URL. Returns False if user_id was not found."""
        return self._update(user_id, image=image)

    def mark_email_verified(self, user_id: int) -> bool:
        """Stamp the current time as the email verification time."""
        return self._update(user_id, email_verified=_now_iso())

    def _update(self, user_id: int, **fields) -> bool:
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_email(self, email: str, include_password: bool = False) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        stmt = self._select(include_password).where(_users.c.email == normalize_email(email))
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int, include_password: bool = False) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        stmt = self._select(include_password).where(_users.c.id == user_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_user(row) if row is not None else None

    @staticmethod
    def _select(include_password: bool):
        return _users.select() if include_password else select(*_public_columns)

    def close(self) -> None:
        self.engine.dispose()


@lru_cache
def get_user_store() -> UserStore:
    """Return the process-wide UserStore, creating it on first call.

    The engine (and its connection pool) is built once per process from
    Settings.database_url; every later call returns the same handle.
    """
    url = get_settings().database_url
    logger.info("Opening user store (%s)", url.split("://", 1)[0])
    return UserStore(url)


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # hashed_password is absent from rows fetched with the default projection.
    return User(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name or "",
        hashed_password=getattr(row, "hashed_password", None),
        image=row.image,
        email_verified=row.email_verified,
        provider=SignupProvider(row.provider),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
