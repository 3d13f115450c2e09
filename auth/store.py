"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper. UserStore is the abstract repository the
service depends on; SqlUserStore is the production variant and _row_to_user
is its mapper. Service code never touches SQL directly.

Contract:
  create(user)         -- insert; raises PersistenceError on any failure,
                          including the UNIQUE(email) violation a concurrent
                          registration for the same email produces.
  find_by_email(email) -- exact, case-sensitive match; raises
                          UserNotFoundError when no row matches and
                          PersistenceError when the query itself fails.

Security:
  All queries use bound parameters. No f-strings in SQL.
  The password_hash column is written and read but never attached to spans.

DB URL: core.config.Settings.resolved_database_url() -- SQLite file by
default, PostgreSQL when DB_HOST / DATABASE_URL is configured.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import SingletonThreadPool

from auth.errors import PersistenceError, UserNotFoundError
from auth.models import User
from core.tracing import traced

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("user_id", String(36), primary_key=True),
    Column("full_name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),  # ISO 8601, UTC
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# SQLite helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_memory_url(db_url: str) -> bool:
    return ":memory:" in db_url or "mode=memory" in db_url or db_url in ("sqlite://", "sqlite:///")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore(ABC):
    """Persists and retrieves User records keyed by unique email."""

    @abstractmethod
    def create(self, user: User) -> None: ...

    @abstractmethod
    def find_by_email(self, email: str) -> User: ...

    def ping(self) -> bool:
        """Return True if the backing store is reachable. Used by /health."""
        return True

    def close(self) -> None:
        """Release any held connections."""


class SqlUserStore(UserStore):
    """Relational UserStore.

    Usage:
        store = SqlUserStore("sqlite:///:memory:")
        store.create(user)
        user = store.find_by_email("ana@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        engine_args: dict = {}
        if db_url.startswith("sqlite"):
            engine_args["connect_args"] = {"check_same_thread": False}
            # In-memory databases are pinned to one connection per thread.
            if _is_memory_url(db_url):
                engine_args["poolclass"] = SingletonThreadPool
        self.engine: Engine = create_engine(db_url, **engine_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    @traced(
        "repository.CreateUser",
        attributes=lambda args: {
            "user_id": args["user"].id,
            "full_name": args["user"].full_name,
            "email": args["user"].email,
            "created_at": int(args["user"].created_at.timestamp()),
            "updated_at": int(args["user"].updated_at.timestamp()),
        },
        success="Successfully created user",
    )
    def create(self, user: User) -> None:
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        user_id=user.id,
                        full_name=user.full_name,
                        email=user.email,
                        password_hash=user.password_hash,
                        created_at=user.created_at.isoformat(),
                        updated_at=user.updated_at.isoformat(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise PersistenceError("a user with that email already exists") from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to insert user: {exc.__class__.__name__}") from exc

    @traced(
        "repository.GetUserByEmail",
        attributes=lambda args: {"email": args["email"]},
        result_attributes=lambda user: {"user_id": user.id},
        success="Successfully retrieved user data",
    )
    def find_by_email(self, email: str) -> User:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to query user: {exc.__class__.__name__}") from exc
        if row is None:
            raise UserNotFoundError("user not found")
        try:
            return _row_to_user(row)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"corrupt user row: {exc.__class__.__name__}") from exc

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _row_to_user(row) -> User:
    return User(
        id=row.user_id,
        full_name=row.full_name,
        email=row.email,
        password_hash=row.password_hash,
        created_at=_parse_timestamp(row.created_at),
        updated_at=_parse_timestamp(row.updated_at),
    )
