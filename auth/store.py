"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
AuthStore is the repository; the _row_to_* functions are the mappers.
Route and dependency code never touches SQL directly.

Outcomes:
  Not found         -> None (lookups) or False (update/delete).
  Duplicate key     -> sqlalchemy.exc.IntegrityError, re-raised untouched so
                       handlers can turn it into Conflict.
  Any other failure -> StorageError. The underlying error is logged here and
                       chained, never returned to callers verbatim.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Every application read/write that a developer can trigger is scoped by
  developer_id in the WHERE clause, so one developer cannot touch another
  developer's rows even with a guessed id.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, UniqueConstraint, create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import StorageError
from auth.models import Application, Developer, EndUser, Session

logger = logging.getLogger("tenantauth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_developers = Table(
    "developers",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False, server_default=""),
    Column("last_name", String(100), nullable=False, server_default=""),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_applications = Table(
    "applications",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("developer_id", String(36), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("domain", String(255), nullable=False),
    Column("public_key", String(64), nullable=False, unique=True),
    Column("secret_key", String(64), nullable=False, unique=True),
    Column("created_at", String(32), nullable=False),
)

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("application_id", String(36), nullable=False),
    Column("email", String(255), nullable=False),
    Column("first_name", String(100), nullable=False, server_default=""),
    Column("last_name", String(100), nullable=False, server_default=""),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("application_id", "email", name="uq_users_application_email"),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), nullable=False),
    Column("application_id", String(36), nullable=False),
    Column("token", String(64), nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
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


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AuthStore:
    """Repository for Developer, Application, EndUser and Session entities.

    Constructed once in api.main.lifespan and handed to the gate and handlers
    through app.state. There is no module-level instance.

    Usage:
        store = AuthStore("sqlite:///tenantauth.db")
        store.create_developer(Developer(id=..., email="a@x.com", password_hash=hash_password("secret")))
        dev = store.get_developer_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str = "sqlite:///tenantauth.db") -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("Storage operation failed")
            raise StorageError() from exc

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
        except StorageError:
            return False
        return True

    # ------------------------------------------------------------------
    # Developers
    # ------------------------------------------------------------------

    def create_developer(self, developer: Developer) -> Developer:
        """Insert a developer. Raises IntegrityError if the email is taken."""
        developer.created_at = _now_iso()
        with self._connect() as conn:
            conn.execute(
                _developers.insert().values(
                    id=developer.id,
                    email=developer.email,
                    first_name=developer.first_name,
                    last_name=developer.last_name,
                    password_hash=developer.password_hash,
                    created_at=developer.created_at,
                )
            )
            conn.commit()
        return developer

    def get_developer_by_email(self, email: str) -> Developer | None:
        with self._connect() as conn:
            row = conn.execute(_developers.select().where(_developers.c.email == email)).fetchone()
        return _row_to_developer(row) if row is not None else None

    def get_developer_by_id(self, developer_id: str) -> Developer | None:
        with self._connect() as conn:
            row = conn.execute(_developers.select().where(_developers.c.id == developer_id)).fetchone()
        return _row_to_developer(row) if row is not None else None

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def create_application(self, application: Application) -> Application:
        """Insert an application. Raises IntegrityError on a key collision."""
        application.created_at = _now_iso()
        with self._connect() as conn:
            conn.execute(
                _applications.insert().values(
                    id=application.id,
                    developer_id=application.developer_id,
                    name=application.name,
                    domain=application.domain,
                    public_key=application.public_key,
                    secret_key=application.secret_key,
                    created_at=application.created_at,
                )
            )
            conn.commit()
        return application

    def list_applications(self, developer_id: str) -> list[Application]:
        """Return the developer's applications, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                _applications.select()
                .where(_applications.c.developer_id == developer_id)
                .order_by(_applications.c.created_at)
            ).fetchall()
        return [_row_to_application(r) for r in rows]

    def get_application(self, application_id: str, developer_id: str) -> Application | None:
        """Look up an application owned by developer_id. Another owner's id reads as not found."""
        with self._connect() as conn:
            row = conn.execute(
                _applications.select().where(
                    (_applications.c.id == application_id) & (_applications.c.developer_id == developer_id)
                )
            ).fetchone()
        return _row_to_application(row) if row is not None else None

    def get_application_by_public_key(self, public_key: str) -> Application | None:
        """O(1) lookup via the UNIQUE index on public_key. Used by the signature gate."""
        with self._connect() as conn:
            row = conn.execute(_applications.select().where(_applications.c.public_key == public_key)).fetchone()
        return _row_to_application(row) if row is not None else None

    def update_application(self, application_id: str, developer_id: str, name: str, domain: str) -> bool:
        """Update name and domain. Returns False if not found or owned by someone else."""
        with self._connect() as conn:
            result = conn.execute(
                _applications.update()
                .where((_applications.c.id == application_id) & (_applications.c.developer_id == developer_id))
                .values(name=name, domain=domain)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_application(self, application_id: str, developer_id: str) -> bool:
        """Delete an application with its users and sessions.

        Ownership is part of the WHERE clause; the dependent rows are only
        removed once the application delete itself matched.
        """
        with self._connect() as conn:
            result = conn.execute(
                _applications.delete().where(
                    (_applications.c.id == application_id) & (_applications.c.developer_id == developer_id)
                )
            )
            if result.rowcount > 0:
                conn.execute(_sessions.delete().where(_sessions.c.application_id == application_id))
                conn.execute(_users.delete().where(_users.c.application_id == application_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # End users
    # ------------------------------------------------------------------

    def create_user(self, user: EndUser) -> EndUser:
        """Insert an end user. Raises IntegrityError if (application_id, email) exists."""
        user.created_at = _now_iso()
        with self._connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user.id,
                    application_id=user.application_id,
                    email=user.email,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    password_hash=user.password_hash,
                    created_at=user.created_at,
                )
            )
            conn.commit()
        return user

    def get_user_by_email(self, application_id: str, email: str) -> EndUser | None:
        """Look up a user by email inside one application only."""
        with self._connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.application_id == application_id) & (_users.c.email == email))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_id(self, user_id: str) -> EndUser | None:
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self, application_id: str) -> list[EndUser]:
        """Return an application's users ordered by email."""
        with self._connect() as conn:
            rows = conn.execute(
                _users.select().where(_users.c.application_id == application_id).order_by(_users.c.email)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, session: Session) -> Session:
        session.created_at = _now_iso()
        with self._connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    id=session.id,
                    user_id=session.user_id,
                    application_id=session.application_id,
                    token=session.token,
                    expires_at=session.expires_at,
                    created_at=session.created_at,
                )
            )
            conn.commit()
        return session

    def get_session_by_token(self, token: str) -> Session | None:
        """Return the session row regardless of expiry. Expiry is the caller's decision."""
        with self._connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.token == token)).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete_session(self, session_id: str) -> bool:
        """Delete a session. Returns False if it did not exist."""
        with self._connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.id == session_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_developer(row) -> Developer:
    return Developer(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )


def _row_to_application(row) -> Application:
    return Application(
        id=row.id,
        developer_id=row.developer_id,
        name=row.name,
        domain=row.domain,
        public_key=row.public_key,
        secret_key=row.secret_key,
        created_at=row.created_at,
    )


def _row_to_user(row) -> EndUser:
    return EndUser(
        id=row.id,
        application_id=row.application_id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        application_id=row.application_id,
        token=row.token,
        expires_at=row.expires_at,
        created_at=row.created_at,
    )
