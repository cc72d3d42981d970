"""
auth/store.py -- SQLAlchemy Core persistence layer for users (the credential store).

Pattern: Repository + Data Mapper (same as inventory/store.py).
UserStore is the repository; _row_to_user is the mapper. Route, service and
dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Passwords enter the store only as plaintext arguments to create_user() /
  update_user(password=...) and are hashed here, before the INSERT/UPDATE.
  The hashed_password column can therefore never hold a plaintext value.
  two_factor_enabled=True without a secret is rejected on write.

Department responsibility:
  The "responsible for" relation lives on the departments table, owned by the
  inventory layer. UserStore receives a DepartmentDirectory at construction
  and uses it to fill User.department_id on every read, so callers always see
  the live relation. Without a directory, department_id is always None.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import Role, User
from auth.tokens import hash_password

logger = logging.getLogger("assetapi.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.admin.value),
    Column("two_factor_secret", String(64)),  # base32; NULL until setup
    Column("two_factor_enabled", Integer, nullable=False, server_default="0"),
    Column("profile_image", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Fields update_user() accepts. Everything else (2FA state, timestamps) has a
# dedicated method.
_UPDATABLE = {"username", "email", "role", "profile_image", "password"}


class DepartmentDirectory(Protocol):
    """Resolves which department (if any) a user is responsible for."""

    def department_for_responsible(self, user_id: int) -> Optional[int]: ...


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety (per connection)."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore(db_url, departments=inventory_store)
        uid = store.create_user("alice", "alice@x.com", "secret1", Role.admin)
        user = store.get_by_email("alice@x.com")
        store.close()
    """

    def __init__(self, db_url: str, departments: Optional[DepartmentDirectory] = None) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self.departments = departments

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        return self.count_users() > 0

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return self._hydrate(row)

    def get_by_email(self, email: str) -> User | None:
        """Exact, case-sensitive match on the stored email."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return self._hydrate(row)

    def get_by_username(self, username: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return self._hydrate(row)

    def list_users(self) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [self._hydrate(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(
        self,
        username: str,
        email: str,
        password: str,
        role: Role = Role.admin,
        profile_image: Optional[str] = None,
    ) -> int:
        """Hash the password, insert the user and return the new id.

        Raises sqlalchemy.exc.IntegrityError if username or email is taken;
        route handlers translate that into 409.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=username,
                    email=email,
                    hashed_password=hash_password(password),
                    role=Role(role).value,
                    profile_image=profile_image,
                    two_factor_enabled=0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update profile fields. A plaintext `password` is hashed before writing.

        Returns True if a row was updated, False if user_id was not found.
        Raises ValueError for fields outside the updatable set.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        values = dict(fields)
        if "password" in values:
            values["hashed_password"] = hash_password(values.pop("password"))
        if "role" in values:
            values["role"] = Role(values["role"]).value
        values["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def set_two_factor(self, user_id: int, *, secret: Optional[str], enabled: bool) -> bool:
        """Write 2FA state. Only AuthService calls this.

        Raises ValueError if asked to enable 2FA without a secret.
        """
        if enabled and not secret:
            raise ValueError("two_factor_enabled requires a two_factor_secret")
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(two_factor_secret=secret, two_factor_enabled=1 if enabled else 0, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def touch(self, user_id: int) -> None:
        """Stamp updated_at -- the activity timestamp bumped on every login."""
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(updated_at=_now_iso()))
            conn.commit()

    def delete_user(self, user_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _hydrate(self, row) -> User | None:
        if row is None:
            return None
        user = _row_to_user(row)
        if self.departments is not None:
            user.department_id = self.departments.department_for_responsible(user.id)
        return user


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        role=Role(row.role),
        hashed_password=row.hashed_password,
        two_factor_secret=row.two_factor_secret,
        two_factor_enabled=bool(row.two_factor_enabled),
        profile_image=row.profile_image,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
