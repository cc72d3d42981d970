"""
inventory/store.py -- SQLAlchemy-backed persistence for departments and assets.

Uses SQLAlchemy Core (not ORM) so the dataclasses in inventory/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change.

Pattern: Repository + Data Mapper. InventoryStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

InventoryStore also implements auth.store.DepartmentDirectory
(department_for_responsible), which is how the credential store learns a
user's department scope without importing this module.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = InventoryStore("sqlite:///assets.db")
    dept_id = store.create_department(Department(name="IT", code="IT-01", responsible_id=2))
    asset_id = store.create_asset(Asset(name="Laptop", code="A-1", label="L-1", department_id=dept_id))
    store.list_assets(department_id=dept_id)
    store.close()
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, Numeric, String, Table, create_engine, event, func, select
from sqlalchemy.engine import Engine

from inventory.models import Asset, Department

logger = logging.getLogger("assetapi.inventory")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_departments = Table(
    "departments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("code", String(50), nullable=False, unique=True),
    Column("responsible_id", Integer),  # users.id, lives in the credential store
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_assets = Table(
    "assets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("code", String(50), nullable=False),
    Column("label", String(100), nullable=False),
    Column("initial_value", Numeric(15, 2, asdecimal=False), nullable=False, server_default="0"),
    Column("residual_value", Numeric(15, 2, asdecimal=False), nullable=False, server_default="0"),
    Column("accumulated_depreciation", Numeric(15, 2, asdecimal=False), nullable=False, server_default="0"),
    Column("department_id", Integer),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_DEPARTMENT_FIELDS = {"name", "code", "responsible_id"}
_ASSET_FIELDS = {
    "name",
    "code",
    "label",
    "initial_value",
    "residual_value",
    "accumulated_depreciation",
    "department_id",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _check_fields(fields: dict, allowed: set, entity: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown {entity} fields: {sorted(unknown)!r}")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class InventoryStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # SQLite requires check_same_thread=False: FastAPI runs sync
            # handlers in a threadpool.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------

    def create_department(self, department: Department) -> int:
        """Insert a department and return its id.

        Raises sqlalchemy.exc.IntegrityError if the code already exists.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _departments.insert().values(
                    name=department.name,
                    code=department.code,
                    responsible_id=department.responsible_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_department(self, department_id: int) -> Optional[Department]:
        with self.engine.connect() as conn:
            row = conn.execute(_departments.select().where(_departments.c.id == department_id)).fetchone()
        return _row_to_department(row) if row is not None else None

    def list_departments(self) -> list[Department]:
        with self.engine.connect() as conn:
            rows = conn.execute(_departments.select().order_by(_departments.c.id)).fetchall()
        return [_row_to_department(r) for r in rows]

    def count_departments(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_departments)).scalar() or 0

    def update_department(self, department_id: int, **fields) -> bool:
        """Update any subset of name, code, responsible_id.

        Returns True if a row was updated, False if department_id was not found.
        """
        _check_fields(fields, _DEPARTMENT_FIELDS, "department")
        with self.engine.connect() as conn:
            result = conn.execute(
                _departments.update()
                .where(_departments.c.id == department_id)
                .values(**fields, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_department(self, department_id: int) -> bool:
        """Delete a department. Its assets keep their rows with department_id cleared."""
        with self.engine.connect() as conn:
            conn.execute(
                _assets.update().where(_assets.c.department_id == department_id).values(department_id=None)
            )
            result = conn.execute(_departments.delete().where(_departments.c.id == department_id))
            conn.commit()
        return result.rowcount > 0

    def department_for_responsible(self, user_id: int) -> Optional[int]:
        """Return the id of the department this user is responsible for.

        When a user is responsible for several departments, the oldest (lowest
        id) wins.
        """
        with self.engine.connect() as conn:
            return conn.execute(
                select(_departments.c.id)
                .where(_departments.c.responsible_id == user_id)
                .order_by(_departments.c.id)
                .limit(1)
            ).scalar()

    def clear_responsible(self, user_id: int) -> None:
        """Detach a user from every department they are responsible for."""
        with self.engine.connect() as conn:
            conn.execute(
                _departments.update()
                .where(_departments.c.responsible_id == user_id)
                .values(responsible_id=None, updated_at=_now_iso())
            )
            conn.commit()

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def create_asset(self, asset: Asset) -> int:
        """Insert a new asset and return its assigned database ID."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _assets.insert().values(
                    name=asset.name,
                    code=asset.code,
                    label=asset.label,
                    initial_value=asset.initial_value,
                    residual_value=asset.residual_value,
                    accumulated_depreciation=asset.accumulated_depreciation,
                    department_id=asset.department_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_asset(self, asset_id: int) -> Optional[Asset]:
        with self.engine.connect() as conn:
            row = conn.execute(_assets.select().where(_assets.c.id == asset_id)).fetchone()
        return _row_to_asset(row) if row is not None else None

    def list_assets(self, department_id: Optional[int] = None) -> list[Asset]:
        """Return assets ordered by id, optionally restricted to one department."""
        query = _assets.select().order_by(_assets.c.id)
        if department_id is not None:
            query = query.where(_assets.c.department_id == department_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_asset(r) for r in rows]

    def count_assets(self, department_id: Optional[int] = None) -> int:
        query = select(func.count()).select_from(_assets)
        if department_id is not None:
            query = query.where(_assets.c.department_id == department_id)
        with self.engine.connect() as conn:
            return conn.execute(query).scalar() or 0

    def update_asset(self, asset_id: int, **fields) -> bool:
        """Update any subset of the asset's mutable fields.

        Returns True if a row was updated, False if asset_id was not found.
        """
        _check_fields(fields, _ASSET_FIELDS, "asset")
        with self.engine.connect() as conn:
            result = conn.execute(
                _assets.update().where(_assets.c.id == asset_id).values(**fields, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_asset(self, asset_id: int) -> bool:
        """Hard delete. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_assets.delete().where(_assets.c.id == asset_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_department(row) -> Department:
    return Department(
        id=row.id,
        name=row.name,
        code=row.code,
        responsible_id=row.responsible_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_asset(row) -> Asset:
    return Asset(
        id=row.id,
        name=row.name,
        code=row.code,
        label=row.label,
        initial_value=float(row.initial_value),
        residual_value=float(row.residual_value),
        accumulated_depreciation=float(row.accumulated_depreciation),
        department_id=row.department_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
