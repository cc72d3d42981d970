"""
inventory/models.py -- Domain dataclasses for departments and assets.

These are pure data containers with zero logic. Persistence lives in
inventory/store.py; authorization (who may touch which asset) lives in
auth/dependencies.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Department:
    """An organisational unit that owns assets.

    responsible_id points at the user in charge of the department. That user's
    department scope (see auth/dependencies.py) is this department's id.

    id is None before the record is written to the database.
    """

    name: str
    code: str  # unique
    responsible_id: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Asset:
    """A tracked fixed asset.

    Monetary values are non-negative; the API layer validates that before
    the store sees them.

    id is None before the record is written to the database.
    """

    name: str
    code: str
    label: str
    initial_value: float = 0.0
    residual_value: float = 0.0
    accumulated_depreciation: float = 0.0
    department_id: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
