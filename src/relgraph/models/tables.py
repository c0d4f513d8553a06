"""SQLModel table definitions for activity persistence.

Data tables are described at runtime by ``TableSchema`` and accessed through
SQLAlchemy Core, so the only fixed table the package owns is the activity log.
It is kept separate from the ``ActivityEntry`` domain model: the domain model
is frozen and strictly validated, while the table model must stay mutable for
ORM operations.

Field names are aligned with ``ActivityEntry`` so conversion goes through
``model_dump()`` and ``model_validate()``. ``user`` and ``identifier`` are
stored as strings; the action enum is stored by value.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel


class ActivityRecord(SQLModel, table=True):
    """SQLModel table for activity log persistence."""

    __tablename__ = "activity"

    id: int | None = Field(default=None, primary_key=True)
    schema_version: str
    type: str
    table_name: str = Field(index=True)
    action: str
    user: str | None = None
    timestamp: datetime
    data: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    delta: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    row_id: int = Field(index=True)
    parent_id: int | None = Field(default=None, index=True)
    identifier: str | None = None
    parent_changed: bool | None = None
