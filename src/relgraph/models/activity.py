from datetime import datetime
from typing import Any, ClassVar

from pydantic import Field, field_validator

from relgraph.models.base import (
    RecordModel,
    ensure_identifier,
    ensure_snapshot_dict,
    ensure_timezone_aware,
)
from relgraph.models.enums import ActivityAction

DEFAULT_LOG_TYPE = "ENTRY"

_SYSTEM_TABLE_LOG_TYPES = {
    "directus_media": "MEDIA",
    "directus_settings": "SETTINGS",
    "directus_ui": "UI",
}


def log_type_for_table(table_name: str) -> str:
    return _SYSTEM_TABLE_LOG_TYPES.get(table_name, DEFAULT_LOG_TYPE)


class ActivityEntry(RecordModel):
    SCHEMA_VERSION: ClassVar[str] = "activity_entry.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    type: str = DEFAULT_LOG_TYPE
    table_name: str
    action: ActivityAction
    user: int | str | None = None
    timestamp: datetime
    data: dict[str, Any] = Field(default_factory=dict)
    delta: dict[str, Any] = Field(default_factory=dict)
    row_id: int
    parent_id: int | None = None
    identifier: str | None = None
    parent_changed: bool | None = None

    @field_validator("table_name", mode="before")
    @classmethod
    def _normalize_table_name(cls, value: Any) -> str:
        return ensure_identifier(value, "table_name")

    @field_validator("data", "delta", mode="before")
    @classmethod
    def _normalize_snapshots(cls, value: Any) -> dict[str, Any]:
        return ensure_snapshot_dict(value)

    @field_validator("identifier", mode="before")
    @classmethod
    def _stringify_identifier(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _validate_timestamp(cls, value: Any) -> datetime:
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if not isinstance(value, datetime):
            raise TypeError("timestamp must be a datetime")
        return ensure_timezone_aware(value)

    def with_parent(self, parent_id: int) -> "ActivityEntry":
        """Return a copy of this entry attached to a top-level row."""
        return self.model_copy(update={"parent_id": parent_id})


__all__ = ["ActivityEntry", "log_type_for_table"]
