from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from relgraph.models.activity import ActivityEntry


class StoredRow(BaseModel):
    """Read-only handle over a full record as it exists in storage."""

    table: str
    primary_key: str = "id"
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def id(self) -> Any:
        return self.data.get(self.primary_key)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __contains__(self, key: object) -> bool:
        return key in self.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.data)


class CascadeContext(BaseModel):
    """Accumulator shared by every level of one cascade call.

    The same instance must be handed to each nested save so that entries and
    the change flag raised deep in the graph are visible to the top-level save.
    """

    nested_entries: list[ActivityEntry] = Field(default_factory=list)
    relationships_changed: bool = False

    model_config = ConfigDict(extra="forbid")

    def mark_changed(self) -> None:
        self.relationships_changed = True


__all__ = ["CascadeContext", "StoredRow"]
