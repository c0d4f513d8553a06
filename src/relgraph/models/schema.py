"""Table and column descriptors consumed by the cascade engines.

A table schema is an ordered list of column descriptors. Columns whose
relationship kind is one-to-many, many-to-many or alias are virtual: they never
exist in storage and only carry relationship metadata. Every other column,
including many-to-one foreign keys, is a stored column.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from relgraph.models.base import ensure_identifier, ensure_optional_identifier
from relgraph.models.enums import ALIAS_KINDS, TO_MANY_KINDS, RelationshipKind

SYSTEM_COLUMNS = frozenset({"sort", "active"})


class ColumnDescriptor(BaseModel):
    id: str
    storage_type: str | None = None
    relationship_kind: RelationshipKind = RelationshipKind.NONE
    ui: str | None = None
    related_table: str | None = None
    junction_table: str | None = None
    junction_key_left: str | None = None
    junction_key_right: str | None = None
    is_display: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return ensure_identifier(value, "id")

    @field_validator(
        "related_table",
        "junction_table",
        "junction_key_left",
        "junction_key_right",
        mode="before",
    )
    @classmethod
    def _normalize_relationship_metadata(cls, value: Any, info: ValidationInfo) -> str | None:
        return ensure_optional_identifier(value, info.field_name or "value")

    @field_validator("storage_type", mode="before")
    @classmethod
    def _normalize_storage_type(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value).strip().lower() or None

    @property
    def is_alias(self) -> bool:
        return self.relationship_kind in ALIAS_KINDS

    @property
    def is_to_one(self) -> bool:
        return self.relationship_kind == RelationshipKind.MANY_TO_ONE

    @property
    def is_to_many(self) -> bool:
        return self.relationship_kind in TO_MANY_KINDS


class TableSchema(BaseModel):
    name: str
    primary_key: str = "id"
    columns: list[ColumnDescriptor] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("name", "primary_key", mode="before")
    @classmethod
    def _normalize_identifiers(cls, value: Any, info: ValidationInfo) -> str:
        return ensure_identifier(value, info.field_name or "value")

    @model_validator(mode="after")
    def _validate_columns(self) -> "TableSchema":
        seen: set[str] = set()
        for column in self.columns:
            if column.id in seen:
                raise ValueError(f"duplicate column '{column.id}' on table '{self.name}'")
            seen.add(column.id)
        primary = self.column(self.primary_key)
        if primary is None or primary.is_alias:
            raise ValueError(f"table '{self.name}' must declare stored primary key column '{self.primary_key}'")
        return self

    def column(self, column_id: str) -> ColumnDescriptor | None:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def has_column(self, column_id: str) -> bool:
        return self.column(column_id) is not None

    @property
    def alias_columns(self) -> list[ColumnDescriptor]:
        return [column for column in self.columns if column.is_alias]

    @property
    def non_alias_columns(self) -> list[ColumnDescriptor]:
        return [column for column in self.columns if not column.is_alias]

    @property
    def column_names(self) -> list[str]:
        """Names of the stored (non-alias) columns, in declaration order."""
        return [column.id for column in self.non_alias_columns]

    @property
    def to_one_columns(self) -> list[ColumnDescriptor]:
        return [column for column in self.columns if column.is_to_one]

    @property
    def to_many_columns(self) -> list[ColumnDescriptor]:
        return [column for column in self.columns if column.is_to_many]

    @property
    def has_active_column(self) -> bool:
        column = self.column("active")
        return column is not None and not column.is_alias

    def display_column(self) -> ColumnDescriptor | None:
        for column in self.columns:
            if column.is_display:
                return column
        return None

    def first_non_system_column(self) -> ColumnDescriptor | None:
        for column in self.non_alias_columns:
            if column.id != self.primary_key and column.id not in SYSTEM_COLUMNS:
                return column
        return None


class SchemaDocument(BaseModel):
    """On-disk representation of a set of table schemas."""

    tables: list[TableSchema] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _validate_unique_tables(self) -> "SchemaDocument":
        names = [table.name for table in self.tables]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate table definitions: {', '.join(duplicates)}")
        return self


__all__ = ["ColumnDescriptor", "SchemaDocument", "TableSchema", "SYSTEM_COLUMNS"]
