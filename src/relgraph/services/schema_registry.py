"""Schema metadata provider.

The engines only need to look up a table's column descriptors and its display
column. ``SchemaRegistry`` keeps those in memory and can be populated from a
JSON schema document.
"""

from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

import structlog

from relgraph.exceptions import RelationshipMetadataError, UnknownTableError
from relgraph.models.schema import ColumnDescriptor, SchemaDocument, TableSchema


class SchemaProvider(Protocol):
    def get_schema(self, table_name: str) -> TableSchema: ...

    def has_table(self, table_name: str) -> bool: ...

    def get_display_column(self, schema: TableSchema) -> ColumnDescriptor | None: ...


class SchemaRegistry:
    """In-memory lookup of table schemas by name."""

    def __init__(
        self,
        schemas: Iterable[TableSchema] = (),
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._schemas: dict[str, TableSchema] = {}
        self._logger = logger or structlog.get_logger(__name__)
        for schema in schemas:
            self.register(schema)

    @classmethod
    def from_document(
        cls,
        document: SchemaDocument,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> "SchemaRegistry":
        return cls(document.tables, logger=logger)

    @classmethod
    def from_file(
        cls,
        path: Path,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> "SchemaRegistry":
        """Load a registry from a JSON schema document.

        Args:
            path: Path to a JSON file shaped like ``{"tables": [...]}``.

        Returns:
            A registry holding every table in the document.

        Raises:
            FileNotFoundError: If the file does not exist.
            pydantic.ValidationError: If the document is malformed.
        """
        document = SchemaDocument.model_validate_json(path.read_text(encoding="utf-8"))
        registry = cls.from_document(document, logger=logger)
        registry._logger.info("schema_loaded", path=str(path), table_count=len(document.tables))
        return registry

    def register(self, schema: TableSchema) -> None:
        self._schemas[schema.name] = schema

    def get_schema(self, table_name: str) -> TableSchema:
        try:
            return self._schemas[table_name]
        except KeyError:
            raise UnknownTableError(table_name) from None

    def has_table(self, table_name: str | None) -> bool:
        return table_name is not None and table_name in self._schemas

    def get_display_column(self, schema: TableSchema) -> ColumnDescriptor | None:
        return schema.display_column()

    @property
    def tables(self) -> list[TableSchema]:
        return list(self._schemas.values())


def enforce_column_metadata(table_name: str, column: ColumnDescriptor, required_keys: list[str]) -> None:
    """Raise if any of ``required_keys`` is unset on a relationship column.

    Raises:
        RelationshipMetadataError: Listing every missing key.
    """
    missing = [key for key in required_keys if not getattr(column, key)]
    if missing:
        raise RelationshipMetadataError(table_name, column.id, missing)
