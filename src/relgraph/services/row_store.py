"""Row persistence over SQLAlchemy Core with native async support.

Data tables are only known at runtime, so statements are built against
lightweight ``TableClause`` objects derived from the registered schema. The
clauses are untyped: values travel to and from storage exactly as the driver
hands them over, and typing is left to ``relgraph.services.coercion``.

Every write runs in its own transaction. A cascade that fails half way keeps
the writes that already committed.
"""

from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    LargeBinary,
    MetaData,
    SmallInteger,
    String,
    Table,
    Text,
    column,
    delete,
    insert,
    select,
    table,
    update,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.sql import TableClause
from sqlalchemy.sql.expression import Executable
from sqlalchemy.types import TypeEngine

from relgraph.exceptions import RecordReloadError
from relgraph.models.schema import TableSchema
from relgraph.services.schema_registry import SchemaProvider

_DDL_TYPES: dict[str, type[TypeEngine]] = {
    "int": Integer,
    "integer": Integer,
    "mediumint": Integer,
    "long": Integer,
    "year": Integer,
    "tinyint": SmallInteger,
    "smallint": SmallInteger,
    "bigint": BigInteger,
    "float": Float,
    "double": Float,
    "real": Float,
    "decimal": Float,
    "blob": LargeBinary,
    "tinyblob": LargeBinary,
    "mediumblob": LargeBinary,
    "longblob": LargeBinary,
    "binary": LargeBinary,
    "varbinary": LargeBinary,
    "date": Date,
    "datetime": DateTime,
    "timestamp": DateTime,
    "char": String,
    "varchar": String,
}


class RowStore:
    """Inserts, updates, finds and deletes rows of schema-described tables.

    Accepts an AsyncEngine via dependency injection to support both
    persistent and in-memory databases for testing.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        schemas: SchemaProvider,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._schemas = schemas
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def table(self, table_name: str) -> TableClause:
        """Return an untyped table clause over the stored columns of ``table_name``."""
        schema = self._schemas.get_schema(table_name)
        return table(table_name, *(column(name) for name in schema.column_names))

    async def create_tables(self, schemas: Iterable[TableSchema]) -> None:
        """Create data tables for ``schemas`` if they don't exist."""
        metadata = MetaData()
        for schema in schemas:
            build_ddl_table(schema, metadata)
        async with self._engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        self._logger.info("tables_created", table_count=len(metadata.tables))

    async def insert(self, table_name: str, values: Mapping[str, Any]) -> Any:
        """Insert one row and return its storage-assigned primary key."""
        schema = self._schemas.get_schema(table_name)
        tbl = self.table(table_name)
        statement = insert(tbl)
        if values:
            statement = statement.values(dict(values))
        statement = statement.returning(tbl.c[schema.primary_key])
        async with self._engine.begin() as conn:
            result = await conn.execute(statement)
            row_id = result.scalar_one()
        self._logger.debug("row_inserted", table=table_name, row_id=row_id)
        return row_id

    async def update(self, table_name: str, row_id: Any, values: Mapping[str, Any]) -> int:
        """Update one row by primary key and return the affected row count."""
        if not values:
            return 0
        schema = self._schemas.get_schema(table_name)
        tbl = self.table(table_name)
        statement = update(tbl).where(tbl.c[schema.primary_key] == row_id).values(dict(values))
        async with self._engine.begin() as conn:
            result = await conn.execute(statement)
        self._logger.debug("row_updated", table=table_name, row_id=row_id, columns=sorted(values))
        return result.rowcount

    async def find_by_id(self, table_name: str, row_id: Any) -> dict[str, Any] | None:
        """Retrieve one row by primary key.

        Returns:
            The raw row as a dict, or None if no row has that key.
        """
        if row_id is None:
            return None
        schema = self._schemas.get_schema(table_name)
        tbl = self.table(table_name)
        return await self.fetch_one(select(tbl).where(tbl.c[schema.primary_key] == row_id))

    async def upsert(self, table_name: str, values: Mapping[str, Any]) -> dict[str, Any]:
        """Insert or update one row (no relationship handling) and return it reloaded.

        A row carrying a primary key that does not exist yet is inserted with
        that key.

        Raises:
            RecordReloadError: If the row cannot be read back after the write.
        """
        schema = self._schemas.get_schema(table_name)
        primary_key = schema.primary_key
        values = dict(values)
        row_id = values.get(primary_key)
        record_is_new = row_id is None

        if record_is_new:
            values.pop(primary_key, None)
            row_id = await self.insert(table_name, values)
        elif await self.find_by_id(table_name, row_id) is None:
            row_id = await self.insert(table_name, values)
        else:
            changes = {key: value for key, value in values.items() if key != primary_key}
            await self.update(table_name, row_id, changes)

        row = await self.find_by_id(table_name, row_id)
        if row is None:
            raise RecordReloadError(table_name, row_id, record_is_new)
        return row

    async def delete_where(self, table_name: str, **equals: Any) -> int:
        """Delete rows matching every ``column=value`` pair and return the count."""
        if not equals:
            raise ValueError("delete_where requires at least one condition")
        tbl = self.table(table_name)
        statement = delete(tbl)
        for name, value in equals.items():
            statement = statement.where(tbl.c[name] == value)
        async with self._engine.begin() as conn:
            result = await conn.execute(statement)
        self._logger.debug("rows_deleted", table=table_name, conditions=equals, count=result.rowcount)
        return result.rowcount

    async def fetch_all(self, statement: Executable) -> list[dict[str, Any]]:
        async with self._engine.connect() as conn:
            result = await conn.execute(statement)
            return [dict(row) for row in result.mappings().all()]

    async def fetch_one(self, statement: Executable) -> dict[str, Any] | None:
        async with self._engine.connect() as conn:
            result = await conn.execute(statement)
            row = result.mappings().first()
            return dict(row) if row is not None else None

    async def fetch_scalar(self, statement: Executable) -> Any:
        async with self._engine.connect() as conn:
            result = await conn.execute(statement)
            return result.scalar()


def build_ddl_table(schema: TableSchema, metadata: MetaData) -> Table:
    """Describe ``schema`` as a typed SQLAlchemy table for DDL purposes."""
    columns = []
    for descriptor in schema.non_alias_columns:
        if descriptor.id == schema.primary_key:
            columns.append(Column(descriptor.id, Integer, primary_key=True, autoincrement=True))
            continue
        ddl_type = _DDL_TYPES.get(descriptor.storage_type or "", Text)
        columns.append(Column(descriptor.id, ddl_type(), nullable=True))
    return Table(schema.name, metadata, *columns)


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == ":memory:":
        # In-memory aiosqlite databases share a single connection per engine
        url = "sqlite+aiosqlite:///:memory:"
    else:
        url = f"sqlite+aiosqlite:///{db_path}"
    return create_async_engine(url)
