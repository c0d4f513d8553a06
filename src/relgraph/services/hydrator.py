"""Relationship hydrator that expands flat rows into nested records.

The read-side mirror of the cascade writer. Many-to-one foreign keys are
replaced by the foreign rows they point at, batched across a whole rowset.
One-to-many and many-to-many alias columns are filled per row.
"""

from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from sqlalchemy import select

from relgraph.exceptions import RelationshipMetadataError
from relgraph.models.enums import RelationshipKind
from relgraph.models.schema import ColumnDescriptor, TableSchema
from relgraph.services.access import AccessPolicy, ActorProvider
from relgraph.services.coercion import coerce_row
from relgraph.services.row_store import RowStore
from relgraph.services.schema_registry import SchemaProvider, enforce_column_metadata

JUNCTION_ID_ALIAS = "relgraph_junction_id"
JUNCTION_SORT_ALIAS = "relgraph_junction_sort"
JUNCTION_SORT_COLUMN = "sort"


class RelationshipHydrator:
    """Loads related records for rows read from storage.

    Every query selects only the stored columns the current user may read,
    and every loaded row is passed through type coercion.
    """

    def __init__(
        self,
        schemas: SchemaProvider,
        row_store: RowStore,
        access: AccessPolicy,
        actor: ActorProvider,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._schemas = schemas
        self._row_store = row_store
        self._access = access
        self._actor = actor
        self._logger = logger or structlog.get_logger(__name__)

    async def hydrate_many_to_one(
        self,
        schema: TableSchema,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Replace the many-to-one foreign keys of ``rows`` with their foreign rows.

        One query is issued per relationship column for the whole rowset. A
        foreign key that matches no row becomes None.

        Raises:
            RelationshipMetadataError: If a to-one column has no related table.
        """
        rows = [dict(row) for row in rows]
        for column in schema.to_one_columns:
            if not column.related_table:
                raise RelationshipMetadataError(schema.name, column.id, ["related_table"])

            foreign_ids = _distinct_values(row.get(column.id) for row in rows)
            if not foreign_ids:
                continue

            foreign_schema = self._schemas.get_schema(column.related_table)
            foreign_rows = await self._select_in(foreign_schema, foreign_schema.primary_key, foreign_ids)
            lookup = {_lookup_key(row[foreign_schema.primary_key]): row for row in foreign_rows}

            for row in rows:
                if column.id not in row:
                    continue
                foreign_id = row[column.id]
                if isinstance(foreign_id, Mapping):
                    continue
                row[column.id] = None if foreign_id is None else lookup.get(_lookup_key(foreign_id))

            self._logger.debug(
                "many_to_one_hydrated",
                table=schema.name,
                column=column.id,
                requested=len(foreign_ids),
                found=len(lookup),
            )
        return rows

    async def hydrate_row(
        self,
        table_name: str,
        row: Mapping[str, Any],
        alias_columns: Iterable[ColumnDescriptor] | None = None,
    ) -> dict[str, Any]:
        """Fill the one-to-many and many-to-many columns of a single row.

        Args:
            table_name: Table the row was read from.
            row: A stored row; must carry its primary key.
            alias_columns: Columns to hydrate. Defaults to every alias column
                of the table.

        Returns:
            A copy of ``row`` with each relationship column set to ``{"rows": [...]}``.

        Raises:
            RelationshipMetadataError: If a relationship column lacks metadata.
        """
        schema = self._schemas.get_schema(table_name)
        if alias_columns is None:
            alias_columns = schema.alias_columns
        entry = dict(row)
        parent_id = entry[schema.primary_key]

        for alias in alias_columns:
            foreign_data = None
            if alias.relationship_kind == RelationshipKind.MANY_TO_MANY:
                enforce_column_metadata(
                    table_name,
                    alias,
                    ["related_table", "junction_table", "junction_key_left", "junction_key_right"],
                )
                foreign_data = await self.load_many_to_many(
                    alias.related_table,
                    alias.junction_table,
                    alias.junction_key_left,
                    alias.junction_key_right,
                    parent_id,
                )
            elif alias.relationship_kind == RelationshipKind.ONE_TO_MANY:
                enforce_column_metadata(table_name, alias, ["related_table", "junction_key_right"])
                foreign_data = await self.load_one_to_many(
                    alias.related_table,
                    alias.junction_key_right,
                    parent_id,
                )

            if foreign_data is not None:
                entry[alias.id] = foreign_data
        return entry

    async def hydrate_rows(self, table_name: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Hydrate every relationship of a rowset: to-one in batch, then to-many per row."""
        schema = self._schemas.get_schema(table_name)
        rows = await self.hydrate_many_to_one(schema, rows)
        return [await self.hydrate_row(table_name, row, schema.alias_columns) for row in rows]

    async def load_one_to_many(self, table_name: str, column_name: str, column_equals: Any) -> dict[str, list]:
        """Fetch the rows of ``table_name`` whose ``column_name`` points at a parent."""
        schema = self._schemas.get_schema(table_name)
        tbl = self._row_store.table(table_name)
        statement = (
            select(*(tbl.c[name] for name in self._visible_columns(schema)))
            .where(tbl.c[column_name] == column_equals)
            .order_by(tbl.c[schema.primary_key])
        )
        results = await self._row_store.fetch_all(statement)
        return {"rows": [coerce_row(row, schema.non_alias_columns) for row in results]}

    async def load_many_to_many(
        self,
        foreign_table: str,
        junction_table: str,
        junction_key_left: str,
        junction_key_right: str,
        column_equals: Any,
    ) -> dict[str, list]:
        """Fetch the foreign rows associated with a parent through a junction table.

        Entries are ordered by the junction ``sort`` column when the junction
        table has one, then by junction id. Each entry keeps the junction id
        apart from the foreign row so the association itself can be targeted
        later.
        """
        foreign_schema = self._schemas.get_schema(foreign_table)
        junction_schema = self._schemas.get_schema(junction_table)
        foreign = self._row_store.table(foreign_table)
        junction = self._row_store.table(junction_table)
        has_sort = JUNCTION_SORT_COLUMN in junction_schema.column_names

        junction_id = junction.c[junction_schema.primary_key]
        selected = [foreign.c[name] for name in self._visible_columns(foreign_schema)]
        selected.append(junction_id.label(JUNCTION_ID_ALIAS))
        if has_sort:
            selected.append(junction.c[JUNCTION_SORT_COLUMN].label(JUNCTION_SORT_ALIAS))

        statement = (
            select(*selected)
            .select_from(
                foreign.join(
                    junction,
                    foreign.c[foreign_schema.primary_key] == junction.c[junction_key_right],
                )
            )
            .where(junction.c[junction_key_left] == column_equals)
        )
        if has_sort:
            statement = statement.order_by(junction.c[JUNCTION_SORT_COLUMN])
        statement = statement.order_by(junction_id.asc())

        foreign_data = []
        for row in await self._row_store.fetch_all(statement):
            entry: dict[str, Any] = {"id": row.pop(JUNCTION_ID_ALIAS)}
            if has_sort:
                entry["sort"] = row.pop(JUNCTION_SORT_ALIAS)
            entry["data"] = coerce_row(row, foreign_schema.non_alias_columns)
            foreign_data.append(entry)
        return {"rows": foreign_data}

    def _visible_columns(self, schema: TableSchema) -> list[str]:
        visible = set(self._access.visible_columns(schema.name, self._actor.current_user_id()))
        return [
            name
            for name in schema.column_names
            if name == schema.primary_key or name in visible
        ]

    async def _select_in(self, schema: TableSchema, column_name: str, values: list[Any]) -> list[dict[str, Any]]:
        tbl = self._row_store.table(schema.name)
        statement = select(*(tbl.c[name] for name in self._visible_columns(schema))).where(
            tbl.c[column_name].in_(values)
        )
        results = await self._row_store.fetch_all(statement)
        return [coerce_row(row, schema.non_alias_columns) for row in results]


def _distinct_values(values: Iterable[Any]) -> list[Any]:
    seen: set[str] = set()
    distinct = []
    for value in values:
        if value is None or isinstance(value, (Mapping, list)):
            continue
        key = _lookup_key(value)
        if key not in seen:
            seen.add(key)
            distinct.append(value)
    return distinct


def _lookup_key(value: Any) -> str:
    # Foreign keys may come back as "3" or 3 depending on coercion
    return str(value)
