"""Entries service that lists, fetches and saves records of a table.

Wraps the cascade writer and the relationship hydrator behind the
operations an API layer needs: paged listings with search and active-state
filters, single-record lookups, row counts, and collection saves.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import structlog
from sqlalchemy import false, func, or_, select

from relgraph.models.entries import EntriesPage, EntriesParams
from relgraph.models.enums import ActiveState, ActivityMode
from relgraph.models.records import StoredRow
from relgraph.models.schema import TableSchema
from relgraph.services.access import AccessPolicy, ActorProvider
from relgraph.services.cascade_writer import CascadeWriter
from relgraph.services.coercion import coerce_row
from relgraph.services.hydrator import RelationshipHydrator
from relgraph.services.row_store import RowStore
from relgraph.services.schema_registry import SchemaProvider

ACTIVE_STATE_SLUGS = {
    0: ActiveState.TRASH,
    1: ActiveState.ACTIVE,
    2: ActiveState.INACTIVE,
}

SEARCHABLE_TYPES = frozenset({"varchar", "int"})
LISTING_SYSTEM_COLUMNS = ("id", "sort", "active")


class EntriesService:
    """Reads and writes records of schema-described tables.

    All dependencies are injected via constructor for testability.
    """

    def __init__(
        self,
        schemas: SchemaProvider,
        row_store: RowStore,
        writer: CascadeWriter,
        hydrator: RelationshipHydrator,
        access: AccessPolicy,
        actor: ActorProvider,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._schemas = schemas
        self._row_store = row_store
        self._writer = writer
        self._hydrator = hydrator
        self._access = access
        self._actor = actor
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def writer(self) -> CascadeWriter:
        return self._writer

    @property
    def hydrator(self) -> RelationshipHydrator:
        return self._hydrator

    @property
    def row_store(self) -> RowStore:
        return self._row_store

    async def initialize_schema(self, tables: Iterable[TableSchema]) -> None:
        """Create the data tables and the activity table if they don't exist."""
        await self._row_store.create_tables(tables)
        await self._writer.activity_log.initialize_schema()

    async def save(
        self,
        table_name: str,
        fragment: Mapping[str, Any],
        mode: ActivityMode = ActivityMode.STANDALONE,
    ) -> StoredRow:
        return await self._writer.save_record_graph(table_name, fragment, mode)

    async def update_collection(
        self,
        table_name: str,
        entries: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> list[StoredRow]:
        return await self._writer.update_collection(table_name, entries)

    async def get_entries(
        self,
        table_name: str,
        params: EntriesParams | None = None,
    ) -> EntriesPage | dict[str, Any] | None:
        """Fetch a page of records, or one record when ``params.id`` is set.

        Args:
            table_name: Table to read.
            params: Listing parameters; defaults apply when omitted.

        Returns:
            An EntriesPage for listings. For a single id, the record with all
            relationships hydrated, or None if it does not exist.
        """
        params = params or EntriesParams()
        schema = self._schemas.get_schema(table_name)

        rows = await self._select_entries(schema, params)
        rows = await self._hydrator.hydrate_many_to_one(schema, rows)

        if params.is_listing:
            if schema.has_active_column:
                counts = await self.count_active(table_name)
                total = counts.pop("total")
            else:
                counts = {}
                total = await self.count_total(table_name)
            self._logger.debug("entries_listed", table=table_name, row_count=len(rows), total=total)
            return EntriesPage(rows=rows, total=total, counts=counts)

        if not rows:
            self._logger.debug("entry_not_found", table=table_name, row_id=params.id)
            return None
        return await self._hydrator.hydrate_row(table_name, rows[0], schema.alias_columns)

    async def get_entry(self, table_name: str, row_id: int) -> dict[str, Any] | None:
        result = await self.get_entries(table_name, EntriesParams(id=row_id))
        return result if isinstance(result, dict) else None

    async def count_total(self, table_name: str) -> int:
        """Number of rows in a table, irrespective of any active column."""
        tbl = self._row_store.table(table_name)
        total = await self._row_store.fetch_scalar(select(func.count()).select_from(tbl))
        return int(total or 0)

    async def count_active(self, table_name: str) -> dict[str, int]:
        """Row counts per active state plus a ``total``; only valid for tables with an active column."""
        tbl = self._row_store.table(table_name)
        statement = select(tbl.c.active, func.count().label("quantity")).group_by(tbl.c.active)
        stats = {state.value: 0 for state in ACTIVE_STATE_SLUGS.values()}
        for row in await self._row_store.fetch_all(statement):
            state = ACTIVE_STATE_SLUGS.get(_as_int(row["active"]))
            if state is None:
                self._logger.warning("unknown_active_state", table=table_name, active=row["active"])
                continue
            stats[state.value] = int(row["quantity"])
        stats["total"] = sum(stats.values())
        return stats

    async def _select_entries(self, schema: TableSchema, params: EntriesParams) -> list[dict[str, Any]]:
        tbl = self._row_store.table(schema.name)
        column_names = self._projected_columns(schema, params)

        if params.order_by not in schema.column_names:
            raise ValueError(f"cannot order '{schema.name}' by unknown column '{params.order_by}'")
        order_column = tbl.c[params.order_by]

        statement = (
            select(*(tbl.c[name] for name in column_names))
            .order_by(order_column.asc() if params.order_direction == "ASC" else order_column.desc())
            .limit(params.per_page)
            .offset(params.offset)
        )

        if params.active is not None and schema.has_active_column:
            statement = statement.where(tbl.c.active.in_(params.active))

        if not params.is_listing:
            statement = statement.where(tbl.c[schema.primary_key] == params.id)

        if params.search:
            pattern = f"%{params.search.lower()}%"
            predicates = [
                func.lower(tbl.c[column.id]).like(pattern)
                for column in schema.non_alias_columns
                if column.storage_type in SEARCHABLE_TYPES
            ]
            statement = statement.where(or_(*predicates) if predicates else false())

        rows = await self._row_store.fetch_all(statement)
        return [coerce_row(row, schema.non_alias_columns) for row in rows]

    def _projected_columns(self, schema: TableSchema, params: EntriesParams) -> list[str]:
        visible = set(self._access.visible_columns(schema.name, self._actor.current_user_id()))
        column_names = [
            name
            for name in schema.column_names
            if name == schema.primary_key or name in visible
        ]
        if params.columns_visible is not None:
            wanted = {schema.primary_key, *LISTING_SYSTEM_COLUMNS, *params.columns_visible}
            column_names = [name for name in column_names if name in wanted]
        return column_names


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
