"""Cascade writer that persists a nested record graph.

A record fragment may embed related records: a mapping under a many-to-one
column, or a list of mappings under a one-to-many or many-to-many alias
column. Saving a fragment resolves to-one relationships first (they provide
foreign keys for the own row), writes the own row, then resolves to-many
relationships (they need the own row's id). Nested saves share one
``CascadeContext`` so that activity entries and change flags raised deep in
the graph reach the top-level save.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from relgraph.exceptions import CustomFieldValidationError, RecordReloadError
from relgraph.models.activity import ActivityEntry, log_type_for_table
from relgraph.models.enums import ActivityAction, ActivityMode, RelationshipKind
from relgraph.models.records import CascadeContext, StoredRow
from relgraph.models.schema import ColumnDescriptor, TableSchema
from relgraph.services.access import ActorProvider
from relgraph.services.activity_log import ActivityLogger
from relgraph.services.change_detector import contains_non_primary_key_data
from relgraph.services.coercion import coerce_row
from relgraph.services.custom_fields import CustomFieldRegistry
from relgraph.services.row_store import RowStore
from relgraph.services.schema_registry import SchemaProvider, enforce_column_metadata

JUNCTION_PAYLOAD_KEY = "data"
JUNCTION_ACTIVE_KEY = "active"


class CascadeWriter:
    """Recursively saves record graphs and records what changed.

    The writer holds no per-call state: the target table is a parameter of
    every save, and nested saves are plain recursive calls on the same
    instance. All dependencies are injected via constructor for testability.
    """

    def __init__(
        self,
        schemas: SchemaProvider,
        row_store: RowStore,
        activity_log: ActivityLogger,
        actor: ActorProvider,
        custom_fields: CustomFieldRegistry | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._schemas = schemas
        self._row_store = row_store
        self._activity_log = activity_log
        self._actor = actor
        self._custom_fields = custom_fields or CustomFieldRegistry()
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def activity_log(self) -> ActivityLogger:
        return self._activity_log

    async def save_record_graph(
        self,
        table_name: str,
        fragment: Mapping[str, Any],
        mode: ActivityMode = ActivityMode.STANDALONE,
        context: CascadeContext | None = None,
    ) -> StoredRow:
        """Persist ``fragment`` and every related record embedded in it.

        Args:
            table_name: Table the fragment belongs to.
            fragment: Column id to value mapping, possibly embedding related records.
            mode: ``STANDALONE`` writes a top-level activity entry (with nested
                entries attached), ``NESTED_CHILD`` appends to ``context``
                instead, ``DISABLED`` writes no activity for this level.
            context: Accumulator shared with the calling save. Only meaningful
                in ``NESTED_CHILD`` mode; other modes start a fresh one.

        Returns:
            A StoredRow over the full record as reloaded from storage.

        Raises:
            RelationshipMetadataError: If a to-many column lacks required metadata.
            CustomFieldValidationError: If a custom field handler rejects the fragment.
            RecordReloadError: If the saved row cannot be read back.
        """
        schema = self._schemas.get_schema(table_name)
        primary_key = schema.primary_key
        is_nested = mode == ActivityMode.NESTED_CHILD
        if not is_nested or context is None:
            context = CascadeContext()

        fragment = dict(fragment)
        record_is_new = fragment.get(primary_key) is None
        if record_is_new:
            fragment.pop(primary_key, None)

        own_row = await self._resolve_to_one_relationships(schema, fragment)

        parent_record_changed = contains_non_primary_key_data(own_row, primary_key)
        if parent_record_changed:
            self._run_custom_fields(schema, fragment, own_row)
            parent_record_changed = contains_non_primary_key_data(own_row, primary_key)

        if record_is_new:
            persisted = await self._row_store.upsert(table_name, own_row)
            row_id = persisted[primary_key]
            parent_record_changed = True
        elif parent_record_changed:
            persisted = await self._row_store.upsert(table_name, own_row)
            row_id = persisted[primary_key]
        else:
            row_id = own_row[primary_key]

        draft: dict[str, Any] = {primary_key: row_id}
        for column in schema.to_many_columns:
            if fragment.get(column.id) is not None:
                draft[column.id] = fragment[column.id]
        await self._resolve_to_many_relationships(schema, draft, row_id, context)

        raw_record = await self._row_store.find_by_id(table_name, row_id)
        if raw_record is None:
            raise RecordReloadError(table_name, row_id, record_is_new)
        full_record = coerce_row(raw_record, schema.non_alias_columns)

        delta: dict[str, Any] = {}
        if not record_is_new:
            delta = coerce_row(
                {key: value for key, value in own_row.items() if key in full_record},
                schema.non_alias_columns,
            )
        action = ActivityAction.ADD if record_is_new else ActivityAction.UPDATE

        self._logger.debug(
            "record_saved",
            table=table_name,
            row_id=row_id,
            action=action.value,
            mode=mode.value,
            parent_record_changed=parent_record_changed,
            relationships_changed=context.relationships_changed,
        )

        if mode == ActivityMode.NESTED_CHILD:
            context.nested_entries.append(
                self._make_entry(table_name, action, full_record, delta, row_id)
            )
            if record_is_new:
                # A new record inside a collection changes the top-level record's relationships
                context.mark_changed()
        elif mode == ActivityMode.STANDALONE:
            if parent_record_changed or context.relationships_changed:
                await self._log_parent_activity(
                    schema,
                    action,
                    full_record,
                    delta,
                    row_id,
                    parent_record_changed,
                    context.nested_entries,
                )

        return StoredRow(table=table_name, primary_key=primary_key, data=full_record)

    async def update_collection(
        self,
        table_name: str,
        entries: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> list[StoredRow]:
        """Save one fragment or a list of fragments, each as its own top-level save."""
        if isinstance(entries, Mapping):
            entries = [entries]
        return [await self.save_record_graph(table_name, entry) for entry in entries]

    async def _resolve_to_one_relationships(
        self,
        schema: TableSchema,
        fragment: dict[str, Any],
    ) -> dict[str, Any]:
        """Build the own-row fragment, replacing embedded to-one records with their ids.

        Relationship payloads of alias columns are left out; they are handled
        once the own row has an id.
        """
        own_row = dict(fragment)
        for column in schema.columns:
            if column.is_alias:
                own_row.pop(column.id, None)
                continue

            value = own_row.get(column.id)
            if not isinstance(value, (Mapping, list, tuple)):
                continue

            if not value:
                del own_row[column.id]
                continue

            if not column.is_to_one or not isinstance(value, Mapping):
                continue

            foreign_table = column.related_table
            if not self._schemas.has_table(foreign_table):
                # Unresolvable to-one relationships are dropped rather than failing the save
                self._logger.warning(
                    "to_one_dropped",
                    table=schema.name,
                    column=column.id,
                    related_table=foreign_table,
                )
                del own_row[column.id]
                continue

            foreign_schema = self._schemas.get_schema(foreign_table)
            foreign_row = dict(value)
            if contains_non_primary_key_data(foreign_row, foreign_schema.primary_key):
                foreign_row = await self._row_store.upsert(foreign_table, foreign_row)
            own_row[column.id] = foreign_row.get(foreign_schema.primary_key)

        return own_row

    async def _resolve_to_many_relationships(
        self,
        schema: TableSchema,
        draft: dict[str, Any],
        parent_id: Any,
        context: CascadeContext,
    ) -> None:
        for column in schema.to_many_columns:
            foreign_data_set = draft.get(column.id)
            if not isinstance(foreign_data_set, (list, tuple)):
                continue
            if not foreign_data_set:
                del draft[column.id]
                continue

            enforce_column_metadata(schema.name, column, ["related_table", "junction_key_right"])
            if column.relationship_kind == RelationshipKind.ONE_TO_MANY:
                await self._save_one_to_many(column, foreign_data_set, parent_id, context)
            else:
                enforce_column_metadata(schema.name, column, ["junction_table", "junction_key_left"])
                await self._save_many_to_many(column, foreign_data_set, parent_id, context)

            del draft[column.id]

    async def _save_one_to_many(
        self,
        column: ColumnDescriptor,
        foreign_data_set: Sequence[Mapping[str, Any]],
        parent_id: Any,
        context: CascadeContext,
    ) -> None:
        back_reference = column.junction_key_right
        for foreign_record in foreign_data_set:
            if not foreign_record:
                continue
            foreign_record = dict(foreign_record)
            # Only fill in the parent id when the child does not name one itself
            if back_reference not in foreign_record:
                foreign_record[back_reference] = parent_id
            await self.save_record_graph(
                column.related_table,
                foreign_record,
                ActivityMode.NESTED_CHILD,
                context,
            )

    async def _save_many_to_many(
        self,
        column: ColumnDescriptor,
        foreign_data_set: Sequence[Mapping[str, Any]],
        parent_id: Any,
        context: CascadeContext,
    ) -> None:
        """Save associated records and the junction rows linking them to the parent.

        Each entry looks like ``{"id": junction id, "active": 0, "sort": n,
        "data": {...foreign record...}}``; every key except ``data`` goes
        to the junction row. ``active`` is a signal, never stored: set to a falsy
        value (including ``"0"``) it removes the association named by ``id``.
        Keys that are not columns of the junction table are ignored.
        """
        junction_table = column.junction_table
        junction_schema = self._schemas.get_schema(junction_table)
        junction_pk = junction_schema.primary_key
        junction_columns = set(junction_schema.column_names)

        for association in foreign_data_set:
            if not association:
                continue

            if JUNCTION_ACTIVE_KEY in association and not _is_active(association[JUNCTION_ACTIVE_KEY]):
                junction_id = association.get(junction_pk)
                if junction_id is None:
                    self._logger.debug("inactive_association_skipped", junction_table=junction_table)
                    continue
                await self._row_store.delete_where(junction_table, **{junction_pk: junction_id})
                context.mark_changed()
                self._logger.debug("junction_deleted", junction_table=junction_table, junction_id=junction_id)
                continue

            junction_row: dict[str, Any] = {column.junction_key_left: parent_id}
            foreign_payload = association.get(JUNCTION_PAYLOAD_KEY)
            foreign_record: StoredRow | None = None
            if foreign_payload is not None:
                foreign_record = await self.save_record_graph(
                    column.related_table,
                    foreign_payload,
                    ActivityMode.NESTED_CHILD,
                    context,
                )
                junction_row[column.junction_key_right] = foreign_record.id

            for key, value in association.items():
                if key in (JUNCTION_PAYLOAD_KEY, JUNCTION_ACTIVE_KEY):
                    continue
                if key not in junction_columns:
                    self._logger.debug("junction_key_ignored", junction_table=junction_table, key=key)
                    continue
                junction_row[key] = value

            relationship_changed = contains_non_primary_key_data(junction_row, junction_pk)
            if foreign_record is not None:
                relationship_changed = relationship_changed or contains_non_primary_key_data(
                    foreign_record, foreign_record.primary_key
                )
            if relationship_changed:
                await self._row_store.upsert(junction_table, junction_row)
                context.mark_changed()

    def _run_custom_fields(
        self,
        schema: TableSchema,
        fragment: Mapping[str, Any],
        own_row: dict[str, Any],
    ) -> None:
        for column in schema.alias_columns:
            handler = self._custom_fields.get(column.ui)
            if handler is None:
                continue
            if not handler.validate(fragment, own_row):
                raise CustomFieldValidationError(schema.name, column.id, column.ui or "")
            handler.apply(fragment, own_row)

    def _make_entry(
        self,
        table_name: str,
        action: ActivityAction,
        full_record: dict[str, Any],
        delta: dict[str, Any],
        row_id: Any,
        **extra: Any,
    ) -> ActivityEntry:
        return ActivityEntry(
            type=log_type_for_table(table_name),
            table_name=table_name,
            action=action,
            user=self._actor.current_user_id(),
            timestamp=datetime.now(timezone.utc),
            data=full_record,
            delta=delta,
            row_id=row_id,
            **extra,
        )

    async def _log_parent_activity(
        self,
        schema: TableSchema,
        action: ActivityAction,
        full_record: dict[str, Any],
        delta: dict[str, Any],
        row_id: Any,
        parent_record_changed: bool,
        nested_entries: list[ActivityEntry],
    ) -> None:
        entry = self._make_entry(
            schema.name,
            action,
            full_record,
            delta,
            row_id,
            parent_id=None,
            parent_changed=parent_record_changed,
            identifier=self.find_record_identifier(schema, full_record),
        )
        await self._activity_log.append(entry)
        # Nested entries only point at the parent once the parent entry is stored
        await self._activity_log.append_many([nested.with_parent(row_id) for nested in nested_entries])

    def find_record_identifier(self, schema: TableSchema, full_record: Mapping[str, Any]) -> Any:
        """Pick the value that best names a record in the activity log.

        Uses the display column when one is declared, otherwise the first
        stored column that is not a system column.
        """
        column = self._schemas.get_display_column(schema) or schema.first_non_system_column()
        if column is None:
            return None
        return full_record.get(column.id)


def _is_active(value: Any) -> bool:
    # Form and JSON payloads send flags as strings
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false")
    return bool(value)
