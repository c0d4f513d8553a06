"""Activity log persistence.

Uses SQLAlchemy's native async support with aiosqlite, the same way row
storage does, so activity and data can share one engine.
"""

from collections.abc import Sequence
from datetime import timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlmodel import SQLModel

from relgraph.models.activity import ActivityEntry
from relgraph.models.enums import ActivityAction
from relgraph.models.tables import ActivityRecord


class ActivityLogger:
    """Persists activity entries to the ``activity`` table via SQLModel.

    Accepts an AsyncEngine via dependency injection to support both
    persistent and in-memory databases for testing.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)

    async def initialize_schema(self) -> None:
        """Create the activity table if it doesn't exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all, tables=[ActivityRecord.__table__])
        self._logger.info("activity_log_initialized")

    async def append(self, entry: ActivityEntry) -> int:
        """Persist one entry.

        Returns:
            The id of the stored activity row.
        """
        record = self._entry_to_record(entry)
        async with AsyncSession(self._engine) as session:
            session.add(record)
            await session.commit()
            await session.refresh(record)
        self._logger.debug(
            "activity_logged",
            table_name=entry.table_name,
            action=entry.action.value,
            row_id=entry.row_id,
            parent_id=entry.parent_id,
        )
        return record.id

    async def append_many(self, entries: Sequence[ActivityEntry]) -> None:
        """Persist several entries in one transaction."""
        if not entries:
            return

        records = [self._entry_to_record(entry) for entry in entries]
        async with AsyncSession(self._engine) as session:
            session.add_all(records)
            await session.commit()
        self._logger.debug(
            "activity_batch_logged",
            parent_id=entries[0].parent_id,
            entry_count=len(entries),
        )

    async def list_for_row(self, table_name: str, row_id: int) -> list[ActivityEntry]:
        """Retrieve entries recorded against one row, oldest first."""
        statement = (
            select(ActivityRecord)
            .where(ActivityRecord.table_name == table_name, ActivityRecord.row_id == row_id)
            .order_by(ActivityRecord.id)
        )
        return await self._select_entries(statement)

    async def list_children(self, parent_id: int) -> list[ActivityEntry]:
        """Retrieve nested entries attached to a top-level row, oldest first."""
        statement = select(ActivityRecord).where(ActivityRecord.parent_id == parent_id).order_by(ActivityRecord.id)
        return await self._select_entries(statement)

    async def list_all(self) -> list[ActivityEntry]:
        return await self._select_entries(select(ActivityRecord).order_by(ActivityRecord.id))

    async def _select_entries(self, statement) -> list[ActivityEntry]:
        async with AsyncSession(self._engine) as session:
            result = await session.execute(statement)
            return [self._record_to_entry(record) for record in result.scalars().all()]

    def _entry_to_record(self, entry: ActivityEntry) -> ActivityRecord:
        """Convert domain ActivityEntry to SQLModel record."""
        data = entry.model_dump(mode="json")
        data["timestamp"] = entry.timestamp
        data["user"] = None if entry.user is None else str(entry.user)
        return ActivityRecord.model_validate(data)

    def _record_to_entry(self, record: ActivityRecord) -> ActivityEntry:
        """Convert SQLModel record to domain ActivityEntry.

        SQLite doesn't preserve timezone info, so we restore UTC timezone.
        """
        data = record.model_dump(exclude={"id"})
        data["action"] = ActivityAction(data["action"])
        if data["timestamp"].tzinfo is None:
            data["timestamp"] = data["timestamp"].replace(tzinfo=timezone.utc)
        return ActivityEntry.model_validate(data)
