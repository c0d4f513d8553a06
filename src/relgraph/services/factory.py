"""Factory functions for creating and wiring relgraph services.

Provides a production factory that persists to a SQLite file and a test
factory that uses an in-memory database for fast, isolated testing.
"""

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from relgraph.services.access import AccessPolicy, PermissiveAccessPolicy, ReadBlacklistPolicy, StaticActorProvider
from relgraph.services.activity_log import ActivityLogger
from relgraph.services.cascade_writer import CascadeWriter
from relgraph.services.custom_fields import CustomFieldHandler, CustomFieldRegistry
from relgraph.services.entries import EntriesService
from relgraph.services.hydrator import RelationshipHydrator
from relgraph.services.row_store import RowStore, create_async_engine_from_path
from relgraph.services.schema_registry import SchemaRegistry


def create_entries_service(
    db_path: Path,
    schema_path: Path | None = None,
    registry: SchemaRegistry | None = None,
    actor_id: Any = None,
    read_blacklist: Mapping[str, Iterable[str]] | None = None,
    custom_fields: Mapping[str, CustomFieldHandler] | None = None,
) -> EntriesService:
    """Create a production EntriesService backed by a SQLite file.

    Args:
        db_path: SQLite database file; parent directories are created.
        schema_path: JSON schema document to load when ``registry`` is not given.
        registry: Pre-built schema registry.
        actor_id: User id recorded on activity entries.
        read_blacklist: Per-table columns hidden from readers.
        custom_fields: Custom field handlers keyed by UI hint.

    Returns:
        Configured EntriesService ready for use.

    Raises:
        ValueError: If neither ``schema_path`` nor ``registry`` is given.
    """
    logger = structlog.get_logger(__name__)

    if registry is None:
        if schema_path is None:
            raise ValueError("either schema_path or registry is required")
        registry = SchemaRegistry.from_file(schema_path, logger=logger)

    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_async_engine_from_path(str(db_path))

    return _wire_entries_service(
        engine=engine,
        registry=registry,
        actor_id=actor_id,
        read_blacklist=read_blacklist,
        custom_fields=custom_fields,
        logger=logger,
    )


def create_test_entries_service(
    registry: SchemaRegistry,
    actor_id: Any = 1,
    read_blacklist: Mapping[str, Iterable[str]] | None = None,
    custom_fields: Mapping[str, CustomFieldHandler] | None = None,
) -> EntriesService:
    """Create an EntriesService with in-memory storage for testing.

    Each call creates an independent database, so tests don't interfere.
    Tables still need to be created with ``initialize_schema``.
    """
    logger = structlog.get_logger(__name__)
    engine = create_async_engine_from_path(":memory:")

    return _wire_entries_service(
        engine=engine,
        registry=registry,
        actor_id=actor_id,
        read_blacklist=read_blacklist,
        custom_fields=custom_fields,
        logger=logger,
    )


def _wire_entries_service(
    engine: AsyncEngine,
    registry: SchemaRegistry,
    actor_id: Any,
    read_blacklist: Mapping[str, Iterable[str]] | None,
    custom_fields: Mapping[str, CustomFieldHandler] | None,
    logger: structlog.stdlib.BoundLogger,
) -> EntriesService:
    actor = StaticActorProvider(actor_id)
    access: AccessPolicy
    if read_blacklist:
        access = ReadBlacklistPolicy(registry, read_blacklist)
    else:
        access = PermissiveAccessPolicy(registry)

    row_store = RowStore(engine=engine, schemas=registry, logger=logger)
    activity_log = ActivityLogger(engine=engine, logger=logger)

    writer = CascadeWriter(
        schemas=registry,
        row_store=row_store,
        activity_log=activity_log,
        actor=actor,
        custom_fields=CustomFieldRegistry(custom_fields, logger=logger),
        logger=logger,
    )

    hydrator = RelationshipHydrator(
        schemas=registry,
        row_store=row_store,
        access=access,
        actor=actor,
        logger=logger,
    )

    return EntriesService(
        schemas=registry,
        row_store=row_store,
        writer=writer,
        hydrator=hydrator,
        access=access,
        actor=actor,
        logger=logger,
    )
