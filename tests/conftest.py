"""Shared schema and service fixtures.

The schema models a small contact book:

- ``people`` with a many-to-one ``company``, a one-to-many ``notes``, a
  many-to-many ``tags`` through ``people_tags`` (which has a sort column) and
  a many-to-many ``skills`` through ``people_skills`` (which carries a
  ``level`` column and no sort column).
- ``notes`` with a one-to-many ``comments``, so cascades can reach grandchildren.
- ``broken`` with relationship columns that lack required metadata.
"""

import pytest

from relgraph.models.enums import RelationshipKind
from relgraph.models.schema import ColumnDescriptor, TableSchema
from relgraph.services.entries import EntriesService
from relgraph.services.factory import create_test_entries_service
from relgraph.services.schema_registry import SchemaRegistry


def _pk() -> ColumnDescriptor:
    return ColumnDescriptor(id="id", storage_type="int")


def build_tables() -> list[TableSchema]:
    return [
        TableSchema(
            name="people",
            columns=[
                _pk(),
                ColumnDescriptor(id="name", storage_type="varchar", is_display=True),
                ColumnDescriptor(id="email", storage_type="varchar"),
                ColumnDescriptor(id="active", storage_type="tinyint"),
                ColumnDescriptor(id="score", storage_type="float"),
                ColumnDescriptor(id="born", storage_type="date"),
                ColumnDescriptor(id="avatar", storage_type="blob"),
                ColumnDescriptor(
                    id="company",
                    storage_type="int",
                    relationship_kind=RelationshipKind.MANY_TO_ONE,
                    ui="many_to_one",
                    related_table="companies",
                ),
                ColumnDescriptor(
                    id="notes",
                    relationship_kind=RelationshipKind.ONE_TO_MANY,
                    related_table="notes",
                    junction_key_right="person_id",
                ),
                ColumnDescriptor(
                    id="tags",
                    relationship_kind=RelationshipKind.MANY_TO_MANY,
                    related_table="tags",
                    junction_table="people_tags",
                    junction_key_left="person_id",
                    junction_key_right="tag_id",
                ),
                ColumnDescriptor(
                    id="skills",
                    relationship_kind=RelationshipKind.MANY_TO_MANY,
                    related_table="skills",
                    junction_table="people_skills",
                    junction_key_left="person_id",
                    junction_key_right="skill_id",
                ),
                ColumnDescriptor(id="signature", relationship_kind=RelationshipKind.ALIAS, ui="signature"),
            ],
        ),
        TableSchema(
            name="companies",
            columns=[_pk(), ColumnDescriptor(id="name", storage_type="varchar")],
        ),
        TableSchema(
            name="notes",
            columns=[
                _pk(),
                ColumnDescriptor(id="person_id", storage_type="int"),
                ColumnDescriptor(id="body", storage_type="text"),
                ColumnDescriptor(
                    id="comments",
                    relationship_kind=RelationshipKind.ONE_TO_MANY,
                    related_table="comments",
                    junction_key_right="note_id",
                ),
            ],
        ),
        TableSchema(
            name="comments",
            columns=[
                _pk(),
                ColumnDescriptor(id="note_id", storage_type="int"),
                ColumnDescriptor(id="body", storage_type="text"),
            ],
        ),
        TableSchema(
            name="tags",
            columns=[_pk(), ColumnDescriptor(id="label", storage_type="varchar")],
        ),
        TableSchema(
            name="people_tags",
            columns=[
                _pk(),
                ColumnDescriptor(id="person_id", storage_type="int"),
                ColumnDescriptor(id="tag_id", storage_type="int"),
                ColumnDescriptor(id="sort", storage_type="int"),
            ],
        ),
        TableSchema(
            name="skills",
            columns=[_pk(), ColumnDescriptor(id="name", storage_type="varchar")],
        ),
        TableSchema(
            name="people_skills",
            columns=[
                _pk(),
                ColumnDescriptor(id="person_id", storage_type="int"),
                ColumnDescriptor(id="skill_id", storage_type="int"),
                ColumnDescriptor(id="level", storage_type="varchar"),
            ],
        ),
        TableSchema(
            name="broken",
            columns=[
                _pk(),
                ColumnDescriptor(id="title", storage_type="varchar"),
                ColumnDescriptor(id="owner", storage_type="int", relationship_kind=RelationshipKind.MANY_TO_ONE),
                ColumnDescriptor(id="items", relationship_kind=RelationshipKind.ONE_TO_MANY, related_table="notes"),
                ColumnDescriptor(
                    id="links",
                    relationship_kind=RelationshipKind.MANY_TO_MANY,
                    related_table="tags",
                    junction_key_right="tag_id",
                ),
            ],
        ),
    ]


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry(build_tables())


@pytest.fixture
async def service(registry: SchemaRegistry) -> EntriesService:
    """Create an EntriesService over an initialized in-memory database."""
    service = create_test_entries_service(registry, actor_id=7)
    await service.initialize_schema(registry.tables)
    return service
