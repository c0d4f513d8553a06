"""Unit tests for the RelationshipHydrator."""

import pytest

from relgraph.exceptions import RelationshipMetadataError
from relgraph.models.enums import ActivityMode
from relgraph.services.entries import EntriesService
from relgraph.services.factory import create_test_entries_service
from relgraph.services.hydrator import RelationshipHydrator
from relgraph.services.schema_registry import SchemaRegistry


@pytest.fixture
def hydrator(service: EntriesService) -> RelationshipHydrator:
    return service.hydrator


async def _save(service: EntriesService, table_name: str, fragment: dict) -> int:
    row = await service.save(table_name, fragment, ActivityMode.DISABLED)
    return row.id


class TestHydrateManyToOne:
    """Tests for batched many-to-one hydration."""

    async def test_replaces_foreign_keys_with_rows(
        self, service: EntriesService, hydrator: RelationshipHydrator, registry: SchemaRegistry
    ) -> None:
        acme = await _save(service, "companies", {"name": "Acme"})
        globex = await _save(service, "companies", {"name": "Globex"})
        rows = [
            {"id": 1, "company": acme},
            {"id": 2, "company": globex},
            {"id": 3, "company": acme},
        ]

        hydrated = await hydrator.hydrate_many_to_one(registry.get_schema("people"), rows)

        assert hydrated[0]["company"] == {"id": acme, "name": "Acme"}
        assert hydrated[1]["company"] == {"id": globex, "name": "Globex"}
        assert hydrated[2]["company"] == {"id": acme, "name": "Acme"}

    async def test_dangling_reference_becomes_none(
        self, hydrator: RelationshipHydrator, registry: SchemaRegistry
    ) -> None:
        hydrated = await hydrator.hydrate_many_to_one(registry.get_schema("people"), [{"id": 1, "company": 42}])

        assert hydrated == [{"id": 1, "company": None}]

    async def test_null_reference_stays_none(self, hydrator: RelationshipHydrator, registry: SchemaRegistry) -> None:
        hydrated = await hydrator.hydrate_many_to_one(registry.get_schema("people"), [{"id": 1, "company": None}])

        assert hydrated == [{"id": 1, "company": None}]

    async def test_matches_string_keys(
        self, service: EntriesService, hydrator: RelationshipHydrator, registry: SchemaRegistry
    ) -> None:
        acme = await _save(service, "companies", {"name": "Acme"})

        hydrated = await hydrator.hydrate_many_to_one(registry.get_schema("people"), [{"id": 1, "company": str(acme)}])

        assert hydrated[0]["company"]["name"] == "Acme"

    async def test_input_rows_are_not_mutated(
        self, service: EntriesService, hydrator: RelationshipHydrator, registry: SchemaRegistry
    ) -> None:
        acme = await _save(service, "companies", {"name": "Acme"})
        rows = [{"id": 1, "company": acme}]

        await hydrator.hydrate_many_to_one(registry.get_schema("people"), rows)

        assert rows == [{"id": 1, "company": acme}]

    async def test_missing_related_table_raises(
        self, hydrator: RelationshipHydrator, registry: SchemaRegistry
    ) -> None:
        with pytest.raises(RelationshipMetadataError) as exc_info:
            await hydrator.hydrate_many_to_one(registry.get_schema("broken"), [{"id": 1, "owner": 3}])

        assert exc_info.value.column_id == "owner"


class TestLoadOneToMany:
    async def test_returns_children_in_primary_key_order(
        self, service: EntriesService, hydrator: RelationshipHydrator
    ) -> None:
        person = await _save(service, "people", {"name": "Alice", "notes": [{"body": "first"}, {"body": "second"}]})
        await _save(service, "people", {"name": "Bob", "notes": [{"body": "other"}]})

        result = await hydrator.load_one_to_many("notes", "person_id", person)

        assert [note["body"] for note in result["rows"]] == ["first", "second"]
        assert all(note["person_id"] == person for note in result["rows"])

    async def test_no_children_gives_empty_rows(self, hydrator: RelationshipHydrator) -> None:
        assert await hydrator.load_one_to_many("notes", "person_id", 99) == {"rows": []}


class TestLoadManyToMany:
    async def test_orders_by_junction_sort(self, service: EntriesService, hydrator: RelationshipHydrator) -> None:
        person = await _save(
            service,
            "people",
            {
                "name": "Alice",
                "tags": [
                    {"sort": 2, "data": {"label": "second"}},
                    {"sort": 1, "data": {"label": "first"}},
                ],
            },
        )

        result = await hydrator.load_many_to_many("tags", "people_tags", "person_id", "tag_id", person)

        assert [entry["data"]["label"] for entry in result["rows"]] == ["first", "second"]
        assert [entry["sort"] for entry in result["rows"]] == [1, 2]

    async def test_orders_by_junction_id_without_sort_column(
        self, service: EntriesService, hydrator: RelationshipHydrator
    ) -> None:
        person = await _save(
            service,
            "people",
            {"name": "Alice", "skills": [{"data": {"name": "python"}}, {"data": {"name": "sql"}}]},
        )

        result = await hydrator.load_many_to_many("skills", "people_skills", "person_id", "skill_id", person)

        assert [entry["data"]["name"] for entry in result["rows"]] == ["python", "sql"]
        assert all("sort" not in entry for entry in result["rows"])
        assert result["rows"][0]["id"] < result["rows"][1]["id"]

    async def test_entry_id_is_junction_id(self, service: EntriesService, hydrator: RelationshipHydrator) -> None:
        person = await _save(service, "people", {"name": "Alice", "tags": [{"data": {"label": "vip"}}]})
        tags = service.row_store.table("people_tags")
        junction = await service.row_store.fetch_one(tags.select())

        result = await hydrator.load_many_to_many("tags", "people_tags", "person_id", "tag_id", person)

        entry = result["rows"][0]
        assert entry["id"] == junction["id"]
        assert entry["data"]["id"] == junction["tag_id"]


class TestHydrateRow:
    async def test_fills_every_alias_column(self, service: EntriesService, hydrator: RelationshipHydrator) -> None:
        person = await _save(
            service,
            "people",
            {"name": "Alice", "notes": [{"body": "hello"}], "tags": [{"data": {"label": "vip"}}]},
        )

        hydrated = await hydrator.hydrate_row("people", {"id": person, "name": "Alice"})

        assert hydrated["notes"]["rows"][0]["body"] == "hello"
        assert hydrated["tags"]["rows"][0]["data"]["label"] == "vip"
        assert hydrated["skills"] == {"rows": []}
        assert "signature" not in hydrated

    async def test_missing_one_to_many_metadata_raises(
        self, hydrator: RelationshipHydrator, registry: SchemaRegistry
    ) -> None:
        items = registry.get_schema("broken").column("items")

        with pytest.raises(RelationshipMetadataError):
            await hydrator.hydrate_row("broken", {"id": 1}, [items])

    async def test_missing_many_to_many_metadata_raises(
        self, hydrator: RelationshipHydrator, registry: SchemaRegistry
    ) -> None:
        links = registry.get_schema("broken").column("links")

        with pytest.raises(RelationshipMetadataError):
            await hydrator.hydrate_row("broken", {"id": 1}, [links])


class TestHydrateRows:
    async def test_hydrates_to_one_and_to_many(self, service: EntriesService, hydrator: RelationshipHydrator) -> None:
        person = await service.save("people", {"name": "Alice", "company": {"name": "Acme"}, "notes": [{"body": "x"}]})

        hydrated = await hydrator.hydrate_rows("people", [person.to_dict()])

        assert hydrated[0]["company"]["name"] == "Acme"
        assert hydrated[0]["notes"]["rows"][0]["body"] == "x"


class TestVisibilityAndCoercion:
    async def test_blacklisted_columns_are_not_loaded(self, registry: SchemaRegistry) -> None:
        service = create_test_entries_service(registry, read_blacklist={"notes": ["body"], "tags": ["label"]})
        await service.initialize_schema(registry.tables)
        person = await _save(
            service,
            "people",
            {"name": "Alice", "notes": [{"body": "secret"}], "tags": [{"data": {"label": "vip"}}]},
        )

        hydrated = await service.hydrator.hydrate_row("people", {"id": person})

        note = hydrated["notes"]["rows"][0]
        assert "body" not in note
        assert set(note) == {"id", "person_id"}
        assert set(hydrated["tags"]["rows"][0]["data"]) == {"id"}

    async def test_loaded_rows_are_coerced(self, service: EntriesService, hydrator: RelationshipHydrator) -> None:
        person = await _save(service, "people", {"name": "Alice", "born": "2001-02-03", "avatar": b"hi"})

        rows = await hydrator.load_one_to_many("people", "id", person)

        assert rows["rows"][0]["born"] == "Sat, 03 Feb 2001 00:00:00"
        assert rows["rows"][0]["avatar"] == "aGk="
