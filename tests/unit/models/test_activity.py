from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from relgraph.models.activity import ActivityEntry, log_type_for_table
from relgraph.models.enums import ActivityAction


def _make_entry(**overrides) -> ActivityEntry:
    values = {
        "table_name": "people",
        "action": ActivityAction.ADD,
        "timestamp": datetime.now(timezone.utc),
        "row_id": 1,
    }
    values.update(overrides)
    return ActivityEntry(**values)


def test_activity_entry_has_expected_defaults() -> None:
    entry = _make_entry()

    assert entry.schema_version == ActivityEntry.SCHEMA_VERSION
    assert entry.type == "ENTRY"
    assert entry.data == {}
    assert entry.delta == {}
    assert entry.parent_id is None
    assert entry.to_record()["schema_version"] == ActivityEntry.SCHEMA_VERSION


def test_activity_entry_requires_timezone_aware_timestamp() -> None:
    with pytest.raises(ValidationError):
        _make_entry(timestamp=datetime.now())


def test_activity_entry_stringifies_identifier() -> None:
    assert _make_entry(identifier=42).identifier == "42"


def test_activity_entry_rejects_non_mapping_snapshot() -> None:
    with pytest.raises(ValidationError):
        _make_entry(data=["not", "a", "mapping"])


def test_activity_entry_is_frozen() -> None:
    entry = _make_entry()

    with pytest.raises(ValidationError):
        entry.row_id = 2


def test_with_parent_returns_attached_copy() -> None:
    entry = _make_entry()

    attached = entry.with_parent(9)

    assert attached.parent_id == 9
    assert entry.parent_id is None


def test_activity_entry_record_round_trip() -> None:
    entry = _make_entry(data={"name": "Alice"}, identifier="Alice", parent_changed=True)

    restored = ActivityEntry.from_record(entry.to_record())

    assert restored == entry


@pytest.mark.parametrize(
    ("table_name", "expected"),
    [
        ("directus_media", "MEDIA"),
        ("directus_settings", "SETTINGS"),
        ("directus_ui", "UI"),
        ("people", "ENTRY"),
    ],
)
def test_log_type_for_table(table_name: str, expected: str) -> None:
    assert log_type_for_table(table_name) == expected
