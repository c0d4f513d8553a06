import pytest

from relgraph.models.records import StoredRow
from relgraph.models.schema import ColumnDescriptor
from relgraph.services.change_detector import contains_non_primary_key_data


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        ({}, False),
        ({"id": 1}, False),
        ({"id": 1, "name": "Alice"}, True),
        ({"name": "Alice"}, True),
        ({"id": 1, "name": None}, True),
        ({"id": 1, "name": ""}, True),
    ],
)
def test_mappings(record: dict, expected: bool) -> None:
    assert contains_non_primary_key_data(record) is expected


def test_custom_primary_key() -> None:
    assert contains_non_primary_key_data({"uid": 3}, primary_key="uid") is False
    assert contains_non_primary_key_data({"id": 3}, primary_key="uid") is True


def test_stored_row_uses_its_data() -> None:
    assert contains_non_primary_key_data(StoredRow(table="tags", data={"id": 1})) is False
    assert contains_non_primary_key_data(StoredRow(table="tags", data={"id": 1, "label": "x"})) is True


def test_pydantic_models_are_dumped() -> None:
    assert contains_non_primary_key_data(ColumnDescriptor(id="name")) is True


def test_rejects_other_values() -> None:
    with pytest.raises(TypeError):
        contains_non_primary_key_data(["id"])
