from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from relgraph.models.records import StoredRow


def contains_non_primary_key_data(record: Mapping[str, Any] | BaseModel, primary_key: str = "id") -> bool:
    """Does this record representation carry anything beyond its identity?

    Used to decide whether a record needs a write, above and beyond simply
    being assigned to a parent. Values are never inspected, so an explicit
    ``None`` or empty string still counts as data.
    """
    if isinstance(record, StoredRow):
        record = record.data
    elif isinstance(record, BaseModel):
        record = record.model_dump()
    elif not isinstance(record, Mapping):
        raise TypeError("record must be a mapping or a pydantic model")

    key_count = len(record)
    if primary_key in record:
        return key_count > 1
    return key_count > 0
