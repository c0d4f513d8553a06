"""Conversion of raw storage values into richer Python values per storage type.

Every function here is total: a value that cannot be converted is returned
unchanged rather than raising.
"""

import base64
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any

from relgraph.models.schema import ColumnDescriptor

INTEGER_TYPES = frozenset({"int", "integer", "tinyint", "smallint", "mediumint", "bigint", "long", "year"})
FLOAT_TYPES = frozenset({"float", "double", "real", "decimal"})
BLOB_TYPES = frozenset({"blob", "tinyblob", "mediumblob", "longblob", "binary", "varbinary"})
DATE_TYPES = frozenset({"date", "datetime", "timestamp"})

ZERO_DATES = frozenset({"0000-00-00", "0000-00-00 00:00:00"})
DATE_FORMAT = "%a, %d %b %Y %H:%M:%S"


def coerce(raw_value: Any, storage_type: str | None = None) -> Any:
    """Cast a raw storage value to the Python type implied by its storage type."""
    if raw_value is None or not storage_type:
        return raw_value

    storage_type = storage_type.lower()
    if storage_type in INTEGER_TYPES:
        return _to_int(raw_value)
    if storage_type in FLOAT_TYPES:
        return _to_float(raw_value)
    if storage_type in BLOB_TYPES:
        return _to_base64(raw_value)
    if storage_type in DATE_TYPES:
        return _to_formatted_date(raw_value)
    return raw_value


def coerce_row(row: Mapping[str, Any], columns: Iterable[ColumnDescriptor]) -> dict[str, Any]:
    """Coerce each value of ``row`` whose column appears in ``columns``."""
    coerced = dict(row)
    for column in columns:
        if column.id in coerced:
            coerced[column.id] = coerce(coerced[column.id], column.storage_type)
    return coerced


def _to_int(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return value


def _to_float(value: Any) -> Any:
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


def _to_base64(value: Any) -> Any:
    if isinstance(value, str):
        value = value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


def _to_formatted_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day).strftime(DATE_FORMAT)
    if not isinstance(value, str):
        return value

    text = value.strip()
    if not text or text in ZERO_DATES:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return value
    return parsed.strftime(DATE_FORMAT)
