class RelgraphError(Exception):
    """Base exception for relgraph errors."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class ConfigurationError(RelgraphError):
    """Raised when schema configuration is invalid or missing."""
    pass


class RelationshipMetadataError(ConfigurationError):
    """Raised when a relationship column lacks required metadata."""

    def __init__(self, table_name: str, column_id: str, missing_keys: list[str]):
        message = (
            f"Required relationship metadata on {table_name}[{column_id}] lacks values: "
            + " ".join(missing_keys)
        )
        super().__init__(message)
        self.table_name = table_name
        self.column_id = column_id
        self.missing_keys = missing_keys


class UnknownTableError(ConfigurationError):
    """Raised when a table has no registered schema."""

    def __init__(self, table_name: str):
        super().__init__(f"No schema registered for table '{table_name}'")
        self.table_name = table_name


class CustomFieldValidationError(RelgraphError):
    """Raised when a custom field handler rejects submitted data."""

    def __init__(self, table_name: str, column_id: str, ui: str):
        super().__init__(f"Custom field validation failed for field {table_name}[{column_id}] via '{ui}'")
        self.table_name = table_name
        self.column_id = column_id
        self.ui = ui


class RecordReloadError(RelgraphError):
    """Raised when a record cannot be found right after it was written."""

    def __init__(self, table_name: str, row_id: object, record_is_new: bool):
        record_type = "new" if record_is_new else "pre-existing"
        super().__init__(
            f"Attempted to load {record_type} record from '{table_name}' post-write with empty result. "
            f"Lookup via row id: {row_id!r}"
        )
        self.table_name = table_name
        self.row_id = row_id
        self.record_is_new = record_is_new
