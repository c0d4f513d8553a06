"""Read permissions and current-actor resolution consumed by the engines."""

from collections.abc import Mapping, Iterable
from typing import Any, Protocol

from relgraph.services.schema_registry import SchemaProvider


class AccessPolicy(Protocol):
    def visible_columns(self, table_name: str, user_id: Any) -> list[str]: ...


class ActorProvider(Protocol):
    def current_user_id(self) -> Any: ...


class PermissiveAccessPolicy:
    """Every stored column of every table is readable."""

    def __init__(self, schemas: SchemaProvider) -> None:
        self._schemas = schemas

    def visible_columns(self, table_name: str, user_id: Any) -> list[str]:
        return self._schemas.get_schema(table_name).column_names


class ReadBlacklistPolicy:
    """Hides blacklisted columns per table from every reader.

    The primary key is always visible; hydration and listing key their
    results by it.
    """

    def __init__(
        self,
        schemas: SchemaProvider,
        blacklist: Mapping[str, Iterable[str]] | None = None,
    ) -> None:
        self._schemas = schemas
        self._blacklist = {table: frozenset(columns) for table, columns in (blacklist or {}).items()}

    def visible_columns(self, table_name: str, user_id: Any) -> list[str]:
        schema = self._schemas.get_schema(table_name)
        hidden = self._blacklist.get(table_name, frozenset())
        return [
            name
            for name in schema.column_names
            if name == schema.primary_key or name not in hidden
        ]


class StaticActorProvider:
    def __init__(self, user_id: Any = None) -> None:
        self._user_id = user_id

    def current_user_id(self) -> Any:
        return self._user_id
