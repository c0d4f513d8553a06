from relgraph.models.activity import ActivityEntry
from relgraph.models.entries import EntriesPage, EntriesParams
from relgraph.models.enums import ActiveState, ActivityAction, ActivityMode, RelationshipKind
from relgraph.models.records import CascadeContext, StoredRow
from relgraph.models.schema import ColumnDescriptor, SchemaDocument, TableSchema

__all__ = [
    "ActivityEntry",
    "ActivityAction",
    "ActivityMode",
    "ActiveState",
    "CascadeContext",
    "ColumnDescriptor",
    "EntriesPage",
    "EntriesParams",
    "RelationshipKind",
    "SchemaDocument",
    "StoredRow",
    "TableSchema",
]
