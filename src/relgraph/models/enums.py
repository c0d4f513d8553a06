from enum import StrEnum


class RelationshipKind(StrEnum):
    NONE = "none"
    MANY_TO_ONE = "many_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"
    ALIAS = "alias"


class ActivityMode(StrEnum):
    DISABLED = "disabled"
    STANDALONE = "standalone"
    NESTED_CHILD = "nested_child"


class ActivityAction(StrEnum):
    ADD = "add"
    UPDATE = "update"


class ActiveState(StrEnum):
    TRASH = "trash"
    ACTIVE = "active"
    INACTIVE = "inactive"


ALIAS_KINDS = frozenset(
    {
        RelationshipKind.ONE_TO_MANY,
        RelationshipKind.MANY_TO_MANY,
        RelationshipKind.ALIAS,
    }
)

TO_MANY_KINDS = frozenset({RelationshipKind.ONE_TO_MANY, RelationshipKind.MANY_TO_MANY})
