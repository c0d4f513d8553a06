from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from relgraph.models.base import ensure_identifier

ALL_ENTRIES = -1


class EntriesParams(BaseModel):
    """Listing parameters with the defaults used when a caller omits them."""

    order_by: str = "id"
    order_direction: str = "DESC"
    per_page: int = Field(default=500, gt=0)
    current_page: int = Field(default=0, ge=0)
    id: int = ALL_ENTRIES
    search: str | None = None
    active: list[int] | None = None
    columns_visible: list[str] | None = None

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("order_by", mode="before")
    @classmethod
    def _normalize_order_by(cls, value: Any) -> str:
        return ensure_identifier(value, "order_by")

    @field_validator("order_direction", mode="before")
    @classmethod
    def _normalize_direction(cls, value: Any) -> str:
        direction = str(value).strip().upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError("order_direction must be ASC or DESC")
        return direction

    @field_validator("search", mode="before")
    @classmethod
    def _normalize_search(cls, value: Any) -> str | None:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("active", mode="before")
    @classmethod
    def _split_active(cls, value: Any) -> list[int] | None:
        # "1,2" and 1 are both accepted
        if value is None:
            return None
        if isinstance(value, str):
            return [int(part) for part in value.split(",") if part.strip()]
        if isinstance(value, int):
            return [value]
        return list(value)

    @property
    def offset(self) -> int:
        return self.current_page * self.per_page

    @property
    def is_listing(self) -> bool:
        return self.id == ALL_ENTRIES


class EntriesPage(BaseModel):
    rows: list[dict[str, Any]] = Field(default_factory=list)
    total: int = Field(ge=0)
    counts: dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


__all__ = ["ALL_ENTRIES", "EntriesPage", "EntriesParams"]
