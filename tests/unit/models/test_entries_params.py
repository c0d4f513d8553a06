import pytest
from pydantic import ValidationError

from relgraph.models.entries import ALL_ENTRIES, EntriesPage, EntriesParams


def test_entries_params_defaults() -> None:
    params = EntriesParams()

    assert params.order_by == "id"
    assert params.order_direction == "DESC"
    assert params.per_page == 500
    assert params.current_page == 0
    assert params.id == ALL_ENTRIES
    assert params.is_listing
    assert params.offset == 0


def test_offset_is_page_times_page_size() -> None:
    assert EntriesParams(per_page=20, current_page=3).offset == 60


def test_direction_is_normalized() -> None:
    assert EntriesParams(order_direction=" asc ").order_direction == "ASC"


def test_invalid_direction_is_rejected() -> None:
    with pytest.raises(ValidationError):
        EntriesParams(order_direction="sideways")


@pytest.mark.parametrize(("raw", "expected"), [("1,2", [1, 2]), (1, [1]), ([0, 2], [0, 2]), (None, None)])
def test_active_accepts_several_shapes(raw, expected) -> None:
    assert EntriesParams(active=raw).active == expected


def test_blank_search_becomes_none() -> None:
    assert EntriesParams(search="   ").search is None


def test_single_id_is_not_a_listing() -> None:
    assert not EntriesParams(id=5).is_listing


def test_page_size_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        EntriesParams(per_page=0)


def test_entries_page_rejects_negative_total() -> None:
    with pytest.raises(ValidationError):
        EntriesPage(rows=[], total=-1)
