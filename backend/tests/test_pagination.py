import pytest

from listings.search.pagination import Pagination, offset_for, total_pages_for


@pytest.mark.parametrize("total,size,expected", [
    (0, 9, 1),
    (1, 9, 1),
    (9, 9, 1),
    (10, 9, 2),
    (25, 9, 3),
    (27, 9, 3),
    (28, 12, 3),
])
def test_total_pages(total, size, expected):
    assert total_pages_for(total, size) == expected


def test_total_pages_rejects_non_positive_page_size():
    with pytest.raises(ValueError):
        total_pages_for(10, 0)


def test_offset():
    assert offset_for(1, 9) == 0
    assert offset_for(2, 9) == 9
    assert offset_for(3, 12) == 24


def test_middle_page():
    pagination = Pagination.compute(total_count=25, page_size=9, page=2)
    assert pagination.total_pages == 3
    assert pagination.offset == 9
    assert pagination.has_next
    assert pagination.has_previous
    assert not pagination.is_out_of_range
    assert pagination.pages == [1, 2, 3]


def test_empty_result_is_single_page():
    pagination = Pagination.compute(total_count=0, page_size=12, page=1)
    assert pagination.total_pages == 1
    assert not pagination.has_next
    assert not pagination.has_previous
    assert not pagination.is_out_of_range
    assert pagination.pages == [1]


def test_page_beyond_last_is_out_of_range():
    assert Pagination.compute(total_count=15, page_size=9, page=99).is_out_of_range
    assert Pagination.compute(total_count=0, page_size=9, page=2).is_out_of_range


def test_last_page():
    pagination = Pagination.compute(total_count=25, page_size=9, page=3)
    assert not pagination.has_next
    assert pagination.has_previous
