from __future__ import annotations

import pytest

from models import PageInfo, TextItem
from overlap_filter import OverlapFilter


def _item(text, x, y, w, h):
    return TextItem(text=text, page_number=1, x=x, y=y, width=w, height=h)


def test_coverage_ratio_uses_smaller_box():
    small = _item("A", 10, 10, 10, 10)
    large = _item("B", 0, 0, 100, 100)

    assert OverlapFilter().calculate_coverage_ratio(small, large) == pytest.approx(1.0)


def test_disjoint_items_do_not_overlap():
    items = [_item("A", 0, 0, 10, 10), _item("B", 50, 50, 10, 10)]

    assert OverlapFilter().detect_overlaps(items) == []


def test_keep_largest_drops_smaller_copy():
    page = PageInfo(1, 612, 792, [_item("10.5", 100, 200, 20, 10), _item("10.5 ±0.1", 100, 200, 40, 10)])

    filtered = OverlapFilter().filter_page(page, "keep_largest")

    assert [i.text for i in filtered.text_items] == ["10.5 ±0.1"]


def test_keep_first_keeps_extraction_order():
    page = PageInfo(1, 612, 792, [_item("10.5", 100, 200, 20, 10), _item("10.5 ±0.1", 100, 200, 40, 10)])

    filtered = OverlapFilter().filter_page(page, "keep_first")

    assert [i.text for i in filtered.text_items] == ["10.5"]


def test_zero_area_items_are_ignored():
    items = [_item("A", 0, 0, 0, 10), _item("B", 0, 0, 10, 10)]

    assert OverlapFilter().detect_overlaps(items) == []


def test_invalid_arguments():
    with pytest.raises(ValueError):
        OverlapFilter(overlap_threshold=1.5)
    with pytest.raises(ValueError):
        OverlapFilter().filter_page(PageInfo(1, 612, 792), "keep_last")
