from __future__ import annotations

import pytest

from models import PageInfo, TextItem
from text_matcher import (
    dimension_patterns,
    find_dimension_position,
    find_gdt_position,
    find_note_position,
    find_text_position,
    format_number,
    levenshtein_distance,
    normalize_text,
    similarity,
)


def _page(number, *items, width=612.0, height=792.0):
    text_items = [
        TextItem(text=text, page_number=number, x=x, y=y, width=w, height=h)
        for text, x, y, w, h in items
    ]
    return PageInfo(page_number=number, width=width, height=height, text_items=text_items)


def test_exact_match_returns_full_confidence_and_box():
    pages = [_page(1, ("NOTES", 10, 10, 30, 10), ("10.5mm", 100, 200, 40, 10))]

    match = find_text_position("10.5mm", pages)

    assert match is not None
    assert match.confidence == 1.0
    assert (match.x, match.y, match.width, match.height) == (100, 200, 40, 10)
    assert match.page == 0
    assert match.text == "10.5mm"


def test_exact_match_is_case_and_whitespace_insensitive():
    pages = [_page(1, ("Break   ALL edges!", 5, 5, 80, 10))]

    match = find_text_position("break all edges", pages)

    assert match.confidence == 1.0


def test_first_exact_occurrence_wins():
    pages = [
        _page(1, ("25.0", 10, 10, 20, 10)),
        _page(2, ("25.0", 300, 300, 20, 10)),
    ]

    match = find_text_position("25.0", pages)

    assert match.page == 0
    assert match.x == 10


def test_returns_none_below_min_confidence():
    pages = [_page(1, ("MATERIAL: 6061-T6", 10, 10, 80, 10))]

    assert find_text_position("surface finish", pages, min_confidence=0.8) is None


def test_returns_none_for_empty_index():
    assert find_text_position("anything", []) is None


def test_substring_confidence_is_length_ratio():
    pages = [_page(1, ("10.5 ±0.1", 100, 200, 40, 10))]

    match = find_text_position("10.5", pages, min_confidence=0.4)

    assert match.confidence == pytest.approx(4 / 9)


def test_best_match_is_tracked_across_pages():
    pages = [
        _page(1, ("abcxyz", 1, 1, 10, 10)),
        _page(2, ("abcdeg", 2, 2, 10, 10)),
    ]

    match = find_text_position("abcdef", pages, min_confidence=0.4)

    assert match.page == 1
    assert match.confidence == pytest.approx(5 / 6)


def test_equal_confidence_keeps_earlier_item():
    pages = [
        _page(1, ("abcdeg", 1, 1, 10, 10)),
        _page(2, ("abcdeh", 2, 2, 10, 10)),
    ]

    match = find_text_position("abcdef", pages, min_confidence=0.4)

    assert match.page == 0


def test_levenshtein_distance():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("abc", "abc") == 0


def test_similarity_bounds():
    assert similarity("abc", "abc") == 1.0
    assert similarity("", "") == 1.0
    assert similarity("abc", "xyz") == 0.0


def test_normalize_keeps_drawing_symbols_and_decimal_point():
    assert normalize_text("  Ø10.5   MM! ") == "ø10.5 mm"
    assert normalize_text("45°  ±0.5") == "45° ±0.5"
    assert normalize_text("(R2)") == "r2"


def test_format_number_drops_integral_decimal():
    assert format_number(10.0) == "10"
    assert format_number(10.5) == "10.5"
    assert format_number(0.1) == "0.1"
    assert format_number(3) == "3"


def test_dimension_patterns_order():
    assert dimension_patterns("Bore depth", 10.5, 0.1, 0.2) == [
        "10.5 ±0.1",
        "10.5±0.1",
        "10.5 +0.1 -0.2",
        "10.5",
        "Bore depth",
    ]


def test_dimension_patterns_without_tolerances_or_nominal():
    assert dimension_patterns("Length", 10.0, None, 0.1) == ["10", "Length"]
    assert dimension_patterns("Length", None, 0.1, 0.1) == ["Length"]
    assert dimension_patterns("Length", 0, 0.1, 0.1) == ["Length"]


def test_dimension_matcher_prefers_toleranced_form():
    pages = [_page(1, ("10.5", 10, 10, 20, 10), ("10.5 ±0.1", 100, 200, 40, 10))]

    match = find_dimension_position("Bore", 10.5, 0.1, 0.1, pages)

    assert match.text == "10.5 ±0.1"
    assert match.confidence == 1.0


def test_dimension_matcher_falls_back_to_description():
    pages = [_page(1, ("THREAD DEPTH", 50, 60, 70, 10))]

    match = find_dimension_position("Thread depth", 999.0, None, None, pages)

    assert match.text == "THREAD DEPTH"


def test_gdt_matcher_tries_symbol_text_first():
    pages = [_page(1, ("POSITION 0.05 A B", 30, 40, 90, 10), ("flatness", 5, 5, 40, 10))]

    match = find_gdt_position("Flatness of face", "flatness", pages)

    assert match.text == "flatness"


def test_note_matcher_requires_high_confidence():
    pages = [_page(1, ("BREAK ALL SHARP EDGES.", 30, 700, 150, 10))]

    assert find_note_position("Break all sharp edges", pages).confidence >= 0.8
    assert find_note_position("Deburr holes", pages) is None
