"""Fuzzy matching of characteristic text against extracted PDF text items."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from models import PageInfo, TextItem, TextMatch

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.7
DIMENSION_MIN_CONFIDENCE = 0.6
GDT_MIN_CONFIDENCE = 0.7
NOTE_MIN_CONFIDENCE = 0.8

_WHITESPACE_RE = re.compile(r"\s+")
# Word characters, whitespace, decimal point and the drawing symbols survive
_STRIP_RE = re.compile(r"[^\w\s.±°Ø∅]")


def normalize_text(text: str) -> str:
    """Lowercase, collapse whitespace and drop punctuation for comparison."""
    text = _WHITESPACE_RE.sub(" ", text.lower())
    return _STRIP_RE.sub("", text).strip()


def levenshtein_distance(str1: str, str2: str) -> int:
    """Classic insert/delete/substitute edit distance."""
    previous = list(range(len(str1) + 1))
    for i, ch2 in enumerate(str2, start=1):
        current = [i]
        for j, ch1 in enumerate(str1, start=1):
            if ch1 == ch2:
                current.append(previous[j - 1])
            else:
                current.append(min(
                    previous[j - 1] + 1,  # substitution
                    current[j - 1] + 1,   # insertion
                    previous[j] + 1,      # deletion
                ))
        previous = current
    return previous[len(str1)]


def similarity(str1: str, str2: str) -> float:
    """Normalized Levenshtein similarity in [0, 1]; two empty strings score 1.0."""
    longest = max(len(str1), len(str2))
    if longest == 0:
        return 1.0
    return (longest - levenshtein_distance(str1, str2)) / longest


def _score(clean_search: str, clean_item: str) -> float:
    if clean_item in clean_search or clean_search in clean_item:
        shorter, longer = sorted((len(clean_search), len(clean_item)))
        return shorter / longer
    return similarity(clean_search, clean_item)


def _to_match(item: TextItem, page: PageInfo, confidence: float) -> TextMatch:
    return TextMatch(
        text=item.text,
        page=page.page_number - 1,
        x=item.x,
        y=item.y,
        width=item.width,
        height=item.height,
        confidence=confidence,
    )


def find_text_position(
    search_text: str,
    pages: Sequence[PageInfo],
    min_confidence: float = DEFAULT_MIN_CONFIDENCE
) -> Optional[TextMatch]:
    """
    Find the text item that best matches ``search_text``.

    Pages are scanned in order, then items in order. An exact match after
    normalization is returned at once with confidence 1.0. Otherwise the
    highest-scoring item over the whole document wins, where containment
    scores shorter/longer length and anything else scores by edit
    distance. Ties keep the earlier item.

    Args:
        search_text: Text to look for
        pages: Extracted pages
        min_confidence: Lowest confidence worth returning

    Returns:
        Best TextMatch, or None if nothing reaches ``min_confidence``
    """
    clean_search = normalize_text(search_text)
    best_match: Optional[TextMatch] = None
    best_confidence = 0.0

    for page in pages:
        for item in page.text_items:
            clean_item = normalize_text(item.text)

            if clean_item == clean_search:
                return _to_match(item, page, 1.0)

            confidence = _score(clean_search, clean_item)
            if confidence > best_confidence and confidence >= min_confidence:
                best_confidence = confidence
                best_match = _to_match(item, page, confidence)

    return best_match


def format_number(value: float) -> str:
    """Render a number the way it is printed on drawings (10.0 -> "10")."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def dimension_patterns(
    description: str,
    nominal_value: Optional[float],
    tolerance_plus: Optional[float],
    tolerance_minus: Optional[float]
) -> List[str]:
    """Candidate query strings for a dimension, most specific first."""
    patterns = []
    if nominal_value:
        nominal = format_number(nominal_value)
        if tolerance_plus and tolerance_minus:
            plus = format_number(tolerance_plus)
            minus = format_number(tolerance_minus)
            patterns.append(f"{nominal} ±{plus}")
            patterns.append(f"{nominal}±{plus}")
            patterns.append(f"{nominal} +{plus} -{minus}")
        patterns.append(nominal)
    patterns.append(description)
    return patterns


def _first_match(
    patterns: Sequence[str],
    pages: Sequence[PageInfo],
    min_confidence: float
) -> Optional[TextMatch]:
    for pattern in patterns:
        match = find_text_position(pattern, pages, min_confidence)
        if match is not None:
            logger.debug(f"Pattern {pattern!r} matched {match.text!r} ({match.confidence:.2f})")
            return match
    return None


def find_dimension_position(
    description: str,
    nominal_value: Optional[float],
    tolerance_plus: Optional[float],
    tolerance_minus: Optional[float],
    pages: Sequence[PageInfo]
) -> Optional[TextMatch]:
    """Locate a dimension by its toleranced forms, bare nominal, then description."""
    patterns = dimension_patterns(description, nominal_value, tolerance_plus, tolerance_minus)
    return _first_match(patterns, pages, DIMENSION_MIN_CONFIDENCE)


def find_gdt_position(
    description: str,
    gdt_type: Optional[str],
    pages: Sequence[PageInfo]
) -> Optional[TextMatch]:
    """Locate a GD&T callout by its symbol text, then its description."""
    patterns = [gdt_type] if gdt_type else []
    patterns.append(description)
    return _first_match(patterns, pages, GDT_MIN_CONFIDENCE)


def find_note_position(description: str, pages: Sequence[PageInfo]) -> Optional[TextMatch]:
    # Notes usually appear verbatim
    return _first_match([description], pages, NOTE_MIN_CONFIDENCE)
