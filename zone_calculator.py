"""Drawing zone codes (columns A-H, rows 1-8) for balloon positions."""

from __future__ import annotations

import logging
import math

from exceptions import ValidationError

logger = logging.getLogger(__name__)

ZONE_COLUMNS = ("A", "B", "C", "D", "E", "F", "G", "H")
ZONE_ROWS = 8


def validate_page_dimensions(page_width: float, page_height: float) -> None:
    """
    Check that both page dimensions are finite and positive.

    Raises:
        ValidationError: If either dimension is missing, non-finite or <= 0
    """
    for value in (page_width, page_height):
        if value is None or not math.isfinite(value) or value <= 0:
            error_msg = (
                f"invalid page dimensions: width={page_width}, height={page_height}"
            )
            logger.error(error_msg)
            raise ValidationError(error_msg)


def zone_of(x: float, y: float, page_width: float, page_height: float) -> str:
    """
    Compute the drawing zone for a point.

    Columns run A-H left to right; rows run 1-8 bottom to top, so the
    top-left-origin y is inverted before bucketing. Points outside the page
    fall into the nearest edge zone.

    Args:
        x: Horizontal position in page points
        y: Vertical position in page points (top-left origin)
        page_width: Page width in points
        page_height: Page height in points

    Returns:
        Zone code such as "A-2"

    Raises:
        ValidationError: If the page dimensions are invalid
    """
    validate_page_dimensions(page_width, page_height)
    if not (math.isfinite(x) and math.isfinite(y)):
        raise ValidationError(f"invalid zone position: x={x}, y={y}")

    column_width = page_width / len(ZONE_COLUMNS)
    column_index = min(max(math.floor(x / column_width), 0), len(ZONE_COLUMNS) - 1)

    row_height = page_height / ZONE_ROWS
    row_index = min(max(math.floor((page_height - y) / row_height), 0), ZONE_ROWS - 1)

    return f"{ZONE_COLUMNS[column_index]}-{row_index + 1}"
