from __future__ import annotations

import math

import pytest

from exceptions import ValidationError
from zone_calculator import ZONE_COLUMNS, zone_of

ALL_ZONES = {f"{c}-{r}" for c in ZONE_COLUMNS for r in range(1, 9)}


def _column(zone):
    return ZONE_COLUMNS.index(zone.split("-")[0])


def _row(zone):
    return int(zone.split("-")[1])


def test_page_corners():
    assert zone_of(0, 0, 800, 800) == "A-8"
    assert zone_of(800, 800, 800, 800) == "H-1"
    assert zone_of(0, 800, 800, 800) == "A-1"
    assert zone_of(800, 0, 800, 800) == "H-8"


def test_interior_point():
    # x=150 -> column B, y=650 -> 150 up from the bottom -> row 2
    assert zone_of(150, 650, 800, 800) == "B-2"


def test_points_outside_page_clamp_to_edge_zone():
    assert zone_of(-50, 900, 800, 800) == "A-1"
    assert zone_of(1200, -10, 800, 800) == "H-8"


def test_grid_is_monotonic_and_closed():
    width, height = 1224.0, 792.0
    steps = 20
    for i in range(steps + 1):
        previous_column = -1
        for j in range(steps + 1):
            x = width * j / steps
            y = height * i / steps
            zone = zone_of(x, y, width, height)
            assert zone in ALL_ZONES
            assert _column(zone) >= previous_column
            previous_column = _column(zone)

    for j in range(steps + 1):
        previous_row = 9
        for i in range(steps + 1):
            zone = zone_of(width * j / steps, height * i / steps, width, height)
            assert _row(zone) <= previous_row
            previous_row = _row(zone)


@pytest.mark.parametrize("width,height", [
    (0, 792),
    (612, math.nan),
    (math.inf, 792),
    (-612, 792),
    (612, -1),
    (612, 0),
])
def test_invalid_page_dimensions(width, height):
    with pytest.raises(ValidationError, match="invalid page dimensions"):
        zone_of(10, 10, width, height)
