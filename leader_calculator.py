"""Leader line endpoints for balloons without a located target."""

from __future__ import annotations

import math
from typing import Tuple

MIN_LEADER_DISTANCE = 5.0
DEFAULT_HORIZONTAL_OFFSET = 30.0
DEFAULT_VERTICAL_OFFSET = 15.0
HORIZONTAL_GROWTH = 10.0
VERTICAL_GROWTH = 5.0


def leader_distance(x: float, y: float, leader_x: float, leader_y: float) -> float:
    return math.hypot(leader_x - x, leader_y - y)


def leader_offset(
    x: float,
    y: float,
    horizontal: str = "right",
    vertical: str = "down"
) -> Tuple[float, float]:
    """
    Compute a leader endpoint offset from a balloon centre.

    The endpoint is always at least MIN_LEADER_DISTANCE away from (x, y).

    Args:
        x: Balloon centre x
        y: Balloon centre y
        horizontal: "right" or "left"
        vertical: "down" or "up"

    Returns:
        Tuple of (leader_x, leader_y)
    """
    if horizontal not in ("left", "right"):
        raise ValueError(f"Unsupported horizontal direction: {horizontal}")
    if vertical not in ("up", "down"):
        raise ValueError(f"Unsupported vertical direction: {vertical}")

    x_sign = 1 if horizontal == "right" else -1
    y_sign = 1 if vertical == "down" else -1
    h_offset = DEFAULT_HORIZONTAL_OFFSET
    v_offset = DEFAULT_VERTICAL_OFFSET

    leader_x = x + x_sign * h_offset
    leader_y = y + y_sign * v_offset
    while leader_distance(x, y, leader_x, leader_y) < MIN_LEADER_DISTANCE:
        h_offset += HORIZONTAL_GROWTH
        v_offset += VERTICAL_GROWTH
        leader_x = x + x_sign * h_offset
        leader_y = y + y_sign * v_offset

    return leader_x, leader_y
