from __future__ import annotations

import math

import pytest

from leader_calculator import MIN_LEADER_DISTANCE, leader_offset


def test_default_direction_is_right_down():
    assert leader_offset(100, 100) == (130, 115)


@pytest.mark.parametrize("horizontal", ["left", "right"])
@pytest.mark.parametrize("vertical", ["up", "down"])
def test_leader_is_never_too_close(horizontal, vertical):
    for x, y in [(0, 0), (100.5, 200.25), (-40, 900)]:
        lx, ly = leader_offset(x, y, horizontal, vertical)
        assert math.hypot(lx - x, ly - y) >= MIN_LEADER_DISTANCE


def test_direction_hints_pick_quadrant():
    assert leader_offset(50, 50, "left", "up") == (20, 35)
    assert leader_offset(50, 50, "left", "down") == (20, 65)


def test_unknown_direction_rejected():
    with pytest.raises(ValueError):
        leader_offset(0, 0, "sideways")
