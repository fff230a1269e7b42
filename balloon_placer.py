"""Collision-aware balloon placement using Shapely geometry."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from shapely.geometry import LineString, Point, box
from shapely.geometry.base import BaseGeometry

from models import Box, Placement, PlacedBalloon, TextItem
from zone_calculator import validate_page_dimensions

logger = logging.getLogger(__name__)

# Candidate offsets around the target text
MIN_TEXT_OFFSET = 15.0
PREFERRED_TEXT_OFFSET = 35.0
ABOVE_BELOW_SHIFT = 10.0
DIAGONAL_SHIFT = 20.0

# Clearances
BALLOON_GAP = 5.0
TEXT_PADDING = 5.0
LEADER_CLEARANCE = 3.0

# Page regions kept free of balloons
PAGE_MARGIN = 30.0
BORDER_MARGIN = 60.0
TITLE_BLOCK_HEIGHT = 120.0

# Vertical search when every candidate is blocked
PERTURBATION_STEP = 10
PERTURBATION_LIMIT = 100

# Perimeter fallback layout
PERIMETER_EDGE_MARGIN = 40.0
PERIMETER_TOP_MARGIN = 120.0
PERIMETER_BOTTOM_MARGIN = 80.0
MIN_BALLOON_SPACING = 25.0
PREFERRED_BALLOON_SPACING = 35.0


def balloon_diameter(total_count: int) -> float:
    """Balloon diameter for a drawing, shrinking as the count grows."""
    if total_count <= 20:
        return 24
    if total_count <= 40:
        return 20
    if total_count <= 60:
        return 18
    if total_count <= 80:
        return 16
    return 14


@dataclass(frozen=True)
class Bounds:
    left: float
    top: float
    right: float
    bottom: float


@dataclass
class PlacementArea:
    """Fixed geometry of one page for a placement search."""
    page_width: float
    page_height: float
    bounds: Bounds
    diameter: float
    text_obstacles: List[BaseGeometry]

    @property
    def radius(self) -> float:
        return self.diameter / 2


class BalloonPlacer:
    """Find balloon positions near their targets without hitting text or other balloons."""

    def __init__(
        self,
        border_margin: float = BORDER_MARGIN,
        title_block_height: float = TITLE_BLOCK_HEIGHT,
        page_margin: float = PAGE_MARGIN
    ):
        """
        Initialize BalloonPlacer.

        Args:
            border_margin: Clearance kept inside the drawing border on all sides
            title_block_height: Extra clearance reserved at the bottom of the page
            page_margin: Minimum distance between a balloon and the page edge
        """
        self.border_margin = border_margin
        self.title_block_height = title_block_height
        self.page_margin = page_margin

    def drawing_bounds(
        self,
        page_width: float,
        page_height: float,
        drawing_origin: Tuple[float, float] = (0.0, 0.0)
    ) -> Bounds:
        origin_x, origin_y = drawing_origin
        return Bounds(
            left=origin_x + self.border_margin,
            top=origin_y + self.border_margin,
            right=page_width - self.border_margin,
            bottom=page_height - self.title_block_height - self.border_margin,
        )

    def prepare_area(
        self,
        page_width: float,
        page_height: float,
        diameter: float,
        text_items: Sequence[TextItem] = (),
        drawing_origin: Tuple[float, float] = (0.0, 0.0)
    ) -> PlacementArea:
        """Build the page geometry shared by every probe of one placement."""
        obstacles = [
            box(
                item.x - TEXT_PADDING,
                item.y - TEXT_PADDING,
                item.x + item.width + TEXT_PADDING,
                item.y + item.height + TEXT_PADDING,
            )
            for item in text_items
        ]
        return PlacementArea(
            page_width=page_width,
            page_height=page_height,
            bounds=self.drawing_bounds(page_width, page_height, drawing_origin),
            diameter=diameter,
            text_obstacles=obstacles,
        )

    def is_blank_space(
        self,
        x: float,
        y: float,
        area: PlacementArea,
        placed_balloons: Sequence[PlacedBalloon]
    ) -> bool:
        """
        Check whether a balloon centred at (x, y) fits.

        The circle must stay inside the drawing bounds and the page margin,
        keep BALLOON_GAP from every placed balloon and not touch any padded
        text box.
        """
        radius = area.radius
        bounds = area.bounds

        if (x - radius < bounds.left or x + radius > bounds.right
                or y - radius < bounds.top or y + radius > bounds.bottom):
            return False

        if (x - radius < self.page_margin or x + radius > area.page_width - self.page_margin
                or y - radius < self.page_margin or y + radius > area.page_height - self.page_margin):
            return False

        for other in placed_balloons:
            if math.hypot(x - other.x, y - other.y) < radius + other.radius + BALLOON_GAP:
                return False

        centre = Point(x, y)
        for obstacle in area.text_obstacles:
            # Distance to the clamped point on the rectangle, 0 when inside
            if centre.distance(obstacle) < radius:
                return False

        return True

    def is_leader_path_clear(
        self,
        balloon_x: float,
        balloon_y: float,
        target_x: float,
        target_y: float,
        placed_balloons: Sequence[PlacedBalloon]
    ) -> bool:
        """Check that the leader segment stays clear of every placed balloon."""
        if math.hypot(target_x - balloon_x, target_y - balloon_y) == 0:
            return True

        leader = LineString([(balloon_x, balloon_y), (target_x, target_y)])
        for other in placed_balloons:
            if leader.distance(Point(other.x, other.y)) < other.radius + LEADER_CLEARANCE:
                return False
        return True

    @staticmethod
    def candidate_positions(target: Box) -> List[Tuple[float, float, str]]:
        """Candidate balloon centres around a target, in order of preference."""
        center_x, center_y = target.center
        right = target.x + target.width
        bottom = target.y + target.height

        return [
            # Right side (preferred)
            (right + PREFERRED_TEXT_OFFSET, center_y, "right"),
            (right + MIN_TEXT_OFFSET, center_y, "right"),
            # Left side
            (target.x - PREFERRED_TEXT_OFFSET, center_y, "left"),
            (target.x - MIN_TEXT_OFFSET, center_y, "left"),
            # Above, nudged right
            (center_x + ABOVE_BELOW_SHIFT, target.y - PREFERRED_TEXT_OFFSET, "right"),
            (center_x + ABOVE_BELOW_SHIFT, target.y - MIN_TEXT_OFFSET, "right"),
            # Below, nudged right
            (center_x + ABOVE_BELOW_SHIFT, bottom + PREFERRED_TEXT_OFFSET, "right"),
            (center_x + ABOVE_BELOW_SHIFT, bottom + MIN_TEXT_OFFSET, "right"),
            # Diagonals
            (right + PREFERRED_TEXT_OFFSET, center_y - DIAGONAL_SHIFT, "right"),
            (right + PREFERRED_TEXT_OFFSET, center_y + DIAGONAL_SHIFT, "right"),
            (target.x - PREFERRED_TEXT_OFFSET, center_y - DIAGONAL_SHIFT, "left"),
            (target.x - PREFERRED_TEXT_OFFSET, center_y + DIAGONAL_SHIFT, "left"),
        ]

    def place(
        self,
        target: Optional[Box],
        balloon_index: int,
        page_width: float,
        page_height: float,
        placed_balloons: Sequence[PlacedBalloon],
        total_count: int,
        text_items: Sequence[TextItem] = (),
        drawing_origin: Tuple[float, float] = (0.0, 0.0)
    ) -> Placement:
        """
        Choose a position for one balloon.

        Candidates around the target are tried in priority order, then each
        candidate is nudged vertically by up to PERTURBATION_LIMIT. A
        position is accepted only when it is blank and its leader to the
        target centre clears every placed balloon. When nothing fits, or
        there is no target, the balloon goes to the perimeter layout.

        Args:
            target: Box the balloon points at, or None
            balloon_index: 0-based position of the balloon in the run
            page_width: Page width in points
            page_height: Page height in points
            placed_balloons: Balloons already placed in this run
            total_count: Number of balloons in the run
            text_items: Text on the page to keep clear of
            drawing_origin: Top-left corner of the drawing frame

        Returns:
            Placement with the balloon centre, side and diameter

        Raises:
            ValidationError: If the page dimensions are invalid
        """
        validate_page_dimensions(page_width, page_height)
        diameter = balloon_diameter(total_count)

        if target is not None:
            area = self.prepare_area(page_width, page_height, diameter, text_items, drawing_origin)
            target_x, target_y = target.center
            candidates = self.candidate_positions(target)

            for x, y, side in candidates:
                if self._fits(x, y, target_x, target_y, area, placed_balloons):
                    return Placement(x=x, y=y, side=side, diameter=diameter)

            # Offset 0 was already rejected above; x stays fixed per candidate
            for x, y, side in candidates:
                for offset in range(PERTURBATION_STEP, PERTURBATION_LIMIT + 1, PERTURBATION_STEP):
                    for shifted_y in (y + offset, y - offset):
                        if self._fits(x, shifted_y, target_x, target_y, area, placed_balloons):
                            return Placement(x=x, y=shifted_y, side=side, diameter=diameter)

            logger.warning(
                f"Balloon #{balloon_index + 1}: all positions near target blocked, "
                f"using perimeter fallback"
            )

        return self._perimeter_fallback(
            balloon_index, total_count, page_width, page_height, diameter, placed_balloons
        )

    def _fits(
        self,
        x: float,
        y: float,
        target_x: float,
        target_y: float,
        area: PlacementArea,
        placed_balloons: Sequence[PlacedBalloon]
    ) -> bool:
        return (self.is_blank_space(x, y, area, placed_balloons)
                and self.is_leader_path_clear(x, y, target_x, target_y, placed_balloons))

    def perimeter_layout(
        self,
        balloon_index: int,
        total_count: int,
        page_width: float,
        page_height: float,
        diameter: Optional[float] = None
    ) -> Placement:
        """
        Deterministic fallback slot along the page margins.

        Balloons fill 2 columns (left and right edge), or 4 columns when the
        count exceeds twice what one column holds at minimum spacing.
        Spacing shrinks from the preferred towards the minimum value to fit
        the available height.

        Args:
            balloon_index: 0-based balloon position
            total_count: Number of balloons in the run
            page_width: Page width in points
            page_height: Page height in points
            diameter: Balloon diameter, derived from total_count if omitted

        Returns:
            Placement for the slot
        """
        if diameter is None:
            diameter = balloon_diameter(total_count)

        columns = self._perimeter_columns(total_count, page_width, page_height)
        column_count = len(columns)
        spacing = self._perimeter_spacing(total_count, column_count, page_height)

        if balloon_index == 0:
            capacity = self._column_capacity(page_height) * 4
            if total_count > capacity:
                logger.warning(
                    f"{total_count} balloons exceeds recommended capacity of {capacity} "
                    f"for one page; consider splitting the drawing"
                )

        column = balloon_index % column_count
        row = balloon_index // column_count
        x, side = columns[column]

        y = PERIMETER_TOP_MARGIN + row * spacing
        max_y = page_height - PERIMETER_BOTTOM_MARGIN
        if y > max_y:
            logger.warning(
                f"Balloon #{balloon_index + 1}: y position {y:.0f} exceeds page height, "
                f"clamped to {max_y:.0f}"
            )
            y = max_y

        return Placement(x=x, y=y, side=side, diameter=diameter)

    @staticmethod
    def _column_capacity(page_height: float) -> int:
        available = page_height - PERIMETER_TOP_MARGIN - PERIMETER_BOTTOM_MARGIN
        return math.floor(available / MIN_BALLOON_SPACING) + 1

    def _perimeter_columns(
        self,
        total_count: int,
        page_width: float,
        page_height: float
    ) -> List[Tuple[float, str]]:
        if total_count > self._column_capacity(page_height) * 2:
            return [
                (PERIMETER_EDGE_MARGIN, "left"),
                (page_width * 0.25, "left"),
                (page_width * 0.75, "right"),
                (page_width - PERIMETER_EDGE_MARGIN, "right"),
            ]
        return [
            (PERIMETER_EDGE_MARGIN, "left"),
            (page_width - PERIMETER_EDGE_MARGIN, "right"),
        ]

    @staticmethod
    def _perimeter_spacing(total_count: int, column_count: int, page_height: float) -> float:
        per_column = math.ceil(total_count / column_count)
        if per_column <= 1:
            return PREFERRED_BALLOON_SPACING
        available = page_height - PERIMETER_TOP_MARGIN - PERIMETER_BOTTOM_MARGIN
        required = available / (per_column - 1)
        return max(MIN_BALLOON_SPACING, min(PREFERRED_BALLOON_SPACING, required))

    def _perimeter_fallback(
        self,
        balloon_index: int,
        total_count: int,
        page_width: float,
        page_height: float,
        diameter: float,
        placed_balloons: Sequence[PlacedBalloon]
    ) -> Placement:
        slot = self.perimeter_layout(balloon_index, total_count, page_width, page_height, diameter)
        if not self._collides(slot.x, slot.y, diameter, placed_balloons):
            return slot

        # Walk the other perimeter slots, column by column
        columns = self._perimeter_columns(total_count, page_width, page_height)
        max_y = page_height - PERIMETER_BOTTOM_MARGIN
        rows = max(self._column_capacity(page_height), 1)
        for x, side in columns:
            for row in range(rows):
                y = PERIMETER_TOP_MARGIN + row * MIN_BALLOON_SPACING
                if y > max_y:
                    break
                if not self._collides(x, y, diameter, placed_balloons):
                    logger.debug(
                        f"Balloon #{balloon_index + 1}: perimeter slot taken, "
                        f"moved to ({x:.0f}, {y:.0f})"
                    )
                    return Placement(x=x, y=y, side=side, diameter=diameter)

        free = self._first_free_point(page_width, page_height, diameter, placed_balloons)
        if free is not None:
            x, y = free
            logger.warning(
                f"Balloon #{balloon_index + 1}: perimeter full, "
                f"using free point ({x:.0f}, {y:.0f})"
            )
            side = "left" if x < page_width / 2 else "right"
            return Placement(x=x, y=y, side=side, diameter=diameter)

        logger.warning(f"Balloon #{balloon_index + 1}: no free position on page, overlapping placement")
        return slot

    def _first_free_point(
        self,
        page_width: float,
        page_height: float,
        diameter: float,
        placed_balloons: Sequence[PlacedBalloon]
    ) -> Optional[Tuple[float, float]]:
        """Scan the page inside PAGE_MARGIN row by row in half-diameter steps."""
        radius = diameter / 2
        step = radius
        min_x, max_x = PAGE_MARGIN + radius, page_width - PAGE_MARGIN - radius
        min_y, max_y = PAGE_MARGIN + radius, page_height - PAGE_MARGIN - radius
        if min_x > max_x or min_y > max_y:
            return None

        columns = int((max_x - min_x) // step) + 1
        rows = int((max_y - min_y) // step) + 1
        for row in range(rows):
            y = min_y + row * step
            for column in range(columns):
                x = min_x + column * step
                if not self._collides(x, y, diameter, placed_balloons):
                    return (x, y)
        return None

    @staticmethod
    def _collides(
        x: float,
        y: float,
        diameter: float,
        placed_balloons: Sequence[PlacedBalloon]
    ) -> bool:
        radius = diameter / 2
        return any(
            math.hypot(x - other.x, y - other.y) < radius + other.radius + BALLOON_GAP
            for other in placed_balloons
        )
