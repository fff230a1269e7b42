"""Duplicate text item removal for extracted pages using Shapely."""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from shapely.geometry import Polygon

from models import PageInfo, TextItem

logger = logging.getLogger(__name__)

STRATEGIES = ("keep_largest", "keep_first")


class OverlapFilter:
    """Detect and drop text items that mostly cover each other.

    PDFs exported from CAD tools often draw the same string twice (fill
    and outline); the copies would otherwise compete in matching and
    double the obstacles seen by balloon placement.
    """

    def __init__(self, overlap_threshold: float = 0.5):
        """
        Initialize OverlapFilter.

        Args:
            overlap_threshold: Minimum coverage ratio to consider items as overlapping (0.0-1.0)
        """
        if not 0.0 <= overlap_threshold <= 1.0:
            raise ValueError("overlap_threshold must be between 0.0 and 1.0")

        self.overlap_threshold = overlap_threshold

    @staticmethod
    def _item_to_polygon(item: TextItem) -> Polygon:
        """
        Raises:
            ValueError: If the item has no area
        """
        x0, y0, x1, y1 = item.bbox
        if x1 <= x0 or y1 <= y0:
            raise ValueError(f"Invalid bbox: {item.bbox} (x1 <= x0 or y1 <= y0)")
        return Polygon([(x0, y0), (x1, y0), (x1, y1), (x0, y1)])

    def calculate_coverage_ratio(self, item1: TextItem, item2: TextItem) -> float:
        """
        Coverage ratio = intersection_area / min(area1, area2).

        Returns:
            Coverage ratio (0.0-1.0)
        """
        poly1 = self._item_to_polygon(item1)
        poly2 = self._item_to_polygon(item2)

        if not poly1.intersects(poly2):
            return 0.0

        min_area = min(poly1.area, poly2.area)
        if min_area < 1e-10:
            return 0.0

        return poly1.intersection(poly2).area / min_area

    def detect_overlaps(self, items: Sequence[TextItem]) -> List[Tuple[int, int, float]]:
        """
        Detect overlapping pairs among the items of one page.

        Returns:
            List of tuples (index1, index2, coverage_ratio)
        """
        overlaps = []
        for i in range(len(items)):
            for j in range(i + 1, len(items)):
                try:
                    coverage_ratio = self.calculate_coverage_ratio(items[i], items[j])
                except ValueError as e:
                    logger.warning(f"Invalid bbox detected during overlap calculation: {e}, skipping")
                    continue

                if coverage_ratio >= self.overlap_threshold:
                    overlaps.append((i, j, coverage_ratio))
                    logger.debug(
                        f"Overlap detected: items {i} and {j} (coverage: {coverage_ratio:.2f})"
                    )
        return overlaps

    def filter_page(self, page: PageInfo, strategy: str = "keep_largest") -> PageInfo:
        """
        Return a copy of the page without the overlapped items.

        Raises:
            ValueError: If strategy is not supported
        """
        if strategy not in STRATEGIES:
            raise ValueError(f"Unsupported filtering strategy: {strategy}")

        items = page.text_items
        overlaps = self.detect_overlaps(items)
        if not overlaps:
            return page

        to_remove = set()
        for i, j, _ in overlaps:
            if strategy == "keep_largest":
                area_i = items[i].width * items[i].height
                area_j = items[j].width * items[j].height
                # Equal areas keep the earlier item
                to_remove.add(i if area_j > area_i else j)
            else:
                to_remove.add(j)

        kept = [item for idx, item in enumerate(items) if idx not in to_remove]
        logger.info(
            f"Page {page.page_number}: filtered {len(to_remove)} overlapping items "
            f"(strategy: {strategy}), {len(kept)} remaining"
        )
        return PageInfo(
            page_number=page.page_number,
            width=page.width,
            height=page.height,
            text_items=kept,
        )

    def filter_overlapping(
        self,
        pages: Sequence[PageInfo],
        strategy: str = "keep_largest"
    ) -> List[PageInfo]:
        """Filter every page; overlaps are only looked for within a page."""
        return [self.filter_page(page, strategy) for page in pages]
