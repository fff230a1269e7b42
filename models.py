"""Data models for drawing text, characteristics, annotations and balloons."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class RequirementType(str, Enum):
    """Kind of inspectable requirement produced by the extraction step."""
    DIMENSION = "dimension"
    GDT = "gdt"
    NOTE = "note"
    MATERIAL = "material"
    PROCESS = "process"
    FUNCTIONAL = "functional"


class AnnotationType(str, Enum):
    """Highlight category drawn on the annotated PDF."""
    DIMENSION = "dimension"
    GDT = "gdt"
    MATERIAL = "material"
    PROCESS = "process"
    NOTE = "note"
    FUNCTIONAL_TEST = "functional_test"


@dataclass(frozen=True)
class TextItem:
    """A run of text on a PDF page with its bounding box.

    Coordinates are absolute PDF points with a top-left origin and
    ``page_number`` is 1-indexed, matching the extraction output.
    """
    text: str
    page_number: int
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.page_number < 1:
            raise ValueError(
                f"page_number must be >= 1, got {self.page_number}"
            )

    @property
    def bbox(self) -> Tuple[float, float, float, float]:
        """Bounding box as (x0, y0, x1, y1)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


@dataclass(frozen=True)
class PageInfo:
    """Page size plus the text items found on it, in extraction order."""
    page_number: int
    width: float
    height: float
    text_items: Tuple[TextItem, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence but keep the page immutable
        if not isinstance(self.text_items, tuple):
            object.__setattr__(self, "text_items", tuple(self.text_items))


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle in absolute page points (top-left origin)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


@dataclass
class NormalizedLocation:
    """Characteristic location as fractions of the page size."""
    x: float
    y: float
    width: float
    height: float
    page: int  # 0-indexed
    confidence: float

    def in_unit_range(self) -> bool:
        return all(0.0 <= v <= 1.0 for v in (self.x, self.y, self.width, self.height))


@dataclass
class Characteristic:
    """A single inspectable requirement extracted from a drawing."""
    requirement_type: RequirementType
    description: str
    nominal_value: Optional[float] = None
    tolerance_plus: Optional[float] = None
    tolerance_minus: Optional[float] = None
    unit: Optional[str] = None
    gdt_type: Optional[str] = None
    location: Optional[NormalizedLocation] = None
    drawing_zone: Optional[str] = None
    id: Optional[str] = None
    balloon_number: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.requirement_type, RequirementType):
            self.requirement_type = RequirementType(self.requirement_type)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Characteristic":
        """
        Build a characteristic from an extraction record.

        Accepts the camelCase keys written by the extraction step and
        falls back to snake_case.

        Raises:
            ValueError: If the requirement type is unknown
        """
        def pick(camel: str, snake: str) -> Any:
            return data.get(camel, data.get(snake))

        return cls(
            requirement_type=RequirementType(
                pick("requirementType", "requirement_type") or "dimension"
            ),
            description=data.get("description") or "",
            nominal_value=pick("nominalValue", "nominal_value"),
            tolerance_plus=pick("tolerancePlus", "tolerance_plus"),
            tolerance_minus=pick("toleranceMinus", "tolerance_minus"),
            unit=data.get("unit"),
            gdt_type=pick("gdtType", "gdt_type"),
        )


@dataclass(frozen=True)
class TextMatch:
    """Best text item found for a query, with its match confidence."""
    text: str
    page: int  # 0-indexed
    x: float
    y: float
    width: float
    height: float
    confidence: float

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class AnnotationBox:
    """Highlight rectangle for the annotated PDF."""
    x: float
    y: float
    width: float
    height: float
    type: AnnotationType
    text: str
    page: int  # 0-indexed


@dataclass
class AnnotationRecord:
    """Persisted annotation, linked to its characteristic by extraction key."""
    drawing_id: str
    extraction_key: str
    page: int
    annotation_type: AnnotationType
    x: float
    y: float
    width: float
    height: float
    text_snippet: str
    ai_confidence: float
    status: str = "ai_generated"
    characteristic_id: Optional[str] = None

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width, self.height)


@dataclass
class Balloon:
    """Persisted balloon marker; the diameter is a placement-time value only."""
    id: str
    characteristic_id: str
    drawing_id: str
    balloon_number: int
    x_position: float
    y_position: float
    leader_x: float
    leader_y: float

    def leader_distance(self) -> float:
        return math.hypot(self.leader_x - self.x_position, self.leader_y - self.y_position)


@dataclass(frozen=True)
class PlacedBalloon:
    """Entry in the placement arena: a balloon already positioned this run."""
    x: float
    y: float
    diameter: float

    @property
    def radius(self) -> float:
        return self.diameter / 2


@dataclass(frozen=True)
class Placement:
    """Result of a balloon placement search."""
    x: float
    y: float
    side: str  # "left" or "right"
    diameter: float


@dataclass
class StepResult:
    """Outcome of a best-effort step that must not abort its caller."""
    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "StepResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "StepResult":
        return cls(ok=False, error=error)


@dataclass
class AnnotationResult:
    """Summary of the annotation matching phase for one drawing."""
    success: bool
    annotation_count: int
    matched_count: int
    annotated_pdf_url: Optional[str] = None
    errors: List[str] = field(default_factory=list)


@dataclass
class DrawingResult:
    """Everything produced for one drawing by the full pipeline."""
    drawing_id: str
    annotation_result: AnnotationResult
    characteristics: List[Characteristic]
    balloons: List[Balloon]
    errors: List[str] = field(default_factory=list)
