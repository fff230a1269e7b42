"""Characteristic matching, annotation persistence and sequential balloon placement."""

from __future__ import annotations

import concurrent.futures
import logging
import math
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from balloon_placer import BalloonPlacer, balloon_diameter
from exceptions import DuplicateBalloonError, PDFReadError, PersistenceError
from leader_calculator import MIN_LEADER_DISTANCE, leader_distance, leader_offset
from models import (
    AnnotationBox,
    AnnotationRecord,
    AnnotationResult,
    AnnotationType,
    Balloon,
    Box,
    Characteristic,
    DrawingResult,
    NormalizedLocation,
    PageInfo,
    PlacedBalloon,
    RequirementType,
    StepResult,
    TextMatch,
)
from pdf_annotator import PDFHighlightAnnotator
from pdf_reader import detect_drawing_origin, extract_page_infos
from storage import DrawingStore, PDFCache, WriteTicket
from text_matcher import (
    find_dimension_position,
    find_gdt_position,
    find_note_position,
    find_text_position,
    format_number,
)
from zone_calculator import validate_page_dimensions, zone_of

logger = logging.getLogger(__name__)

# Minimum confidence for accepting a match, independent of each matcher's own search threshold
ACCEPTANCE_THRESHOLDS = {
    RequirementType.NOTE: 0.8,
    RequirementType.MATERIAL: 0.8,
    RequirementType.PROCESS: 0.8,
    RequirementType.DIMENSION: 0.55,
    RequirementType.GDT: 0.55,
    RequirementType.FUNCTIONAL: 0.7,
}

ANNOTATION_TYPES = {
    RequirementType.DIMENSION: AnnotationType.DIMENSION,
    RequirementType.GDT: AnnotationType.GDT,
    RequirementType.NOTE: AnnotationType.NOTE,
    RequirementType.MATERIAL: AnnotationType.MATERIAL,
    RequirementType.PROCESS: AnnotationType.PROCESS,
    RequirementType.FUNCTIONAL: AnnotationType.FUNCTIONAL_TEST,
}

DEFAULT_EXTRACTION_TIMEOUT = 60.0
DEFAULT_PERSISTENCE_TIMEOUT = 30.0
DESCRIPTION_SEARCH_WORDS = 3


def _match_dimension(char: Characteristic, pages: Sequence[PageInfo]) -> Optional[TextMatch]:
    return find_dimension_position(
        char.description, char.nominal_value, char.tolerance_plus, char.tolerance_minus, pages
    )


def _match_gdt(char: Characteristic, pages: Sequence[PageInfo]) -> Optional[TextMatch]:
    return find_gdt_position(char.description, char.gdt_type, pages)


def _match_note(char: Characteristic, pages: Sequence[PageInfo]) -> Optional[TextMatch]:
    return find_note_position(char.description, pages)


MATCHERS: Dict[RequirementType, Callable[[Characteristic, Sequence[PageInfo]], Optional[TextMatch]]] = {
    RequirementType.DIMENSION: _match_dimension,
    RequirementType.GDT: _match_gdt,
    RequirementType.NOTE: _match_note,
    RequirementType.MATERIAL: _match_note,
    RequirementType.PROCESS: _match_note,
    RequirementType.FUNCTIONAL: _match_note,
}


def match_characteristic(char: Characteristic, pages: Sequence[PageInfo]) -> Optional[TextMatch]:
    """Run the matcher for the characteristic's requirement type."""
    # A GD&T symbol wins over the requirement type
    if char.gdt_type:
        return _match_gdt(char, pages)
    return MATCHERS[char.requirement_type](char, pages)


def annotation_type_for(char: Characteristic) -> AnnotationType:
    if char.gdt_type:
        return AnnotationType.GDT
    return ANNOTATION_TYPES[char.requirement_type]


def call_with_timeout(func: Callable[..., Any], timeout: Optional[float], *args: Any) -> Any:
    """Run ``func`` in a worker thread and wait at most ``timeout`` seconds."""
    if timeout is None:
        return func(*args)
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    try:
        return executor.submit(func, *args).result(timeout=timeout)
    finally:
        executor.shutdown(wait=False)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _label(char: Characteristic) -> str:
    return (char.description or "")[:40]


class PlacementOrchestrator:
    """
    Drive one drawing from extracted characteristics to placed balloons.

    The matching phase writes annotation records as a single batch and only
    then fills in characteristic locations. The placement phase runs
    strictly in characteristic order because every balloon is checked
    against all the balloons placed before it.
    """

    def __init__(
        self,
        store: Optional[DrawingStore] = None,
        placer: Optional[BalloonPlacer] = None,
        pdf_cache: Optional[PDFCache] = None,
        page_extractor: Callable[[bytes], List[PageInfo]] = extract_page_infos,
        annotator_factory: Callable[[bytes], PDFHighlightAnnotator] = PDFHighlightAnnotator,
        extraction_timeout: Optional[float] = DEFAULT_EXTRACTION_TIMEOUT,
        persistence_timeout: Optional[float] = DEFAULT_PERSISTENCE_TIMEOUT
    ):
        """
        Initialize PlacementOrchestrator.

        Args:
            store: Store for annotation records, characteristics and balloons
            placer: Balloon placement engine
            pdf_cache: Cache of PDF bytes keyed by drawing id
            page_extractor: Turns PDF bytes into pages of text items
            annotator_factory: Builds the highlight renderer for a PDF
            extraction_timeout: Seconds allowed for text extraction (None waits forever)
            persistence_timeout: Seconds allowed for the annotation batch write
        """
        self.store = store if store is not None else DrawingStore()
        self.placer = placer if placer is not None else BalloonPlacer()
        self.pdf_cache = pdf_cache if pdf_cache is not None else PDFCache()
        self.page_extractor = page_extractor
        self.annotator_factory = annotator_factory
        self.extraction_timeout = extraction_timeout
        self.persistence_timeout = persistence_timeout

    # -- collaborators -----------------------------------------------------

    def extract_pages(self, pdf_bytes: bytes) -> List[PageInfo]:
        """
        Extract pages of text items, bounded by the extraction timeout.

        Raises:
            PDFReadError: If extraction fails or times out
        """
        try:
            return call_with_timeout(self.page_extractor, self.extraction_timeout, pdf_bytes)
        except concurrent.futures.TimeoutError as e:
            error_msg = f"Text extraction timed out after {self.extraction_timeout}s"
            logger.error(error_msg)
            raise PDFReadError(error_msg) from e

    def _persist_annotations(self, records: List[AnnotationRecord]) -> None:
        """
        Write the record batch, bounded by the persistence timeout.

        On a timeout the pending write is cancelled so a late worker cannot
        apply it. A batch that committed just before the cancel is kept.

        Raises:
            PersistenceError: If the batch was not written
        """
        ticket = WriteTicket()
        try:
            call_with_timeout(self.store.insert_annotations, self.persistence_timeout, records, ticket)
        except concurrent.futures.TimeoutError as e:
            if not self.store.cancel_write(ticket):
                logger.warning("Annotation batch committed as the persistence timeout expired, keeping it")
                return
            error_msg = f"Persisting annotation records timed out after {self.persistence_timeout}s"
            logger.error(error_msg)
            raise PersistenceError(error_msg) from e
        except PersistenceError:
            raise
        except Exception as e:
            error_msg = f"Failed to persist annotation records: {str(e)}"
            logger.error(error_msg)
            raise PersistenceError(error_msg) from e

    def _render_and_upload(
        self,
        drawing_id: str,
        pdf_bytes: bytes,
        annotations: List[AnnotationBox],
        object_storage: Any
    ) -> StepResult:
        try:
            logger.info(f"Generating annotated PDF with {len(annotations)} highlights")
            annotated = self.annotator_factory(pdf_bytes).render(annotations)
            url = object_storage.upload_file(
                annotated, f"drawings/{drawing_id}_annotated.pdf", "application/pdf"
            )
            logger.info(f"Annotated PDF uploaded: {url}")
            return StepResult.success(url)
        except Exception as e:
            error_msg = f"Failed to generate/upload annotated PDF: {str(e)}"
            logger.error(error_msg)
            return StepResult.failure(error_msg)

    # -- matching phase ----------------------------------------------------

    def generate_annotations(
        self,
        drawing_id: str,
        pdf_bytes: bytes,
        characteristics: Sequence[Characteristic],
        object_storage: Any,
        pages: Optional[List[PageInfo]] = None
    ) -> AnnotationResult:
        """
        Match characteristics to PDF text and persist annotation records.

        Characteristic locations are written only after the whole record
        batch is stored. A failed batch write aborts the phase with
        ``success=False`` and leaves every characteristic untouched.
        Highlight rendering and upload are best effort.

        Args:
            drawing_id: Drawing the characteristics belong to
            pdf_bytes: Original PDF content
            characteristics: Characteristics in extraction order
            object_storage: Object with ``upload_file(data, key, content_type) -> url``
            pages: Already extracted pages, to skip extraction

        Returns:
            AnnotationResult for the phase
        """
        errors: List[str] = []
        try:
            logger.info(
                f"Starting annotation generation for drawing {drawing_id} "
                f"({len(characteristics)} characteristics)"
            )
            if pages is None:
                pages = self.extract_pages(pdf_bytes)

            accepted: List[Tuple[Characteristic, TextMatch]] = []
            annotations: List[AnnotationBox] = []
            records: List[AnnotationRecord] = []

            for index, char in enumerate(characteristics):
                extraction_key = str(index)
                label = _label(char)
                try:
                    match = match_characteristic(char, pages)
                    threshold = ACCEPTANCE_THRESHOLDS[char.requirement_type]

                    if match is None or match.confidence < threshold:
                        reason = ("no match found" if match is None
                                  else f"confidence {match.confidence:.2f} < threshold {threshold}")
                        logger.info(f"Failed to match {label!r} ({reason})")
                        continue

                    annotation_type = annotation_type_for(char)
                    accepted.append((char, match))
                    annotations.append(AnnotationBox(
                        x=match.x,
                        y=match.y,
                        width=match.width,
                        height=match.height,
                        type=annotation_type,
                        text=match.text,
                        page=match.page,
                    ))
                    records.append(AnnotationRecord(
                        drawing_id=drawing_id,
                        extraction_key=extraction_key,
                        page=match.page,
                        annotation_type=annotation_type,
                        x=match.x,
                        y=match.y,
                        width=match.width,
                        height=match.height,
                        text_snippet=match.text,
                        ai_confidence=match.confidence,
                    ))
                    logger.info(f"Matched {label!r} (confidence: {match.confidence:.2f})")
                except Exception as e:
                    error_msg = f"Failed to match characteristic {char.description!r}: {str(e)}"
                    logger.error(error_msg)
                    errors.append(error_msg)

            logger.info(f"Matched {len(accepted)}/{len(characteristics)} characteristics")

            if records:
                logger.info(f"Persisting {len(records)} annotation records")
                self._persist_annotations(records)
                self._apply_locations(accepted, pages)

            annotated_pdf_url = None
            if annotations:
                step = self._render_and_upload(drawing_id, pdf_bytes, annotations, object_storage)
                if step.ok:
                    annotated_pdf_url = step.value
                else:
                    errors.append(step.error)
            else:
                logger.info("No annotations to render, skipping PDF generation")

            if characteristics:
                logger.info(
                    f"Match rate: {len(accepted) / len(characteristics) * 100:.1f}%, "
                    f"annotations: {len(records)}, errors: {len(errors)}"
                )

            return AnnotationResult(
                success=True,
                annotated_pdf_url=annotated_pdf_url,
                annotation_count=len(records),
                matched_count=len(accepted),
                errors=errors,
            )

        except Exception as e:
            error_msg = f"Annotation generation failed: {str(e)}"
            logger.error(error_msg)
            errors.append(error_msg)
            return AnnotationResult(success=False, annotation_count=0, matched_count=0, errors=errors)

    def _apply_locations(
        self,
        accepted: Sequence[Tuple[Characteristic, TextMatch]],
        pages: Sequence[PageInfo]
    ) -> None:
        pages_by_number = {page.page_number: page for page in pages}
        updated = 0
        for char, match in accepted:
            page = pages_by_number.get(match.page + 1)
            if page is None:
                logger.error(f"Cannot normalize location, page {match.page + 1} not found")
                continue
            if char.location is not None:
                logger.warning(f"Location already set for {_label(char)!r}, keeping it")
                continue

            char.location = NormalizedLocation(
                x=match.x / page.width,
                y=match.y / page.height,
                width=match.width / page.width,
                height=match.height / page.height,
                page=match.page,
                confidence=match.confidence,
            )
            if not char.location.in_unit_range():
                logger.warning(
                    f"Normalized location out of range for {_label(char)!r}: {char.location}"
                )
            updated += 1
        logger.info(f"Updated {updated} characteristics with normalized location data")

    # -- placement phase ---------------------------------------------------

    def register_characteristics(
        self,
        drawing_id: str,
        characteristics: Sequence[Characteristic]
    ) -> List[str]:
        """
        Store characteristics with balloon numbers 1..N and link their annotations.

        Returns:
            Errors from annotation backfill, which does not stop the run
        """
        errors = []
        linked = 0
        for index, char in enumerate(characteristics):
            char.balloon_number = index + 1
            self.store.add_characteristic(char)
            try:
                linked += self.store.backfill_characteristic_id(drawing_id, str(index), char.id)
            except Exception as e:
                error_msg = f"Failed to backfill annotation for characteristic {char.id}: {str(e)}"
                logger.error(error_msg)
                errors.append(error_msg)
        logger.info(f"Backfilled {linked} annotation-to-characteristic links")
        return errors

    def _resolve_target(
        self,
        char: Characteristic,
        annotations: Dict[str, AnnotationRecord],
        first_page: Optional[PageInfo]
    ) -> Optional[Box]:
        annotation = annotations.get(char.id)
        if annotation is not None:
            logger.debug(
                f"Balloon #{char.balloon_number}: anchoring to {annotation.annotation_type.value} "
                f"annotation at ({annotation.x:.0f}, {annotation.y:.0f})"
            )
            return annotation.box

        if first_page is None:
            return None

        queries = []
        if char.nominal_value is not None:
            queries.append(format_number(char.nominal_value))
        if char.description:
            queries.append(" ".join(char.description.split()[:DESCRIPTION_SEARCH_WORDS]))

        for query in queries:
            match = find_text_position(query, [first_page])
            if match is not None:
                logger.debug(f"Balloon #{char.balloon_number}: found {query!r} at ({match.x:.0f}, {match.y:.0f})")
                return match.box
        return None

    def _check_not_placed(
        self,
        drawing_id: str,
        characteristics: Sequence[Characteristic]
    ) -> None:
        """
        Reject a run that would collide with existing balloons before placing any.

        Raises:
            DuplicateBalloonError: If a characteristic already has a balloon or
                a balloon number is already used in the drawing
        """
        existing = self.store.get_balloons()
        placed_characteristics = {b.characteristic_id for b in existing}
        used_numbers = {b.balloon_number for b in existing if b.drawing_id == drawing_id}

        for index, char in enumerate(characteristics):
            number = char.balloon_number if char.balloon_number is not None else index + 1
            if char.id is not None and char.id in placed_characteristics:
                error_msg = f"Characteristic {char.id} already has a balloon"
                logger.error(error_msg)
                raise DuplicateBalloonError(error_msg)
            if number in used_numbers:
                error_msg = f"Balloon number {number} already used in drawing {drawing_id}"
                logger.error(error_msg)
                raise DuplicateBalloonError(error_msg)
            used_numbers.add(number)

    def place_balloons(
        self,
        drawing_id: str,
        characteristics: Sequence[Characteristic],
        pages: Sequence[PageInfo],
        page_width: Optional[float] = None,
        page_height: Optional[float] = None
    ) -> List[Balloon]:
        """
        Place one balloon per characteristic, in order, and set its zone.

        Args:
            drawing_id: Drawing being ballooned
            characteristics: Registered characteristics in balloon order
            pages: Extracted pages; the first one supplies obstacles and targets
            page_width: Page width, defaults to the first page's
            page_height: Page height, defaults to the first page's

        Returns:
            Created balloons in placement order

        Raises:
            ValidationError: If the page dimensions are invalid; nothing is placed
            DuplicateBalloonError: If any balloon of the run already exists; nothing is placed
        """
        first_page = pages[0] if pages else None
        if first_page is not None:
            page_width = page_width if page_width is not None else first_page.width
            page_height = page_height if page_height is not None else first_page.height
        validate_page_dimensions(page_width, page_height)

        drawing_origin = detect_drawing_origin(first_page) if first_page else (0.0, 0.0)
        text_items = first_page.text_items if first_page else ()
        self._check_not_placed(drawing_id, characteristics)

        # Balloons go on the first page, so only its annotations can anchor them
        annotations = {}
        for record in self.store.get_annotations(drawing_id):
            if record.characteristic_id is None:
                continue
            if record.page != 0:
                logger.debug(
                    f"Ignoring annotation on page {record.page + 1} as a target "
                    f"for characteristic {record.characteristic_id}"
                )
                continue
            annotations[record.characteristic_id] = record
        total = len(characteristics)
        logger.info(
            f"Placing {total} balloons (diameter {balloon_diameter(total)}) "
            f"with drawing origin ({drawing_origin[0]:.0f}, {drawing_origin[1]:.0f})"
        )

        arena: List[PlacedBalloon] = []
        balloons = []
        for index, char in enumerate(characteristics):
            if char.id is None:
                self.store.add_characteristic(char)
            if char.balloon_number is None:
                char.balloon_number = index + 1

            target = self._resolve_target(char, annotations, first_page)
            placement = self.placer.place(
                target, index, page_width, page_height, arena, total, text_items, drawing_origin
            )
            arena.append(PlacedBalloon(placement.x, placement.y, placement.diameter))

            x = round_half_up(placement.x)
            y = round_half_up(placement.y)
            horizontal = "right" if placement.side == "left" else "left"
            if target is not None:
                center_x, center_y = target.center
                leader_x, leader_y = round_half_up(center_x), round_half_up(center_y)
            else:
                leader_x, leader_y = leader_offset(x, y, horizontal, "down")

            if leader_distance(x, y, leader_x, leader_y) < MIN_LEADER_DISTANCE:
                logger.warning(f"Balloon #{char.balloon_number}: leader too close, adjusting")
                leader_x, leader_y = leader_offset(x, y, horizontal, "down")

            balloon = self.store.create_balloon(Balloon(
                id=str(uuid.uuid4()),
                characteristic_id=char.id,
                drawing_id=drawing_id,
                balloon_number=char.balloon_number,
                x_position=x,
                y_position=y,
                leader_x=round_half_up(leader_x),
                leader_y=round_half_up(leader_y),
            ))
            char.drawing_zone = zone_of(x, y, page_width, page_height)
            balloons.append(balloon)

        logger.info(f"Created {len(balloons)} balloons for drawing {drawing_id}")
        return balloons

    # -- full run ----------------------------------------------------------

    def process_drawing(
        self,
        drawing_id: str,
        characteristics: Sequence[Characteristic],
        object_storage: Any,
        pdf_bytes: Optional[bytes] = None
    ) -> DrawingResult:
        """
        Run matching and placement for one drawing.

        The PDF comes from ``pdf_bytes`` or, when omitted, from the cache.
        A failed matching phase is reported in the result and placement
        still runs on text search alone.

        Raises:
            PDFReadError: If no PDF is available or text extraction fails
            ValidationError: If the page dimensions are invalid
        """
        if pdf_bytes is None:
            pdf_bytes = self.pdf_cache.get(drawing_id)
            if pdf_bytes is None:
                raise PDFReadError(f"No PDF available for drawing {drawing_id}")
        else:
            self.pdf_cache.put(drawing_id, pdf_bytes)

        pages = self.extract_pages(pdf_bytes)
        annotation_result = self.generate_annotations(
            drawing_id, pdf_bytes, characteristics, object_storage, pages=pages
        )
        logger.info(
            f"Annotation generation: {'SUCCESS' if annotation_result.success else 'FAILED'}, "
            f"matched {annotation_result.matched_count}/{len(characteristics)}"
        )

        errors = list(annotation_result.errors)
        errors.extend(self.register_characteristics(drawing_id, characteristics))
        balloons = self.place_balloons(drawing_id, characteristics, pages)

        return DrawingResult(
            drawing_id=drawing_id,
            annotation_result=annotation_result,
            characteristics=list(characteristics),
            balloons=balloons,
            errors=errors,
        )

    # -- edits -------------------------------------------------------------

    def reorder_balloons(self, balloon1_id: str, balloon2_id: str) -> None:
        """Swap two balloons' numbers together with their characteristics' numbers."""
        self.store.swap_balloon_numbers(balloon1_id, balloon2_id)

    def create_manual_balloon(
        self,
        drawing_id: str,
        characteristic_id: str,
        balloon_number: int,
        x: float,
        y: float,
        page_width: float,
        page_height: float
    ) -> Balloon:
        """
        Place a balloon at a user-chosen position.

        The leader is always computed here and the zone is set from the
        position.

        Raises:
            BalloonNotFoundError: If the characteristic is unknown
            DuplicateBalloonError: If the characteristic already has a balloon
            ValidationError: If the page dimensions are invalid
        """
        char = self.store.get_characteristic(characteristic_id)
        if any(b.characteristic_id == characteristic_id for b in self.store.get_balloons()):
            raise DuplicateBalloonError(f"Characteristic {characteristic_id} already has a balloon")

        zone = zone_of(x, y, page_width, page_height)
        leader_x, leader_y = leader_offset(x, y)
        balloon = self.store.create_balloon(Balloon(
            id=str(uuid.uuid4()),
            characteristic_id=characteristic_id,
            drawing_id=drawing_id,
            balloon_number=balloon_number,
            x_position=x,
            y_position=y,
            leader_x=leader_x,
            leader_y=leader_y,
        ))
        char.drawing_zone = zone
        char.balloon_number = balloon_number
        return balloon
