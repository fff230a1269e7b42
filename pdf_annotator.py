"""Colour-coded highlight rendering of matched characteristics using PyMuPDF."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

import fitz  # PyMuPDF

from exceptions import PDFAnnotationError
from models import AnnotationBox, AnnotationType

logger = logging.getLogger(__name__)

ANNOTATION_COLORS = {
    AnnotationType.DIMENSION: (0.2, 0.4, 1.0),        # blue
    AnnotationType.GDT: (0.2, 0.8, 0.3),              # green
    AnnotationType.MATERIAL: (1.0, 0.8, 0.2),         # yellow
    AnnotationType.PROCESS: (1.0, 0.5, 0.2),          # orange
    AnnotationType.NOTE: (0.8, 0.2, 0.8),             # purple
    AnnotationType.FUNCTIONAL_TEST: (1.0, 0.2, 0.2),  # red
}

HIGHLIGHT_PADDING = 2.0
HIGHLIGHT_OPACITY = 0.3
BORDER_WIDTH = 2.0


class PDFHighlightAnnotator:
    """Draw semi-transparent highlight rectangles over matched text."""

    def __init__(self, pdf_bytes: bytes):
        """
        Initialize PDFHighlightAnnotator.

        Args:
            pdf_bytes: Original PDF content; it is never modified in place
        """
        if not pdf_bytes:
            raise PDFAnnotationError("PDF content cannot be empty")
        self.pdf_bytes = pdf_bytes

    @staticmethod
    def group_by_page(annotations: Sequence[AnnotationBox]) -> Dict[int, List[AnnotationBox]]:
        pages: Dict[int, List[AnnotationBox]] = {}
        for annotation in annotations:
            pages.setdefault(annotation.page, []).append(annotation)
        return pages

    def annotate_page(self, page: fitz.Page, annotations: Sequence[AnnotationBox]) -> None:
        """
        Highlight every box on one page.

        Raises:
            PDFAnnotationError: If an annotation cannot be added
        """
        try:
            for annotation in annotations:
                rect = fitz.Rect(
                    annotation.x - HIGHLIGHT_PADDING,
                    annotation.y - HIGHLIGHT_PADDING,
                    annotation.x + annotation.width + HIGHLIGHT_PADDING,
                    annotation.y + annotation.height + HIGHLIGHT_PADDING,
                )
                color = ANNOTATION_COLORS[annotation.type]

                annot = page.add_rect_annot(rect)
                annot.set_border(width=BORDER_WIDTH)
                annot.set_colors(stroke=color, fill=color)
                annot.set_opacity(HIGHLIGHT_OPACITY)
                annot.set_info(content=annotation.text)
                annot.update()

            logger.debug(f"Highlighted {len(annotations)} boxes on page {page.number}")
        except Exception as e:
            error_msg = f"Failed to annotate page {page.number}: {str(e)}"
            logger.error(error_msg)
            raise PDFAnnotationError(error_msg) from e

    def render(self, annotations: Sequence[AnnotationBox]) -> bytes:
        """
        Produce a highlighted copy of the PDF.

        Boxes on pages the document does not have are skipped.

        Args:
            annotations: Boxes to highlight (page is 0-indexed)

        Returns:
            Bytes of the annotated PDF

        Raises:
            PDFAnnotationError: If the PDF cannot be opened, drawn on or saved
        """
        try:
            document = fitz.open(stream=self.pdf_bytes, filetype="pdf")
        except Exception as e:
            error_msg = f"Failed to open PDF for highlighting: {str(e)}"
            logger.error(error_msg)
            raise PDFAnnotationError(error_msg) from e

        try:
            pages = self.group_by_page(annotations)
            for page_index in sorted(pages):
                if page_index < 0 or page_index >= len(document):
                    logger.warning(f"Skipping highlights for missing page {page_index}")
                    continue
                self.annotate_page(document[page_index], pages[page_index])

            output = document.tobytes()
            logger.info(f"Rendered {len(annotations)} highlights on {len(pages)} page(s)")
            return output
        except PDFAnnotationError:
            raise
        except Exception as e:
            error_msg = f"Failed to save highlighted PDF: {str(e)}"
            logger.error(error_msg)
            raise PDFAnnotationError(error_msg) from e
        finally:
            document.close()
