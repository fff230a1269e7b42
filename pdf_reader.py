"""PDF file reading, validation, decryption, and text item extraction."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import fitz  # PyMuPDF

from exceptions import PDFDecryptionError, PDFReadError, PDFValidationError
from models import PageInfo, TextItem

logger = logging.getLogger(__name__)


class PDFReader:
    """Handle PDF file reading, validation, decryption, and text extraction."""

    def __init__(self, pdf_path: Optional[Path] = None, pdf_bytes: Optional[bytes] = None):
        """
        Initialize PDFReader from a file path or from raw bytes.

        Args:
            pdf_path: Path to the PDF file
            pdf_bytes: PDF content already in memory
        """
        if pdf_path is None and pdf_bytes is None:
            raise ValueError("Either pdf_path or pdf_bytes is required")

        self.pdf_path = Path(pdf_path) if pdf_path is not None else None
        self.pdf_bytes = pdf_bytes
        self.pdf_document: Optional[fitz.Document] = None
        self.pdf_name = self.pdf_path.name if self.pdf_path is not None else "<memory>"

    def validate_path(self) -> bool:
        """
        Validate PDF file path and existence.

        Returns:
            True if path is valid

        Raises:
            PDFValidationError: If path is invalid or file doesn't exist
        """
        if self.pdf_path is None:
            return True

        if not self.pdf_path.exists():
            error_msg = f"PDF file not found: {self.pdf_path}"
            logger.error(error_msg)
            raise PDFValidationError(error_msg)

        if not self.pdf_path.is_file():
            error_msg = f"Path is not a file: {self.pdf_path}"
            logger.error(error_msg)
            raise PDFValidationError(error_msg)

        if self.pdf_path.suffix.lower() != '.pdf':
            error_msg = f"File is not a PDF: {self.pdf_path}"
            logger.error(error_msg)
            raise PDFValidationError(error_msg)

        logger.info(f"PDF path validated: {self.pdf_path}")
        return True

    def open_pdf(self) -> fitz.Document:
        """
        Open the PDF.

        Returns:
            Opened PyMuPDF Document object

        Raises:
            PDFReadError: If PDF cannot be opened
        """
        try:
            if self.pdf_bytes is not None:
                self.pdf_document = fitz.open(stream=self.pdf_bytes, filetype="pdf")
            else:
                self.pdf_document = fitz.open(self.pdf_path)
            logger.info(f"PDF opened successfully: {self.pdf_name}")
            return self.pdf_document
        except Exception as e:
            error_msg = f"Failed to open PDF: {self.pdf_name}. Error: {str(e)}"
            logger.error(error_msg)
            raise PDFReadError(error_msg) from e

    def read_bytes(self) -> bytes:
        """Return the raw PDF content, reading the file if needed."""
        if self.pdf_bytes is None:
            try:
                self.pdf_bytes = self.pdf_path.read_bytes()
            except OSError as e:
                error_msg = f"Failed to read PDF: {self.pdf_path}. Error: {str(e)}"
                logger.error(error_msg)
                raise PDFReadError(error_msg) from e
        return self.pdf_bytes

    def decrypt_pdf(self, password: Optional[str] = None) -> bool:
        """
        Decrypt PDF if encrypted.

        Args:
            password: Optional password for encrypted PDF

        Returns:
            True if decryption successful or PDF is not encrypted

        Raises:
            PDFDecryptionError: If decryption fails
        """
        if self.pdf_document is None:
            raise PDFReadError("PDF document not opened. Call open_pdf() first.")

        if not self.pdf_document.needs_pass:
            logger.info("PDF is not encrypted")
            return True

        try:
            result = self.pdf_document.authenticate(password or "")
        except Exception as e:
            error_msg = f"Failed to decrypt PDF: {str(e)}"
            logger.error(error_msg)
            raise PDFDecryptionError(error_msg) from e

        if not result:
            error_msg = (
                "PDF decryption failed: Invalid password" if password
                else "PDF is encrypted and requires a password"
            )
            logger.error(error_msg)
            raise PDFDecryptionError(error_msg)

        logger.info("PDF decrypted successfully")
        return True

    def get_page_dimensions(self, page_num: int) -> Tuple[float, float]:
        """
        Get page dimensions in points.

        Args:
            page_num: Page number (0-indexed)

        Returns:
            Tuple of (width, height)
        """
        if self.pdf_document is None:
            raise PDFReadError("PDF document not opened. Call open_pdf() first.")

        if page_num < 0 or page_num >= len(self.pdf_document):
            raise ValueError(f"Invalid page number: {page_num}")

        rect = self.pdf_document[page_num].rect
        return rect.width, rect.height

    def _validate_bbox(
        self,
        bbox: Tuple[float, float, float, float],
        page_width: float,
        page_height: float
    ) -> bool:
        """
        Validate bounding box coordinates.

        Args:
            bbox: Tuple of (x0, y0, x1, y1)
            page_width: Page width in points
            page_height: Page height in points

        Returns:
            True if bbox is valid, False otherwise
        """
        x0, y0, x1, y1 = bbox

        if not all(math.isfinite(coord) for coord in bbox):
            logger.warning(f"Bbox contains non-finite values: {bbox}")
            return False

        if x1 <= x0 or y1 <= y0:
            logger.warning(f"Invalid bbox dimensions: {bbox} (x1 <= x0 or y1 <= y0)")
            return False

        # Out-of-page boxes are kept, a rotated or cropped page can produce them
        if x0 < 0 or y0 < 0 or x1 > page_width or y1 > page_height:
            logger.warning(
                f"Bbox {bbox} extends beyond page bounds "
                f"({page_width}x{page_height})"
            )

        return True

    def extract_pages(self, page_range: Optional[List[int]] = None) -> List[PageInfo]:
        """
        Extract line-level text items with bounding boxes, page by page.

        Words are grouped by (block, line) so that a toleranced dimension
        such as "10.5 ±0.1" comes out as one item.

        Args:
            page_range: Optional list of page numbers to process (0-indexed).
                       If None, processes all pages.

        Returns:
            List of PageInfo objects in page order

        Raises:
            PDFReadError: If PDF is not opened or extraction fails
        """
        if self.pdf_document is None:
            raise PDFReadError("PDF document not opened. Call open_pdf() first.")

        total_pages = len(self.pdf_document)
        if page_range is None:
            pages_to_process = list(range(total_pages))
        else:
            pages_to_process = []
            for page_num in page_range:
                if page_num < 0 or page_num >= total_pages:
                    logger.warning(f"Page {page_num} is out of range (0-{total_pages-1}), skipping")
                    continue
                pages_to_process.append(page_num)

        logger.info(f"Extracting text from {len(pages_to_process)} page(s)")

        pages = []
        for page_num in pages_to_process:
            try:
                pages.append(self._extract_page(page_num))
            except Exception as e:
                error_msg = f"Failed to extract text from page {page_num}: {str(e)}"
                logger.error(error_msg)
                raise PDFReadError(error_msg) from e

        total_items = sum(len(p.text_items) for p in pages)
        logger.info(f"Found {total_items} text items across {len(pages)} page(s)")
        return pages

    def _extract_page(self, page_num: int) -> PageInfo:
        page = self.pdf_document[page_num]
        page_width, page_height = self.get_page_dimensions(page_num)

        lines: Dict[Tuple[int, int], Dict[str, Any]] = {}
        for word_info in page.get_text("words"):
            if len(word_info) < 8:
                logger.warning(f"Unexpected word format: {word_info}, skipping")
                continue

            x0, y0, x1, y1, word_text, block_no, line_no = word_info[:7]
            key = (block_no if block_no is not None else -1, line_no)

            if key not in lines:
                lines[key] = {'words': [], 'bbox': [x0, y0, x1, y1]}

            line = lines[key]
            line['words'].append(word_text)
            line['bbox'][0] = min(line['bbox'][0], x0)
            line['bbox'][1] = min(line['bbox'][1], y0)
            line['bbox'][2] = max(line['bbox'][2], x1)
            line['bbox'][3] = max(line['bbox'][3], y1)

        items = []
        for key, line in lines.items():
            if not line['words']:
                continue
            bbox = tuple(line['bbox'])
            if not self._validate_bbox(bbox, page_width, page_height):
                logger.warning(f"Skipping invalid bbox {bbox} for line {key} on page {page_num}")
                continue
            x0, y0, x1, y1 = bbox
            items.append(TextItem(
                text=' '.join(line['words']),
                page_number=page_num + 1,
                x=x0,
                y=y0,
                width=x1 - x0,
                height=y1 - y0,
            ))

        logger.debug(f"Extracted {len(items)} text items from page {page_num}")
        return PageInfo(page_number=page_num + 1, width=page_width, height=page_height, text_items=items)

    def get_pdf_metadata(self) -> Dict[str, Any]:
        """
        Get PDF metadata.

        Raises:
            PDFReadError: If PDF is not opened
        """
        if self.pdf_document is None:
            raise PDFReadError("PDF document not opened. Call open_pdf() first.")

        return {
            'pdf_name': self.pdf_name,
            'total_pages': len(self.pdf_document),
            'is_encrypted': self.pdf_document.needs_pass,
            'metadata': self.pdf_document.metadata
        }

    def close(self) -> None:
        """Close the PDF document."""
        if self.pdf_document is not None:
            self.pdf_document.close()
            self.pdf_document = None
            logger.info("PDF document closed")


def extract_page_infos(pdf_bytes: bytes) -> List[PageInfo]:
    """Extract every page of an in-memory PDF."""
    reader = PDFReader(pdf_bytes=pdf_bytes)
    reader.open_pdf()
    try:
        reader.decrypt_pdf()
        return reader.extract_pages()
    finally:
        reader.close()


ORIGIN_MAX_FRACTION = 0.05


def detect_drawing_origin(page: PageInfo) -> Tuple[float, float]:
    """
    Estimate the top-left corner of the drawing frame from the text extent.

    The frame sits near the page corner, so the estimate never moves more
    than ORIGIN_MAX_FRACTION of the page size inwards. A page without text
    uses the page origin.
    """
    if not page.text_items:
        return (0.0, 0.0)
    min_x = min(item.x for item in page.text_items)
    min_y = min(item.y for item in page.text_items)
    origin_x = min(max(0.0, min_x), page.width * ORIGIN_MAX_FRACTION)
    origin_y = min(max(0.0, min_y), page.height * ORIGIN_MAX_FRACTION)
    return (origin_x, origin_y)
