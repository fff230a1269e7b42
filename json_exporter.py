"""Export balloon placement results to JSON format."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

from exceptions import JSONExportError
from models import Balloon, Characteristic, DrawingResult

logger = logging.getLogger(__name__)


class JSONExporter:
    """Export a drawing's characteristics, balloons and annotation summary to JSON."""

    def __init__(self, pdf_path: Path):
        """
        Initialize JSONExporter.

        Args:
            pdf_path: Path to the PDF file
        """
        self.pdf_path = Path(pdf_path)
        self.pdf_name = self.pdf_path.name

    def _get_output_path(self, filename: Optional[str] = None) -> Path:
        """
        Get output path for JSON file.

        Args:
            filename: Optional custom filename. If None, uses {pdfname}_balloons.json.

        Returns:
            Path to output JSON file
        """
        if filename is None:
            filename = f"{self.pdf_path.stem}_balloons.json"

        if not filename.endswith('.json'):
            filename = f"{filename}.json"

        # Output in PDF's parent directory
        return self.pdf_path.parent / filename

    @staticmethod
    def _characteristic_data(char: Characteristic) -> Dict[str, Any]:
        return {
            "id": char.id,
            "balloon_number": char.balloon_number,
            "requirement_type": char.requirement_type.value,
            "description": char.description,
            "nominal_value": char.nominal_value,
            "tolerance_plus": char.tolerance_plus,
            "tolerance_minus": char.tolerance_minus,
            "unit": char.unit,
            "gdt_type": char.gdt_type,
            "drawing_zone": char.drawing_zone,
            "location": asdict(char.location) if char.location is not None else None,
        }

    @staticmethod
    def _balloon_data(balloon: Balloon) -> Dict[str, Any]:
        return asdict(balloon)

    def _format_data(
        self,
        result: DrawingResult,
        total_pages: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Format a drawing result for JSON export.

        Args:
            result: Output of the placement pipeline
            total_pages: Optional total page count of the PDF

        Returns:
            Dictionary formatted for JSON export
        """
        annotation = result.annotation_result
        return {
            "pdf_name": self.pdf_name,
            "drawing_id": result.drawing_id,
            "total_pages": total_pages,
            "annotations": {
                "success": annotation.success,
                "annotated_pdf_url": annotation.annotated_pdf_url,
                "annotation_count": annotation.annotation_count,
                "matched_count": annotation.matched_count,
            },
            "characteristics": [self._characteristic_data(c) for c in result.characteristics],
            "balloons": [self._balloon_data(b) for b in result.balloons],
            "errors": list(result.errors),
        }

    def export(
        self,
        result: DrawingResult,
        output_filename: Optional[str] = None,
        total_pages: Optional[int] = None
    ) -> Path:
        """
        Export a drawing result to a JSON file.

        Args:
            result: Output of the placement pipeline
            output_filename: Optional custom output filename
            total_pages: Optional total page count from PDF

        Returns:
            Path to the exported JSON file

        Raises:
            JSONExportError: If export fails
        """
        try:
            output_path = self._get_output_path(output_filename)
            data = self._format_data(result, total_pages=total_pages)

            with open(output_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            logger.info(f"JSON exported successfully: {output_path}")
            return output_path

        except Exception as e:
            error_msg = f"Failed to export JSON: {str(e)}"
            logger.error(error_msg)
            raise JSONExportError(error_msg) from e
