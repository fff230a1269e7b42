"""Command-line argument parsing and validation."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List

from models import Characteristic

logger = logging.getLogger(__name__)


class CLIHandler:
    """Handle command-line argument parsing and validation."""

    @staticmethod
    def parse_page_range(page_str: str) -> List[int]:
        """
        Parse page range string into list of page numbers.

        Supports formats:
        - "1,3,5" -> [0, 2, 4] (0-indexed)
        - "1-5" -> [0, 1, 2, 3, 4]
        - "1,3-5,10" -> [0, 2, 3, 4, 9]

        Args:
            page_str: Comma-separated page range string (1-indexed)

        Returns:
            List of page numbers (0-indexed)

        Raises:
            ValueError: If page range format is invalid
        """
        if not page_str:
            return []

        pages = []
        for part in page_str.split(','):
            part = part.strip()
            if '-' in part:
                try:
                    start, end = (int(p.strip()) for p in part.split('-', 1))
                except ValueError as e:
                    raise ValueError(f"Invalid page range format: {part}") from e

                if start < 1 or end < 1:
                    raise ValueError(f"Page numbers must be >= 1: {part}")
                if start > end:
                    raise ValueError(f"Start page must be <= end page: {part}")

                pages.extend(range(start - 1, end))
            else:
                try:
                    page_num = int(part)
                except ValueError as e:
                    raise ValueError(f"Invalid page number: {part}") from e

                if page_num < 1:
                    raise ValueError(f"Page numbers must be >= 1: {part}")
                pages.append(page_num - 1)

        return sorted(set(pages))

    @staticmethod
    def load_characteristics(path: Path) -> List[Characteristic]:
        """
        Load the extraction output: a JSON list of characteristic objects,
        or an object holding that list under "characteristics".

        Raises:
            ValueError: If the file is not valid characteristic JSON
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Cannot read characteristics file {path}: {e}") from e

        if isinstance(data, dict):
            data = data.get("characteristics", [])
        if not isinstance(data, list):
            raise ValueError(f"Characteristics file must hold a list: {path}")

        characteristics = [Characteristic.from_dict(entry) for entry in data]
        logger.info(f"Loaded {len(characteristics)} characteristics from {path}")
        return characteristics

    @staticmethod
    def build_parser() -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Match drawing characteristics to PDF text and place numbered balloons",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )

        parser.add_argument(
            'pdf_path',
            type=str,
            help='Path to input PDF drawing'
        )

        parser.add_argument(
            '--characteristics',
            type=str,
            required=True,
            metavar='FILE',
            help='JSON file with the extracted characteristics, in balloon order'
        )

        parser.add_argument(
            '--drawing-id',
            type=str,
            default=None,
            help='Identifier of the drawing (default: PDF file stem)'
        )

        parser.add_argument(
            '--output-dir',
            type=str,
            default=None,
            metavar='DIR',
            help='Directory receiving the highlighted PDF (default: next to the input PDF)'
        )

        parser.add_argument(
            '--save-json',
            type=str,
            nargs='?',
            const='',
            default=None,
            metavar='FILENAME',
            help='Save balloons and zones to JSON. '
                 'If flag is provided without filename, uses default: {pdfname}_balloons.json.'
        )

        parser.add_argument(
            '--filter-overlapping',
            action='store_true',
            help='Drop duplicated, overlapping text items before matching'
        )

        parser.add_argument(
            '--overlap-strategy',
            type=str,
            default='keep_largest',
            choices=['keep_largest', 'keep_first'],
            help='Strategy for --filter-overlapping. Options: keep_largest (default), keep_first'
        )

        parser.add_argument(
            '--encryption-password',
            type=str,
            default=None,
            metavar='PASSWORD',
            help='Password for encrypted PDF'
        )

        parser.add_argument(
            '--pages',
            type=str,
            default=None,
            metavar='RANGE',
            help='Page range to read text from (1-indexed). '
                 'Examples: "1,3,5" or "1-5" or "1,3-5,10"'
        )

        parser.add_argument(
            '--log-level',
            type=str,
            default='INFO',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            help='Set logging level (default: INFO)'
        )

        return parser

    @staticmethod
    def parse_arguments(argv: List[str] = None) -> argparse.Namespace:
        """Parse command-line arguments."""
        return CLIHandler.build_parser().parse_args(argv)

    @staticmethod
    def validate_arguments(args: argparse.Namespace) -> bool:
        """
        Validate parsed arguments.

        Raises:
            ValueError: If arguments are invalid
        """
        pdf_path = Path(args.pdf_path)
        if not pdf_path.exists():
            raise ValueError(f"PDF file not found: {pdf_path}")
        if not pdf_path.is_file():
            raise ValueError(f"Path is not a file: {pdf_path}")
        if pdf_path.suffix.lower() != '.pdf':
            raise ValueError(f"File is not a PDF: {pdf_path}")

        if not Path(args.characteristics).is_file():
            raise ValueError(f"Characteristics file not found: {args.characteristics}")

        if args.pages:
            try:
                CLIHandler.parse_page_range(args.pages)
            except ValueError as e:
                raise ValueError(f"Invalid page range: {e}") from e

        return True
