"""Main entry point for the drawing balloon mapper."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, List

from cli_handler import CLIHandler
from exceptions import BalloonMapperException, PDFDecryptionError
from json_exporter import JSONExporter
from models import PageInfo
from orchestrator import PlacementOrchestrator
from overlap_filter import OverlapFilter
from pdf_reader import PDFReader
from storage import LocalObjectStorage

logger = logging.getLogger(__name__)

# Default overlap threshold constant
OVERLAP_THRESHOLD_DEFAULT = 0.5


def build_page_extractor(args: argparse.Namespace) -> Callable[[bytes], List[PageInfo]]:
    """Text extraction honouring the page range, password and overlap options."""
    page_range = CLIHandler.parse_page_range(args.pages) if args.pages else None
    overlap_filter = (
        OverlapFilter(overlap_threshold=OVERLAP_THRESHOLD_DEFAULT)
        if args.filter_overlapping else None
    )

    def extract(pdf_bytes: bytes) -> List[PageInfo]:
        reader = PDFReader(pdf_bytes=pdf_bytes)
        reader.open_pdf()
        try:
            reader.decrypt_pdf(password=args.encryption_password)
            pages = reader.extract_pages(page_range=page_range)
        finally:
            reader.close()

        if overlap_filter is not None:
            logger.info(f"Filtering overlapping text items using strategy: {args.overlap_strategy}")
            pages = overlap_filter.filter_overlapping(pages, strategy=args.overlap_strategy)
        return pages

    return extract


def main():
    """Main entry point for the balloon mapper."""
    try:
        args = CLIHandler.parse_arguments()

        logging.basicConfig(
            level=getattr(logging, args.log_level),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        CLIHandler.validate_arguments(args)

        pdf_path = Path(args.pdf_path)
        drawing_id = args.drawing_id or pdf_path.stem
        logger.info(f"Processing drawing {drawing_id}: {pdf_path}")

        pdf_reader = PDFReader(pdf_path)
        pdf_reader.validate_path()
        pdf_reader.open_pdf()
        try:
            try:
                pdf_reader.decrypt_pdf(password=args.encryption_password)
            except PDFDecryptionError as e:
                logger.error(f"PDF decryption failed: {e}")
                if not args.encryption_password:
                    logger.error("Please provide --encryption-password if PDF is encrypted")
                sys.exit(1)
            pdf_bytes = pdf_reader.read_bytes()
            total_pages = pdf_reader.get_pdf_metadata()['total_pages']
        finally:
            pdf_reader.close()

        characteristics = CLIHandler.load_characteristics(Path(args.characteristics))

        output_dir = Path(args.output_dir) if args.output_dir else pdf_path.parent
        orchestrator = PlacementOrchestrator(page_extractor=build_page_extractor(args))
        result = orchestrator.process_drawing(
            drawing_id,
            characteristics,
            LocalObjectStorage(output_dir),
            pdf_bytes=pdf_bytes,
        )

        for error in result.errors:
            logger.warning(f"Non-fatal error: {error}")

        for char in result.characteristics:
            logger.info(f"#{char.balloon_number} {char.drawing_zone} {(char.description or '')[:40]}")

        if args.save_json is not None:
            json_exporter = JSONExporter(pdf_path)
            output_filename = None if args.save_json == '' else args.save_json
            output_path = json_exporter.export(
                result,
                output_filename=output_filename,
                total_pages=total_pages
            )
            logger.info(f"JSON exported to: {output_path}")

        logger.info(f"Placed {len(result.balloons)} balloons")

    except BalloonMapperException as e:
        logger.error(f"Balloon Mapper Error: {e}")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"Validation Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
