"""In-process stores for annotations and balloons, object storage and the PDF cache."""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from exceptions import (
    BalloonNotFoundError,
    DuplicateBalloonError,
    PersistenceError,
    UploadError,
)
from models import AnnotationRecord, Balloon, Characteristic

logger = logging.getLogger(__name__)

DEFAULT_CACHE_ENTRIES = 16


class WriteTicket:
    """Shared state between a batch write and the caller waiting for it."""

    def __init__(self):
        self.cancelled = False
        self.committed = False


class DrawingStore:
    """
    Thread-safe store for annotation records, characteristics and balloons.

    Every mutating call holds one lock for its whole duration, so a batch
    insert or a balloon swap is applied completely or not at all.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._annotations: List[AnnotationRecord] = []
        self._characteristics: Dict[str, Characteristic] = {}
        self._balloons: Dict[str, Balloon] = {}

    # -- annotations -------------------------------------------------------

    def insert_annotations(
        self,
        records: Sequence[AnnotationRecord],
        ticket: Optional[WriteTicket] = None
    ) -> int:
        """
        Insert a batch of annotation records atomically.

        Args:
            records: Records to insert
            ticket: Lets a caller that stopped waiting cancel the write

        Returns:
            Number of records inserted

        Raises:
            PersistenceError: If any record is invalid; nothing is written
        """
        with self._lock:
            staged = []
            for record in records:
                if not record.drawing_id or record.extraction_key is None:
                    error_msg = (
                        f"Annotation record missing drawing id or extraction key: {record}"
                    )
                    logger.error(error_msg)
                    raise PersistenceError(error_msg)
                staged.append(copy.copy(record))
            if ticket is not None:
                if ticket.cancelled:
                    error_msg = f"Annotation batch of {len(staged)} records cancelled by caller"
                    logger.error(error_msg)
                    raise PersistenceError(error_msg)
                ticket.committed = True
            self._annotations.extend(staged)
            logger.debug(f"Inserted {len(staged)} annotation records")
            return len(staged)

    def cancel_write(self, ticket: WriteTicket) -> bool:
        """
        Cancel a batch write that has not been applied yet.

        Returns:
            False if the batch was already committed
        """
        with self._lock:
            if ticket.committed:
                return False
            ticket.cancelled = True
            return True

    def backfill_characteristic_id(
        self,
        drawing_id: str,
        extraction_key: str,
        characteristic_id: str
    ) -> int:
        """Link annotation records to a characteristic by extraction key."""
        with self._lock:
            updated = 0
            for record in self._annotations:
                if record.drawing_id == drawing_id and record.extraction_key == extraction_key:
                    record.characteristic_id = characteristic_id
                    updated += 1
            return updated

    def get_annotations(self, drawing_id: str) -> List[AnnotationRecord]:
        with self._lock:
            return [copy.copy(r) for r in self._annotations if r.drawing_id == drawing_id]

    # -- characteristics ---------------------------------------------------

    def add_characteristic(self, characteristic: Characteristic) -> Characteristic:
        """Register a characteristic, assigning an id if it has none."""
        with self._lock:
            if characteristic.id is None:
                characteristic.id = str(uuid.uuid4())
            self._characteristics[characteristic.id] = characteristic
            return characteristic

    def get_characteristic(self, characteristic_id: str) -> Characteristic:
        with self._lock:
            try:
                return self._characteristics[characteristic_id]
            except KeyError:
                raise BalloonNotFoundError(
                    f"Characteristic not found: {characteristic_id}"
                ) from None

    # -- balloons ----------------------------------------------------------

    def create_balloon(self, balloon: Balloon) -> Balloon:
        """
        Store a balloon.

        Raises:
            DuplicateBalloonError: If the characteristic already has a balloon
                or the number is taken in the drawing
        """
        with self._lock:
            for existing in self._balloons.values():
                if existing.characteristic_id == balloon.characteristic_id:
                    raise DuplicateBalloonError(
                        f"Characteristic {balloon.characteristic_id} already has a balloon"
                    )
                if (existing.drawing_id == balloon.drawing_id
                        and existing.balloon_number == balloon.balloon_number):
                    raise DuplicateBalloonError(
                        f"Balloon number {balloon.balloon_number} already used "
                        f"in drawing {balloon.drawing_id}"
                    )
            self._balloons[balloon.id] = balloon
            return balloon

    def get_balloons(self, drawing_id: Optional[str] = None) -> List[Balloon]:
        with self._lock:
            balloons = [
                b for b in self._balloons.values()
                if drawing_id is None or b.drawing_id == drawing_id
            ]
            return sorted(balloons, key=lambda b: b.balloon_number)

    def swap_balloon_numbers(self, balloon1_id: str, balloon2_id: str) -> None:
        """
        Swap the numbers of two balloons and of their characteristics.

        Raises:
            BalloonNotFoundError: If either balloon or characteristic is unknown;
                nothing is changed
        """
        with self._lock:
            balloon1 = self._balloons.get(balloon1_id)
            balloon2 = self._balloons.get(balloon2_id)
            if balloon1 is None or balloon2 is None:
                raise BalloonNotFoundError(
                    f"Balloons not found: {balloon1_id}, {balloon2_id}"
                )
            char1 = self.get_characteristic(balloon1.characteristic_id)
            char2 = self.get_characteristic(balloon2.characteristic_id)

            num1, num2 = balloon1.balloon_number, balloon2.balloon_number
            balloon1.balloon_number, balloon2.balloon_number = num2, num1
            char1.balloon_number, char2.balloon_number = num2, num1
            logger.info(f"Swapped balloon numbers {num1} and {num2}")


class LocalObjectStorage:
    """Object store that writes uploads under a local directory."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def upload_file(self, data: bytes, key: str, content_type: str = "application/pdf") -> str:
        """
        Write ``data`` under ``key`` and return its file URL.

        Raises:
            UploadError: If the file cannot be written
        """
        try:
            target = self.root / key
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            logger.info(f"Uploaded {len(data)} bytes ({content_type}) to {target}")
            return target.resolve().as_uri()
        except OSError as e:
            error_msg = f"Failed to upload {key}: {str(e)}"
            logger.error(error_msg)
            raise UploadError(error_msg) from e


class PDFCache:
    """Least-recently-used cache of PDF bytes keyed by drawing id."""

    def __init__(self, max_entries: int = DEFAULT_CACHE_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, bytes]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, drawing_id: str, pdf_bytes: bytes) -> None:
        with self._lock:
            self._entries[drawing_id] = pdf_bytes
            self._entries.move_to_end(drawing_id)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted PDF for drawing {evicted} from cache")

    def get(self, drawing_id: str) -> Optional[bytes]:
        with self._lock:
            pdf_bytes = self._entries.get(drawing_id)
            if pdf_bytes is not None:
                self._entries.move_to_end(drawing_id)
            return pdf_bytes

    def __contains__(self, drawing_id: str) -> bool:
        with self._lock:
            return drawing_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
