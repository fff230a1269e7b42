from __future__ import annotations

import pytest

from exceptions import BalloonNotFoundError, DuplicateBalloonError, PersistenceError
from models import AnnotationRecord, AnnotationType, Balloon, Characteristic, RequirementType
from storage import DrawingStore, LocalObjectStorage, PDFCache, WriteTicket


def _record(key, drawing_id="d1"):
    return AnnotationRecord(
        drawing_id=drawing_id,
        extraction_key=key,
        page=0,
        annotation_type=AnnotationType.NOTE,
        x=10, y=20, width=30, height=10,
        text_snippet="NOTE",
        ai_confidence=0.9,
    )


def _balloon(balloon_id, characteristic_id, number, drawing_id="d1"):
    return Balloon(balloon_id, characteristic_id, drawing_id, number, 100, 100, 130, 115)


def test_batch_insert_is_all_or_nothing():
    store = DrawingStore()

    with pytest.raises(PersistenceError):
        store.insert_annotations([_record("0"), _record("1", drawing_id="")])

    assert store.get_annotations("d1") == []


def test_backfill_links_by_extraction_key():
    store = DrawingStore()
    store.insert_annotations([_record("0"), _record("1"), _record("0", drawing_id="d2")])

    assert store.backfill_characteristic_id("d1", "0", "char-a") == 1

    linked = {r.extraction_key: r.characteristic_id for r in store.get_annotations("d1")}
    assert linked == {"0": "char-a", "1": None}
    assert store.get_annotations("d2")[0].characteristic_id is None


def test_stored_records_are_copies():
    store = DrawingStore()
    record = _record("0")
    store.insert_annotations([record])

    record.characteristic_id = "mutated"

    assert store.get_annotations("d1")[0].characteristic_id is None


def test_duplicate_balloons_rejected():
    store = DrawingStore()
    store.create_balloon(_balloon("b1", "c1", 1))

    with pytest.raises(DuplicateBalloonError):
        store.create_balloon(_balloon("b2", "c1", 2))
    with pytest.raises(DuplicateBalloonError):
        store.create_balloon(_balloon("b3", "c3", 1))
    # Numbers are only unique within a drawing
    store.create_balloon(_balloon("b4", "c4", 1, drawing_id="d2"))


def test_swap_balloon_numbers():
    store = DrawingStore()
    first = store.add_characteristic(Characteristic(RequirementType.NOTE, "first"))
    second = store.add_characteristic(Characteristic(RequirementType.NOTE, "second"))
    first.balloon_number, second.balloon_number = 3, 7
    store.create_balloon(_balloon("b3", first.id, 3))
    store.create_balloon(_balloon("b7", second.id, 7))

    store.swap_balloon_numbers("b3", "b7")

    assert [(b.id, b.balloon_number) for b in store.get_balloons("d1")] == [("b7", 3), ("b3", 7)]
    assert (first.balloon_number, second.balloon_number) == (7, 3)


def test_swap_with_unknown_balloon_changes_nothing():
    store = DrawingStore()
    char = store.add_characteristic(Characteristic(RequirementType.NOTE, "only"))
    store.create_balloon(_balloon("b1", char.id, 1))

    with pytest.raises(BalloonNotFoundError):
        store.swap_balloon_numbers("b1", "missing")

    assert store.get_balloons()[0].balloon_number == 1


def test_add_characteristic_assigns_id():
    store = DrawingStore()
    char = store.add_characteristic(Characteristic(RequirementType.NOTE, "x"))

    assert char.id
    assert store.get_characteristic(char.id) is char
    with pytest.raises(BalloonNotFoundError):
        store.get_characteristic("missing")


def test_local_object_storage_writes_file(tmp_path):
    storage = LocalObjectStorage(tmp_path)

    url = storage.upload_file(b"%PDF data", "drawings/d1_annotated.pdf")

    assert (tmp_path / "drawings" / "d1_annotated.pdf").read_bytes() == b"%PDF data"
    assert url.startswith("file://")


def test_pdf_cache_evicts_least_recently_used():
    cache = PDFCache(max_entries=2)
    cache.put("a", b"A")
    cache.put("b", b"B")
    cache.get("a")
    cache.put("c", b"C")

    assert "a" in cache
    assert "b" not in cache
    assert cache.get("c") == b"C"
    assert len(cache) == 2


def test_pdf_cache_rejects_zero_capacity():
    with pytest.raises(ValueError):
        PDFCache(max_entries=0)


def test_cancelled_write_is_refused():
    store = DrawingStore()
    ticket = WriteTicket()

    assert store.cancel_write(ticket)
    with pytest.raises(PersistenceError):
        store.insert_annotations([_record("0")], ticket)

    assert store.get_annotations("d1") == []


def test_committed_write_cannot_be_cancelled():
    store = DrawingStore()
    ticket = WriteTicket()
    store.insert_annotations([_record("0")], ticket)

    assert not store.cancel_write(ticket)
    assert len(store.get_annotations("d1")) == 1
