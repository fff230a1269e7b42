from __future__ import annotations

import fitz
import pytest

from exceptions import PDFAnnotationError
from models import AnnotationBox, AnnotationType
from pdf_annotator import ANNOTATION_COLORS, PDFHighlightAnnotator


@pytest.fixture
def blank_pdf():
    document = fitz.open()
    document.new_page(width=612, height=792)
    data = document.tobytes()
    document.close()
    return data


def _box(page=0, kind=AnnotationType.DIMENSION):
    return AnnotationBox(x=100, y=200, width=40, height=10, type=kind, text="10.5 ±0.1", page=page)


def _annotation_count(pdf_bytes):
    document = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        return sum(len(list(page.annots())) for page in document)
    finally:
        document.close()


def test_every_type_has_a_colour():
    assert set(ANNOTATION_COLORS) == set(AnnotationType)


def test_render_adds_one_rectangle_per_box(blank_pdf):
    output = PDFHighlightAnnotator(blank_pdf).render([_box(), _box(kind=AnnotationType.GDT)])

    assert _annotation_count(output) == 2
    assert _annotation_count(blank_pdf) == 0


def test_boxes_on_missing_pages_are_skipped(blank_pdf):
    output = PDFHighlightAnnotator(blank_pdf).render([_box(), _box(page=3)])

    assert _annotation_count(output) == 1


def test_empty_pdf_rejected():
    with pytest.raises(PDFAnnotationError):
        PDFHighlightAnnotator(b"")


def test_group_by_page():
    grouped = PDFHighlightAnnotator.group_by_page([_box(0), _box(1), _box(0)])

    assert {page: len(boxes) for page, boxes in grouped.items()} == {0: 2, 1: 1}
