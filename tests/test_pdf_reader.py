from __future__ import annotations

import fitz
import pytest

from exceptions import PDFReadError, PDFValidationError
from models import PageInfo, TextItem
from pdf_reader import PDFReader, detect_drawing_origin, extract_page_infos


@pytest.fixture
def drawing_bytes():
    document = fitz.open()
    page = document.new_page(width=612, height=792)
    page.insert_text((100, 200), "NOTE ONE", fontsize=10)
    page.insert_text((300, 400), "10.5 +0.1", fontsize=10)
    document.new_page(width=612, height=792)
    data = document.tobytes()
    document.close()
    return data


def test_extract_pages_groups_words_into_lines(drawing_bytes):
    pages = extract_page_infos(drawing_bytes)

    assert [p.page_number for p in pages] == [1, 2]
    assert (pages[0].width, pages[0].height) == (612, 792)
    texts = [item.text for item in pages[0].text_items]
    assert "NOTE ONE" in texts
    note = pages[0].text_items[texts.index("NOTE ONE")]
    assert note.page_number == 1
    assert note.x == pytest.approx(100, abs=1)
    assert note.y < 200 < note.y + note.height
    assert pages[1].text_items == ()


def test_page_range_skips_out_of_range_pages(drawing_bytes):
    reader = PDFReader(pdf_bytes=drawing_bytes)
    reader.open_pdf()
    try:
        pages = reader.extract_pages(page_range=[1, 5])
    finally:
        reader.close()

    assert [p.page_number for p in pages] == [2]


def test_read_file_from_disk(tmp_path, drawing_bytes):
    path = tmp_path / "drawing.pdf"
    path.write_bytes(drawing_bytes)
    reader = PDFReader(path)

    assert reader.validate_path()
    reader.open_pdf()
    try:
        assert reader.decrypt_pdf()
        assert reader.get_pdf_metadata()["total_pages"] == 2
    finally:
        reader.close()
    assert reader.read_bytes() == drawing_bytes


def test_missing_file_fails_validation(tmp_path):
    with pytest.raises(PDFValidationError):
        PDFReader(tmp_path / "missing.pdf").validate_path()


def test_non_pdf_bytes_fail_to_open():
    with pytest.raises(PDFReadError):
        PDFReader(pdf_bytes=b"not a pdf").open_pdf()


def test_extract_before_open():
    with pytest.raises(PDFReadError):
        PDFReader(pdf_bytes=b"%PDF").extract_pages()


def test_drawing_origin_is_capped_near_page_corner():
    page = PageInfo(1, 1000, 800, [
        TextItem("A", 1, 12, 300, 10, 10),
        TextItem("B", 1, 400, 500, 10, 10),
    ])

    assert detect_drawing_origin(page) == (12, 40)
    assert detect_drawing_origin(PageInfo(1, 1000, 800)) == (0.0, 0.0)
