from __future__ import annotations

import json

import pytest

from exceptions import JSONExportError
from json_exporter import JSONExporter
from models import (
    AnnotationResult,
    Balloon,
    Characteristic,
    DrawingResult,
    NormalizedLocation,
    RequirementType,
)


def _result():
    char = Characteristic(
        RequirementType.DIMENSION, "Bore", nominal_value=10.5, id="c1", balloon_number=1,
        drawing_zone="C-6",
        location=NormalizedLocation(0.16, 0.25, 0.06, 0.01, 0, 1.0),
    )
    balloon = Balloon("b1", "c1", "d1", 1, 175, 205, 120, 205)
    annotation = AnnotationResult(success=True, annotation_count=1, matched_count=1,
                                  annotated_pdf_url="file:///tmp/d1_annotated.pdf")
    return DrawingResult("d1", annotation, [char], [balloon], ["warning"])


def test_export_default_filename(tmp_path):
    exporter = JSONExporter(tmp_path / "part-42.pdf")

    path = exporter.export(_result(), total_pages=2)

    assert path == tmp_path / "part-42_balloons.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["drawing_id"] == "d1"
    assert data["total_pages"] == 2
    assert data["annotations"]["matched_count"] == 1
    assert data["characteristics"][0]["requirement_type"] == "dimension"
    assert data["characteristics"][0]["location"]["page"] == 0
    assert data["balloons"][0]["leader_x"] == 120
    assert data["errors"] == ["warning"]


def test_export_custom_filename_gets_extension(tmp_path):
    path = JSONExporter(tmp_path / "part.pdf").export(_result(), output_filename="out")

    assert path.name == "out.json"


def test_export_failure(tmp_path):
    exporter = JSONExporter(tmp_path / "missing-dir" / "part.pdf")

    with pytest.raises(JSONExportError):
        exporter.export(_result())
