from __future__ import annotations

import json

import pytest

from cli_handler import CLIHandler
from models import RequirementType


@pytest.mark.parametrize("page_str,expected", [
    ("1,3,5", [0, 2, 4]),
    ("1-5", [0, 1, 2, 3, 4]),
    ("1,3-5,10", [0, 2, 3, 4, 9]),
    ("2,2,1", [0, 1]),
    ("", []),
])
def test_parse_page_range(page_str, expected):
    assert CLIHandler.parse_page_range(page_str) == expected


@pytest.mark.parametrize("page_str", ["0", "5-3", "a", "1-b"])
def test_parse_page_range_rejects_bad_input(page_str):
    with pytest.raises(ValueError):
        CLIHandler.parse_page_range(page_str)


def test_load_characteristics_accepts_wrapped_camel_case(tmp_path):
    path = tmp_path / "chars.json"
    path.write_text(json.dumps({"characteristics": [
        {"requirementType": "dimension", "description": "Bore", "nominalValue": 10.5,
         "tolerancePlus": 0.1, "toleranceMinus": 0.1, "unit": "mm"},
        {"requirement_type": "gdt", "description": "Flatness", "gdt_type": "flatness"},
    ]}), encoding="utf-8")

    chars = CLIHandler.load_characteristics(path)

    assert [c.requirement_type for c in chars] == [RequirementType.DIMENSION, RequirementType.GDT]
    assert chars[0].nominal_value == 10.5
    assert chars[1].gdt_type == "flatness"


def test_load_characteristics_rejects_bad_files(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    scalar = tmp_path / "scalar.json"
    scalar.write_text("42", encoding="utf-8")

    with pytest.raises(ValueError):
        CLIHandler.load_characteristics(broken)
    with pytest.raises(ValueError):
        CLIHandler.load_characteristics(scalar)
    with pytest.raises(ValueError):
        CLIHandler.load_characteristics(tmp_path / "missing.json")


def test_parse_arguments_defaults():
    args = CLIHandler.parse_arguments(["drawing.pdf", "--characteristics", "chars.json"])

    assert args.save_json is None
    assert args.overlap_strategy == "keep_largest"
    assert args.log_level == "INFO"


def test_save_json_without_filename():
    args = CLIHandler.parse_arguments(["drawing.pdf", "--characteristics", "c.json", "--save-json"])

    assert args.save_json == ""


def test_validate_arguments(tmp_path):
    pdf = tmp_path / "drawing.pdf"
    pdf.write_bytes(b"%PDF")
    chars = tmp_path / "chars.json"
    chars.write_text("[]", encoding="utf-8")

    ok = CLIHandler.parse_arguments([str(pdf), "--characteristics", str(chars), "--pages", "1-2"])
    assert CLIHandler.validate_arguments(ok)

    bad = CLIHandler.parse_arguments([str(pdf), "--characteristics", str(chars), "--pages", "3-1"])
    with pytest.raises(ValueError, match="Invalid page range"):
        CLIHandler.validate_arguments(bad)
