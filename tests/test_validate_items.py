import sys
import textwrap
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parent.parent))

import synthesis_path
from validate_items import ValidationError, main, validate_csv

HEADER = (
    "name,fire,ice,light,wind,category1,category2,category3,category4,"
    "material_number,recipe_number,chapter,synthesis_type,ingredient1,ingredient2,"
    "ingredient3,ingredient4,add_category1,add_category2,from_recipe1,"
    "from_requiring1,from_recipe2,from_requiring2,extra_synth_quantity,effect_spread"
)


def test_validate_csv_reports_multiple_errors(tmp_path: Path) -> None:
    csv_path = tmp_path / "items.csv"
    csv_path.write_text(
        HEADER
        + "\n"
        + textwrap.dedent(
            """\
            ,,,,,,,,,300,,,,,,,,,,,,,,,
            Mystery Bomb,,,,,,,,,1,2,,,,,,,,,,,,,,
            Flam,x,,,,(Bombs),,,,,3,,Bomb,,,,,,,Craft,,,,x,
            Too Short,x
            Flam,,,,,,,,,4,,,,,,,,,,,,,,,
            Uni,,,x,,(Plants),,,,1,,,,,,,,,,,,,,,

            """
        ),
        encoding="utf-8",
    )

    problems = validate_csv(csv_path)

    assert [row for row, *_ in problems] == [2, 3, 4, 5, 6]

    line2_errors = {message for _, item, errors in problems if item == "<missing item>" for message in errors}
    assert "Item name must not be empty" in line2_errors
    assert "Material number must be between 0 and 255" in line2_errors

    line3_errors = {message for _, item, errors in problems if item == "Mystery Bomb" for message in errors}
    assert "Material number and recipe number are mutually exclusive" in line3_errors
    assert "Recipes must name a chapter" not in line3_errors

    line4_errors = problems[2][2]
    assert "Recipes must name a chapter" in line4_errors
    assert "Recipes must list at least one ingredient" in line4_errors
    assert "Morphs need both a base recipe and a required item" in line4_errors
    assert "Extra synthesis quantity must be an integer (got x)" in line4_errors

    assert problems[3] == (5, "Too Short", ["Expected 25 fields (got 2)"])
    assert problems[4] == (6, "Flam", ["Duplicate of item on line 4"])


def test_validate_csv_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        validate_csv(tmp_path / "missing.csv")


def test_validate_csv_empty_file(tmp_path: Path) -> None:
    csv_path = tmp_path / "items.csv"
    csv_path.write_text("", encoding="utf-8")
    with pytest.raises(ValidationError):
        validate_csv(csv_path)


def test_repository_dataset_is_clean(capsys) -> None:
    assert validate_csv(synthesis_path.DATA_FILE) == []
    assert main([]) == 0
    assert "no problems found" in capsys.readouterr().out


def test_main_prints_report(tmp_path: Path, capsys) -> None:
    csv_path = tmp_path / "items.csv"
    csv_path.write_text(HEADER + "\nToo Short,x\n", encoding="utf-8")

    assert main([str(csv_path)]) == 1
    out = capsys.readouterr().out
    assert "Found 1 problem row(s) in items.csv:" in out
    assert "  Line 2: Too Short" in out
    assert "    - Expected 25 fields (got 2)" in out


def test_validate_csv_rejects_loose_number_formats(tmp_path: Path) -> None:
    csv_path = tmp_path / "items.csv"
    csv_path.write_text(
        HEADER
        + "\n"
        + "Uni,,,,,,,,,1_0" + "," * 15 + "\n"
        + "Clay,,,,,,,,, 5" + "," * 15 + "\n"
        + "Sand,,,,,,,,,+5" + "," * 15 + "\n",
        encoding="utf-8",
    )

    problems = validate_csv(csv_path)

    assert problems == [
        (2, "Uni", ["Material number must be an integer (got 1_0)"]),
        (3, "Clay", ["Material number must be an integer (got  5)"]),
    ]


def test_validate_csv_unreadable_files(tmp_path: Path) -> None:
    binary_path = tmp_path / "items.csv"
    binary_path.write_bytes(HEADER.encode() + b"\nUni\xff\n")
    with pytest.raises(ValidationError):
        validate_csv(binary_path)

    with pytest.raises(ValidationError):
        validate_csv(tmp_path)
