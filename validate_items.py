#!/usr/bin/env python3
"""Validate the project item CSV."""

from __future__ import annotations

import argparse
import csv
import sys
from pathlib import Path

from synthesis_path import DATA_FILE, ROW_LENGTH, is_unsigned_text

NUMBER_COLUMNS = {
    9: "Material number",
    10: "Recipe number",
    23: "Extra synthesis quantity",
    24: "Effect spread",
}

MORPH_COLUMNS = ((19, 20), (21, 22))


class ValidationError(Exception):
    """Raised when validation of the CSV fails."""


class RowValidator:
    """Perform field-by-field validation for a positional CSV row."""

    def __init__(self, row_number: int, row: list[str]):
        self.row_number = row_number
        self.row = row
        self.errors: list[str] = []

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def validate_length(self) -> bool:
        if len(self.row) != ROW_LENGTH:
            self.add_error(f"Expected {ROW_LENGTH} fields (got {len(self.row)})")
            return False
        return True

    def validate_name(self) -> str:
        value = self.row[0]
        if not value.strip():
            self.add_error("Item name must not be empty")
        return value

    def validate_numbers(self) -> None:
        for column, label in NUMBER_COLUMNS.items():
            raw = self.row[column]
            if not raw:
                continue
            if not is_unsigned_text(raw):
                self.add_error(f"{label} must be an integer (got {raw})")
                continue
            if not 0 <= int(raw) <= 255:
                self.add_error(f"{label} must be between 0 and 255")

    def validate_classification(self) -> bool:
        material, recipe = self.row[9], self.row[10]
        if material and recipe:
            self.add_error("Material number and recipe number are mutually exclusive")
        return bool(recipe) and not material

    def validate_synthesis(self) -> None:
        if not self.row[11]:
            self.add_error("Recipes must name a chapter")
        if not any(self.row[13:17]):
            self.add_error("Recipes must list at least one ingredient")
        for recipe_column, requiring_column in MORPH_COLUMNS:
            if bool(self.row[recipe_column]) != bool(self.row[requiring_column]):
                self.add_error(
                    "Morphs need both a base recipe and a required item"
                )

    def validate(self) -> list[str]:
        if not self.validate_length():
            return self.errors
        self.validate_name()
        self.validate_numbers()
        if self.validate_classification():
            self.validate_synthesis()
        return self.errors


def validate_csv(path: Path) -> list[tuple[int, str, list[str]]]:
    """Validate ``path`` and return a list of row errors."""

    try:
        with path.open(newline="", encoding="utf-8") as handle:
            reader = csv.reader(handle)
            header = next(reader, None)
            if header is None:
                raise ValidationError("CSV file has no header row")

            problems: list[tuple[int, str, list[str]]] = []
            seen: dict[str, int] = {}
            for row in reader:
                if not row:
                    continue
                line_number = reader.line_num
                errors = RowValidator(line_number, row).validate()
                name = row[0]
                item = name.strip() or "<missing item>"
                if name in seen:
                    errors.append(f"Duplicate of item on line {seen[name]}")
                elif name:
                    seen[name] = line_number
                if errors:
                    problems.append((line_number, item, errors))
    except FileNotFoundError as exc:
        raise ValidationError(
            f"Item data not found at {path}. Did you download the dataset?"
        ) from exc
    except UnicodeDecodeError as exc:
        raise ValidationError(f"{path} is not valid UTF-8 text") from exc
    except (OSError, csv.Error) as exc:
        raise ValidationError(f"Cannot read item data at {path}: {exc}") from exc

    return problems


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Validate an item CSV file.")
    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        default=DATA_FILE,
        help="CSV file to check (defaults to the repository data file)",
    )
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    try:
        problems = validate_csv(args.path)
    except ValidationError as exc:
        print(f"Error: {exc}")
        return 1

    if not problems:
        print(f"{args.path.name}: no problems found")
        return 0

    print(f"Found {len(problems)} problem row(s) in {args.path.name}:")
    for line_number, item, errors in problems:
        heading = f"  Line {line_number}: {item}"
        print(heading)
        for message in errors:
            print(f"    - {message}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
