"""CSV reading and writing for product spreadsheets."""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable


def parse_csv(text: str) -> list[list[str]]:
    """Split CSV text into trimmed rows, dropping lines with no content.

    Quoted fields may hold commas, line breaks and doubled quotes, so
    ``a,"b,c",d`` reads as ``['a', 'b,c', 'd']``.
    """

    if not text:
        return []
    if text.startswith("\ufeff"):
        text = text[1:]

    rows: list[list[str]] = []
    reader = csv.reader(io.StringIO(text, newline=""))
    for row in reader:
        cleaned = [field.strip() for field in row]
        if any(cleaned):
            rows.append(cleaned)
    return rows


def format_cell(value) -> str:
    """Render one cell the way the importer reads it back."""

    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format(value.quantize(Decimal("0.01")), "f")
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def write_csv(rows: Iterable[Iterable[object]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    for row in rows:
        writer.writerow([format_cell(cell) for cell in row])
    return output.getvalue()
