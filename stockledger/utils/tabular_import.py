"""Turn product spreadsheet uploads (CSV, TSV, XLSX) into CSV text for the importer."""

from __future__ import annotations

import csv
import io
import os

from openpyxl import load_workbook
from werkzeug.datastructures import FileStorage

from stockledger.utils.csv_codec import write_csv


SUPPORTED_EXTENSIONS = (".csv", ".tsv", ".xlsx")


class TabularImportError(ValueError):
    """Raised when an upload cannot be turned into CSV text."""


def _decode(data: bytes, label: str) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise TabularImportError(f"{label} import files must be UTF-8 encoded.") from exc


def _tsv_to_csv(data: bytes) -> str:
    reader = csv.reader(io.StringIO(_decode(data, "TSV"), newline=""), delimiter="\t")
    return write_csv(reader)


def _xlsx_to_csv(data: bytes) -> str:
    try:
        workbook = load_workbook(filename=io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise TabularImportError("The XLSX file could not be read.") from exc
    try:
        # Only the active sheet is imported.
        rows = workbook.active.iter_rows(values_only=True)
        return write_csv(row for row in rows if any(cell is not None for cell in row))
    finally:
        workbook.close()


def parse_tabular_upload(file_storage: FileStorage | None) -> str:
    """Return CSV text for the uploaded product sheet."""

    if not file_storage or not file_storage.filename:
        raise TabularImportError("No file uploaded.")

    ext = os.path.splitext(file_storage.filename)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise TabularImportError(
            "Unsupported file type. Upload a CSV, TSV, or XLSX file."
        )

    data = file_storage.stream.read()
    if ext == ".csv":
        return _decode(data, "CSV")
    if ext == ".tsv":
        return _tsv_to_csv(data)
    return _xlsx_to_csv(data)
