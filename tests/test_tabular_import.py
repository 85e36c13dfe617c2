import io
import os
import sys

import pytest
from openpyxl import Workbook
from werkzeug.datastructures import FileStorage

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stockledger.utils.csv_codec import parse_csv
from stockledger.utils.tabular_import import TabularImportError, parse_tabular_upload


def _upload(data: bytes, filename: str) -> FileStorage:
    return FileStorage(stream=io.BytesIO(data), filename=filename)


def test_csv_upload_strips_bom():
    text = parse_tabular_upload(_upload("\ufeffName,SKU\nBolt,B-1\n".encode("utf-8"), "items.CSV"))
    assert parse_csv(text) == [["Name", "SKU"], ["Bolt", "B-1"]]


def test_tsv_upload_becomes_csv():
    text = parse_tabular_upload(_upload(b"Name\tSKU\nBolt, zinc\tB-1\n", "items.tsv"))
    assert parse_csv(text) == [["Name", "SKU"], ["Bolt, zinc", "B-1"]]


def test_xlsx_upload_reads_active_sheet():
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Name", "SKU", "Quantity"])
    sheet.append(["Bolt", "B-1", 12])
    sheet.append([None, None, None])
    buffer = io.BytesIO()
    workbook.save(buffer)

    text = parse_tabular_upload(_upload(buffer.getvalue(), "items.xlsx"))

    assert parse_csv(text) == [["Name", "SKU", "Quantity"], ["Bolt", "B-1", "12"]]


@pytest.mark.parametrize(
    "upload, message",
    [
        (None, "No file uploaded."),
        (_upload(b"x", ""), "No file uploaded."),
        (_upload(b"x", "items.pdf"), "Unsupported file type"),
        (_upload(b"\xff\xfe\x00", "items.csv"), "UTF-8"),
        (_upload(b"not a workbook", "items.xlsx"), "could not be read"),
    ],
)
def test_rejected_uploads(upload, message):
    with pytest.raises(TabularImportError) as excinfo:
        parse_tabular_upload(upload)
    assert message in str(excinfo.value)
