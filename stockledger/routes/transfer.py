from __future__ import annotations

from flask import Blueprint, jsonify, request

from stockledger.context import resolve_owner_context
from stockledger.errors import ValidationError
from stockledger.services.product_export import (
    EXPORT_COLUMNS,
    export_filename,
    export_rows,
)
from stockledger.services.product_import import import_products
from stockledger.utils.csv_export import csv_download
from stockledger.utils.tabular_import import TabularImportError, parse_tabular_upload


bp = Blueprint("transfer", __name__, url_prefix="/api/products")


@bp.get("/export")
def export_products():
    """
    Export products to CSV, grouped by category.
    """
    ctx = resolve_owner_context()
    return csv_download(export_rows(ctx), EXPORT_COLUMNS, export_filename())


@bp.post("/import")
def import_products_upload():
    """
    Import products from a CSV, TSV or XLSX upload (form field ``file``),
    or from a raw ``text/csv`` request body.
    - Rows that fail are listed in ``errors``; the others are still saved.
    - Unknown category/location names are listed in ``warnings``.
    """
    ctx = resolve_owner_context()

    if request.mimetype == "text/csv":
        csv_text = request.get_data(as_text=True)
    else:
        try:
            csv_text = parse_tabular_upload(request.files.get("file"))
        except TabularImportError as exc:
            raise ValidationError(str(exc), fields=["file"]) from exc

    report = import_products(ctx, csv_text)
    return jsonify(report.to_dict()), 200 if report.success else 207
