"""Bulk product import from spreadsheet text.

Every data row goes through :func:`stockledger.services.ledger.create_product`
in bulk mode, so imported stock gets the same ``created`` ledger entry as a
product entered by hand. A bad row is reported and skipped; the rows around it
are still committed.
"""

from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from stockledger.context import OwnerContext
from stockledger.errors import LedgerError
from stockledger.services import catalog
from stockledger.services.ledger import create_product
from stockledger.utils.csv_codec import parse_csv


logger = logging.getLogger(__name__)

# Positional layout used when the header row is not recognised.
IMPORT_COLUMNS = (
    "name",
    "sku",
    "quantity",
    "min_stock",
    "price",
    "category",
    "location",
    "description",
    "brand",
    "specification",
    "unit_of_measure",
)

HEADER_ALIASES = {
    "name": "name",
    "productname": "name",
    "sku": "sku",
    "quantity": "quantity",
    "qty": "quantity",
    "minstock": "min_stock",
    "price": "price",
    "category": "category",
    "location": "location",
    "description": "description",
    "brand": "brand",
    "specification": "specification",
    "unitofmeasure": "unit_of_measure",
    "unit": "unit_of_measure",
    "uom": "unit_of_measure",
}

UNCATEGORIZED_LABEL = "uncategorized"

_LEADING_INT = re.compile(r"^[+-]?\d+")
_LEADING_DECIMAL = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)")


@dataclass
class ImportReport:
    imported: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "imported": self.imported,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def _normalize_header(value: str) -> str:
    return re.sub(r"[^a-z]", "", value.lower())


def resolve_column_layout(header: list[str]) -> dict[str, int]:
    """Map field names to column positions.

    Headers naming both ``name`` and ``sku`` are read by name, which lets the
    category-first export file come straight back in. Anything else falls back
    to :data:`IMPORT_COLUMNS` order.
    """

    layout: dict[str, int] = {}
    for index, cell in enumerate(header):
        field_name = HEADER_ALIASES.get(_normalize_header(cell))
        if field_name and field_name not in layout:
            layout[field_name] = index
    if "name" in layout and "sku" in layout:
        return layout
    return {field_name: index for index, field_name in enumerate(IMPORT_COLUMNS)}


def _lenient_int(value: str) -> int:
    match = _LEADING_INT.match(value.strip())
    return int(match.group(0)) if match else 0


def _lenient_price(value: str) -> Decimal:
    match = _LEADING_DECIMAL.match(value.strip())
    if not match:
        return Decimal("0")
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return Decimal("0")


def _lookup(names: dict[str, str], label: str) -> str:
    return names.get(label.lower(), "") if label else ""


def import_products(ctx: OwnerContext, csv_text: str) -> ImportReport:
    report = ImportReport()

    try:
        rows = parse_csv(csv_text)
    except csv.Error as exc:
        report.errors.append(f"File parsing error: {exc}")
        return report
    if not rows:
        report.errors.append("CSV file is empty")
        return report

    layout = resolve_column_layout(rows[0])
    required_width = max(layout.values()) + 1
    if len(layout) < len(IMPORT_COLUMNS):
        required_width = max(required_width, len(rows[0]))

    category_ids = {category.name.lower(): category.id for category in catalog.list_categories(ctx)}
    location_ids = {location.name.lower(): location.id for location in catalog.list_locations(ctx)}

    for offset, row in enumerate(rows[1:]):
        row_number = offset + 2

        if len(row) < required_width:
            report.errors.append(f"Row {row_number}: Insufficient columns")
            continue

        def cell(field_name: str) -> str:
            index = layout.get(field_name)
            return row[index] if index is not None else ""

        name = cell("name")
        sku = cell("sku")
        if not name or not sku:
            report.errors.append(f"Row {row_number}: Name and SKU are required")
            continue

        category_label = cell("category")
        location_label = cell("location")
        category_id = _lookup(category_ids, category_label)
        location_id = _lookup(location_ids, location_label)

        if category_label and not category_id and category_label.lower() != UNCATEGORIZED_LABEL:
            report.warnings.append(f'Row {row_number}: Category "{category_label}" not found')
        if location_label and not location_id:
            report.warnings.append(f'Row {row_number}: Location "{location_label}" not found')

        product_data = {
            "name": name,
            "sku": sku,
            "quantity": _lenient_int(cell("quantity")),
            "min_stock": _lenient_int(cell("min_stock")),
            "price": _lenient_price(cell("price")),
            "category_id": category_id,
            "location_id": location_id,
            "description": cell("description"),
            "brand": cell("brand"),
            "specification": cell("specification"),
            "unit_of_measure": cell("unit_of_measure"),
        }

        try:
            create_product(ctx, product_data, bulk=True)
        except LedgerError as exc:
            report.errors.append(f"Row {row_number}: {exc.message}")
            continue
        report.imported += 1

    logger.info(
        "Import finished owner=%s imported=%s errors=%s warnings=%s",
        ctx.owner_id,
        report.imported,
        len(report.errors),
        len(report.warnings),
    )
    return report
