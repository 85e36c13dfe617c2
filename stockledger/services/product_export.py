"""Spreadsheet exports of the product list and the ledger."""

from __future__ import annotations

from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from stockledger.context import OwnerContext
from stockledger.errors import BackendError
from stockledger.extensions import db
from stockledger.models import HistoryAction, HistoryEntry, Product
from stockledger.utils.csv_codec import write_csv


UNCATEGORIZED = "Uncategorized"

EXPORT_COLUMNS = (
    ("category", "Category"),
    ("name", "Name"),
    ("sku", "SKU"),
    ("quantity", "Quantity"),
    ("min_stock", "Min Stock"),
    ("price", "Price"),
    ("location", "Location"),
    ("description", "Description"),
    ("brand", "Brand"),
    ("specification", "Specification"),
    ("unit_of_measure", "Unit of Measure"),
)

HISTORY_EXPORT_COLUMNS = (
    ("timestamp", "Timestamp"),
    ("product", "Product"),
    ("sku", "SKU"),
    ("action", "Action"),
    ("quantity", "Quantity"),
    ("contact_person", "Contact"),
    ("price_per_unit", "Price Per Unit"),
    ("date", "Date"),
    ("notes", "Notes"),
)


def export_filename(today: date | None = None) -> str:
    today = today or date.today()
    return f"inventory-export-{today.isoformat()}.csv"


def export_rows(ctx: OwnerContext) -> list[dict[str, object]]:
    """Products grouped by category name, ``Uncategorized`` last."""

    try:
        products = (
            Product.query.options(
                joinedload(Product.category), joinedload(Product.location)
            )
            .filter(Product.owner_id == ctx.owner_id)
            .all()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError("Could not load products for export.") from exc

    rows = []
    for product in products:
        category_name = product.category.name if product.category else None
        rows.append(
            {
                "category": category_name or UNCATEGORIZED,
                "name": product.name,
                "sku": product.sku,
                "quantity": product.quantity,
                "min_stock": product.min_stock,
                "price": product.price,
                "location": product.location.name if product.location else "",
                "description": product.description or "",
                "brand": product.brand or "",
                "specification": product.specification or "",
                "unit_of_measure": product.unit_of_measure or "",
                "_uncategorized": category_name is None,
                "_id": product.id,
            }
        )

    rows.sort(
        key=lambda row: (
            row["_uncategorized"],
            str(row["category"]).lower(),
            str(row["name"]).lower(),
            row["_id"],
        )
    )
    return rows


def export_products_csv(ctx: OwnerContext) -> str:
    rows = export_rows(ctx)
    lines = [[header for _, header in EXPORT_COLUMNS]]
    for row in rows:
        lines.append([row[field] for field, _ in EXPORT_COLUMNS])
    return write_csv(lines)


def history_export_rows(ctx: OwnerContext) -> list[dict[str, object]]:
    try:
        entries = (
            HistoryEntry.query.filter(HistoryEntry.owner_id == ctx.owner_id)
            .order_by(HistoryEntry.timestamp.desc(), HistoryEntry.id.desc())
            .all()
        )
        products = {
            product.id: product
            for product in Product.query.filter(Product.owner_id == ctx.owner_id).all()
        }
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError("Could not load history for export.") from exc

    rows = []
    for entry in entries:
        product = products.get(entry.product_id)
        rows.append(
            {
                "timestamp": entry.timestamp.strftime("%Y-%m-%d %H:%M"),
                "product": product.name if product else "Unknown Product",
                "sku": product.sku if product else "N/A",
                "action": HistoryAction.LABELS.get(entry.action, entry.action),
                "quantity": entry.quantity,
                "contact_person": entry.contact_person or "",
                "price_per_unit": entry.price_per_unit,
                "date": entry.transaction_date,
                "notes": entry.notes or "",
            }
        )
    return rows


def export_history_csv(ctx: OwnerContext) -> str:
    lines = [[header for _, header in HISTORY_EXPORT_COLUMNS]]
    for row in history_export_rows(ctx):
        lines.append([row[field] for field, _ in HISTORY_EXPORT_COLUMNS])
    return write_csv(lines)
