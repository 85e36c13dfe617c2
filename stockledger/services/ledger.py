"""Stock ledger: every quantity change is applied together with its history entry.

Each operation validates its input before touching the database, reads the
product row with ``SELECT ... FOR UPDATE`` and then writes the product and the
matching :class:`~stockledger.models.HistoryEntry` in one transaction. Either
both rows land or neither does.

Quantity only moves through :func:`stock_in` and :func:`stock_out`;
:func:`update_product_details` refuses a ``quantity`` field.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from stockledger.context import OwnerContext
from stockledger.errors import (
    BackendError,
    InsufficientStockError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from stockledger.extensions import db
from stockledger.models import Category, HistoryAction, HistoryEntry, Location, Product


logger = logging.getLogger(__name__)

REQUIRED_PRODUCT_FIELDS = ("name", "sku", "category_id", "location_id")
BULK_REQUIRED_PRODUCT_FIELDS = ("name", "sku")
TEXT_FIELDS = ("description", "brand", "specification")
EDITABLE_FIELDS = (
    "name",
    "sku",
    "min_stock",
    "price",
    "category_id",
    "location_id",
    "description",
    "brand",
    "specification",
    "unit_of_measure",
)
DEFAULT_UNIT_OF_MEASURE = "pcs"
DEFAULT_MIN_STOCK = 10


@dataclass(frozen=True)
class StockInDetails:
    contact_person: str
    price_per_unit: Decimal | None = None
    date: date | None = None
    notes: str = ""


@dataclass(frozen=True)
class StockOutDetails:
    contact_person: str
    date: date | None = None
    notes: str = ""


@dataclass(frozen=True)
class StockChange:
    product: Product
    entry: HistoryEntry
    quantity_before: int
    quantity_after: int

    def to_dict(self) -> dict[str, object]:
        return {
            "product": self.product.to_dict(),
            "entry": self.entry.to_dict(),
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
        }


@dataclass(frozen=True)
class QuantityDrift:
    product_id: int
    sku: str
    stored: int
    derived: int

    def to_dict(self) -> dict[str, object]:
        return {
            "product_id": self.product_id,
            "sku": self.sku,
            "stored": self.stored,
            "derived": self.derived,
        }


############################
# INPUT PARSING
############################
def _clean_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_int(value, field: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number.", fields=[field])
    if isinstance(value, int):
        parsed = value
    else:
        text = _clean_text(value)
        try:
            parsed = int(text)
        except ValueError:
            raise ValidationError(f"{field} must be a whole number.", fields=[field])
    if minimum is not None and parsed < minimum:
        raise ValidationError(f"{field} must be at least {minimum}.", fields=[field])
    return parsed


def parse_price(value, field: str = "price") -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number.", fields=[field])
    if isinstance(value, (int, float)):
        value = str(value)
    text = _clean_text(value)
    try:
        parsed = Decimal(text)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number.", fields=[field])
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a number.", fields=[field])
    if parsed < 0:
        raise ValidationError(f"{field} cannot be negative.", fields=[field])
    return parsed.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_transaction_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(_clean_text(value))
    except ValueError:
        raise ValidationError("date must be formatted YYYY-MM-DD.", fields=["date"])


def _default_unit() -> str:
    return current_app.config.get("DEFAULT_UNIT_OF_MEASURE") or DEFAULT_UNIT_OF_MEASURE


def _default_min_stock() -> int:
    return int(current_app.config.get("DEFAULT_MIN_STOCK", DEFAULT_MIN_STOCK))


def _require_delta(delta) -> int:
    parsed = parse_int(delta, "quantity")
    if parsed <= 0:
        raise ValidationError("Please enter a valid quantity.", fields=["quantity"])
    return parsed


def _require_contact(contact_person, action: str) -> str:
    contact = _clean_text(contact_person)
    if not contact:
        label = (
            "who received the stock"
            if action == HistoryAction.STOCK_IN
            else "who the stock was issued to"
        )
        raise ValidationError(f"Please enter {label}.", fields=["contact_person"])
    return contact


############################
# PERSISTENCE HELPERS
############################
@contextmanager
def _ledger_write(operation: str) -> Iterator[None]:
    """Commit everything staged inside the block as one transaction."""

    try:
        yield
        db.session.commit()
    except LedgerError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("%s failed; product and history writes rolled back", operation)
        raise BackendError(f"Could not record {operation}; no changes were saved.") from exc


def _load_product(ctx: OwnerContext, product_id, *, lock: bool = False) -> Product:
    try:
        identifier = int(product_id)
    except (TypeError, ValueError):
        raise NotFoundError("Product", product_id)
    query = Product.query.filter_by(id=identifier, owner_id=ctx.owner_id)
    if lock:
        query = query.with_for_update()
    try:
        product = query.first()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Product lookup failed for id=%s", identifier)
        raise BackendError("Could not load the product.") from exc
    if product is None:
        raise NotFoundError("Product", identifier)
    return product


def _require_reference(ctx: OwnerContext, model, kind: str, identifier: str) -> None:
    try:
        exists = (
            model.query.filter_by(id=identifier, owner_id=ctx.owner_id).first() is not None
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError(f"Could not verify the {kind.lower()}.") from exc
    if not exists:
        raise NotFoundError(kind, identifier)


def _append_entry(ctx: OwnerContext, product_id: int, action: str, quantity: int, **fields) -> HistoryEntry:
    entry = HistoryEntry(
        owner_id=ctx.owner_id,
        product_id=product_id,
        action=action,
        quantity=quantity,
        timestamp=datetime.utcnow(),
        **fields,
    )
    db.session.add(entry)
    return entry


############################
# OPERATIONS
############################
def create_product(ctx: OwnerContext, data: Mapping[str, object], *, bulk: bool = False) -> Product:
    """Persist a new product and its ``created`` ledger entry.

    ``bulk`` is the CSV import path: category and location may be left blank
    there, and the entry is annotated as an import.
    """

    required = BULK_REQUIRED_PRODUCT_FIELDS if bulk else REQUIRED_PRODUCT_FIELDS
    missing = [field for field in required if not _clean_text(data.get(field))]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}.", fields=missing
        )

    quantity = parse_int(data.get("quantity") or 0, "quantity", minimum=0)
    min_stock_raw = data.get("min_stock")
    min_stock = (
        _default_min_stock()
        if min_stock_raw is None or min_stock_raw == ""
        else parse_int(min_stock_raw, "min_stock", minimum=0)
    )
    price = parse_price(data.get("price") or 0)

    category_id = _clean_text(data.get("category_id")) or None
    location_id = _clean_text(data.get("location_id")) or None
    if category_id:
        _require_reference(ctx, Category, "Category", category_id)
    if location_id:
        _require_reference(ctx, Location, "Location", location_id)

    product = Product(
        owner_id=ctx.owner_id,
        name=_clean_text(data.get("name")),
        sku=_clean_text(data.get("sku")),
        quantity=quantity,
        min_stock=min_stock,
        price=price,
        category_id=category_id,
        location_id=location_id,
        unit_of_measure=_clean_text(data.get("unit_of_measure")) or _default_unit(),
        created_at=datetime.utcnow(),
        **{field: _clean_text(data.get(field)) for field in TEXT_FIELDS},
    )

    with _ledger_write("product creation"):
        db.session.add(product)
        db.session.flush()
        _append_entry(
            ctx,
            product.id,
            HistoryAction.CREATED,
            quantity,
            notes="Product imported" if bulk else "Product created",
        )

    logger.info(
        "created owner=%s product=%s sku=%s quantity=%s bulk=%s",
        ctx.owner_id,
        product.id,
        product.sku,
        quantity,
        bulk,
    )
    return product


def stock_in(ctx: OwnerContext, product_id, delta, details: StockInDetails) -> StockChange:
    amount = _require_delta(delta)
    contact = _require_contact(details.contact_person, HistoryAction.STOCK_IN)
    price_per_unit = (
        parse_price(details.price_per_unit, "price_per_unit")
        if details.price_per_unit is not None
        else None
    )
    transaction_date = parse_transaction_date(details.date)

    product = _load_product(ctx, product_id, lock=True)
    before = product.quantity or 0
    after = before + amount
    if price_per_unit is None:
        price_per_unit = Decimal(product.price or 0)

    with _ledger_write("stock in"):
        product.quantity = after
        entry = _append_entry(
            ctx,
            product.id,
            HistoryAction.STOCK_IN,
            amount,
            notes=_clean_text(details.notes) or "Stock added",
            contact_person=contact,
            price_per_unit=price_per_unit,
            transaction_date=transaction_date,
        )

    logger.info(
        "stock_in owner=%s product=%s delta=%s quantity=%s->%s",
        ctx.owner_id,
        product.id,
        amount,
        before,
        after,
    )
    return StockChange(product=product, entry=entry, quantity_before=before, quantity_after=after)


def stock_out(ctx: OwnerContext, product_id, delta, details: StockOutDetails) -> StockChange:
    amount = _require_delta(delta)
    contact = _require_contact(details.contact_person, HistoryAction.STOCK_OUT)
    transaction_date = parse_transaction_date(details.date)

    product = _load_product(ctx, product_id, lock=True)
    before = product.quantity or 0
    if amount > before:
        # Release the row lock taken by the locking read.
        db.session.rollback()
        logger.warning(
            "stock_out rejected owner=%s product=%s requested=%s available=%s",
            ctx.owner_id,
            product_id,
            amount,
            before,
        )
        raise InsufficientStockError(available=before, requested=amount)
    after = before - amount

    with _ledger_write("stock out"):
        product.quantity = after
        entry = _append_entry(
            ctx,
            product.id,
            HistoryAction.STOCK_OUT,
            amount,
            notes=_clean_text(details.notes) or "Stock removed",
            contact_person=contact,
            transaction_date=transaction_date,
        )

    logger.info(
        "stock_out owner=%s product=%s delta=%s quantity=%s->%s",
        ctx.owner_id,
        product.id,
        amount,
        before,
        after,
    )
    return StockChange(product=product, entry=entry, quantity_before=before, quantity_after=after)


def adjust_stock(ctx: OwnerContext, product_id, action: str, delta, details: Mapping[str, object]) -> StockChange:
    """Dispatch a stock adjustment form to :func:`stock_in` or :func:`stock_out`."""

    if action == HistoryAction.STOCK_IN:
        price_raw = details.get("price_per_unit")
        return stock_in(
            ctx,
            product_id,
            delta,
            StockInDetails(
                contact_person=_clean_text(details.get("contact_person")),
                price_per_unit=None if price_raw in (None, "") else price_raw,
                date=details.get("date"),
                notes=_clean_text(details.get("notes")),
            ),
        )
    if action == HistoryAction.STOCK_OUT:
        if details.get("price_per_unit") not in (None, ""):
            raise ValidationError(
                "price_per_unit only applies to stock in.", fields=["price_per_unit"]
            )
        return stock_out(
            ctx,
            product_id,
            delta,
            StockOutDetails(
                contact_person=_clean_text(details.get("contact_person")),
                date=details.get("date"),
                notes=_clean_text(details.get("notes")),
            ),
        )
    raise ValidationError(
        "action must be stock_in or stock_out.", fields=["action"]
    )


def update_product_details(ctx: OwnerContext, product_id, fields: Mapping[str, object]) -> Product:
    if "quantity" in fields:
        raise ValidationError(
            "Quantity can only change through stock in or stock out.",
            fields=["quantity"],
        )
    unknown = sorted(key for key in fields if key not in EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {', '.join(unknown)}.", fields=unknown
        )
    if not fields:
        raise ValidationError("No fields to update.")

    blanked = [
        field
        for field in REQUIRED_PRODUCT_FIELDS
        if field in fields and not _clean_text(fields[field])
    ]
    if blanked:
        raise ValidationError(
            f"Missing required fields: {', '.join(blanked)}.", fields=blanked
        )

    changes: dict[str, object] = {}
    for field, value in fields.items():
        if field == "min_stock":
            changes[field] = parse_int(value, "min_stock", minimum=0)
        elif field == "price":
            changes[field] = parse_price(value)
        elif field == "unit_of_measure":
            changes[field] = _clean_text(value) or _default_unit()
        else:
            changes[field] = _clean_text(value)

    if "category_id" in changes:
        _require_reference(ctx, Category, "Category", changes["category_id"])
    if "location_id" in changes:
        _require_reference(ctx, Location, "Location", changes["location_id"])

    product = _load_product(ctx, product_id, lock=True)

    with _ledger_write("product update"):
        for field, value in changes.items():
            setattr(product, field, value)
        _append_entry(
            ctx,
            product.id,
            HistoryAction.UPDATED,
            0,
            notes="Product details updated",
        )

    logger.info(
        "updated owner=%s product=%s fields=%s",
        ctx.owner_id,
        product.id,
        ",".join(sorted(changes)),
    )
    return product


def delete_product(ctx: OwnerContext, product_id) -> HistoryEntry:
    product = _load_product(ctx, product_id, lock=True)
    identifier = product.id
    sku = product.sku

    with _ledger_write("product deletion"):
        db.session.delete(product)
        entry = _append_entry(
            ctx,
            identifier,
            HistoryAction.DELETED,
            0,
            notes="Product deleted",
        )

    logger.info("deleted owner=%s product=%s sku=%s", ctx.owner_id, identifier, sku)
    return entry


############################
# LEDGER CONSISTENCY
############################
def _signed_quantity():
    return case(
        (
            HistoryEntry.action.in_((HistoryAction.CREATED, HistoryAction.STOCK_IN)),
            HistoryEntry.quantity,
        ),
        (HistoryEntry.action == HistoryAction.STOCK_OUT, -HistoryEntry.quantity),
        else_=0,
    )


def derive_quantity(ctx: OwnerContext, product_id) -> int:
    """Fold the product's history into the quantity it should hold."""

    product = _load_product(ctx, product_id)
    try:
        total = (
            db.session.query(func.coalesce(func.sum(_signed_quantity()), 0))
            .filter(
                HistoryEntry.owner_id == ctx.owner_id,
                HistoryEntry.product_id == product.id,
            )
            .scalar()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError("Could not read the product history.") from exc
    return int(total or 0)


def audit_quantities(ctx: OwnerContext) -> list[QuantityDrift]:
    """Return every product whose stored quantity disagrees with its history."""

    try:
        totals = (
            db.session.query(
                HistoryEntry.product_id,
                func.coalesce(func.sum(_signed_quantity()), 0),
            )
            .filter(HistoryEntry.owner_id == ctx.owner_id)
            .group_by(HistoryEntry.product_id)
            .all()
        )
        products = (
            Product.query.filter_by(owner_id=ctx.owner_id).order_by(Product.id).all()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError("Could not audit product quantities.") from exc

    derived_map = {product_id: int(total or 0) for product_id, total in totals}
    drifts = []
    for product in products:
        derived = derived_map.get(product.id, 0)
        if derived != (product.quantity or 0):
            drifts.append(
                QuantityDrift(
                    product_id=product.id,
                    sku=product.sku,
                    stored=product.quantity or 0,
                    derived=derived,
                )
            )
    if drifts:
        logger.warning(
            "Ledger drift for owner=%s on %s product(s)", ctx.owner_id, len(drifts)
        )
    return drifts
