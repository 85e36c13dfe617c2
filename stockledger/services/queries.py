"""Read-only projections: paginated product and history listings, dashboards."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from stockledger.context import OwnerContext
from stockledger.errors import BackendError, NotFoundError, ValidationError
from stockledger.extensions import db
from stockledger.models import Category, HistoryAction, HistoryEntry, Product


DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


@dataclass(frozen=True)
class Page:
    items: list
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        if self.total <= 0:
            return 0
        return math.ceil(self.total / self.page_size)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    def to_dict(self) -> dict[str, object]:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "pages": self.pages,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


@dataclass(frozen=True)
class CategoryBreakdown:
    category_id: str | None
    name: str
    product_count: int
    quantity: int

    def to_dict(self) -> dict[str, object]:
        return {
            "category_id": self.category_id,
            "name": self.name,
            "product_count": self.product_count,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class InventorySummary:
    total_products: int
    total_quantity: int
    total_value: Decimal
    low_stock_count: int
    categories: list[CategoryBreakdown] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "total_products": self.total_products,
            "total_quantity": self.total_quantity,
            "total_value": f"{self.total_value:.2f}",
            "low_stock_count": self.low_stock_count,
            "categories": [entry.to_dict() for entry in self.categories],
        }


def _normalize_paging(page, page_size, max_page_size: int) -> tuple[int, int]:
    try:
        page_value = int(page or 1)
    except (TypeError, ValueError):
        page_value = 1
    try:
        size_value = int(page_size or DEFAULT_PAGE_SIZE)
    except (TypeError, ValueError):
        size_value = DEFAULT_PAGE_SIZE
    page_value = max(page_value, 1)
    size_value = min(max(size_value, 1), max_page_size)
    return page_value, size_value


def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _paginate(query, order_by, page: int, page_size: int) -> Page:
    try:
        pagination = query.order_by(*order_by).paginate(
            page=page, per_page=page_size, max_per_page=page_size, error_out=False
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError("Could not load the requested page.") from exc
    return Page(
        items=list(pagination.items),
        total=pagination.total or 0,
        page=page,
        page_size=page_size,
    )


def list_products(
    ctx: OwnerContext,
    page=1,
    page_size=DEFAULT_PAGE_SIZE,
    category_id: str | None = None,
    search_term: str | None = None,
    low_stock_only: bool = False,
    *,
    max_page_size: int = MAX_PAGE_SIZE,
) -> Page:
    """Products newest first; ``search_term`` matches name, sku or brand."""

    page, page_size = _normalize_paging(page, page_size, max_page_size)

    query = Product.query.options(
        joinedload(Product.category), joinedload(Product.location)
    ).filter(Product.owner_id == ctx.owner_id)
    if category_id:
        query = query.filter(Product.category_id == category_id)
    term = (search_term or "").strip()
    if term:
        pattern = _like(term)
        query = query.filter(
            or_(
                Product.name.ilike(pattern, escape="\\"),
                Product.sku.ilike(pattern, escape="\\"),
                Product.brand.ilike(pattern, escape="\\"),
            )
        )
    if low_stock_only:
        query = query.filter(Product.quantity <= Product.min_stock)

    return _paginate(
        query, (Product.created_at.desc(), Product.id.desc()), page, page_size
    )


def list_history(
    ctx: OwnerContext,
    page=1,
    page_size=DEFAULT_PAGE_SIZE,
    search_term: str | None = None,
    product_id: int | None = None,
    action: str | None = None,
    *,
    max_page_size: int = MAX_PAGE_SIZE,
) -> Page:
    """Ledger entries newest first; ``search_term`` matches notes or contact."""

    page, page_size = _normalize_paging(page, page_size, max_page_size)
    if action and action not in HistoryAction.ALL:
        raise ValidationError(
            f"action must be one of: {', '.join(HistoryAction.ALL)}.", fields=["action"]
        )

    query = HistoryEntry.query.filter(HistoryEntry.owner_id == ctx.owner_id)
    if product_id is not None:
        query = query.filter(HistoryEntry.product_id == product_id)
    if action:
        query = query.filter(HistoryEntry.action == action)
    term = (search_term or "").strip()
    if term:
        pattern = _like(term)
        query = query.filter(
            or_(
                HistoryEntry.notes.ilike(pattern, escape="\\"),
                HistoryEntry.contact_person.ilike(pattern, escape="\\"),
            )
        )

    return _paginate(
        query, (HistoryEntry.timestamp.desc(), HistoryEntry.id.desc()), page, page_size
    )


def get_product(ctx: OwnerContext, product_id) -> Product:
    try:
        identifier = int(product_id)
    except (TypeError, ValueError):
        raise NotFoundError("Product", product_id)
    try:
        product = Product.query.filter_by(id=identifier, owner_id=ctx.owner_id).first()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError("Could not load the product.") from exc
    if product is None:
        raise NotFoundError("Product", identifier)
    return product


def find_product(ctx: OwnerContext, product_id) -> Product | None:
    """Like :func:`get_product` but returns ``None`` for deleted products."""

    try:
        return get_product(ctx, product_id)
    except NotFoundError:
        return None


def get_history_entry(ctx: OwnerContext, entry_id) -> HistoryEntry:
    try:
        identifier = int(entry_id)
    except (TypeError, ValueError):
        raise NotFoundError("History entry", entry_id)
    try:
        entry = HistoryEntry.query.filter_by(id=identifier, owner_id=ctx.owner_id).first()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError("Could not load the history entry.") from exc
    if entry is None:
        raise NotFoundError("History entry", identifier)
    return entry


def low_stock_products(ctx: OwnerContext) -> list[Product]:
    try:
        return (
            Product.query.filter(
                Product.owner_id == ctx.owner_id,
                Product.quantity <= Product.min_stock,
            )
            .order_by(Product.quantity.asc(), func.lower(Product.name))
            .all()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError("Could not load low stock products.") from exc


def inventory_summary(ctx: OwnerContext) -> InventorySummary:
    try:
        totals = (
            db.session.query(
                func.count(Product.id),
                func.coalesce(func.sum(Product.quantity), 0),
            )
            .filter(Product.owner_id == ctx.owner_id)
            .one()
        )
        prices = (
            db.session.query(Product.quantity, Product.price)
            .filter(Product.owner_id == ctx.owner_id)
            .all()
        )
        low_stock_count = (
            db.session.query(func.count(Product.id))
            .filter(
                Product.owner_id == ctx.owner_id,
                Product.quantity <= Product.min_stock,
            )
            .scalar()
        )
        category_rows = (
            db.session.query(
                Product.category_id,
                Category.name,
                func.count(Product.id),
                func.coalesce(func.sum(Product.quantity), 0),
            )
            .outerjoin(Category, Category.id == Product.category_id)
            .filter(Product.owner_id == ctx.owner_id)
            .group_by(Product.category_id, Category.name)
            .all()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError("Could not build the inventory summary.") from exc

    # Sum in Python so the value keeps exact cents on every backend.
    total_value = sum(
        (Decimal(quantity or 0) * Decimal(price or 0) for quantity, price in prices),
        Decimal("0"),
    )

    breakdown = [
        CategoryBreakdown(
            category_id=category_id,
            name=name or "Uncategorized",
            product_count=int(count or 0),
            quantity=int(quantity or 0),
        )
        for category_id, name, count, quantity in category_rows
    ]
    breakdown.sort(key=lambda entry: (entry.category_id is None, entry.name.lower()))

    product_count, total_quantity = totals
    return InventorySummary(
        total_products=int(product_count or 0),
        total_quantity=int(total_quantity or 0),
        total_value=total_value.quantize(Decimal("0.01")),
        low_stock_count=int(low_stock_count or 0),
        categories=breakdown,
    )
