import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import event, func

from stockledger.extensions import db


def _new_identifier() -> str:
    return str(uuid.uuid4())


class HistoryAction:
    CREATED = "created"
    STOCK_IN = "stock_in"
    STOCK_OUT = "stock_out"
    UPDATED = "updated"
    DELETED = "deleted"

    ALL = (CREATED, STOCK_IN, STOCK_OUT, UPDATED, DELETED)
    QUANTITY_ACTIONS = (STOCK_IN, STOCK_OUT)

    LABELS = {
        CREATED: "Created",
        STOCK_IN: "Stock In",
        STOCK_OUT: "Stock Out",
        UPDATED: "Updated",
        DELETED: "Deleted",
    }


class Category(db.Model):
    __tablename__ = "category"

    id = db.Column(db.String(36), primary_key=True, default=_new_identifier)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}


class Location(db.Model):
    __tablename__ = "location"

    id = db.Column(db.String(36), primary_key=True, default=_new_identifier)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}


class Product(db.Model):
    __tablename__ = "product"
    # Ids are never reused, so a new product cannot pick up a deleted one's history.
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String, nullable=False)
    sku = db.Column(db.String, nullable=False, index=True)  # display key, not unique
    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=10)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    category_id = db.Column(db.String(36), db.ForeignKey("category.id"), nullable=True)
    location_id = db.Column(db.String(36), db.ForeignKey("location.id"), nullable=True)
    description = db.Column(db.Text, nullable=False, default="")
    brand = db.Column(db.String, nullable=False, default="")
    specification = db.Column(db.Text, nullable=False, default="")
    unit_of_measure = db.Column(db.String(20), nullable=False, default="pcs")
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    category = db.relationship("Category", backref="products")
    location = db.relationship("Location", backref="products")

    @property
    def is_low_stock(self) -> bool:
        return (self.quantity or 0) <= (self.min_stock or 0)

    @property
    def stock_value(self) -> Decimal:
        return Decimal(self.quantity or 0) * Decimal(self.price or 0)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "price": float(self.price or 0),
            "category_id": self.category_id or "",
            "category": self.category.name if self.category else None,
            "location_id": self.location_id or "",
            "location": self.location.name if self.location else None,
            "description": self.description or "",
            "brand": self.brand or "",
            "specification": self.specification or "",
            "unit_of_measure": self.unit_of_measure,
            "is_low_stock": self.is_low_stock,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class HistoryEntry(db.Model):
    """One immutable ledger record.

    ``product_id`` is deliberately not a foreign key: entries must survive the
    deletion of the product they describe.
    """

    __tablename__ = "history_entry"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    action = db.Column(db.String(20), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=False, default="")
    timestamp = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, server_default=func.now()
    )
    contact_person = db.Column(db.String(120), nullable=True)
    price_per_unit = db.Column(db.Numeric(12, 2), nullable=True)
    transaction_date = db.Column(db.Date, nullable=True)

    @property
    def contact_label(self) -> str | None:
        if self.action == HistoryAction.STOCK_IN:
            return "Received By"
        if self.action == HistoryAction.STOCK_OUT:
            return "Issued To"
        return None

    @property
    def total_cost(self) -> Decimal | None:
        if self.action != HistoryAction.STOCK_IN or self.price_per_unit is None:
            return None
        return (Decimal(self.price_per_unit) * Decimal(self.quantity or 0)).quantize(
            Decimal("0.01")
        )

    def to_dict(self) -> dict[str, object]:
        price = self.price_per_unit
        return {
            "id": self.id,
            "product_id": self.product_id,
            "action": self.action,
            "quantity": self.quantity,
            "notes": self.notes or "",
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "contact_person": self.contact_person,
            "contact_label": self.contact_label,
            "price_per_unit": float(price) if price is not None else None,
            "date": self.transaction_date.isoformat() if self.transaction_date else None,
        }


class LedgerImmutableError(RuntimeError):
    """Raised when code attempts to rewrite or remove a ledger entry."""


@event.listens_for(HistoryEntry, "before_update")
def _reject_history_update(mapper, connection, target):
    raise LedgerImmutableError(f"History entry {target.id} is append-only")


@event.listens_for(HistoryEntry, "before_delete")
def _reject_history_delete(mapper, connection, target):
    raise LedgerImmutableError(f"History entry {target.id} cannot be deleted")
