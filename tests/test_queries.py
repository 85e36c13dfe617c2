import os
import sys
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stockledger import create_app
from stockledger.context import OwnerContext
from stockledger.errors import NotFoundError, ValidationError
from stockledger.extensions import db
from stockledger.models import Product
from stockledger.services import catalog, ledger, queries
from stockledger.services.ledger import StockInDetails, StockOutDetails


OWNER = OwnerContext("owner-1")
OTHER_OWNER = OwnerContext("owner-2")


@pytest.fixture
def app():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


def _bulk_product(ctx, name, sku, **extra):
    data = {"name": name, "sku": sku}
    data.update(extra)
    return ledger.create_product(ctx, data, bulk=True)


def test_list_products_paginates_newest_first(app):
    for index in range(60):
        _bulk_product(OWNER, f"Item {index:02d}", f"SKU-{index:02d}", quantity=20)
    _bulk_product(OTHER_OWNER, "Foreign", "F-1")

    first = queries.list_products(OWNER)
    assert first.total == 60
    assert first.page_size == 50
    assert len(first.items) == 50
    assert first.pages == 2
    assert first.has_next is True
    assert first.has_prev is False
    assert first.items[0].sku == "SKU-59"

    second = queries.list_products(OWNER, page=2)
    assert len(second.items) == 10
    assert second.has_next is False
    assert second.items[-1].sku == "SKU-00"

    seen = {item.id for item in first.items} | {item.id for item in second.items}
    assert len(seen) == 60


def test_list_products_orders_by_created_at(app):
    older = _bulk_product(OWNER, "Older", "O-1")
    newer = _bulk_product(OWNER, "Newer", "N-1")
    stored = db.session.get(Product, older.id)
    stored.created_at = datetime.utcnow() + timedelta(days=1)
    db.session.commit()

    skus = [item.sku for item in queries.list_products(OWNER).items]
    assert skus == ["O-1", newer.sku]


def test_page_size_is_clamped(app):
    for index in range(5):
        _bulk_product(OWNER, f"Item {index}", f"S-{index}")

    page = queries.list_products(OWNER, page=0, page_size=2, max_page_size=3)
    assert page.page == 1
    assert page.page_size == 2

    page = queries.list_products(OWNER, page_size=1000, max_page_size=3)
    assert page.page_size == 3
    assert len(page.items) == 3

    past_end = queries.list_products(OWNER, page=9, page_size=3)
    assert past_end.items == []
    assert past_end.total == 5


def test_search_matches_name_sku_and_brand_case_insensitively(app):
    _bulk_product(OWNER, "Hex Bolt", "HB-10", brand="Fastenal")
    _bulk_product(OWNER, "Washer", "WS-bolt-2")
    _bulk_product(OWNER, "Drill", "DR-1", brand="BOLTON")
    _bulk_product(OWNER, "Hammer", "HM-1")
    _bulk_product(OWNER, "Discount_50%", "PCT-1")

    names = sorted(item.name for item in queries.list_products(OWNER, search_term="bolt").items)
    assert names == ["Drill", "Hex Bolt", "Washer"]

    assert queries.list_products(OWNER, search_term="fasten").total == 1
    assert queries.list_products(OWNER, search_term="   ").total == 5
    # Wildcards in the term are matched literally.
    assert queries.list_products(OWNER, search_term="_50%").total == 1
    assert queries.list_products(OWNER, search_term="%").total == 1


def test_filter_by_category_and_low_stock(app):
    tools = catalog.add_category(OWNER, "Tools")
    shelf = catalog.add_location(OWNER, "Shelf")
    ledger.create_product(
        OWNER,
        {"name": "Saw", "sku": "T-1", "quantity": 2, "min_stock": 5,
         "category_id": tools.id, "location_id": shelf.id},
    )
    _bulk_product(OWNER, "Glue", "G-1", quantity=50, min_stock=5)
    _bulk_product(OWNER, "Tape", "G-2", quantity=5, min_stock=5)

    in_tools = queries.list_products(OWNER, category_id=tools.id)
    assert [item.sku for item in in_tools.items] == ["T-1"]

    low = queries.list_products(OWNER, low_stock_only=True)
    assert sorted(item.sku for item in low.items) == ["G-2", "T-1"]

    assert [product.sku for product in queries.low_stock_products(OWNER)] == ["T-1", "G-2"]


def test_list_history_filters_and_orders(app):
    product = _bulk_product(OWNER, "Bolt", "B-1", quantity=10)
    ledger.stock_in(OWNER, product.id, 5, StockInDetails(contact_person="Maria Lopez"))
    ledger.stock_out(
        OWNER, product.id, 2, StockOutDetails(contact_person="Sam", notes="Line 3 repair")
    )
    other = _bulk_product(OTHER_OWNER, "Nut", "N-1", quantity=1)

    history = queries.list_history(OWNER)
    assert history.total == 3
    assert [entry.action for entry in history.items] == ["stock_out", "stock_in", "created"]

    assert queries.list_history(OWNER, search_term="maria").total == 1
    assert queries.list_history(OWNER, search_term="repair").total == 1
    assert queries.list_history(OWNER, action="stock_in").total == 1
    assert queries.list_history(OWNER, product_id=other.id).total == 0

    with pytest.raises(ValidationError):
        queries.list_history(OWNER, action="teleported")


def test_get_helpers_respect_owner(app):
    product = _bulk_product(OWNER, "Bolt", "B-1")
    entry = queries.list_history(OWNER).items[0]

    assert queries.get_product(OWNER, product.id).sku == "B-1"
    assert queries.get_history_entry(OWNER, entry.id).action == "created"
    assert queries.find_product(OTHER_OWNER, product.id) is None

    with pytest.raises(NotFoundError):
        queries.get_product(OTHER_OWNER, product.id)
    with pytest.raises(NotFoundError):
        queries.get_history_entry(OTHER_OWNER, entry.id)
    with pytest.raises(NotFoundError):
        queries.get_product(OWNER, "abc")


def test_inventory_summary(app):
    tools = catalog.add_category(OWNER, "Tools")
    shelf = catalog.add_location(OWNER, "Shelf")
    ledger.create_product(
        OWNER,
        {"name": "Saw", "sku": "T-1", "quantity": 4, "min_stock": 5, "price": "12.50",
         "category_id": tools.id, "location_id": shelf.id},
    )
    _bulk_product(OWNER, "Glue", "G-1", quantity=10, min_stock=2, price="0.99")
    _bulk_product(OTHER_OWNER, "Foreign", "F-1", quantity=100, price="1000")

    summary = queries.inventory_summary(OWNER)

    assert summary.total_products == 2
    assert summary.total_quantity == 14
    assert summary.total_value == Decimal("59.90")
    assert summary.low_stock_count == 1
    assert [entry.name for entry in summary.categories] == ["Tools", "Uncategorized"]
    assert summary.categories[0].quantity == 4
    assert summary.to_dict()["total_value"] == "59.90"


def test_inventory_summary_for_empty_owner(app):
    summary = queries.inventory_summary(OWNER)
    assert summary.total_products == 0
    assert summary.total_value == Decimal("0.00")
    assert summary.categories == []
