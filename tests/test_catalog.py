import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stockledger import create_app
from stockledger.context import OwnerContext
from stockledger.errors import NotFoundError, ReferentialIntegrityError, ValidationError
from stockledger.extensions import db
from stockledger.models import Category, Location
from stockledger.services import catalog, ledger


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


def _create_product(category, location, sku="SKU-1"):
    return ledger.create_product(
        OWNER,
        {
            "name": f"Product {sku}",
            "sku": sku,
            "quantity": 1,
            "category_id": category.id,
            "location_id": location.id,
        },
    )


def test_add_and_list_sorted_by_name(app):
    catalog.add_category(OWNER, "tools")
    catalog.add_category(OWNER, "  Adhesives ")
    catalog.add_category(OTHER_OWNER, "Hidden")

    names = [category.name for category in catalog.list_categories(OWNER)]
    assert names == ["Adhesives", "tools"]


def test_add_rejects_blank_and_duplicate_names(app):
    catalog.add_location(OWNER, "Shelf A")

    with pytest.raises(ValidationError):
        catalog.add_location(OWNER, "   ")
    with pytest.raises(ValidationError):
        catalog.add_location(OWNER, "shelf a")
    with pytest.raises(ValidationError):
        catalog.add_location(OWNER, "x" * 121)

    # Names are only unique within one owner.
    catalog.add_location(OTHER_OWNER, "Shelf A")
    assert Location.query.count() == 2


def test_get_unknown_or_foreign_record_is_not_found(app):
    category = catalog.add_category(OTHER_OWNER, "Elsewhere")

    with pytest.raises(NotFoundError):
        catalog.get_category(OWNER, category.id)
    with pytest.raises(NotFoundError):
        catalog.get_location(OWNER, "missing")
    with pytest.raises(NotFoundError):
        catalog.delete_category(OWNER, category.id)


def test_delete_category_blocked_until_products_move(app):
    hardware = catalog.add_category(OWNER, "Hardware")
    spares = catalog.add_category(OWNER, "Spares")
    location = catalog.add_location(OWNER, "Main")
    first = _create_product(hardware, location, "A-1")
    _create_product(hardware, location, "A-2")

    with pytest.raises(ReferentialIntegrityError) as excinfo:
        catalog.delete_category(OWNER, hardware.id)
    assert excinfo.value.reference_count == 2
    assert "category" in excinfo.value.message
    assert db.session.get(Category, hardware.id) is not None

    ledger.update_product_details(OWNER, first.id, {"category_id": spares.id})
    with pytest.raises(ReferentialIntegrityError) as excinfo:
        catalog.delete_category(OWNER, hardware.id)
    assert excinfo.value.reference_count == 1

    for product in list(hardware.products):
        ledger.delete_product(OWNER, product.id)

    catalog.delete_category(OWNER, hardware.id)
    assert db.session.get(Category, hardware.id) is None


def test_delete_location_succeeds_once_unused(app):
    category = catalog.add_category(OWNER, "Hardware")
    location = catalog.add_location(OWNER, "Back Room")
    product = _create_product(category, location)

    with pytest.raises(ReferentialIntegrityError):
        catalog.delete_location(OWNER, location.id)

    ledger.delete_product(OWNER, product.id)
    catalog.delete_location(OWNER, location.id)

    assert catalog.list_locations(OWNER) == []
