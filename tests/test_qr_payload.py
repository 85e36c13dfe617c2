import json
import os
import sys
from datetime import date, datetime
from decimal import Decimal

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stockledger.models import HistoryEntry, Product
from stockledger.services.qr_payload import (
    build_qr_payload,
    qr_filename,
    qr_payload_json,
    render_qr_data_uri,
    render_qr_png,
)


def _product():
    return Product(id=7, name="Hex Bolt", sku="HB-1")


def _entry(**overrides):
    values = {
        "id": 42,
        "product_id": 7,
        "action": "stock_in",
        "quantity": 4,
        "notes": "Restock",
        "timestamp": datetime(2026, 10, 19, 14, 30, 0),
        "contact_person": "Dana",
        "price_per_unit": Decimal("2.50"),
        "transaction_date": date(2026, 10, 18),
    }
    values.update(overrides)
    return HistoryEntry(**values)


def test_stock_in_payload():
    payload = build_qr_payload(_entry(), _product())

    assert payload == {
        "transactionId": 42,
        "action": "stock_in",
        "product": "Hex Bolt",
        "sku": "HB-1",
        "quantity": 4,
        "date": "2026-10-18",
        "timestamp": "2026-10-19T14:30:00",
        "receivedBy": "Dana",
        "pricePerUnit": 2.5,
        "totalCost": "10.00",
        "notes": "Restock",
    }


def test_stock_out_payload_names_recipient_without_price():
    entry = _entry(action="stock_out", price_per_unit=None, transaction_date=None, notes="")

    payload = build_qr_payload(entry, _product())

    assert payload["issuedTo"] == "Dana"
    assert "receivedBy" not in payload
    assert "pricePerUnit" not in payload
    assert "totalCost" not in payload
    assert payload["date"] == "2026-10-19"
    assert payload["notes"] == ""


def test_payload_for_deleted_product():
    entry = _entry(action="deleted", quantity=0, contact_person=None, price_per_unit=None)

    payload = build_qr_payload(entry, None)

    assert payload["product"] == "Unknown Product"
    assert payload["sku"] == "N/A"
    assert "issuedTo" not in payload
    assert "receivedBy" not in payload


def test_zero_price_has_no_total():
    payload = build_qr_payload(_entry(price_per_unit=Decimal("0")), _product())
    assert payload["pricePerUnit"] == 0.0
    assert "totalCost" not in payload


def test_json_filename_and_image():
    entry = _entry()
    payload = build_qr_payload(entry, _product())

    assert json.loads(qr_payload_json(payload)) == payload
    assert " " not in qr_payload_json({"a": 1, "b": "x"})
    assert qr_filename(entry) == "qr-stock_in-42.png"

    png = render_qr_png(payload, box_size=4, border=2)
    assert png.startswith(b"\x89PNG\r\n\x1a\n")
    assert render_qr_data_uri(payload).startswith("data:image/png;base64,")
