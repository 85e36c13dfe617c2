"""Scannable summaries of single ledger entries. Generated on demand, never stored."""

from __future__ import annotations

import base64
import json
from io import BytesIO

import qrcode

from stockledger.models import HistoryAction, HistoryEntry, Product


def build_qr_payload(entry: HistoryEntry, product: Product | None) -> dict[str, object]:
    payload: dict[str, object] = {
        "transactionId": entry.id,
        "action": entry.action,
        "product": product.name if product else "Unknown Product",
        "sku": product.sku if product else "N/A",
        "quantity": entry.quantity,
        "date": (entry.transaction_date or entry.timestamp.date()).isoformat(),
        "timestamp": entry.timestamp.isoformat(),
    }

    if entry.contact_person:
        contact_key = "receivedBy" if entry.action == HistoryAction.STOCK_IN else "issuedTo"
        payload[contact_key] = entry.contact_person

    if entry.action == HistoryAction.STOCK_IN:
        if entry.price_per_unit is not None:
            payload["pricePerUnit"] = float(entry.price_per_unit)
        total = entry.total_cost
        if total and entry.quantity:
            payload["totalCost"] = f"{total:.2f}"

    payload["notes"] = entry.notes or ""
    return payload


def qr_payload_json(payload: dict[str, object]) -> str:
    return json.dumps(payload, separators=(",", ":"))


def qr_filename(entry: HistoryEntry) -> str:
    return f"qr-{entry.action}-{entry.id}.png"


def render_qr_png(payload: dict[str, object], *, box_size: int = 10, border: int = 4) -> bytes:
    qr = qrcode.QRCode(version=None, box_size=box_size, border=border)
    qr.add_data(qr_payload_json(payload))
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def render_qr_data_uri(payload: dict[str, object], **options) -> str:
    encoded = base64.b64encode(render_qr_png(payload, **options)).decode()
    return f"data:image/png;base64,{encoded}"
