from __future__ import annotations

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from stockledger.context import resolve_owner_context
from stockledger.routes._helpers import paging_args
from stockledger.services import queries
from stockledger.services.product_export import (
    HISTORY_EXPORT_COLUMNS,
    history_export_rows,
)
from stockledger.services.qr_payload import (
    build_qr_payload,
    qr_filename,
    qr_payload_json,
    render_qr_data_uri,
    render_qr_png,
)
from stockledger.utils.csv_export import csv_download


bp = Blueprint("history", __name__, url_prefix="/api/history")


def _qr_options() -> dict[str, int]:
    return {
        "box_size": current_app.config.get("QR_BOX_SIZE", 10),
        "border": current_app.config.get("QR_BORDER", 4),
    }


@bp.get("")
def list_history():
    ctx = resolve_owner_context()
    page, page_size, max_page_size = paging_args()
    result = queries.list_history(
        ctx,
        page=page,
        page_size=page_size,
        search_term=request.args.get("search", ""),
        action=(request.args.get("action") or "").strip() or None,
        max_page_size=max_page_size,
    )
    return jsonify(result.to_dict())


@bp.get("/<int:entry_id>")
def get_entry(entry_id: int):
    ctx = resolve_owner_context()
    return jsonify(queries.get_history_entry(ctx, entry_id).to_dict())


@bp.get("/<int:entry_id>/qr")
def entry_qr(entry_id: int):
    ctx = resolve_owner_context()
    entry = queries.get_history_entry(ctx, entry_id)
    payload = build_qr_payload(entry, queries.find_product(ctx, entry.product_id))
    return jsonify(
        {
            "payload": payload,
            "data": qr_payload_json(payload),
            "image": render_qr_data_uri(payload, **_qr_options()),
            "filename": qr_filename(entry),
        }
    )


@bp.get("/<int:entry_id>/qr.png")
def entry_qr_png(entry_id: int):
    ctx = resolve_owner_context()
    entry = queries.get_history_entry(ctx, entry_id)
    payload = build_qr_payload(entry, queries.find_product(ctx, entry.product_id))
    return send_file(
        BytesIO(render_qr_png(payload, **_qr_options())),
        mimetype="image/png",
        as_attachment=True,
        download_name=qr_filename(entry),
    )


@bp.get("/export")
def export_history():
    """Export the whole ledger to CSV, newest first."""

    ctx = resolve_owner_context()
    return csv_download(
        history_export_rows(ctx), HISTORY_EXPORT_COLUMNS, "transaction_history.csv"
    )
