from __future__ import annotations

from flask import Blueprint, jsonify

from stockledger.context import resolve_owner_context
from stockledger.services import ledger, queries


bp = Blueprint("dashboard", __name__, url_prefix="/api")


@bp.get("/dashboard")
def dashboard():
    ctx = resolve_owner_context()
    summary = queries.inventory_summary(ctx)
    low_stock = queries.low_stock_products(ctx)
    return jsonify(
        {
            "summary": summary.to_dict(),
            "low_stock": [product.to_dict() for product in low_stock[:5]],
        }
    )


@bp.get("/low-stock")
def low_stock():
    ctx = resolve_owner_context()
    return jsonify([product.to_dict() for product in queries.low_stock_products(ctx)])


@bp.get("/ledger-audit")
def ledger_audit():
    """List products whose stored quantity disagrees with their history."""

    ctx = resolve_owner_context()
    drifts = ledger.audit_quantities(ctx)
    return jsonify(
        {"consistent": not drifts, "drifts": [drift.to_dict() for drift in drifts]}
    )
