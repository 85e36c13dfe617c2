from __future__ import annotations

from flask import Blueprint, jsonify, request

from stockledger.context import resolve_owner_context
from stockledger.models import HistoryAction
from stockledger.routes._helpers import flag_arg, json_body, paging_args
from stockledger.services import ledger, queries


bp = Blueprint("products", __name__, url_prefix="/api/products")


############################
# LISTING
############################
@bp.get("")
def list_products():
    ctx = resolve_owner_context()
    page, page_size, max_page_size = paging_args()
    result = queries.list_products(
        ctx,
        page=page,
        page_size=page_size,
        category_id=(request.args.get("category_id") or "").strip() or None,
        search_term=request.args.get("search", ""),
        low_stock_only=flag_arg("low_stock"),
        max_page_size=max_page_size,
    )
    return jsonify(result.to_dict())


@bp.get("/<int:product_id>")
def get_product(product_id: int):
    ctx = resolve_owner_context()
    return jsonify(queries.get_product(ctx, product_id).to_dict())


@bp.get("/<int:product_id>/history")
def product_history(product_id: int):
    ctx = resolve_owner_context()
    page, page_size, max_page_size = paging_args()
    result = queries.list_history(
        ctx,
        page=page,
        page_size=page_size,
        product_id=product_id,
        max_page_size=max_page_size,
    )
    return jsonify(result.to_dict())


@bp.get("/<int:product_id>/ledger-check")
def ledger_check(product_id: int):
    ctx = resolve_owner_context()
    product = queries.get_product(ctx, product_id)
    derived = ledger.derive_quantity(ctx, product_id)
    return jsonify(
        {
            "product_id": product.id,
            "stored": product.quantity,
            "derived": derived,
            "consistent": derived == product.quantity,
        }
    )


############################
# LEDGER WRITES
############################
@bp.post("")
def create_product():
    ctx = resolve_owner_context()
    product = ledger.create_product(ctx, json_body())
    return jsonify(product.to_dict()), 201


@bp.route("/<int:product_id>", methods=["PATCH", "PUT"])
def update_product(product_id: int):
    ctx = resolve_owner_context()
    product = ledger.update_product_details(ctx, product_id, json_body())
    return jsonify(product.to_dict())


@bp.delete("/<int:product_id>")
def delete_product(product_id: int):
    ctx = resolve_owner_context()
    entry = ledger.delete_product(ctx, product_id)
    return jsonify({"deleted": product_id, "entry": entry.to_dict()})


@bp.post("/<int:product_id>/stock-in")
def stock_in(product_id: int):
    ctx = resolve_owner_context()
    payload = json_body()
    change = ledger.adjust_stock(
        ctx, product_id, HistoryAction.STOCK_IN, payload.get("quantity"), payload
    )
    return jsonify(change.to_dict()), 201


@bp.post("/<int:product_id>/stock-out")
def stock_out(product_id: int):
    ctx = resolve_owner_context()
    payload = json_body()
    change = ledger.adjust_stock(
        ctx, product_id, HistoryAction.STOCK_OUT, payload.get("quantity"), payload
    )
    return jsonify(change.to_dict()), 201


@bp.post("/<int:product_id>/adjust")
def adjust_stock(product_id: int):
    """Stock adjustment form: ``action`` picks stock_in or stock_out."""

    ctx = resolve_owner_context()
    payload = json_body()
    change = ledger.adjust_stock(
        ctx,
        product_id,
        (payload.get("action") or "").strip(),
        payload.get("quantity"),
        payload,
    )
    return jsonify(change.to_dict()), 201
