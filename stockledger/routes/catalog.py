from __future__ import annotations

from flask import Blueprint, jsonify

from stockledger.context import resolve_owner_context
from stockledger.routes._helpers import json_body
from stockledger.services import catalog


bp = Blueprint("catalog", __name__, url_prefix="/api")


############################
# CATEGORY ROUTES
############################
@bp.get("/categories")
def list_categories():
    ctx = resolve_owner_context()
    return jsonify([category.to_dict() for category in catalog.list_categories(ctx)])


@bp.post("/categories")
def add_category():
    ctx = resolve_owner_context()
    category = catalog.add_category(ctx, json_body().get("name"))
    return jsonify(category.to_dict()), 201


@bp.delete("/categories/<category_id>")
def delete_category(category_id: str):
    ctx = resolve_owner_context()
    catalog.delete_category(ctx, category_id)
    return jsonify({"deleted": category_id})


############################
# LOCATION ROUTES
############################
@bp.get("/locations")
def list_locations():
    ctx = resolve_owner_context()
    return jsonify([location.to_dict() for location in catalog.list_locations(ctx)])


@bp.post("/locations")
def add_location():
    ctx = resolve_owner_context()
    location = catalog.add_location(ctx, json_body().get("name"))
    return jsonify(location.to_dict()), 201


@bp.delete("/locations/<location_id>")
def delete_location(location_id: str):
    ctx = resolve_owner_context()
    catalog.delete_location(ctx, location_id)
    return jsonify({"deleted": location_id})
