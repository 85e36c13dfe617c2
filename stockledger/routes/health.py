from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from stockledger.extensions import db


bp = Blueprint("health", __name__, url_prefix="/health")


@bp.get("")
def health_status():
    if not current_app.config.get("DATABASE_AVAILABLE", True):
        return (
            jsonify(
                {
                    "status": "DEGRADED",
                    "database": False,
                    "error": current_app.config.get("DATABASE_ERROR"),
                }
            ),
            503,
        )

    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        root_cause = getattr(exc, "orig", exc)
        return (
            jsonify(
                {
                    "status": "DEGRADED",
                    "database": False,
                    "error": f"Database query failed: {root_cause}",
                }
            ),
            503,
        )

    return jsonify({"status": "OK", "database": True, "error": None})
