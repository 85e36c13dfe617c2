from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from stockledger.errors import LedgerError
from stockledger.extensions import db

bp = Blueprint("errors", __name__)

logger = logging.getLogger(__name__)


@bp.app_errorhandler(LedgerError)
def handle_ledger_error(error: LedgerError):
    if error.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            type(error).__name__,
            request.method,
            request.path,
            error.message,
            exc_info=error.__cause__ or error,
        )
    else:
        logger.info(
            "%s on %s %s: %s",
            type(error).__name__,
            request.method,
            request.path,
            error.message,
        )
    return jsonify(error.to_dict()), error.status_code


@bp.app_errorhandler(Exception)
def handle_exception(error: Exception):
    # Allow HTTP errors that are not 500 to propagate as JSON with their own code.
    if isinstance(error, HTTPException) and error.code != 500:
        return (
            jsonify({"error": error.description, "type": type(error).__name__}),
            error.code,
        )

    root_error: BaseException = getattr(error, "original_exception", None) or error
    logger.exception("Unhandled exception", exc_info=root_error)

    try:
        db.session.rollback()
    except SQLAlchemyError:
        logger.exception("Session rollback failed after unhandled exception")

    error_message = "Internal Server Error"
    if isinstance(error, HTTPException) and error.description:
        error_message = error.description

    return (
        jsonify(
            {
                "error": error_message,
                "type": "InternalServerError",
                "path": request.path,
                "endpoint": request.endpoint,
            }
        ),
        500,
    )
