from __future__ import annotations

from flask import current_app, request

from stockledger.errors import ValidationError


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def paging_args() -> tuple[int, int, int]:
    page = request.args.get("page", 1, type=int)
    page_size = request.args.get(
        "page_size", current_app.config.get("PAGE_SIZE", 50), type=int
    )
    max_page_size = current_app.config.get("MAX_PAGE_SIZE", 200)
    return page, page_size, max_page_size


def flag_arg(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in {"1", "true", "yes", "on"}
