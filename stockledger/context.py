"""Explicit owner scoping for every ledger, catalog and query call."""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, request

from stockledger.errors import OwnerRequiredError, ValidationError


@dataclass(frozen=True)
class OwnerContext:
    owner_id: str

    def __post_init__(self):
        if not isinstance(self.owner_id, str) or not self.owner_id.strip():
            raise ValidationError("Owner id must be a non-empty string.", fields=["owner_id"])
        if len(self.owner_id) > 64:
            raise ValidationError("Owner id must be 64 characters or fewer.", fields=["owner_id"])


def resolve_owner_context() -> OwnerContext:
    """Build the owner context for the active request."""

    header_name = current_app.config.get("OWNER_HEADER", "X-Owner-Id")
    owner_id = (request.headers.get(header_name) or "").strip()
    if not owner_id:
        owner_id = (current_app.config.get("DEFAULT_OWNER_ID") or "").strip()
    if not owner_id:
        raise OwnerRequiredError(header_name)
    return OwnerContext(owner_id)
