"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every error the services raise on purpose."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def extra(self) -> dict[str, object]:
        return {}

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "error": self.message,
            "type": type(self).__name__,
        }
        payload.update(self.extra())
        return payload


class ValidationError(LedgerError):
    status_code = 400

    def __init__(self, message: str, *, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = list(fields or [])

    def extra(self) -> dict[str, object]:
        return {"fields": self.fields} if self.fields else {}


class NotFoundError(LedgerError):
    status_code = 404

    def __init__(self, kind: str, identifier: object):
        super().__init__(f"{kind} {identifier} not found.")
        self.kind = kind
        self.identifier = identifier


class InsufficientStockError(LedgerError):
    status_code = 409

    def __init__(self, available: int, requested: int):
        super().__init__(
            f"Cannot remove {requested} items. Only {available} available in stock."
        )
        self.available = available
        self.requested = requested

    def extra(self) -> dict[str, object]:
        return {"available": self.available, "requested": self.requested}


class ReferentialIntegrityError(LedgerError):
    status_code = 409

    def __init__(self, kind: str, reference_count: int):
        super().__init__(
            f"Cannot delete {kind.lower()} that has products assigned to it "
            f"({reference_count} referencing)."
        )
        self.kind = kind
        self.reference_count = reference_count

    def extra(self) -> dict[str, object]:
        return {"reference_count": self.reference_count}


class BackendError(LedgerError):
    """Wraps a failure of the backing store; the original is kept as ``__cause__``."""

    status_code = 503


class OwnerRequiredError(LedgerError):
    status_code = 401

    def __init__(self, header_name: str):
        super().__init__(f"Missing owner context. Send the {header_name} header.")
        self.header_name = header_name
