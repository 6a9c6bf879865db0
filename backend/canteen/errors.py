# Overview: Service error taxonomy shared by services, routes and the CLI.

"""
Every error a service raises on purpose derives from ServiceError.

Routes turn them into JSON with to_dict() and status_code. Business-rule and
authorization errors carry enough structured details for the client to fix
the request; they are never retried. Conflict is raised only after the
retry helper in services/concurrency.py has given up.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for expected, user-facing failures."""
    code = "ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class Forbidden(ServiceError):
    code = "FORBIDDEN"
    status_code = 403


class NotFound(ServiceError):
    code = "NOT_FOUND"
    status_code = 404


class ItemNotFound(NotFound):
    code = "ITEM_NOT_FOUND"
    status_code = 400

    def __init__(self, item_id: int):
        super().__init__(f"Item {item_id} not found", {"item_id": item_id})
        self.item_id = item_id


class StockNotFound(NotFound):
    code = "STOCK_NOT_FOUND"
    status_code = 400

    def __init__(self, item_id: int):
        super().__init__(f"Stock not found for item {item_id}", {"item_id": item_id})
        self.item_id = item_id


class InvalidInput(ServiceError):
    code = "INVALID_INPUT"


class PaymentMismatch(ServiceError):
    code = "PAYMENT_MISMATCH"

    def __init__(self, *, expected: int, provided: int, items_total: int, previous_day_adjustment: int):
        super().__init__(
            "Cash + online + other amounts must equal the total amount "
            "(including previous day adjustment)",
            {
                "expected_cents": expected,
                "provided_cents": provided,
                "items_total_cents": items_total,
                "previous_day_adjustment_cents": previous_day_adjustment,
            },
        )
        self.expected = expected
        self.provided = provided
        self.items_total = items_total
        self.previous_day_adjustment = previous_day_adjustment


class InsufficientStock(ServiceError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, *, item_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for item {item_id}. "
            f"Available: {available}, requested: {requested}",
            {"item_id": item_id, "available": available, "requested": requested},
        )
        self.item_id = item_id
        self.available = available
        self.requested = requested


class AlreadyVerified(ServiceError):
    code = "ALREADY_VERIFIED"


class AlreadyLocked(ServiceError):
    code = "ALREADY_LOCKED"


class NotLocked(ServiceError):
    code = "NOT_LOCKED"


class LockedSupply(ServiceError):
    code = "SUPPLY_LOCKED"
    status_code = 423


class CanteenLocked(ServiceError):
    code = "CANTEEN_LOCKED"
    status_code = 423


class Conflict(ServiceError):
    code = "CONFLICT"
    status_code = 409
