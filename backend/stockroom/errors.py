# Overview: Error taxonomy shared by every service; status_code lets an HTTP layer map errors 1:1.

"""
Stockroom error taxonomy.

Every service raises one of these; none of them is retried by the core.
By the time a caller sees one the surrounding transaction has already been
rolled back, so the database is exactly as it was before the call.
"""
from __future__ import annotations


class StockroomError(Exception):
    """Base class for business errors raised by the service layer."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "message": self.message}


class ValidationError(StockroomError, ValueError):
    """Malformed input (missing field, non-integer amount, bad location)."""


class NotFoundError(StockroomError):
    status_code = 404


class AccessDeniedError(StockroomError):
    status_code = 403


class InvalidActionError(StockroomError):
    """Unrecognised action kind passed to a quantity adjustment."""


class InsufficientStockError(StockroomError):
    """A strict debit (move, outlet sale) asked for more than is on hand."""

    status_code = 409

    def __init__(self, message: str = "", *, product_id: int | None = None):
        super().__init__(message)
        self.product_id = product_id

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.product_id is not None:
            data["product_id"] = self.product_id
        return data


class InvalidStatusTransitionError(StockroomError):
    """Invoice or ticket asked to move along an edge its state machine lacks."""

    status_code = 409


class OverSettlementError(StockroomError):
    """Settlement would drive a credit balance below zero."""

    status_code = 409


class CreditLimitExceededError(StockroomError):
    """Accrual would pass the credit limit while limits are enforced."""

    status_code = 409
