from __future__ import annotations

from typing import Any


# Upper bound for a single movement; keeps Integer columns far from overflow
MAX_QUANTITY = 1_000_000


class StockError(Exception):
    """Base for every error the stock engine raises to its callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "status_code": self.status_code}


class NotFoundError(StockError):
    """404-level: item, balance row, or borrow transaction does not exist."""

    status_code = 404


class BadRequestError(StockError):
    """400-level input problem (e.g., unparseable due date)."""

    status_code = 400


class InsufficientStockError(StockError):
    """400-level: the movement would drive the balance negative."""

    status_code = 400

    def __init__(self, item_code: str, balance: int, requested: int):
        super().__init__(
            f"Insufficient stock for {item_code} (requested {requested}, available {balance})"
        )
        self.item_code = item_code
        self.balance = balance
        self.requested = requested

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["balance"] = self.balance
        data["requested"] = self.requested
        return data


class BusinessRuleConflict(StockError):
    """409-level business rule conflict (e.g., returning twice)."""

    status_code = 409


class UnexpectedError(StockError):
    """500-level store or transport failure."""

    status_code = 500


# Names used by input-validation call sites
ValidationError = BadRequestError
ConflictError = BusinessRuleConflict


def normalize_item_code(value: Any) -> str:
    if value is None:
        raise ValidationError("item_code is required")
    code = str(value).strip()
    if not code:
        raise ValidationError("item_code is required")
    if len(code) > 64:
        raise ValidationError("item_code must be at most 64 characters")
    return code


def require_positive_quantity(value: Any, *, field: str = "quantity") -> int:
    """
    Strict integer validation: rejects bools, floats, decimals and
    scientific notation; quantity must be 1..MAX_QUANTITY.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        qty = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{field} must be a plain integer")
        qty = int(stripped)
    else:
        raise ValidationError(f"{field} must be an integer")

    if qty <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{field} must be at most {MAX_QUANTITY}")
    return qty


def clean_optional_text(value: Any, *, field: str, max_length: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text
