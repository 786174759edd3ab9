# Overview: Direct stock movements (receive/withdraw) and catalog lookups built on the balance mutator.

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..models import Item, StockBalance, StockTransaction
from ..validation import (
    ConflictError,
    NotFoundError,
    StockError,
    clean_optional_text,
    normalize_item_code,
    require_positive_quantity,
)
from stockroom.time_utils import civil_timestamp
from .balance_service import ACTION_RECEIVE, ACTION_WITHDRAW, adjust_balance
from .concurrency import atomic, run_with_retry


TX_TYPE_IN = "IN"
TX_TYPE_OUT = "OUT"


@dataclass(frozen=True)
class StockRequest:
    item_code: str
    quantity: int
    note: str | None = None


@dataclass
class StockMovementResult:
    item_code: str
    quantity: int
    ok: bool
    transaction_no: str | None = None
    balance_after: int | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "item_code": self.item_code,
            "quantity": self.quantity,
            "ok": self.ok,
            "transaction_no": self.transaction_no,
            "balance_after": self.balance_after,
            "error": self.error,
        }


def get_item_with_balance(item_code: str) -> tuple[Item, StockBalance | None]:
    """Catalog lookup used by the borrow engine; the balance row may be missing."""
    item = db.session.query(Item).filter_by(item_code=item_code).first()
    if item is None:
        raise NotFoundError(f"Item {item_code} not found")
    return item, item.stock_balance


def create_item(
    *,
    item_code: str,
    name: str,
    category: str = "",
    unit: str = "pcs",
    opening_quantity: int = 0,
) -> Item:
    """
    Catalog bootstrap: item plus its zeroed balance row.

    An opening quantity is posted as a regular RECEIVE so it is audited.
    """
    code = normalize_item_code(item_code)
    if db.session.query(Item).filter_by(item_code=code).first():
        raise ConflictError(f"Item {code} already exists")

    with atomic():
        item = Item(item_code=code, name=name, category=category, unit=unit)
        db.session.add(item)
        db.session.add(StockBalance(item_code=code))
        db.session.flush()

    if opening_quantity:
        receive_one(code, opening_quantity, actor="system", note="Opening balance")
    return item


def _generate_transaction_no(now: datetime) -> str:
    return f"TRX-{now:%Y%m%d}-{uuid.uuid4().hex[:5].upper()}"


def _apply_movement(request: StockRequest, *, actor: str, action: str, tx_type: str) -> StockTransaction:
    """Core movement without commit: balance + audit + movement document."""
    code = normalize_item_code(request.item_code)
    qty = require_positive_quantity(request.quantity)
    note = clean_optional_text(request.note, field="note", max_length=255)

    delta = qty if tx_type == TX_TYPE_IN else -qty
    change = adjust_balance(code, delta, actor=actor, action=action)

    now = civil_timestamp()
    tx = StockTransaction(
        transaction_no=_generate_transaction_no(now),
        item_code=code,
        type=tx_type,
        quantity=qty,
        balance_after=change.new_balance,
        note=note,
        created_by=actor,
        created_at=now,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def _move_one(request: StockRequest, *, actor: str, action: str, tx_type: str) -> StockTransaction:
    def _op():
        with atomic():
            return _apply_movement(request, actor=actor, action=action, tx_type=tx_type)

    tx = run_with_retry(_op)
    current_app.logger.info(
        "%s %s x%s by %s (balance now %s)", action, tx.item_code, tx.quantity, actor, tx.balance_after
    )
    return tx


def receive_one(item_code: str, quantity: int, *, actor: str, note: str | None = None) -> StockTransaction:
    return _move_one(
        StockRequest(item_code, quantity, note), actor=actor, action=ACTION_RECEIVE, tx_type=TX_TYPE_IN
    )


def withdraw_one(item_code: str, quantity: int, *, actor: str, note: str | None = None) -> StockTransaction:
    return _move_one(
        StockRequest(item_code, quantity, note), actor=actor, action=ACTION_WITHDRAW, tx_type=TX_TYPE_OUT
    )


def _move_batch(
    requests: Iterable[StockRequest],
    *,
    actor: str,
    action: str,
    tx_type: str,
    all_or_nothing: bool,
) -> list[StockMovementResult]:
    requests = list(requests)

    if all_or_nothing:
        def _op():
            with atomic():
                return [
                    _apply_movement(req, actor=actor, action=action, tx_type=tx_type)
                    for req in requests
                ]

        txs = run_with_retry(_op)
        return [
            StockMovementResult(
                item_code=tx.item_code,
                quantity=tx.quantity,
                ok=True,
                transaction_no=tx.transaction_no,
                balance_after=tx.balance_after,
            )
            for tx in txs
        ]

    results: list[StockMovementResult] = []
    for req in requests:
        try:
            tx = _move_one(req, actor=actor, action=action, tx_type=tx_type)
        except StockError as exc:
            current_app.logger.info("%s rejected for %s: %s", action, req.item_code, exc.message)
            results.append(
                StockMovementResult(item_code=req.item_code, quantity=req.quantity, ok=False, error=exc.message)
            )
            continue
        results.append(
            StockMovementResult(
                item_code=tx.item_code,
                quantity=tx.quantity,
                ok=True,
                transaction_no=tx.transaction_no,
                balance_after=tx.balance_after,
            )
        )
    return results


def receive_stock(
    requests: Iterable[StockRequest], *, actor: str, all_or_nothing: bool = False
) -> list[StockMovementResult]:
    """
    Receive a batch of items.

    Default: each request is its own transaction and failures are reported
    per request. all_or_nothing=True wraps the batch in one transaction and
    re-raises the first failure after rolling everything back.
    """
    return _move_batch(
        requests, actor=actor, action=ACTION_RECEIVE, tx_type=TX_TYPE_IN, all_or_nothing=all_or_nothing
    )


def withdraw_stock(
    requests: Iterable[StockRequest], *, actor: str, all_or_nothing: bool = False
) -> list[StockMovementResult]:
    """Withdraw a batch of items; same batching rules as receive_stock."""
    return _move_batch(
        requests, actor=actor, action=ACTION_WITHDRAW, tx_type=TX_TYPE_OUT, all_or_nothing=all_or_nothing
    )


def get_balance_summary(item_code: str) -> dict:
    item, stock = get_item_with_balance(item_code)
    if stock is None:
        raise NotFoundError(f"Item {item_code} has no stock balance configured")
    data = stock.to_dict()
    data["name"] = item.name
    data["unit"] = item.unit
    return data
