# Overview: Balance mutator; the single write path for StockBalance rows.

from __future__ import annotations

from datetime import datetime
from typing import NamedTuple

from ..extensions import db
from ..models import Item, StockBalance
from ..validation import BadRequestError, InsufficientStockError, NotFoundError
from stockroom.time_utils import civil_timestamp, to_civil_naive
from . import audit_service
from .concurrency import lock_for_update
"""
Ledger Invariants (authoritative)

- balance >= 0 at all times; balance is consulted (under a row lock) before
  every withdrawal or borrow.
- balance == total_quantity - temp_withdrawn for every row created through
  the normal paths.
- Every successful adjust_balance() stages exactly one SystemLog row next to
  the balance update. Nothing here commits: the caller's atomic() block is
  the transaction boundary, so the pair commits or rolls back together.
- No notifications are sent from here.
"""

ACTION_RECEIVE = "RECEIVE"
ACTION_WITHDRAW = "WITHDRAW"
ACTION_BORROW = "BORROW"
ACTION_RETURN = "RETURN"


class BalanceChange(NamedTuple):
    item_code: str
    old_balance: int
    new_balance: int
    delta: int


def find_balance(item_code: str, *, lock: bool = False) -> StockBalance | None:
    q = db.session.query(StockBalance).filter_by(item_code=item_code)
    if lock:
        q = lock_for_update(q)
    return q.first()


def _require_balance(item_code: str) -> StockBalance:
    item = db.session.query(Item).filter_by(item_code=item_code).first()
    if item is None:
        raise NotFoundError(f"Item {item_code} not found")
    stock = find_balance(item_code, lock=True)
    if stock is None:
        raise NotFoundError(f"Item {item_code} has no stock balance configured")
    return stock


def adjust_balance(
    item_code: str,
    delta: int,
    *,
    actor: str,
    action: str,
    table_name: str = audit_service.TABLE_STOCK_BALANCES,
    now: datetime | None = None,
) -> BalanceChange:
    """
    Adjust an item's balance by a signed delta and stage its audit row.

    Negative delta (withdraw/borrow):
    - rejected with InsufficientStockError if balance + delta < 0; the row
      and the audit log are left untouched
    - the moved quantity is tracked in temp_withdrawn

    Positive delta (receive/return):
    - refills the temp_withdrawn hole first; only the excess grows total_quantity
    - RECEIVE also maintains the per-day received counter

    Raises:
        NotFoundError: item or its balance row does not exist
        BadRequestError: delta is zero or not an integer
        InsufficientStockError: withdrawal would drive balance negative
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise BadRequestError("delta must be an integer")
    if delta == 0:
        raise BadRequestError("delta must be non-zero")

    stock = _require_balance(item_code)
    old_balance = stock.balance

    if delta < 0 and old_balance + delta < 0:
        raise InsufficientStockError(item_code, old_balance, -delta)

    stamp = to_civil_naive(now) if now is not None else civil_timestamp()

    if delta < 0:
        stock.balance = old_balance + delta
        stock.temp_withdrawn += -delta
        withdraw_leg, receive_leg = delta, 0
    else:
        stock.balance = old_balance + delta
        fill_hole = min(stock.temp_withdrawn, delta)
        stock.temp_withdrawn -= fill_hole
        stock.total_quantity += delta - fill_hole

        if action == ACTION_RECEIVE:
            last = stock.last_received_at
            if last is None or last.date() < stamp.date():
                stock.received = delta
            else:
                stock.received += delta
            stock.last_received_at = stamp
        withdraw_leg, receive_leg = 0, delta

    stock.updated_at = stamp
    db.session.flush()  # version_id check happens here

    audit_service.record(
        action=action,
        table_name=table_name,
        record_id=item_code,
        old_value=audit_service.pack_old_value(old_balance),
        new_value=audit_service.pack_new_value(stock.balance, withdraw=withdraw_leg, receive=receive_leg),
        actor=actor,
        old_balance=old_balance,
        new_balance=stock.balance,
        withdraw_delta=withdraw_leg,
        receive_delta=receive_leg,
    )

    return BalanceChange(item_code, old_balance, stock.balance, delta)
