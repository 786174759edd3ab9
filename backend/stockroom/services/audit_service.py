# Overview: Audit recorder for ledger mutations; append-only writes and display reads.

from __future__ import annotations

from typing import NamedTuple

from flask import current_app

from ..extensions import db
from ..models import SystemLog
from stockroom.time_utils import civil_timestamp, to_civil_string
"""
Audit Invariants (authoritative)

- Append-only: this module exposes no update or delete.
- record() only adds + flushes; the balance mutation that calls it owns the
  commit, so the audit row and the balance change land together or not at all.
- One row per balance mutation.
"""

TABLE_STOCK_BALANCES = "StockBalances"


class UnpackedValue(NamedTuple):
    new_value: str
    withdraw: str
    receive: str


def _signed(value: int) -> str:
    return f"-{abs(value)}" if value < 0 else f"+{value}"


def pack_old_value(balance: int) -> str:
    return f"Balance: {balance}"


def pack_new_value(balance: int, *, withdraw: int = 0, receive: int = 0) -> str:
    """
    Pack the resulting balance and both legs: "Balance: 7|Withdraw:-3|Receive:+0".

    withdraw is the signed (non-positive) withdraw leg, receive the signed
    (non-negative) receive leg. Only one leg moves per mutation; the other
    is packed as "+0".
    """
    return f"Balance: {balance}|Withdraw:{_signed(withdraw)}|Receive:{_signed(receive)}"


def unpack_new_value(value: str | None) -> UnpackedValue:
    """Split a packed new value into its display parts; unpacked values pass through."""
    if value is None:
        return UnpackedValue("-", "+0", "+0")
    if "|" in value:
        parts = value.split("|")
        if len(parts) >= 3:
            return UnpackedValue(
                parts[0],
                parts[1].replace("Withdraw:", ""),
                parts[2].replace("Receive:", ""),
            )
    return UnpackedValue(value, "+0", "+0")


def parse_balance(value: str | None) -> int | None:
    """'Balance: 7' (or a packed value) -> 7."""
    if not value:
        return None
    head = value.split("|", 1)[0]
    try:
        return int(head.replace("Balance:", "").strip())
    except ValueError:
        return None


def record(
    *,
    action: str,
    table_name: str,
    record_id: str,
    old_value: str | None,
    new_value: str | None,
    actor: str,
    old_balance: int | None = None,
    new_balance: int | None = None,
    withdraw_delta: int = 0,
    receive_delta: int = 0,
) -> SystemLog:
    """
    Append one audit row inside the caller's transaction.

    No commit here.
    """
    log = SystemLog(
        action=action,
        table_name=table_name,
        record_id=record_id,
        old_value=old_value,
        new_value=new_value,
        old_balance=old_balance,
        new_balance=new_balance,
        withdraw_delta=withdraw_delta,
        receive_delta=receive_delta,
        created_by=actor,
        created_at=civil_timestamp(),
    )
    db.session.add(log)
    db.session.flush()
    return log


def _to_display(log: SystemLog) -> dict:
    unpacked = unpack_new_value(log.new_value)
    return {
        "id": log.id,
        "action": log.action,
        "table_name": log.table_name,
        "record_id": log.record_id,
        "old_value": log.old_value or "-",
        "withdraw": unpacked.withdraw,
        "receive": unpacked.receive,
        "new_value": unpacked.new_value,
        # rows written without structured columns fall back to the packed text
        "old_balance": log.old_balance if log.old_balance is not None else parse_balance(log.old_value),
        "new_balance": log.new_balance if log.new_balance is not None else parse_balance(log.new_value),
        "created_by": log.created_by,
        "created_at": to_civil_string(log.created_at),
    }


def get_audit_logs(item_code: str | None = None, limit: int | None = None) -> list[dict]:
    """
    Audit rows newest first, unpacked for display.

    Unfiltered listings are capped at AUDIT_LOG_LIMIT unless limit is given.
    """
    q = db.session.query(SystemLog)
    if item_code:
        q = q.filter(SystemLog.record_id == item_code)
    elif limit is None:
        limit = current_app.config.get("AUDIT_LOG_LIMIT", 1000)

    q = q.order_by(SystemLog.created_at.desc(), SystemLog.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return [_to_display(log) for log in q.all()]
