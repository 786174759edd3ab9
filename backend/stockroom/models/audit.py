from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import civil_timestamp, to_civil_iso


class SystemLog(db.Model):
    """
    Append-only audit row; one per balance mutation.

    new_value keeps the packed display form "Balance: N|Withdraw:-X|Receive:+Y"
    that log viewers split into three columns. The same figures are also
    stored as integers so old/new balance and both legs can be reconstructed
    without parsing.

    Rows are never updated or deleted.
    """
    __tablename__ = "system_audit_logs"
    __table_args__ = (
        db.Index("ix_system_audit_logs_record_created", "record_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    action = db.Column(db.String(64), nullable=False, index=True)  # RECEIVE, WITHDRAW, BORROW, RETURN
    table_name = db.Column(db.String(64), nullable=False)
    record_id = db.Column(db.String(64), nullable=False)

    old_value = db.Column(db.String(255), nullable=True)
    new_value = db.Column(db.String(255), nullable=True)

    old_balance = db.Column(db.Integer, nullable=True)
    new_balance = db.Column(db.Integer, nullable=True)
    withdraw_delta = db.Column(db.Integer, nullable=False, default=0)
    receive_delta = db.Column(db.Integer, nullable=False, default=0)

    created_by = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(), nullable=False, default=civil_timestamp, index=True)

    def __repr__(self) -> str:
        return f"<SystemLog id={self.id} action={self.action!r} record_id={self.record_id!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "old_balance": self.old_balance,
            "new_balance": self.new_balance,
            "withdraw_delta": self.withdraw_delta,
            "receive_delta": self.receive_delta,
            "created_by": self.created_by,
            "created_at": to_civil_iso(self.created_at),
        }
