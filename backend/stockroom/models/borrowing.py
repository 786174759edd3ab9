from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import civil_timestamp, to_civil_iso


BORROW_STATUS_BORROWED = "Borrowed"
BORROW_STATUS_RETURNED = "Returned"


class BorrowTransaction(db.Model):
    """
    A checkout of stock to a staff member.

    LIFECYCLE: Borrowed -> Returned (terminal). Created on borrow, updated
    once on return, never deleted.

    item_name is snapshotted at borrow time so later catalog renames do not
    rewrite history. transaction_id is the public handle used for returns.
    """
    __tablename__ = "borrow_transactions"
    __table_args__ = (
        db.Index("ix_borrow_transactions_staff_borrowed", "staff_id", "borrow_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(50), nullable=False, unique=True, index=True)

    staff_id = db.Column(db.String(50), nullable=False)
    recorder_name = db.Column(db.String(255), nullable=False, default="")

    item_code = db.Column(db.String(64), nullable=False, index=True)
    item_name = db.Column(db.String(255), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False)

    job_id = db.Column(db.String(50), nullable=True)
    scheduled_job_id = db.Column(db.String(191), nullable=True)

    borrow_date = db.Column(db.DateTime(), nullable=False, default=civil_timestamp)
    due_date = db.Column(db.DateTime(), nullable=True)
    return_date = db.Column(db.DateTime(), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=BORROW_STATUS_BORROWED, index=True)
    note = db.Column(db.Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<BorrowTransaction transaction_id={self.transaction_id!r} "
            f"item_code={self.item_code!r} status={self.status!r}>"
        )

    @property
    def is_returned(self) -> bool:
        return self.status == BORROW_STATUS_RETURNED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "staff_id": self.staff_id,
            "recorder_name": self.recorder_name,
            "item_code": self.item_code,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "job_id": self.job_id,
            "scheduled_job_id": self.scheduled_job_id,
            "borrow_date": to_civil_iso(self.borrow_date),
            "due_date": to_civil_iso(self.due_date),
            "return_date": to_civil_iso(self.return_date),
            "status": self.status,
            "note": self.note,
        }
