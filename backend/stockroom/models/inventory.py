from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import civil_now, civil_timestamp, to_civil_iso

# All DateTime columns hold naive civil wall-clock values (CIVIL_UTC_OFFSET_HOURS).


class Item(db.Model):
    """
    Catalog entry; identity anchor for every balance, movement and loan.

    Item.item_code is the immutable business key. The stock engine reads
    items but never mutates them.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_category_name", "category", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False, default="")
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    created_at = db.Column(db.DateTime(), nullable=False, default=civil_timestamp)
    updated_at = db.Column(
        db.DateTime(),
        nullable=False,
        default=civil_timestamp,
        onupdate=civil_timestamp,
    )

    stock_balance = db.relationship(
        "StockBalance",
        back_populates="item",
        uselist=False,
        primaryjoin="Item.item_code == StockBalance.item_code",
    )

    def __repr__(self) -> str:
        return f"<Item id={self.id} item_code={self.item_code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_code": self.item_code,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "created_at": to_civil_iso(self.created_at),
            "updated_at": to_civil_iso(self.updated_at),
        }


class StockBalance(db.Model):
    """
    Current quantity state for one item (1:1 with Item).

    - total_quantity: assets owned; grows only by receipts beyond the withdrawn hole
    - received: quantity received on the civil day of last_received_at
    - temp_withdrawn: quantity currently out (withdrawn or borrowed, not yet refilled)
    - balance: quantity on the shelf; never negative

    Mutated exclusively by balance_service.adjust_balance, inside the same
    transaction as its audit row.
    """
    __tablename__ = "stock_balances"
    __table_args__ = (
        db.CheckConstraint("balance >= 0", name="ck_stock_balances_balance_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_code = db.Column(
        db.String(64),
        db.ForeignKey("items.item_code"),
        nullable=False,
        unique=True,
        index=True,
    )

    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    received = db.Column(db.Integer, nullable=False, default=0)
    temp_withdrawn = db.Column(db.Integer, nullable=False, default=0)
    balance = db.Column(db.Integer, nullable=False, default=0)
    last_received_at = db.Column(db.DateTime(), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(), nullable=False, default=civil_timestamp)
    updated_at = db.Column(
        db.DateTime(),
        nullable=False,
        default=civil_timestamp,
        onupdate=civil_timestamp,
    )

    item = db.relationship(
        "Item",
        back_populates="stock_balance",
        primaryjoin="Item.item_code == StockBalance.item_code",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StockBalance item_code={self.item_code!r} balance={self.balance}>"

    def received_on(self, day) -> int:
        """Received counter as of a civil date; a counter from an earlier day reads as 0."""
        if self.last_received_at is None or self.last_received_at.date() != day:
            return 0
        return self.received

    def to_dict(self) -> dict:
        return {
            "item_code": self.item_code,
            "total_quantity": self.total_quantity,
            "received": self.received_on(civil_now().date()),
            "temp_withdrawn": self.temp_withdrawn,
            "balance": self.balance,
            "last_received_at": to_civil_iso(self.last_received_at),
            "version_id": self.version_id,
            "created_at": to_civil_iso(self.created_at),
            "updated_at": to_civil_iso(self.updated_at),
        }


class StockTransaction(db.Model):
    """Movement document for a direct receive (IN) or withdrawal (OUT)."""
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stock_transactions_item_created", "item_code", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_no = db.Column(db.String(32), nullable=False, unique=True, index=True)
    item_code = db.Column(db.String(64), db.ForeignKey("items.item_code"), nullable=False)

    type = db.Column(db.String(8), nullable=False)  # IN, OUT
    quantity = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(), nullable=False, default=civil_timestamp)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_no": self.transaction_no,
            "item_code": self.item_code,
            "type": self.type,
            "quantity": self.quantity,
            "balance_after": self.balance_after,
            "note": self.note,
            "created_by": self.created_by,
            "created_at": to_civil_iso(self.created_at),
        }
