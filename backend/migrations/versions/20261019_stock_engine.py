"""Stock engine: items, balances, movements, borrows, audit log, notifications

Revision ID: 20261019_stock_engine
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_stock_engine"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_items_item_code", "items", ["item_code"], unique=True)
    op.create_index("ix_items_category_name", "items", ["category", "name"], unique=False)

    op.create_table(
        "stock_balances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_code", sa.String(length=64), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False),
        sa.Column("received", sa.Integer(), nullable=False),
        sa.Column("temp_withdrawn", sa.Integer(), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False),
        sa.Column("last_received_at", sa.DateTime(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("balance >= 0", name="ck_stock_balances_balance_nonnegative"),
        sa.ForeignKeyConstraint(["item_code"], ["items.item_code"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_balances_item_code", "stock_balances", ["item_code"], unique=True)

    op.create_table(
        "stock_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transaction_no", sa.String(length=32), nullable=False),
        sa.Column("item_code", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=8), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["item_code"], ["items.item_code"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_transactions_transaction_no", "stock_transactions", ["transaction_no"], unique=True)
    op.create_index("ix_stock_transactions_item_created", "stock_transactions", ["item_code", "created_at"], unique=False)

    op.create_table(
        "system_audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("table_name", sa.String(length=64), nullable=False),
        sa.Column("record_id", sa.String(length=64), nullable=False),
        sa.Column("old_value", sa.String(length=255), nullable=True),
        sa.Column("new_value", sa.String(length=255), nullable=True),
        sa.Column("old_balance", sa.Integer(), nullable=True),
        sa.Column("new_balance", sa.Integer(), nullable=True),
        sa.Column("withdraw_delta", sa.Integer(), nullable=False),
        sa.Column("receive_delta", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_system_audit_logs_action", "system_audit_logs", ["action"], unique=False)
    op.create_index("ix_system_audit_logs_created_at", "system_audit_logs", ["created_at"], unique=False)
    op.create_index("ix_system_audit_logs_record_created", "system_audit_logs", ["record_id", "created_at"], unique=False)

    op.create_table(
        "borrow_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transaction_id", sa.String(length=50), nullable=False),
        sa.Column("staff_id", sa.String(length=50), nullable=False),
        sa.Column("recorder_name", sa.String(length=255), nullable=False),
        sa.Column("item_code", sa.String(length=64), nullable=False),
        sa.Column("item_name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.String(length=50), nullable=True),
        sa.Column("scheduled_job_id", sa.String(length=191), nullable=True),
        sa.Column("borrow_date", sa.DateTime(), nullable=False),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("return_date", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_borrow_transactions_transaction_id", "borrow_transactions", ["transaction_id"], unique=True)
    op.create_index("ix_borrow_transactions_item_code", "borrow_transactions", ["item_code"], unique=False)
    op.create_index("ix_borrow_transactions_status", "borrow_transactions", ["status"], unique=False)
    op.create_index("ix_borrow_transactions_staff_borrowed", "borrow_transactions", ["staff_id", "borrow_date"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("target_staff_id", sa.String(length=50), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_notifications_target_staff_id", "notifications", ["target_staff_id"], unique=False)
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"], unique=False)

    op.create_table(
        "notification_reads",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("notification_id", sa.Integer(), nullable=False),
        sa.Column("staff_id", sa.String(length=50), nullable=False),
        sa.Column("read_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["notification_id"], ["notifications.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("notification_id", "staff_id", name="uq_notification_reads_notification_staff"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_notification_reads_notification_id", "notification_reads", ["notification_id"], unique=False)
    op.create_index("ix_notification_reads_staff_id", "notification_reads", ["staff_id"], unique=False)


def downgrade():
    op.drop_table("notification_reads")
    op.drop_table("notifications")
    op.drop_table("borrow_transactions")
    op.drop_table("system_audit_logs")
    op.drop_table("stock_transactions")
    op.drop_table("stock_balances")
    op.drop_table("items")
