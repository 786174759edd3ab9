# Overview: Pytest coverage for the app factory error mapping and the CLI command groups.

from datetime import datetime

import pytest
from sqlalchemy import DateTime

from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import BorrowTransaction
from stockroom.services import reminder_service
from stockroom.services.borrow_service import borrow_item
from stockroom.validation import (
    BadRequestError,
    BusinessRuleConflict,
    InsufficientStockError,
    NotFoundError,
    UnexpectedError,
)

from conftest import audit_rows, balance_of, borrow_rows


@pytest.fixture
def error_client(monkeypatch):
    monkeypatch.setattr(reminder_service, "_app", reminder_service._app)
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "REMINDER_SCHEDULER_ENABLED": False,
    })

    errors = {
        "missing": NotFoundError("Item X not found"),
        "bad": BadRequestError("due_date must be in dd/MM/yyyy format"),
        "short": InsufficientStockError("IT-001", 10, 15),
        "twice": BusinessRuleConflict("already returned"),
        "broken": UnexpectedError("store offline"),
    }

    @app.route("/raise/<name>")
    def _raise(name):
        raise errors[name]

    return app.test_client()


class TestErrorMapping:
    @pytest.mark.parametrize(
        "name, status",
        [("missing", 404), ("bad", 400), ("short", 400), ("twice", 409), ("broken", 500)],
    )
    def test_status_codes(self, error_client, name, status):
        response = error_client.get(f"/raise/{name}")
        assert response.status_code == status
        assert response.get_json()["status_code"] == status

    def test_insufficient_stock_carries_numbers(self, error_client):
        body = error_client.get("/raise/short").get_json()
        assert body["balance"] == 10
        assert body["requested"] == 15
        assert "IT-001" in body["error"]


class TestCli:
    @pytest.fixture
    def runner(self, app, db_session):
        return app.test_cli_runner()

    def test_items_create_and_list(self, runner):
        result = runner.invoke(args=["items", "create", "--code", "IT-100", "--name", "Drill", "--opening", "3"])
        assert result.exit_code == 0, result.output
        assert "IT-100" in result.output
        assert balance_of("IT-100") == 3

        listing = runner.invoke(args=["items", "list"])
        assert "Drill" in listing.output

    def test_stock_withdraw_reports_failures(self, runner, item_it001):
        result = runner.invoke(
            args=["stock", "withdraw", "--actor", "alice", "--item", "IT-001:2", "--item", "IT-001:99"]
        )

        assert result.exit_code != 0
        assert "PASS IT-001 x2" in result.output
        assert "FAIL IT-001 x99" in result.output
        assert balance_of("IT-001") == 8

    def test_stock_item_spec_must_have_quantity(self, runner, item_it001):
        result = runner.invoke(args=["stock", "receive", "--actor", "alice", "--item", "IT-001"])
        assert result.exit_code != 0
        assert balance_of("IT-001") == 10

    def test_borrow_out_and_return(self, runner, item_it001):
        out = runner.invoke(args=["borrow", "out", "--staff", "S-1", "--name", "Alice", "--item", "IT-001", "--qty", "2"])
        assert out.exit_code == 0, out.output
        assert balance_of("IT-001") == 8

        tid = borrow_rows()[0].transaction_id
        back = runner.invoke(args=["borrow", "return", "--staff", "S-1", "--name", "Alice", tid])
        assert back.exit_code == 0, back.output
        assert balance_of("IT-001") == 10

        again = runner.invoke(args=["borrow", "return", "--staff", "S-1", "--name", "Alice", tid])
        assert again.exit_code != 0
        assert "already been returned" in again.output

    def test_borrow_out_rejects_bad_due_date(self, runner, item_it001):
        result = runner.invoke(
            args=["borrow", "out", "--staff", "S-1", "--name", "Alice", "--item", "IT-001", "--qty", "1", "--due", "2026-12-31"]
        )
        assert result.exit_code != 0
        assert "dd/MM/yyyy" in result.output
        assert borrow_rows() == []

    def test_audit_list(self, runner, item_it001):
        runner.invoke(args=["stock", "receive", "--actor", "bob", "--item", "IT-001:1"])
        assert len(audit_rows("IT-001")) == 1

        result = runner.invoke(args=["audit", "list", "--item", "IT-001"])
        assert "RECEIVE" in result.output
        assert "by bob" in result.output

    def test_notifications_read_all(self, runner, item_it001):
        runner.invoke(args=["borrow", "out", "--staff", "S-1", "--name", "Alice", "--item", "IT-001", "--qty", "1"])

        unread = runner.invoke(args=["notifications", "list", "S-2", "--unread"])
        assert "1 notification(s)" in unread.output

        marked = runner.invoke(args=["notifications", "read-all", "S-2"])
        assert "Marked 1" in marked.output


class TestTimestampStorage:
    def test_timestamp_columns_are_timezone_naive(self, app):
        columns = [
            column
            for table in db.metadata.sorted_tables
            for column in table.columns
            if isinstance(column.type, DateTime)
        ]

        assert columns
        assert [str(c) for c in columns if c.type.timezone] == []

    def test_borrow_time_is_stored_as_civil_wall_clock(self, item_it001, morning):
        borrow = borrow_item("S-100", "Alice", None, "IT-001", 1, due_date="21/10/2026", now=morning)
        db.session.expire_all()

        stored = db.session.query(BorrowTransaction).filter_by(transaction_id=borrow.transaction_id).one()
        assert stored.borrow_date == datetime(2026, 10, 19, 10, 0)
        assert stored.borrow_date.tzinfo is None
        assert stored.to_dict()["borrow_date"] == "2026-10-19T10:00:00+07:00"
        assert stored.to_dict()["due_date"] == "2026-10-21T00:00:00+07:00"
