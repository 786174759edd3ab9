# Overview: Pytest coverage for direct receive/withdraw movements and catalog bootstrap.

from datetime import timedelta

import pytest

from stockroom.extensions import db
from stockroom.models import StockBalance, StockTransaction
from stockroom.services import stock_service
from stockroom.services.balance_service import ACTION_RECEIVE, adjust_balance
from stockroom.services.concurrency import atomic
from stockroom.services.stock_service import StockRequest
from stockroom.time_utils import civil_now
from stockroom.validation import BadRequestError, ConflictError, InsufficientStockError, NotFoundError

from conftest import audit_rows, balance_of, make_item


class TestSingleMovements:
    def test_withdraw_one_writes_movement_document(self, item_it001):
        tx = stock_service.withdraw_one("IT-001", 4, actor="alice", note="  site visit  ")

        assert tx.type == "OUT"
        assert tx.quantity == 4
        assert tx.balance_after == 6
        assert tx.note == "site visit"
        assert tx.transaction_no.startswith("TRX-")
        assert balance_of("IT-001") == 6

    def test_receive_one_accepts_numeric_strings(self, item_it001):
        tx = stock_service.receive_one("IT-001", "5", actor="alice")
        assert tx.type == "IN"
        assert tx.balance_after == 15

    @pytest.mark.parametrize("qty", ["1.5", "1e3", "", 0, -2, 2_000_000])
    def test_rejects_bad_quantities(self, item_it001, qty):
        with pytest.raises(BadRequestError):
            stock_service.receive_one("IT-001", qty, actor="alice")
        assert balance_of("IT-001") == 10

    def test_insufficient_withdraw_writes_nothing(self, item_it001):
        with pytest.raises(InsufficientStockError):
            stock_service.withdraw_one("IT-001", 11, actor="alice")

        assert balance_of("IT-001") == 10
        assert db.session.query(StockTransaction).count() == 0
        assert audit_rows() == []


class TestBatches:
    def test_independent_batch_reports_each_request(self, item_it001):
        results = stock_service.withdraw_stock(
            [StockRequest("IT-001", 3), StockRequest("IT-001", 50), StockRequest("NOPE", 1)],
            actor="alice",
        )

        assert [r.ok for r in results] == [True, False, False]
        assert results[0].balance_after == 7
        assert "Insufficient" in results[1].error
        assert "not found" in results[2].error
        assert balance_of("IT-001") == 7
        assert len(audit_rows("IT-001")) == 1

    def test_all_or_nothing_batch_rolls_back_on_failure(self, item_it001, db_session):
        make_item(db_session, "IT-002", balance=2)

        with pytest.raises(InsufficientStockError):
            stock_service.withdraw_stock(
                [StockRequest("IT-001", 3), StockRequest("IT-002", 5)],
                actor="alice",
                all_or_nothing=True,
            )

        assert balance_of("IT-001") == 10
        assert balance_of("IT-002") == 2
        assert audit_rows() == []
        assert db.session.query(StockTransaction).count() == 0

    def test_all_or_nothing_batch_commits_together(self, item_it001):
        results = stock_service.receive_stock(
            [StockRequest("IT-001", 1), StockRequest("IT-001", 2)],
            actor="alice",
            all_or_nothing=True,
        )

        assert [r.balance_after for r in results] == [11, 13]
        assert [r.to_dict()["ok"] for r in results] == [True, True]
        assert balance_of("IT-001") == 13


class TestCatalog:
    def test_create_item_posts_opening_balance_as_receive(self, db_session):
        item = stock_service.create_item(item_code=" IT-050 ", name="Monitor", opening_quantity=4)

        assert item.item_code == "IT-050"
        stock = db_session.query(StockBalance).filter_by(item_code="IT-050").one()
        assert stock.balance == 4
        assert stock.total_quantity == 4
        rows = audit_rows("IT-050")
        assert [(r.action, r.created_by) for r in rows] == [("RECEIVE", "system")]

    def test_create_item_without_opening_has_zero_balance(self, db_session):
        stock_service.create_item(item_code="IT-051", name="Cable")
        assert balance_of("IT-051") == 0
        assert audit_rows("IT-051") == []

    def test_duplicate_item_is_a_conflict(self, item_it001):
        with pytest.raises(ConflictError):
            stock_service.create_item(item_code="IT-001", name="Again")

    def test_get_item_with_balance(self, item_it001):
        item, stock = stock_service.get_item_with_balance("IT-001")
        assert item.name == "Laptop"
        assert stock.balance == 10

        with pytest.raises(NotFoundError):
            stock_service.get_item_with_balance("NOPE")

    def test_balance_summary(self, item_it001):
        summary = stock_service.get_balance_summary("IT-001")
        assert summary["balance"] == 10
        assert summary["name"] == "Laptop"
        assert summary["unit"] == "pcs"

    def test_summary_counts_todays_receipts(self, item_it001):
        stock_service.receive_one("IT-001", 2, actor="alice")
        stock_service.receive_one("IT-001", 3, actor="alice")

        assert stock_service.get_balance_summary("IT-001")["received"] == 5

    def test_summary_zeroes_receipts_from_an_earlier_day(self, item_it001):
        with atomic():
            adjust_balance("IT-001", 5, actor="alice", action=ACTION_RECEIVE, now=civil_now() - timedelta(days=1))

        summary = stock_service.get_balance_summary("IT-001")
        assert summary["received"] == 0
        assert summary["balance"] == 15

        stock = db.session.query(StockBalance).filter_by(item_code="IT-001").one()
        assert stock.received == 5
