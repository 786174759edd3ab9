# Overview: Pytest coverage for the transaction boundary and retry helpers.

import logging

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stockroom.extensions import db
from stockroom.models import StockBalance
from stockroom.services import balance_service
from stockroom.services.balance_service import adjust_balance
from stockroom.services.concurrency import atomic, run_with_retry
from stockroom.validation import InsufficientStockError

from conftest import balance_of


class TestAtomic:
    def test_commits_on_success(self, item_it001):
        with atomic():
            db.session.query(StockBalance).filter_by(item_code="IT-001").one().balance = 9

        assert balance_of("IT-001") == 9

    def test_rolls_back_and_reraises(self, item_it001):
        with pytest.raises(ValueError):
            with atomic():
                db.session.query(StockBalance).filter_by(item_code="IT-001").one().balance = 1
                db.session.flush()
                raise ValueError("boom")

        assert balance_of("IT-001") == 10


class TestRunWithRetry:
    def test_retries_stale_data_then_succeeds(self, app):
        calls = []

        def _op():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("version mismatch")
            return "done"

        assert run_with_retry(_op, backoff_base=0) == "done"
        assert len(calls) == 3

    def test_gives_up_after_attempts(self, app):
        def _op():
            raise OperationalError("UPDATE stock_balances", {}, Exception("database is locked"))

        with pytest.raises(OperationalError):
            run_with_retry(_op, attempts=2, backoff_base=0)

    def test_other_errors_are_not_retried(self, app):
        calls = []

        def _op():
            calls.append(1)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            run_with_retry(_op, backoff_base=0)
        assert len(calls) == 1

    def test_version_counter_moves_on_update(self, item_it001):
        before = db.session.query(StockBalance).filter_by(item_code="IT-001").one().version_id

        with atomic():
            db.session.query(StockBalance).filter_by(item_code="IT-001").one().balance = 8

        db.session.expire_all()
        after = db.session.query(StockBalance).filter_by(item_code="IT-001").one().version_id
        assert after == before + 1


class TestConcurrentWithdrawals:
    def test_losing_writer_is_retried_then_rejected(self, item_it001, caplog):
        main = db.session()
        interleaved = []

        def _other_clerk_withdraws_eight(session, flush_context, instances):
            # commits between this session's read of balance 10 and its UPDATE
            if interleaved:
                return
            interleaved.append(True)
            other = Session(db.engine)
            try:
                row = other.query(StockBalance).filter_by(item_code="IT-001").one()
                row.balance -= 8
                row.temp_withdrawn += 8
                other.commit()
            finally:
                other.close()

        def _withdraw_five():
            with atomic():
                return adjust_balance("IT-001", -5, actor="bob", action=balance_service.ACTION_WITHDRAW)

        event.listen(main, "before_flush", _other_clerk_withdraws_eight)
        try:
            with caplog.at_level(logging.WARNING):
                with pytest.raises(InsufficientStockError) as excinfo:
                    run_with_retry(_withdraw_five, backoff_base=0)
        finally:
            event.remove(main, "before_flush", _other_clerk_withdraws_eight)

        assert interleaved == [True]
        assert "Concurrent update conflict" in caplog.text
        assert excinfo.value.balance == 2
        assert excinfo.value.requested == 5
        assert balance_of("IT-001") == 2

        stock = db.session.query(StockBalance).filter_by(item_code="IT-001").one()
        assert stock.temp_withdrawn == 8
        assert stock.version_id == 2
