"""
Pytest fixtures for the stock engine tests.

Provides an in-memory application, a per-test clean database, catalog
fixtures, and recording stand-ins for the reminder scheduler and email
collaborators.
"""

from datetime import datetime, timedelta, timezone

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Item, StockBalance, SystemLog, BorrowTransaction


CIVIL_TZ = timezone(timedelta(hours=7))


class RecordingScheduler:
    """ReminderScheduler that keeps jobs in memory."""

    def __init__(self):
        self.jobs = {}
        self.cancelled = []
        self._seq = 0

    def schedule_once(self, run_at, payload):
        self._seq += 1
        handle = f"job-{self._seq}"
        self.jobs[handle] = (run_at, payload)
        return handle

    def cancel(self, job_handle):
        self.cancelled.append(job_handle)
        self.jobs.pop(job_handle, None)


class RecordingEmailSender:
    def __init__(self):
        self.sent = []

    def send_email(self, to, subject, html_body):
        self.sent.append((to, subject, html_body))


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'REMINDER_SCHEDULER_ENABLED': False,
        'CIVIL_UTC_OFFSET_HOURS': 7,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh database and collaborators for each test."""
    db.session.remove()
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    for key in ('notification_hub', 'email_sender', 'reminder_scheduler'):
        app.extensions.pop(key, None)

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture
def scheduler(app, db_session):
    fake = RecordingScheduler()
    app.extensions['reminder_scheduler'] = fake
    return fake


@pytest.fixture
def email_sender(app, db_session):
    fake = RecordingEmailSender()
    app.extensions['email_sender'] = fake
    return fake


def make_item(session, code, *, name=None, balance=0, unit='pcs', category='IT'):
    item = Item(item_code=code, name=name or f"Item {code}", category=category, unit=unit)
    session.add(item)
    session.add(StockBalance(item_code=code, total_quantity=balance, balance=balance))
    session.commit()
    return item


@pytest.fixture
def item_it001(db_session):
    """IT-001 with balance 10."""
    return make_item(db_session, 'IT-001', name='Laptop', balance=10)


@pytest.fixture
def morning():
    """A civil-time borrow instant: 19/10/2026 10:00 (UTC+7)."""
    return datetime(2026, 10, 19, 10, 0, tzinfo=CIVIL_TZ)


def balance_of(code):
    db.session.expire_all()
    return db.session.query(StockBalance).filter_by(item_code=code).one().balance


def audit_rows(code=None, action=None):
    q = db.session.query(SystemLog)
    if code:
        q = q.filter_by(record_id=code)
    if action:
        q = q.filter_by(action=action)
    return q.order_by(SystemLog.id).all()


def borrow_rows():
    return db.session.query(BorrowTransaction).order_by(BorrowTransaction.id).all()
