# Overview: Due-date reminder jobs; adapter from the borrow engine to a durable APScheduler job store.

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from html import escape
from typing import Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from flask import Flask, current_app

from ..extensions import db
from ..models import BorrowTransaction
from stockroom.time_utils import civil_tz
from .email_service import get_email_sender
from .notification_service import TYPE_DUE_REMINDER, send_notification
"""
Reminder delivery contract:

- schedule_once(run_at, payload) persists one fire-once job and returns its handle.
- Jobs live in the SQLAlchemy job store, so pending reminders survive restarts.
- misfire_grace_time=None + coalesce=True: a job whose time passed while no
  scheduler was running fires once when one starts again (at-least-once).
- The job calls deliver_reminder(), which needs the Flask app registered by
  init_reminder_scheduler().
"""

DELIVER_REMINDER_REF = "stockroom.services.reminder_service:deliver_reminder"
JOB_ID_PREFIX = "borrow-reminder"

# Wakes a dedicated runner so it notices jobs added by other processes
RUNNER_POLL_SECONDS = 30

_app: Flask | None = None


@dataclass(frozen=True)
class ReminderPayload:
    to: str
    subject: str
    html_body: str
    staff_id: str | None = None
    transaction_id: str | None = None

    def to_kwargs(self) -> dict:
        return asdict(self)


class ReminderScheduler(Protocol):
    def schedule_once(self, run_at: datetime, payload: ReminderPayload) -> str:
        ...

    def cancel(self, job_handle: str) -> None:
        ...


def build_reminder_payload(
    *,
    recorder_email: str,
    recorder_name: str,
    staff_id: str | None,
    transaction_id: str,
    item_name: str,
    unit: str,
    quantity: int,
    due_date_text: str,
    job_id: str | None = None,
) -> ReminderPayload:
    subject = f"Reminder: {item_name} is due for return"
    html_body = (
        "<h3>Return reminder</h3>"
        f"<p>Dear {escape(recorder_name)},</p>"
        f"<p>Please follow up on the return of: <b>{escape(item_name)}</b></p>"
        f"<p>Quantity: {quantity} {escape(unit)}(s)</p>"
        f"<p>Due date: {escape(due_date_text)}</p>"
        f"<p>Transaction: {escape(transaction_id)}</p>"
        f"<p>Job ID: {escape(job_id or '-')}</p>"
    )
    return ReminderPayload(
        to=recorder_email,
        subject=subject,
        html_body=html_body,
        staff_id=staff_id,
        transaction_id=transaction_id,
    )


class APSchedulerReminderScheduler:
    """ReminderScheduler backed by an APScheduler instance with a persistent job store."""

    def __init__(self, scheduler: BaseScheduler):
        self.scheduler = scheduler

    def schedule_once(self, run_at: datetime, payload: ReminderPayload) -> str:
        job_id = f"{JOB_ID_PREFIX}-{payload.transaction_id or 'adhoc'}-{uuid.uuid4().hex[:8]}"
        job = self.scheduler.add_job(
            DELIVER_REMINDER_REF,
            trigger="date",
            run_date=run_at,
            kwargs=payload.to_kwargs(),
            id=job_id,
            misfire_grace_time=None,
            coalesce=True,
        )
        current_app.logger.info("Scheduled reminder %s at %s for %s", job.id, run_at.isoformat(), payload.to)
        return job.id

    def cancel(self, job_handle: str) -> None:
        try:
            self.scheduler.remove_job(job_handle)
        except JobLookupError:
            # already fired or removed
            current_app.logger.info("Reminder job %s no longer pending", job_handle)
            return
        current_app.logger.info("Cancelled reminder job %s", job_handle)


def deliver_reminder(
    *,
    to: str,
    subject: str,
    html_body: str,
    staff_id: str | None = None,
    transaction_id: str | None = None,
) -> None:
    """Job target: email the recorder and leave a targeted notification."""
    if _app is None:
        raise RuntimeError("Reminder scheduler is not initialized; call init_reminder_scheduler(app)")

    with _app.app_context():
        if transaction_id:
            borrow = db.session.query(BorrowTransaction).filter_by(transaction_id=transaction_id).first()
            if borrow is not None and borrow.is_returned:
                current_app.logger.info("Skipping reminder for returned transaction %s", transaction_id)
                return

        get_email_sender().send_email(to, subject, html_body)
        if staff_id:
            send_notification(staff_id, subject, f"Transaction {transaction_id} is due for return", TYPE_DUE_REMINDER)


def create_scheduler(jobstore_url: str, *, blocking: bool = False) -> BaseScheduler:
    jobstores = {"default": SQLAlchemyJobStore(url=jobstore_url)}
    job_defaults = {"coalesce": True, "misfire_grace_time": None}
    if blocking:
        from apscheduler.schedulers.blocking import BlockingScheduler

        return BlockingScheduler(jobstores=jobstores, job_defaults=job_defaults, timezone=civil_tz())
    return BackgroundScheduler(jobstores=jobstores, job_defaults=job_defaults, timezone=civil_tz())


def _jobstore_url(app: Flask) -> str:
    return app.config.get("SCHEDULER_JOBSTORE_URL") or app.config["SQLALCHEMY_DATABASE_URI"]


def init_reminder_scheduler(app: Flask) -> APSchedulerReminderScheduler | None:
    """
    Register the app for job execution and, when enabled, start a background scheduler.

    REMINDER_SCHEDULER_PAUSED=True starts it paused: jobs are written to the
    job store but executed by a dedicated `flask scheduler run` process.
    """
    global _app
    _app = app

    if not app.config.get("REMINDER_SCHEDULER_ENABLED"):
        return None

    with app.app_context():
        scheduler = create_scheduler(_jobstore_url(app))
        scheduler.start(paused=bool(app.config.get("REMINDER_SCHEDULER_PAUSED")))

    adapter = APSchedulerReminderScheduler(scheduler)
    app.extensions["reminder_scheduler"] = adapter
    app.logger.info("Reminder scheduler started (jobstore=%s)", _jobstore_url(app))
    return adapter


def _noop():
    pass


def run_blocking_scheduler(app: Flask) -> None:
    """Dedicated runner process; executes jobs enqueued by the web processes."""
    global _app
    _app = app

    # create_app may already have started a background scheduler on the same
    # job store; only this runner may execute jobs.
    in_process = app.extensions.get("reminder_scheduler")
    if isinstance(in_process, APSchedulerReminderScheduler) and in_process.scheduler.running:
        in_process.scheduler.pause()
        app.logger.info("Paused in-process reminder scheduler; the runner executes jobs")

    with app.app_context():
        scheduler = create_scheduler(_jobstore_url(app), blocking=True)
        scheduler.add_job(
            "stockroom.services.reminder_service:_noop",
            trigger="interval",
            seconds=RUNNER_POLL_SECONDS,
            id="reminder-runner-poll",
            replace_existing=True,
        )
    app.logger.info("Reminder runner polling every %ss", RUNNER_POLL_SECONDS)
    scheduler.start()


def get_reminder_scheduler() -> ReminderScheduler | None:
    return current_app.extensions.get("reminder_scheduler")
