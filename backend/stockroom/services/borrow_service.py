"""
Borrow/return engine.

Checks stock out to staff members and back in, on top of the balance
mutator, and schedules a due-date reminder for each checkout.

LIFECYCLE:
1. borrow_item(): optional reminder job is enqueued first, then balance -qty
   (BORROW audit row) + BorrowTransaction(Borrowed) in one transaction; the
   job is cancelled if that transaction rolls back. Then a broadcast notification
2. return_item(): balance +qty (RETURN audit row, skipped if the item is gone)
   + status Returned, one transaction; then the pending reminder is cancelled

Returned is terminal: a second return raises BusinessRuleConflict and
changes nothing.

Time: borrow/return timestamps and reminder arithmetic use the single civil
offset (CIVIL_UTC_OFFSET_HOURS), never the server's local zone.
"""

from __future__ import annotations

import uuid
from datetime import datetime, time, timedelta

from flask import current_app

from ..extensions import db
from ..models import BorrowTransaction, Item
from ..models.borrowing import BORROW_STATUS_BORROWED, BORROW_STATUS_RETURNED
from ..validation import (
    BadRequestError,
    BusinessRuleConflict,
    NotFoundError,
    UnexpectedError,
    clean_optional_text,
    normalize_item_code,
    require_positive_quantity,
)
from stockroom.time_utils import as_civil, civil_now, parse_due_date, to_civil_naive
from . import notification_service
from .balance_service import ACTION_BORROW, ACTION_RETURN, adjust_balance, find_balance
from .concurrency import atomic, lock_for_update, run_with_retry
from .reminder_service import ReminderScheduler, build_reminder_payload, get_reminder_scheduler
from .stock_service import get_item_with_balance


TRANSACTION_ID_LENGTH = 10

MORNING_CHECKPOINT = time(8, 30)
SAME_DAY_NOON_CHECKPOINT = time(12, 30)
SAME_DAY_AFTERNOON_CHECKPOINT = time(15, 0)


# =============================================================================
# REMINDER SCHEDULE
# =============================================================================

def compute_reminder_time(borrowed_at: datetime, due_date: datetime) -> datetime:
    """
    Reminder fire time for a loan, in civil time.

    duration_days = (due date - borrow date in whole days) + 1:
    - 1:   borrowed before noon -> same day 12:30, otherwise same day 15:00
    - 2-3: due date 08:30
    - 4-5: borrow date + 2 days, 08:30
    - 6-7: borrow date + 4 days, 08:30
    - otherwise (longer, or due date already past): due date - 2 days, 08:30

    The result may lie in the past; callers decide whether to schedule it.
    """
    borrowed = as_civil(borrowed_at)
    tz = borrowed.tzinfo
    borrow_day = borrowed.date()
    due_day = as_civil(due_date).date() if due_date.tzinfo else due_date.date()

    duration_days = (due_day - borrow_day).days + 1

    if duration_days == 1:
        checkpoint = SAME_DAY_NOON_CHECKPOINT if borrowed.hour < 12 else SAME_DAY_AFTERNOON_CHECKPOINT
        return datetime.combine(borrow_day, checkpoint, tzinfo=tz)
    if 2 <= duration_days <= 3:
        return datetime.combine(due_day, MORNING_CHECKPOINT, tzinfo=tz)
    if 4 <= duration_days <= 5:
        return datetime.combine(borrow_day + timedelta(days=2), MORNING_CHECKPOINT, tzinfo=tz)
    if 6 <= duration_days <= 7:
        return datetime.combine(borrow_day + timedelta(days=4), MORNING_CHECKPOINT, tzinfo=tz)
    return datetime.combine(due_day - timedelta(days=2), MORNING_CHECKPOINT, tzinfo=tz)


# =============================================================================
# TRANSACTION IDS
# =============================================================================

def generate_transaction_id() -> str:
    """10 uppercase alphanumerics from a random UUID."""
    return uuid.uuid4().hex[:TRANSACTION_ID_LENGTH].upper()


def _unique_transaction_id() -> str:
    attempts = int(current_app.config.get("TRANSACTION_ID_ATTEMPTS", 5))
    for _ in range(max(1, attempts)):
        candidate = generate_transaction_id()
        taken = db.session.query(BorrowTransaction.id).filter_by(transaction_id=candidate).first()
        if taken is None:
            return candidate
    raise UnexpectedError(f"Could not allocate a unique transaction id after {attempts} attempts")


# =============================================================================
# BORROW
# =============================================================================

def _cancel_quietly(scheduler: ReminderScheduler | None, job_handle: str | None) -> None:
    if not scheduler or not job_handle:
        return
    try:
        scheduler.cancel(job_handle)
    except Exception:
        current_app.logger.exception("Failed to cancel reminder job %s", job_handle)


def borrow_item(
    staff_id: str,
    recorder_name: str,
    recorder_email: str | None,
    item_code: str,
    quantity: int,
    *,
    job_id: str | None = None,
    due_date: str | None = None,
    note: str | None = None,
    scheduler: ReminderScheduler | None = None,
    now: datetime | None = None,
) -> BorrowTransaction:
    """
    Check stock out to a staff member.

    Args:
        staff_id: Borrower
        recorder_name: Display name written to the audit trail
        recorder_email: Reminder recipient; no reminder when empty
        item_code: Item to borrow
        quantity: Units to borrow (> 0)
        job_id: Optional work-order reference
        due_date: Optional "dd/MM/yyyy"
        note: Optional free text
        scheduler: Reminder scheduler; defaults to the app's registered one
        now: Borrow time; defaults to civil now

    Returns:
        BorrowTransaction with status Borrowed

    Raises:
        BadRequestError: invalid quantity or due date format
        NotFoundError: item or its balance row is missing
        InsufficientStockError: balance is lower than quantity
    """
    code = normalize_item_code(item_code)
    qty = require_positive_quantity(quantity)
    job_ref = clean_optional_text(job_id, field="job_id", max_length=50)
    note = clean_optional_text(note, field="note", max_length=2000)

    item, stock = get_item_with_balance(code)
    if stock is None:
        raise NotFoundError(f"Item {code} has no stock balance configured")

    try:
        due_dt = parse_due_date(due_date)
    except ValueError:
        raise BadRequestError("due_date must be in dd/MM/yyyy format")

    borrowed_at = as_civil(now) if now is not None else civil_now()

    reminder_at = None
    if recorder_email and due_dt is not None:
        reminder_at = compute_reminder_time(borrowed_at, due_dt)
        if reminder_at <= borrowed_at:
            current_app.logger.info(
                "Reminder for %s skipped: fire time %s already passed", code, reminder_at.isoformat()
            )
            reminder_at = None
        else:
            scheduler = scheduler or get_reminder_scheduler()
            if scheduler is None:
                current_app.logger.warning("No reminder scheduler configured; reminder for %s skipped", code)
                reminder_at = None

    item_name = item.name
    unit = item.unit

    def _op():
        job_handle = None
        try:
            transaction_id = _unique_transaction_id()

            # The job store may live in this same database: enqueue before
            # the session below takes the write lock.
            if reminder_at is not None:
                payload = build_reminder_payload(
                    recorder_email=recorder_email,
                    recorder_name=recorder_name,
                    staff_id=staff_id,
                    transaction_id=transaction_id,
                    item_name=item_name,
                    unit=unit,
                    quantity=qty,
                    due_date_text=due_dt.strftime("%d/%m/%Y"),
                    job_id=job_ref,
                )
                job_handle = scheduler.schedule_once(reminder_at, payload)

            with atomic():
                adjust_balance(code, -qty, actor=recorder_name, action=ACTION_BORROW, now=borrowed_at)

                borrow = BorrowTransaction(
                    transaction_id=transaction_id,
                    staff_id=staff_id,
                    recorder_name=recorder_name,
                    item_code=code,
                    item_name=item_name,
                    quantity=qty,
                    job_id=job_ref,
                    scheduled_job_id=job_handle,
                    borrow_date=to_civil_naive(borrowed_at),
                    due_date=due_dt,
                    status=BORROW_STATUS_BORROWED,
                    note=note,
                )
                db.session.add(borrow)
                db.session.flush()
                return borrow
        except Exception:
            # the reminder must not outlive a rolled-back borrow
            _cancel_quietly(scheduler, job_handle)
            raise

    borrow = run_with_retry(_op)
    current_app.logger.info(
        "BORROW %s x%s by %s (transaction %s)", code, qty, recorder_name, borrow.transaction_id
    )

    notification_service.send_notification(
        None,
        "Item borrowed",
        f"{recorder_name} borrowed '{item_name}' x{qty}",
        notification_service.TYPE_BORROW,
    )
    return borrow


# =============================================================================
# RETURN
# =============================================================================

def return_item(
    staff_id: str,
    recorder_name: str,
    transaction_id: str,
    *,
    scheduler: ReminderScheduler | None = None,
    now: datetime | None = None,
) -> BorrowTransaction:
    """
    Check a borrow back in.

    The balance restore is best-effort: if the item (or its balance row) was
    deleted after borrowing, the return still completes without it.

    Raises:
        NotFoundError: unknown transaction id
        BusinessRuleConflict: transaction already returned
    """
    tid = (transaction_id or "").strip().upper()
    returned_at = as_civil(now) if now is not None else civil_now()

    def _op():
        with atomic():
            borrow = lock_for_update(
                db.session.query(BorrowTransaction).filter_by(transaction_id=tid)
            ).first()
            if borrow is None:
                raise NotFoundError(f"Borrow transaction {tid} not found")
            if borrow.status == BORROW_STATUS_RETURNED:
                raise BusinessRuleConflict(f"Borrow transaction {tid} has already been returned")

            item_exists = db.session.query(Item.id).filter_by(item_code=borrow.item_code).first() is not None
            if item_exists and find_balance(borrow.item_code) is not None:
                adjust_balance(
                    borrow.item_code, borrow.quantity, actor=recorder_name, action=ACTION_RETURN, now=returned_at
                )
            else:
                current_app.logger.warning(
                    "Item %s no longer exists; returning %s without restoring balance",
                    borrow.item_code,
                    tid,
                )

            job_handle = borrow.scheduled_job_id
            borrow.status = BORROW_STATUS_RETURNED
            borrow.return_date = to_civil_naive(returned_at)
            borrow.scheduled_job_id = None
            return borrow, job_handle

    borrow, job_handle = run_with_retry(_op)
    current_app.logger.info("RETURN %s by %s (staff %s)", tid, recorder_name, staff_id)

    if job_handle:
        _cancel_quietly(scheduler or get_reminder_scheduler(), job_handle)

    notification_service.send_notification(
        None,
        "Item returned",
        f"{recorder_name} returned '{borrow.item_name}' x{borrow.quantity}",
        notification_service.TYPE_RETURN,
    )
    return borrow


# =============================================================================
# READS
# =============================================================================

def get_borrow_transaction(transaction_id: str) -> BorrowTransaction:
    tid = (transaction_id or "").strip().upper()
    borrow = db.session.query(BorrowTransaction).filter_by(transaction_id=tid).first()
    if borrow is None:
        raise NotFoundError(f"Borrow transaction {tid} not found")
    return borrow


def get_history(staff_id: str) -> list[dict]:
    """A staff member's borrows, newest first. Read-only."""
    rows = (
        db.session.query(BorrowTransaction)
        .filter_by(staff_id=staff_id)
        .order_by(BorrowTransaction.borrow_date.desc(), BorrowTransaction.id.desc())
        .all()
    )
    history = []
    for b in rows:
        data = b.to_dict()
        history.append({
            "id": b.id,
            "transaction_id": b.transaction_id,
            "item_code": b.item_code,
            "item_name": b.item_name,
            "quantity": b.quantity,
            "job_id": b.job_id or "",
            "recorder_name": b.recorder_name,
            "status": b.status,
            "borrow_date": data["borrow_date"],
            "due_date": data["due_date"],
            "return_date": data["return_date"],
        })
    return history
