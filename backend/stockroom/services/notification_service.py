# Overview: Notification dispatcher; persists notifications and pushes them to live listeners.

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Callable

from flask import current_app
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Notification, NotificationRead
from ..validation import NotFoundError
from stockroom.time_utils import civil_timestamp
from .concurrency import atomic


TYPE_BORROW = "BORROW"
TYPE_RETURN = "RETURN"
TYPE_DUE_REMINDER = "DUE_REMINDER"

GROUP_ALL = "all"

UNREAD_LIMIT = 50
HISTORY_LIMIT = 100

Listener = Callable[[dict], None]


def user_group(staff_id: str) -> str:
    return f"user:{staff_id}"


class NotificationHub:
    """
    In-process push channel.

    Broadcasts go to GROUP_ALL, targeted notifications to user_group(staff_id).
    Transport adapters (websocket, SSE, ...) subscribe a callback per group.
    """

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, group: str, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners[group].append(listener)

        def _unsubscribe():
            with self._lock:
                if listener in self._listeners.get(group, []):
                    self._listeners[group].remove(listener)

        return _unsubscribe

    def publish(self, group: str, payload: dict) -> int:
        """Deliver to every listener of group; returns how many accepted it."""
        with self._lock:
            listeners = list(self._listeners.get(group, []))

        delivered = 0
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                # one broken connection must not block the others
                current_app.logger.exception("Notification listener failed for group %s", group)
                continue
            delivered += 1
        return delivered


def get_hub() -> NotificationHub:
    hub = current_app.extensions.get("notification_hub")
    if hub is None:
        hub = NotificationHub()
        current_app.extensions["notification_hub"] = hub
    return hub


def send_notification(
    target_staff_id: str | None,
    title: str,
    message: str,
    type: str,
    *,
    hub: NotificationHub | None = None,
) -> Notification:
    """
    Persist a notification and push it live.

    target_staff_id None broadcasts to everyone.
    """
    with atomic():
        notification = Notification(
            target_staff_id=target_staff_id or None,
            title=title,
            message=message,
            type=type,
            created_at=civil_timestamp(),
        )
        db.session.add(notification)
        db.session.flush()
        payload = notification.to_dict(is_read=False)

    group = user_group(target_staff_id) if target_staff_id else GROUP_ALL
    (hub or get_hub()).publish(group, payload)
    return notification


def _visible_to(staff_id: str):
    return or_(Notification.target_staff_id.is_(None), Notification.target_staff_id == staff_id)


def _read_ids_select(staff_id: str):
    return select(NotificationRead.notification_id).where(NotificationRead.staff_id == staff_id)


def get_unread(staff_id: str) -> list[dict]:
    rows = (
        db.session.query(Notification)
        .filter(_visible_to(staff_id))
        .filter(~Notification.id.in_(_read_ids_select(staff_id)))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(UNREAD_LIMIT)
        .all()
    )
    return [n.to_dict(is_read=False) for n in rows]


def get_all(staff_id: str) -> list[dict]:
    rows = (
        db.session.query(Notification)
        .filter(_visible_to(staff_id))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(HISTORY_LIMIT)
        .all()
    )
    read_ids = set(db.session.execute(_read_ids_select(staff_id)).scalars().all())
    return [n.to_dict(is_read=n.id in read_ids) for n in rows]


def _already_read(notification_id: int, staff_id: str) -> bool:
    return (
        db.session.query(NotificationRead.id)
        .filter_by(notification_id=notification_id, staff_id=staff_id)
        .first()
        is not None
    )


def mark_as_read(notification_id: int, staff_id: str) -> None:
    """Idempotent: marking an already-read notification is a no-op."""
    notification = (
        db.session.query(Notification)
        .filter(Notification.id == notification_id)
        .filter(_visible_to(staff_id))
        .first()
    )
    if notification is None:
        raise NotFoundError(f"Notification {notification_id} not found")

    if _already_read(notification_id, staff_id):
        return

    try:
        with atomic():
            db.session.add(
                NotificationRead(notification_id=notification_id, staff_id=staff_id, read_at=civil_timestamp())
            )
    except IntegrityError:
        # a concurrent mark won the unique constraint
        current_app.logger.debug("Notification %s already marked read by %s", notification_id, staff_id)


def mark_all_as_read(staff_id: str) -> int:
    unread_ids = [
        row[0]
        for row in db.session.query(Notification.id)
        .filter(_visible_to(staff_id))
        .filter(~Notification.id.in_(_read_ids_select(staff_id)))
        .all()
    ]
    if not unread_ids:
        return 0

    now = civil_timestamp()
    with atomic():
        db.session.add_all(
            [NotificationRead(notification_id=nid, staff_id=staff_id, read_at=now) for nid in unread_ids]
        )
    return len(unread_ids)
