from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import civil_timestamp, to_civil_iso


class Notification(db.Model):
    """
    Persisted notification.

    target_staff_id NULL means broadcast to every staff member. Read state is
    tracked per recipient in NotificationRead, so one broadcast row carries
    independent read state for each staff member.
    """
    __tablename__ = "notifications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    target_staff_id = db.Column(db.String(50), nullable=True, index=True)

    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(32), nullable=False)  # BORROW, RETURN, DUE_REMINDER, ...

    created_at = db.Column(db.DateTime(), nullable=False, default=civil_timestamp, index=True)

    def to_dict(self, *, is_read: bool = False) -> dict:
        return {
            "id": self.id,
            "target_staff_id": self.target_staff_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "is_read": is_read,
            "created_at": to_civil_iso(self.created_at),
        }


class NotificationRead(db.Model):
    """Per-recipient read marker."""
    __tablename__ = "notification_reads"
    __table_args__ = (
        db.UniqueConstraint("notification_id", "staff_id", name="uq_notification_reads_notification_staff"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    notification_id = db.Column(db.Integer, db.ForeignKey("notifications.id"), nullable=False, index=True)
    staff_id = db.Column(db.String(50), nullable=False, index=True)
    read_at = db.Column(db.DateTime(), nullable=False, default=civil_timestamp)
