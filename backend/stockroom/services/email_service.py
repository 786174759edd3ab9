# Overview: Email collaborator used by scheduled reminders; delivery itself is out of scope.

from __future__ import annotations

from typing import Protocol

from flask import current_app


class EmailSender(Protocol):
    def send_email(self, to: str, subject: str, html_body: str) -> None:
        ...


class LoggingEmailSender:
    """Writes outgoing mail to the application log instead of delivering it."""

    def send_email(self, to: str, subject: str, html_body: str) -> None:
        current_app.logger.info("[mail] to=%s subject=%s", to, subject)
        current_app.logger.debug("[mail] body=%s", html_body)


def get_email_sender() -> EmailSender:
    sender = current_app.extensions.get("email_sender")
    if sender is None:
        sender = LoggingEmailSender()
        current_app.extensions["email_sender"] = sender
    return sender
