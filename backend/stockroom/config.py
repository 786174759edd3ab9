# backend/stockroom/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockroom.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Single civil offset for borrow/return timestamps and reminder math (UTC+7)
    CIVIL_UTC_OFFSET_HOURS = int(os.environ.get("CIVIL_UTC_OFFSET_HOURS", "7"))

    # Reminder job runner; off by default so CLI one-shots and tests don't start threads
    REMINDER_SCHEDULER_ENABLED = _env_bool("REMINDER_SCHEDULER_ENABLED", False)
    # Paused: web processes only enqueue; `flask scheduler run` executes
    REMINDER_SCHEDULER_PAUSED = _env_bool("REMINDER_SCHEDULER_PAUSED", False)
    # Defaults to SQLALCHEMY_DATABASE_URI when unset
    SCHEDULER_JOBSTORE_URL = os.environ.get("SCHEDULER_JOBSTORE_URL")

    TRANSACTION_ID_ATTEMPTS = int(os.environ.get("TRANSACTION_ID_ATTEMPTS", "5"))
    AUDIT_LOG_LIMIT = int(os.environ.get("AUDIT_LOG_LIMIT", "1000"))
