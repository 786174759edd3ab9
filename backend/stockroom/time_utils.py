from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from flask import current_app, has_app_context

DEFAULT_CIVIL_UTC_OFFSET_HOURS = 7

DUE_DATE_FORMAT = "%d/%m/%Y"
DISPLAY_FORMAT = "%d/%m/%Y %H:%M:%S"

_DUE_DATE_RE = re.compile(r"^\d{2}/\d{2}/\d{4}$")


def civil_tz() -> timezone:
    """The single fixed civil offset the organization operates in."""
    hours = DEFAULT_CIVIL_UTC_OFFSET_HOURS
    if has_app_context():
        hours = int(current_app.config.get("CIVIL_UTC_OFFSET_HOURS", hours))
    return timezone(timedelta(hours=hours))


def civil_now() -> datetime:
    """Current wall-clock time in the civil offset (aware)."""
    return datetime.now(timezone.utc).astimezone(civil_tz())


def as_civil(dt: datetime) -> datetime:
    """
    Attach or convert to the civil offset.

    - naive -> interpreted as civil wall-clock time
    - aware -> converted
    """
    tz = civil_tz()
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def to_civil_naive(dt: datetime) -> datetime:
    """Civil wall-clock value with tzinfo stripped, as stored in the database."""
    return as_civil(dt).replace(tzinfo=None)


def parse_due_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a due date strictly as dd/MM/yyyy.

    - None / "" / whitespace -> None
    - anything else that is not exactly two-digit day, two-digit month and
      four-digit year forming a real calendar date raises ValueError
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if not _DUE_DATE_RE.match(s):
        raise ValueError(f"due date must be dd/MM/yyyy, got {value!r}")
    return datetime.strptime(s, DUE_DATE_FORMAT)


def to_civil_string(dt: Optional[datetime]) -> Optional[str]:
    """Display format used by audit and history listings (29/01/2026 13:30:00)."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = to_civil_naive(dt)
    return dt.strftime(DISPLAY_FORMAT)


def to_civil_iso(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with the civil offset.
    If dt is naive, it is treated as civil time.
    """
    if dt is None:
        return None
    return as_civil(dt).replace(microsecond=0).isoformat()


def civil_timestamp() -> datetime:
    """Naive civil 'now' for column defaults."""
    return to_civil_naive(civil_now())
