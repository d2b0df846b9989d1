# app/services/compliance_status.py
"""
Traffic-light compliance status for documents and employees.

  - RED:    document has expired (expires_at < now)
  - YELLOW: document expires within the warning window (default 30 days, inclusive)
  - GREEN:  document is valid (later expiry, or no expiry at all)

Everything here is pure: `now` is always passed in by the caller.
"""
from __future__ import annotations

import enum
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

DEFAULT_WARNING_DAYS = 30

_SECONDS_PER_DAY = 24 * 60 * 60


class ComplianceStatus(str, enum.Enum):
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


# RED > YELLOW > GREEN
SEVERITY: Dict[ComplianceStatus, int] = {
    ComplianceStatus.GREEN: 1,
    ComplianceStatus.YELLOW: 2,
    ComplianceStatus.RED: 3,
}


def as_utc_naive(value: datetime) -> datetime:
    """Naive values are taken as UTC; aware values are converted to UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _ceil_days(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)


def days_until_expiry(expires_at: Optional[datetime], *, now: datetime) -> Optional[int]:
    """
    Signed whole days until expiry, rounded up (negative once expired).
    A later time on the same day counts as 1 day away, never 0.
    """
    if expires_at is None:
        return None
    return _ceil_days(as_utc_naive(expires_at) - as_utc_naive(now))


def days_expired(expires_at: Optional[datetime], *, now: datetime) -> Optional[int]:
    """Whole days since expiry, rounded up; None if not expired."""
    if expires_at is None:
        return None
    elapsed = as_utc_naive(now) - as_utc_naive(expires_at)
    if elapsed.total_seconds() <= 0:
        return None
    return _ceil_days(elapsed)


def status_for_expiry(
    expires_at: Optional[datetime],
    warning_window_days: int = DEFAULT_WARNING_DAYS,
    *,
    now: datetime,
) -> ComplianceStatus:
    if expires_at is None:
        return ComplianceStatus.GREEN

    if as_utc_naive(expires_at) < as_utc_naive(now):
        return ComplianceStatus.RED

    days = days_until_expiry(expires_at, now=now)
    if 0 <= days <= warning_window_days:
        return ComplianceStatus.YELLOW

    return ComplianceStatus.GREEN


def worst_status(statuses: Iterable[ComplianceStatus]) -> ComplianceStatus:
    """Highest-severity status; an empty input is GREEN."""
    worst = ComplianceStatus.GREEN
    for status in statuses:
        status = ComplianceStatus(status)
        if status is ComplianceStatus.RED:
            return status
        if SEVERITY[status] > SEVERITY[worst]:
            worst = status
    return worst


def employee_status(
    expiries: Iterable[Optional[datetime]],
    *,
    now: datetime,
    warning_window_days: int = DEFAULT_WARNING_DAYS,
) -> ComplianceStatus:
    """Worst status over an employee's document expiries (no documents = GREEN)."""
    return worst_status(
        status_for_expiry(e, warning_window_days, now=now) for e in expiries
    )


def calculate_compliance_summary(statuses: Iterable[ComplianceStatus]) -> Dict[str, int]:
    summary = {"green": 0, "yellow": 0, "red": 0, "total": 0}
    for status in statuses:
        summary[ComplianceStatus(status).value.lower()] += 1
        summary["total"] += 1
    return summary


def status_description(
    status: ComplianceStatus, days_until: Optional[int] = None
) -> str:
    """Human-readable text; uses the same day count as status_for_expiry."""
    status = ComplianceStatus(status)
    if status is ComplianceStatus.RED:
        if days_until:
            n = abs(days_until)
            return f"Expired {n} day{'' if n == 1 else 's'} ago"
        return "Expired"
    if status is ComplianceStatus.YELLOW:
        if days_until:
            return f"Expires in {days_until} day{'' if days_until == 1 else 's'}"
        return "Expiring soon"
    return "Valid"


def format_document_compliance(
    document: Any,
    *,
    now: datetime,
    warning_window_days: int = DEFAULT_WARNING_DAYS,
) -> Dict[str, Any]:
    expires_at = getattr(document, "expires_at", None)
    status = status_for_expiry(expires_at, warning_window_days, now=now)
    days = days_until_expiry(expires_at, now=now)
    return {
        "id": document.id,
        "title": document.title,
        "type": getattr(document, "type", None),
        "status": status.value,
        "expires_at": expires_at,
        "days_until_expiry": days,
        "description": status_description(status, days),
    }


def compliance_grade(compliance_rate: float) -> str:
    for floor, grade in (
        (95, "A+"),
        (90, "A"),
        (85, "B+"),
        (80, "B"),
        (75, "C+"),
        (70, "C"),
        (65, "D+"),
        (60, "D"),
    ):
        if compliance_rate >= floor:
            return grade
    return "F"
