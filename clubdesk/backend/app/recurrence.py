"""
Recurrence expansion for schedules.

A recurring schedule is entered once as a template. This module turns the
template's date and recurrence parameters into the dates of the additional
occurrences; the template itself stays the series root and is not part of
the output. Everything here works on naive calendar dates, one day at a
time, with the fixed-width ``YYYY-MM-DD`` string as the storage key.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import List, NamedTuple, Optional

from dateutil.relativedelta import relativedelta

from .core.config import DEFAULT_RECURRENCE_HORIZON_DAYS, MAX_GENERATED_OCCURRENCES

RULES = ("none", "daily", "weekly", "monthly")


class RecurrenceError(ValueError):
    """Raised when a schedule date or its recurrence parameters are invalid."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class RecurrenceParams(NamedTuple):
    start: date
    rule: str
    interval: int
    end_date: date

# --------- Helpers: dates ---------

def parse_date(ds: str) -> date:
    return datetime.strptime(ds, "%Y-%m-%d").date()

def format_date(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"

def checked_date(ds: Optional[str], label: str = "date") -> date:
    """Parse a YYYY-MM-DD string or raise ``RecurrenceError('invalid_date')``."""
    try:
        return parse_date(ds)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise RecurrenceError("invalid_date", f"Invalid {label}: {ds!r} (expected YYYY-MM-DD)")

def default_end_date(start: date) -> date:
    return start + timedelta(days=DEFAULT_RECURRENCE_HORIZON_DAYS)

def _advance(current: date, rule: str, interval: int) -> date:
    if rule == "daily":
        return current + timedelta(days=interval)
    if rule == "weekly":
        return current + timedelta(days=interval * 7)
    # monthly: relativedelta clamps to the last day of a shorter month,
    # and the clamped day carries into the following steps
    return current + relativedelta(months=interval)

# --------- Core ---------

def expand_occurrences(
    start: date,
    rule: Optional[str],
    interval: Optional[int] = None,
    end_date: Optional[date] = None,
) -> List[date]:
    """Return the dates that follow ``start`` under ``rule``, in order.

    ``start`` is not included. An absent or non-positive interval counts as 1
    and an absent end date falls ``DEFAULT_RECURRENCE_HORIZON_DAYS`` after
    ``start``. At most ``MAX_GENERATED_OCCURRENCES`` dates are returned even
    when the end date is further away.
    """
    if rule not in ("daily", "weekly", "monthly"):
        return []
    step = interval if interval and interval > 0 else 1
    if end_date is not None:
        bound = end_date
    else:
        try:
            bound = default_end_date(start)
        except OverflowError:
            bound = date.max

    dates: List[date] = []
    current = start
    while len(dates) < MAX_GENERATED_OCCURRENCES:
        try:
            current = _advance(current, rule, step)
        except (OverflowError, ValueError):
            # past 9999-12-31; relativedelta reports this as ValueError
            break
        if current > bound:
            break
        dates.append(current)
    return dates


def validate_recurrence(
    start: str,
    rule: Optional[str],
    interval: Optional[int] = None,
    end_date: Optional[str] = None,
) -> RecurrenceParams:
    """Check template recurrence fields before expansion.

    Missing optional values are filled in (interval 1, end date one horizon
    after ``start``); anything else that is wrong raises ``RecurrenceError``.
    """
    start_d = checked_date(start)

    rule = rule or "none"
    if rule not in RULES:
        raise RecurrenceError("invalid_rule", f"Unknown recurrence rule: {rule!r}")

    # a standalone schedule never expands, so its other recurrence fields are ignored
    if rule == "none":
        return RecurrenceParams(start_d, "none", 1, start_d)

    try:
        horizon = default_end_date(start_d)
    except OverflowError:
        raise RecurrenceError("invalid_date", f"Date {format_date(start_d)} is too close to the end of the calendar")

    if interval is None:
        interval = 1
    elif interval < 1:
        raise RecurrenceError("invalid_interval", f"Recurrence interval must be at least 1, got {interval}")

    if end_date:
        end_d = checked_date(end_date, "recurrence end date")
        if end_d < start_d:
            raise RecurrenceError(
                "end_before_start",
                f"Recurrence end date {format_date(end_d)} is before the schedule date {format_date(start_d)}",
            )
    else:
        end_d = horizon

    return RecurrenceParams(start_d, rule, interval, end_d)
