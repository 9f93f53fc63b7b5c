"""
Series-aware persistence for schedules.

``create_series`` stores a template as the series root and one child row per
generated date. ``update_occurrence`` and ``delete_occurrence`` act either on
a single row (scope ``"this"``) or on every member of the row's series
(scope ``"all"``). Every member carries ``series_id`` (the root's id), so a
series is always found the same way whichever member is named.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, NamedTuple

from .core.config import UNDECIDED_VENUE
from .recurrence import checked_date, expand_occurrences, format_date, validate_recurrence
from .store import Eq, Or, ScheduleStore

logger = logging.getLogger(__name__)

SCOPES = ("this", "all")

# Fields a caller may change after creation; series links and recurrence
# settings are fixed once the series exists.
UPDATABLE_FIELDS = (
    "title",
    "date",
    "start_hour",
    "start_minute",
    "end_hour",
    "end_minute",
    "gather_hour",
    "gather_minute",
    "venue",
    "notes",
    "category_id",
    "category_ids",
    "student_can_register",
)


class ScheduleNotFound(LookupError):
    def __init__(self, schedule_id: int) -> None:
        super().__init__(f"Schedule {schedule_id} not found")
        self.schedule_id = schedule_id


class EmptyUpdate(ValueError):
    pass


class SeriesResult(NamedTuple):
    root: Dict[str, Any]
    total_created: int
    rows: List[Dict[str, Any]]


def _check_scope(scope: str) -> None:
    if scope not in SCOPES:
        raise ValueError(f"Unknown scope: {scope!r}")


def resolve_series_id(row: Dict[str, Any]) -> int:
    if row.get("series_id") is not None:
        return row["series_id"]
    if row.get("parent_schedule_id") is not None:
        return row["parent_schedule_id"]
    return row["id"]


def series_members(series_id: int) -> Or:
    return Or(Eq("id", series_id), Eq("series_id", series_id))


def create_series(store: ScheduleStore, template: Dict[str, Any]) -> SeriesResult:
    """Persist ``template`` as a series root plus its generated occurrences.

    The root and all children are written in one transaction; if any insert
    fails nothing is kept. Raises ``RecurrenceError`` before touching the
    database when the recurrence fields are invalid.
    """
    row = {k: v for k, v in template.items() if k not in ("id", "parent_schedule_id", "series_id")}
    venue = (row.get("venue") or "").strip()
    row["venue"] = venue or UNDECIDED_VENUE

    params = validate_recurrence(
        row.get("date"),
        row.get("recurrence_rule"),
        row.get("recurrence_interval"),
        row.get("recurrence_end_date"),
    )
    row["date"] = format_date(params.start)
    row["recurrence_rule"] = params.rule
    row["recurrence_interval"] = params.interval
    if params.rule == "none":
        row["recurrence_end_date"] = None
    elif row.get("recurrence_end_date"):
        row["recurrence_end_date"] = format_date(params.end_date)

    dates = expand_occurrences(params.start, params.rule, params.interval, params.end_date)

    with store.transaction():
        root = store.insert(row)
        root_id = root["id"]
        store.update(Eq("id", root_id), {"series_id": root_id})
        root["series_id"] = root_id

        children = [
            dict(row, date=format_date(d), parent_schedule_id=root_id, series_id=root_id)
            for d in dates
        ]
        created = store.bulk_insert(children) if children else []

    logger.info(
        "Created schedule series %s (%s, every %s): %d rows",
        root_id, params.rule, params.interval, 1 + len(created),
    )
    return SeriesResult(root=root, total_created=1 + len(created), rows=[root] + created)


def get_series(store: ScheduleStore, schedule_id: int) -> List[Dict[str, Any]]:
    """All members of the series containing ``schedule_id``, ordered by date."""
    row = store.select_by_id(schedule_id)
    if row is None:
        raise ScheduleNotFound(schedule_id)
    return store.select_where(series_members(resolve_series_id(row)))


def update_occurrence(
    store: ScheduleStore,
    schedule_id: int,
    changes: Dict[str, Any],
    scope: str = "this",
) -> Dict[str, Any]:
    """Apply ``changes`` to one row or to its whole series.

    With scope ``"all"`` a ``date`` change is dropped: each member keeps its
    own date. Returns the row ``schedule_id`` as stored after the update.
    """
    _check_scope(scope)
    # an unknown id is reported before an empty change set
    if scope == "all" and store.select_by_id(schedule_id) is None:
        raise ScheduleNotFound(schedule_id)
    changes = {
        k: v for k, v in changes.items()
        if k in UPDATABLE_FIELDS and not (v is None and k in ("title", "date", "student_can_register"))
    }
    if "venue" in changes:
        changes["venue"] = (changes["venue"] or "").strip() or UNDECIDED_VENUE
    if not changes:
        raise EmptyUpdate("No fields to update")

    if scope == "this":
        if "date" in changes:
            changes["date"] = format_date(checked_date(changes["date"]))
        store.update(Eq("id", schedule_id), changes)
    else:
        changes.pop("date", None)
        with store.transaction():
            row = store.select_by_id(schedule_id)
            if row is None:
                raise ScheduleNotFound(schedule_id)
            series_id = resolve_series_id(row)
            if changes:
                count = store.update(series_members(series_id), changes)
                logger.info("Updated %d rows of schedule series %s: %s", count, series_id, sorted(changes))

    updated = store.select_by_id(schedule_id)
    if updated is None:
        raise ScheduleNotFound(schedule_id)
    return updated


def delete_occurrence(store: ScheduleStore, schedule_id: int, scope: str = "this") -> int:
    """Delete one row or its whole series; returns the number of rows removed."""
    _check_scope(scope)
    if scope == "this":
        return store.delete(Eq("id", schedule_id))

    with store.transaction():
        row = store.select_by_id(schedule_id)
        if row is None:
            raise ScheduleNotFound(schedule_id)
        series_id = resolve_series_id(row)
        count = store.delete(series_members(series_id))
    logger.info("Deleted schedule series %s: %d rows", series_id, count)
    return count
