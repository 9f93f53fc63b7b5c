from typing import Any, Dict, List, Optional
import logging
import sqlite3
from io import BytesIO
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from .. import schemas
from ..db import get_db_conn
from ..recurrence import RecurrenceError
from ..series import (
    EmptyUpdate,
    ScheduleNotFound,
    create_series,
    delete_occurrence,
    get_series,
    update_occurrence,
)
from ..store import ScheduleStore, decode_row

router = APIRouter(prefix="/api/schedules", tags=["schedules"])
logger = logging.getLogger(__name__)


def get_store(db_conn: sqlite3.Connection = Depends(get_db_conn)) -> ScheduleStore:
    return ScheduleStore(db_conn)


def _server_error(action: str) -> HTTPException:
    # must be called from inside an except block so the traceback is logged
    logger.exception("Schedule %s failed", action)
    return HTTPException(status_code=500, detail="Internal server error")


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Schedule not found")


def _filtered_rows(
    db_conn: sqlite3.Connection,
    from_date: Optional[str],
    to_date: Optional[str],
    category_id: Optional[List[str]],
) -> List[Dict[str, Any]]:
    query = "SELECT * FROM schedules WHERE 1=1"
    params: List[Any] = []

    if from_date:
        query += " AND date >= ?"
        params.append(from_date)
    if to_date:
        query += " AND date <= ?"
        params.append(to_date)
    if category_id:
        query += " AND category_id IN (" + ", ".join("?" for _ in category_id) + ")"
        params.extend(category_id)

    query += " ORDER BY date ASC, id ASC"
    return [decode_row(r) for r in db_conn.execute(query, params).fetchall()]


def _fmt_time(hour: Optional[int], minute: Optional[int]) -> Optional[str]:
    if hour is None:
        return None
    return f"{hour:02d}:{(minute or 0):02d}"


@router.get("", response_model=List[schemas.Schedule])
async def api_get_schedules(
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    category_id: Optional[List[str]] = Query(None),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
) -> List[schemas.Schedule]:
    """Get schedules with optional date range and category filtering."""
    rows = _filtered_rows(db_conn, from_date, to_date, category_id)
    return [schemas.Schedule(**row) for row in rows]


@router.get("/export")
async def api_export_schedules(
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    category_id: Optional[List[str]] = Query(None),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
):
    """Export filtered schedules to an Excel file (xlsx)."""
    rows = _filtered_rows(db_conn, from_date, to_date, category_id)

    wb = Workbook()
    ws = wb.active
    ws.title = "Schedules"
    ws.append([
        "ID", "Date", "Title", "Start", "End", "Gather", "Venue", "Category", "Notes", "Recurrence", "Series",
    ])
    for r in rows:
        ws.append([
            r["id"],
            r["date"],
            r["title"],
            _fmt_time(r["start_hour"], r["start_minute"]),
            _fmt_time(r["end_hour"], r["end_minute"]),
            _fmt_time(r["gather_hour"], r["gather_minute"]),
            r["venue"],
            r["category_id"],
            r["notes"],
            r["recurrence_rule"],
            r["series_id"],
        ])

    bio = BytesIO()
    wb.save(bio)
    bio.seek(0)
    filename = "schedules_export.xlsx"
    return StreamingResponse(
        bio,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f"attachment; filename={filename}"
        },
    )


@router.get("/{schedule_id}", response_model=schemas.Schedule)
async def api_get_schedule(
    schedule_id: int,
    store: ScheduleStore = Depends(get_store),
) -> schemas.Schedule:
    row = store.select_by_id(schedule_id)
    if not row:
        raise _not_found()
    return schemas.Schedule(**row)


@router.get("/{schedule_id}/series", response_model=List[schemas.Schedule])
async def api_get_schedule_series(
    schedule_id: int,
    store: ScheduleStore = Depends(get_store),
) -> List[schemas.Schedule]:
    """Get every occurrence in the series the schedule belongs to."""
    try:
        rows = get_series(store, schedule_id)
    except ScheduleNotFound:
        raise _not_found()
    return [schemas.Schedule(**row) for row in rows]


@router.post("", response_model=schemas.SeriesCreated)
async def api_create_schedule(
    sched: schemas.ScheduleCreate,
    store: ScheduleStore = Depends(get_store),
) -> schemas.SeriesCreated:
    """Create a schedule; recurring schedules also get their generated occurrences."""
    try:
        result = create_series(store, sched.dict())
    except RecurrenceError as e:
        raise HTTPException(status_code=422, detail={"kind": e.kind, "message": e.message})
    except sqlite3.Error:
        raise _server_error("create")
    return schemas.SeriesCreated(
        root=schemas.Schedule(**result.root),
        total_created=result.total_created,
        all_rows=[schemas.Schedule(**row) for row in result.rows],
    )


@router.patch("/{schedule_id}", response_model=schemas.Schedule)
async def api_update_schedule(
    schedule_id: int,
    update: schemas.ScheduleUpdate,
    scope: schemas.Scope = "this",
    store: ScheduleStore = Depends(get_store),
) -> schemas.Schedule:
    """Update one occurrence, or with scope=all every occurrence of its series (dates are kept)."""
    try:
        row = update_occurrence(store, schedule_id, update.dict(exclude_unset=True), scope)
    except EmptyUpdate:
        raise HTTPException(status_code=400, detail="No fields to update")
    except RecurrenceError as e:
        raise HTTPException(status_code=422, detail={"kind": e.kind, "message": e.message})
    except ScheduleNotFound:
        raise _not_found()
    except sqlite3.Error:
        raise _server_error("update")
    return schemas.Schedule(**row)


@router.delete("/{schedule_id}", response_model=schemas.ScheduleDeleted)
async def api_delete_schedule(
    schedule_id: int,
    scope: schemas.Scope = "this",
    store: ScheduleStore = Depends(get_store),
) -> schemas.ScheduleDeleted:
    """Delete one occurrence, or with scope=all the whole series."""
    try:
        count = delete_occurrence(store, schedule_id, scope)
    except ScheduleNotFound:
        raise _not_found()
    except sqlite3.Error:
        raise _server_error("delete")
    return schemas.ScheduleDeleted(deleted=True, count=count)
