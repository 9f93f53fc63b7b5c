"""
Row gateway for the ``schedules`` table.

The series logic only talks to the table through this class: insert, bulk
insert, select, update and delete, with ``Eq``/``Or`` predicates compiled
into parameterised SQL. ``transaction()`` groups several calls so they
commit or roll back together.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

debug_logger = logging.getLogger("clubdesk.debug")

SCHEDULE_COLUMNS = (
    "id",
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
    "recurrence_rule",
    "recurrence_interval",
    "recurrence_end_date",
    "parent_schedule_id",
    "series_id",
)


def _check_column(column: str) -> str:
    if column not in SCHEDULE_COLUMNS:
        raise ValueError(f"Unknown schedules column: {column}")
    return column


class Eq:
    def __init__(self, column: str, value: Any) -> None:
        self.column = _check_column(column)
        self.value = value

    def compile(self) -> Tuple[str, List[Any]]:
        if self.value is None:
            return f"{self.column} IS NULL", []
        return f"{self.column} = ?", [self.value]


class Or:
    def __init__(self, *predicates: "Predicate") -> None:
        if not predicates:
            raise ValueError("Or() needs at least one predicate")
        self.predicates = predicates

    def compile(self) -> Tuple[str, List[Any]]:
        parts: List[str] = []
        params: List[Any] = []
        for p in self.predicates:
            sql, p_params = p.compile()
            parts.append(sql)
            params.extend(p_params)
        return "(" + " OR ".join(parts) + ")", params


Predicate = Union[Eq, Or]


def _encode(row: Dict[str, Any]) -> Dict[str, Any]:
    out = {_check_column(k): v for k, v in row.items()}
    if "category_ids" in out and out["category_ids"] is not None:
        out["category_ids"] = json.dumps(list(out["category_ids"]))
    if "student_can_register" in out and out["student_can_register"] is not None:
        out["student_can_register"] = 1 if out["student_can_register"] else 0
    return out


def decode_row(row: sqlite3.Row) -> Dict[str, Any]:
    out = dict(row)
    raw = out.get("category_ids")
    out["category_ids"] = json.loads(raw) if raw else []
    out["student_can_register"] = bool(out.get("student_can_register", 1))
    return out


class ScheduleStore:
    """Insert/select/update/delete over ``schedules`` on one connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator["ScheduleStore"]:
        """Commit on success, roll back everything on any exception.

        Nested calls join the outermost transaction.
        """
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self.conn.rollback()
                debug_logger.debug("schedules transaction rolled back")
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                self.conn.commit()

    def _autocommit(self) -> None:
        if self._depth == 0:
            self.conn.commit()

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        data = _encode({k: v for k, v in row.items() if k != "id"})
        cols = ", ".join(data.keys())
        marks = ", ".join("?" for _ in data)
        cur = self.conn.execute(
            f"INSERT INTO schedules ({cols}) VALUES ({marks})", list(data.values())
        )
        new_id = cur.lastrowid
        self._autocommit()
        return self.select_by_id(new_id)  # type: ignore[return-value]

    def bulk_insert(self, rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        with self.transaction():
            return [self.insert(r) for r in rows]

    def select_by_id(self, schedule_id: int) -> Optional[Dict[str, Any]]:
        row = self.conn.execute("SELECT * FROM schedules WHERE id = ?", (schedule_id,)).fetchone()
        return decode_row(row) if row else None

    def select_where(
        self,
        predicate: Optional[Predicate] = None,
        order_by: Sequence[str] = ("date", "id"),
    ) -> List[Dict[str, Any]]:
        query = "SELECT * FROM schedules"
        params: List[Any] = []
        if predicate is not None:
            sql, params = predicate.compile()
            query += f" WHERE {sql}"
        if order_by:
            query += " ORDER BY " + ", ".join(_check_column(c) for c in order_by)
        return [decode_row(r) for r in self.conn.execute(query, params).fetchall()]

    def update(self, predicate: Predicate, changes: Dict[str, Any]) -> int:
        data = _encode(changes)
        if not data:
            return 0
        set_clause = ", ".join(f"{k} = ?" for k in data.keys())
        where, params = predicate.compile()
        cur = self.conn.execute(
            f"UPDATE schedules SET {set_clause} WHERE {where}", list(data.values()) + params
        )
        debug_logger.debug("UPDATE schedules WHERE %s %s: %d rows", where, params, cur.rowcount)
        self._autocommit()
        return cur.rowcount

    def delete(self, predicate: Predicate) -> int:
        where, params = predicate.compile()
        cur = self.conn.execute(f"DELETE FROM schedules WHERE {where}", params)
        debug_logger.debug("DELETE FROM schedules WHERE %s %s: %d rows", where, params, cur.rowcount)
        self._autocommit()
        return cur.rowcount
