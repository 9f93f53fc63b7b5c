import sqlite3

import pytest

from clubdesk.backend.app.core.config import UNDECIDED_VENUE
from clubdesk.backend.app.recurrence import RecurrenceError
from clubdesk.backend.app.series import (
    EmptyUpdate,
    ScheduleNotFound,
    create_series,
    delete_occurrence,
    get_series,
    resolve_series_id,
    update_occurrence,
)
from clubdesk.backend.app.store import Eq, Or


def _template(**overrides):
    tpl = {
        "title": "U-12 practice",
        "date": "2024-01-01",
        "start_hour": 9,
        "start_minute": 30,
        "end_hour": 11,
        "end_minute": 0,
        "gather_hour": 9,
        "gather_minute": 0,
        "venue": "Central Ground",
        "notes": "bring water",
        "category_id": "u12",
        "category_ids": ["u12", "u10"],
        "student_can_register": True,
        "recurrence_rule": "weekly",
        "recurrence_interval": 2,
        "recurrence_end_date": "2024-02-01",
    }
    tpl.update(overrides)
    return tpl


def test_predicates_compile_to_sql():
    assert Eq("id", 3).compile() == ("id = ?", [3])
    assert Eq("parent_schedule_id", None).compile() == ("parent_schedule_id IS NULL", [])
    assert Or(Eq("id", 1), Eq("series_id", 1)).compile() == ("(id = ? OR series_id = ?)", [1, 1])
    with pytest.raises(ValueError):
        Eq("id; DROP TABLE schedules", 1)


def test_create_standalone_schedule(store):
    result = create_series(store, _template(recurrence_rule="none"))
    assert result.total_created == 1
    assert result.root["parent_schedule_id"] is None
    assert result.root["series_id"] == result.root["id"]
    assert len(store.select_where()) == 1


def test_create_series_links_children_to_root(store):
    result = create_series(store, _template())
    root = result.root
    assert result.total_created == 3
    assert [r["date"] for r in result.rows] == ["2024-01-01", "2024-01-15", "2024-01-29"]
    assert root["parent_schedule_id"] is None

    children = result.rows[1:]
    for child in children:
        assert child["parent_schedule_id"] == root["id"]
        assert child["series_id"] == root["id"]
        assert child["venue"] == "Central Ground"
        assert child["category_ids"] == ["u12", "u10"]
        assert (child["start_hour"], child["start_minute"]) == (9, 30)

    stored = store.select_where(Eq("series_id", root["id"]))
    assert len(stored) == 3


def test_empty_venue_becomes_undecided(store):
    result = create_series(store, _template(venue="  "))
    assert {r["venue"] for r in result.rows} == {UNDECIDED_VENUE}


def test_invalid_recurrence_writes_nothing(store):
    with pytest.raises(RecurrenceError) as exc:
        create_series(store, _template(recurrence_interval=0))
    assert exc.value.kind == "invalid_interval"
    assert store.select_where() == []


def test_failed_child_insert_rolls_back_root(store, monkeypatch):
    def boom(rows):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store, "bulk_insert", boom)
    with pytest.raises(sqlite3.OperationalError):
        create_series(store, _template())
    assert store.select_where() == []


def test_update_all_keeps_each_date(store):
    result = create_series(store, _template())
    child_id = result.rows[1]["id"]

    updated = update_occurrence(store, child_id, {"venue": "City Gym", "date": "2024-06-01"}, "all")
    assert updated["id"] == child_id
    assert updated["date"] == "2024-01-15"

    members = get_series(store, result.root["id"])
    assert [m["venue"] for m in members] == ["City Gym"] * 3
    assert [m["date"] for m in members] == ["2024-01-01", "2024-01-15", "2024-01-29"]


def test_update_all_with_only_a_date_changes_nothing(store):
    result = create_series(store, _template())
    updated = update_occurrence(store, result.root["id"], {"date": "2024-06-01"}, "all")
    assert updated["date"] == "2024-01-01"


def test_update_this_touches_one_row(store):
    result = create_series(store, _template())
    target = result.rows[2]

    updated = update_occurrence(store, target["id"], {"title": "Match day", "date": "2024-01-30"}, "this")
    assert updated["title"] == "Match day"
    assert updated["date"] == "2024-01-30"

    others = [r for r in get_series(store, target["id"]) if r["id"] != target["id"]]
    assert {r["title"] for r in others} == {"U-12 practice"}


def test_update_this_rejects_malformed_date(store):
    result = create_series(store, _template(recurrence_rule="none"))
    with pytest.raises(RecurrenceError):
        update_occurrence(store, result.root["id"], {"date": "next week"}, "this")


def test_update_errors(store):
    result = create_series(store, _template(recurrence_rule="none"))
    with pytest.raises(ScheduleNotFound):
        update_occurrence(store, 9999, {"venue": "x"}, "all")
    with pytest.raises(ScheduleNotFound):
        update_occurrence(store, 9999, {"venue": "x"}, "this")
    with pytest.raises(EmptyUpdate):
        update_occurrence(store, result.root["id"], {}, "this")
    with pytest.raises(EmptyUpdate):
        update_occurrence(store, result.root["id"], {"series_id": 5}, "all")
    with pytest.raises(ValueError):
        update_occurrence(store, result.root["id"], {"venue": "x"}, "some")


@pytest.mark.parametrize("member", [0, 1, 2])
def test_delete_all_from_any_member(store, member):
    result = create_series(store, _template())
    other = create_series(store, _template(title="Other team"))

    removed = delete_occurrence(store, result.rows[member]["id"], "all")
    assert removed == 3
    assert store.select_where(Eq("series_id", result.root["id"])) == []
    assert len(store.select_where(Eq("series_id", other.root["id"]))) == 3


def test_delete_this_leaves_rest_of_series(store):
    result = create_series(store, _template())
    removed = delete_occurrence(store, result.rows[1]["id"], "this")
    assert removed == 1

    remaining = get_series(store, result.root["id"])
    assert [r["id"] for r in remaining] == [result.rows[0]["id"], result.rows[2]["id"]]
    assert store.select_by_id(result.root["id"]) is not None


def test_delete_all_after_root_removed(store):
    result = create_series(store, _template())
    delete_occurrence(store, result.root["id"], "this")

    assert delete_occurrence(store, result.rows[2]["id"], "all") == 2
    assert store.select_where() == []


def test_delete_errors(store):
    assert delete_occurrence(store, 4242, "this") == 0
    with pytest.raises(ScheduleNotFound):
        delete_occurrence(store, 4242, "all")


def test_resolve_series_id_for_rows_without_series_key():
    assert resolve_series_id({"id": 7, "parent_schedule_id": 3, "series_id": None}) == 3
    assert resolve_series_id({"id": 7, "parent_schedule_id": None, "series_id": None}) == 7
    assert resolve_series_id({"id": 7, "parent_schedule_id": 3, "series_id": 3}) == 3


def test_schema_migration_backfills_series_key():
    from clubdesk.backend.app.db import create_schema

    conn = sqlite3.connect(":memory:")
    conn.execute(
        "CREATE TABLE schedules (id INTEGER PRIMARY KEY AUTOINCREMENT, title TEXT NOT NULL, "
        "date TEXT NOT NULL, venue TEXT NOT NULL, parent_schedule_id INTEGER)"
    )
    conn.execute("INSERT INTO schedules (title, date, venue) VALUES ('root', '2024-01-01', 'x')")
    conn.execute("INSERT INTO schedules (title, date, venue, parent_schedule_id) VALUES ('child', '2024-01-08', 'x', 1)")
    conn.commit()

    create_schema(conn)
    rows = conn.execute("SELECT id, series_id FROM schedules ORDER BY id").fetchall()
    assert rows == [(1, 1), (2, 1)]
    conn.close()


def test_standalone_schedule_ignores_bad_recurrence_fields(store):
    result = create_series(
        store, _template(recurrence_rule="none", recurrence_interval=0, recurrence_end_date="soon")
    )
    assert result.total_created == 1
    assert result.root["recurrence_interval"] == 1
    assert result.root["recurrence_end_date"] is None


def test_update_all_reports_missing_id_before_empty_changes(store):
    with pytest.raises(ScheduleNotFound):
        update_occurrence(store, 9999, {}, "all")
