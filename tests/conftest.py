import os
import sqlite3
import sys
import tempfile
from pathlib import Path
import pytest

# Ensure project root is on sys.path for imports like 'clubdesk.backend.app.db'
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep test runs from writing into the project's logs/ directory
os.environ.setdefault("CLUB_LOG_DIR", tempfile.mkdtemp(prefix="clubdesk-logs-"))


@pytest.fixture(scope="session")
def temp_db_path(tmp_path_factory) -> Path:
    tmp_dir = tmp_path_factory.mktemp("db")
    return tmp_dir / "club_test.sqlite3"


@pytest.fixture(scope="session")
def app_client(temp_db_path):
    os.environ["CLUB_DB_PATH"] = str(temp_db_path)
    import clubdesk.backend.app.db as db_module
    # Point the already-imported module at the temp path and create the schema
    db_module.DB_PATH = temp_db_path
    db_module.initialise_database()

    from fastapi.testclient import TestClient
    import clubdesk.backend.app.main as main_app

    client = TestClient(main_app.app)
    return client


@pytest.fixture()
def db_conn(app_client, temp_db_path):
    conn = sqlite3.connect(str(temp_db_path))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture()
def store():
    from clubdesk.backend.app.db import create_schema
    from clubdesk.backend.app.store import ScheduleStore

    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    create_schema(conn)
    try:
        yield ScheduleStore(conn)
    finally:
        conn.close()
