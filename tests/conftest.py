"""Shared fixtures: session file directories and read-only SQLite stores."""

import json
import sqlite3

import pytest

SESSION_SCHEMA = """
CREATE TABLE session (
    id TEXT PRIMARY KEY,
    title TEXT,
    directory TEXT NOT NULL,
    time_created INTEGER NOT NULL
);
"""


@pytest.fixture
def sessions_dir(tmp_path):
    d = tmp_path / "sessions"
    d.mkdir()
    return d


@pytest.fixture
def write_session(sessions_dir):
    """Write a session JSON file under the sessions directory."""

    def _write(name: str, data) -> None:
        path = sessions_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(data if isinstance(data, str) else json.dumps(data))

    return _write


@pytest.fixture
def session_db(tmp_path):
    """Create an SQLite store with a session table; returns (path, insert)."""
    db = tmp_path / "opencode.db"
    conn = sqlite3.connect(str(db))
    conn.executescript(SESSION_SCHEMA)
    conn.commit()

    def insert(id: str, directory: str, time_created: int, title: str | None = None) -> None:
        conn.execute(
            "INSERT INTO session (id, title, directory, time_created) VALUES (?, ?, ?, ?)",
            (id, title, directory, time_created),
        )
        conn.commit()

    yield db, insert
    conn.close()
