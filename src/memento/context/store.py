"""Read-only session record sources: a JSON file directory or an SQLite table."""

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import closing
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from memento.config import MementoConfig
from memento.context.models import SessionRecord, SessionSummary
from memento.context.ranker import rank

logger = logging.getLogger(__name__)

SESSION_TABLE = "session"

COUNT_SQL = f"SELECT COUNT(*) FROM {SESSION_TABLE} WHERE directory = ?"
RECENT_SQL = f"""
    SELECT id, title, directory, time_created FROM {SESSION_TABLE}
    WHERE directory = ?
    ORDER BY time_created DESC
    LIMIT ?
"""


class ErrorKind(str, Enum):
    MISSING = "missing"
    MALFORMED = "malformed"
    UNAVAILABLE = "unavailable"


@dataclass
class Lookup:
    """Outcome of one backend operation, before errors collapse to empty results."""

    records: list[SessionRecord] = field(default_factory=list)
    count: int = 0
    error: ErrorKind | None = None
    detail: str = ""
    skipped: list[tuple[str, ErrorKind]] = field(default_factory=list)

    @classmethod
    def failed(cls, kind: ErrorKind, detail: str) -> "Lookup":
        return cls(error=kind, detail=detail)


class RecordSource(ABC):
    """Counts and fetches prior sessions for a project path.

    ``count`` and ``recent`` never raise: any backend failure is logged and
    reported as zero sessions.
    """

    placeholder = "No summary"
    drop_invalid = True

    def __init__(self, location: Path):
        self.location = location

    @abstractmethod
    def count_lookup(self, project_path: str) -> Lookup:
        """Count matching records, reporting failures in the result."""

    @abstractmethod
    def fetch_lookup(self, project_path: str, limit: int) -> Lookup:
        """Fetch candidate records for ranking, reporting failures in the result."""

    def count(self, project_path: str) -> int:
        lookup = self.count_lookup(project_path)
        self._report(lookup)
        return 0 if lookup.error is not None else lookup.count

    def recent(self, project_path: str, limit: int) -> list[SessionSummary]:
        lookup = self.fetch_lookup(project_path, limit)
        self._report(lookup)
        if lookup.error is not None:
            return []
        return rank(lookup.records, limit, drop_invalid=self.drop_invalid)

    def _report(self, lookup: Lookup) -> None:
        for name, kind in lookup.skipped:
            logger.warning("Skipped %s session file %s", kind.value, name)
        if lookup.error is ErrorKind.MISSING:
            logger.warning("Session store not found: %s", self.location)
        elif lookup.error is not None:
            logger.warning(
                "Session store %s %s: %s", self.location, lookup.error.value, lookup.detail
            )


class FileSessionSource(RecordSource):
    """Session records stored as ``*.json`` files anywhere under a directory.

    A file belongs to a project when its raw text contains the project path.
    This is a substring test, so ``/work/app`` also matches files that
    mention ``/work/app-v2``.
    """

    def _files(self) -> list[Path]:
        return sorted(p for p in self.location.glob("**/*.json") if p.is_file())

    def _scan(self, project_path: str, parse: bool) -> Lookup:
        if not self.location.is_dir():
            return Lookup.failed(ErrorKind.MISSING, str(self.location))
        try:
            files = self._files()
        except OSError as exc:
            return Lookup.failed(ErrorKind.UNAVAILABLE, str(exc))

        lookup = Lookup()
        for path in files:
            name = str(path.relative_to(self.location))
            try:
                # invalid bytes decode to U+FFFD
                content = path.read_text(encoding="utf-8", errors="replace")
            except OSError:
                lookup.skipped.append((name, ErrorKind.MALFORMED))
                continue
            if project_path not in content:
                continue
            lookup.count += 1
            if not parse:
                continue
            record = _parse_record(content, project_path)
            if record is None:
                lookup.skipped.append((name, ErrorKind.MALFORMED))
            else:
                lookup.records.append(record)
        return lookup

    def count_lookup(self, project_path: str) -> Lookup:
        return self._scan(project_path, parse=False)

    def fetch_lookup(self, project_path: str, limit: int) -> Lookup:
        # every match is parsed; truncation happens after ranking
        return self._scan(project_path, parse=True)


def _first_truthy(data: dict, *keys: str):
    for key in keys:
        if data.get(key):
            return data[key]
    return None


def _parse_record(content: str, project_path: str) -> SessionRecord | None:
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    summary = _first_truthy(data, "summary", "title", "description")
    return SessionRecord(
        id=str(data.get("id") or ""),
        project_path=project_path,
        timestamp=_first_truthy(data, "createdAt", "updatedAt", "date"),
        summary=summary if isinstance(summary, str) else "",
    )


class SqliteSessionSource(RecordSource):
    """Session rows in the host's SQLite database, matched on ``directory``.

    The database is opened read-only for each operation and closed afterwards.
    """

    placeholder = "No title"
    drop_invalid = False

    def _connect(self) -> sqlite3.Connection:
        uri = f"{self.location.resolve().as_uri()}?mode=ro"
        conn = sqlite3.connect(uri, uri=True)
        conn.row_factory = sqlite3.Row
        return conn

    def count_lookup(self, project_path: str) -> Lookup:
        if not self.location.is_file():
            return Lookup.failed(ErrorKind.MISSING, str(self.location))
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(COUNT_SQL, (project_path,)).fetchone()
        except sqlite3.Error as exc:
            return Lookup.failed(ErrorKind.UNAVAILABLE, str(exc))
        return Lookup(count=row[0] if row else 0)

    def fetch_lookup(self, project_path: str, limit: int) -> Lookup:
        if not self.location.is_file():
            return Lookup.failed(ErrorKind.MISSING, str(self.location))
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(RECENT_SQL, (project_path, max(limit, 0))).fetchall()
        except sqlite3.Error as exc:
            return Lookup.failed(ErrorKind.UNAVAILABLE, str(exc))
        records = [_row_to_record(r) for r in rows]
        return Lookup(records=records, count=len(records))


def _row_to_record(row: sqlite3.Row) -> SessionRecord:
    return SessionRecord(
        id=str(row["id"] or ""),
        project_path=row["directory"] or "",
        timestamp=row["time_created"],
        summary=row["title"] or "",
    )


def build_source(config: MementoConfig, project_dir: Path) -> RecordSource:
    """Create the record source selected by the config."""
    location = config.resolve_location(project_dir)
    if config.backend == "sqlite":
        return SqliteSessionSource(location)
    return FileSessionSource(location)
