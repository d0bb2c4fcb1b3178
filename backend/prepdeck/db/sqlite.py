from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import pydantic

from prepdeck.db.lock import file_lock
from prepdeck.errors import DuplicateIdError, NotFoundError, StorageError
from prepdeck.models.entry import Entry
from prepdeck.models.review import ReviewState

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS entries (
    id          TEXT PRIMARY KEY,
    position    INTEGER NOT NULL,
    category    TEXT NOT NULL,
    prompt      TEXT NOT NULL,
    answer      TEXT NOT NULL,
    tags        TEXT NOT NULL DEFAULT '[]',
    difficulty  INTEGER NOT NULL DEFAULT 1,
    source      TEXT NOT NULL DEFAULT '',
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_entries_position ON entries(position);

CREATE TABLE IF NOT EXISTS review_states (
    entry_id              TEXT PRIMARY KEY REFERENCES entries(id) ON DELETE CASCADE,
    last_reviewed         TEXT,
    next_due              TEXT NOT NULL,
    interval_days         REAL NOT NULL DEFAULT 0,
    consecutive_successes INTEGER NOT NULL DEFAULT 0,
    ease_factor           REAL NOT NULL DEFAULT 2.5,
    review_count          INTEGER NOT NULL DEFAULT 0,
    lapse_count           INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_review_states_due ON review_states(next_due);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""

SELECT_PAIRS_SQL = """SELECT e.id, e.category, e.prompt, e.answer, e.tags, e.difficulty, e.source,
                             r.last_reviewed, r.next_due, r.interval_days, r.consecutive_successes,
                             r.ease_factor, r.review_count, r.lapse_count
                      FROM entries e
                      JOIN review_states r ON r.entry_id = e.id"""


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _row_to_pair(row: sqlite3.Row) -> tuple[Entry, ReviewState]:
    d = dict(row)
    try:
        entry = Entry(
            id=d["id"],
            category=d["category"],
            prompt=d["prompt"],
            answer=d["answer"],
            tags=json.loads(d["tags"]),
            difficulty=d["difficulty"],
            source=d["source"],
        )
        state = ReviewState(
            last_reviewed=datetime.fromisoformat(d["last_reviewed"]) if d["last_reviewed"] else None,
            next_due=datetime.fromisoformat(d["next_due"]),
            interval_days=d["interval_days"],
            consecutive_successes=d["consecutive_successes"],
            ease_factor=d["ease_factor"],
            review_count=d["review_count"],
            lapse_count=d["lapse_count"],
        )
    except (pydantic.ValidationError, ValueError, TypeError) as exc:
        raise StorageError(f"Corrupt row for entry {d.get('id')!r}: {exc}", entry_id=d.get("id")) from exc
    return entry, state


class SQLiteStorage:
    """Entries and review states in a single SQLite file.

    Each call opens its own connection inside a file lock so two terminal
    sessions never interleave writes.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @contextmanager
    def _transaction(self, *, shared: bool = False) -> Iterator[sqlite3.Connection]:
        with file_lock(self.path, shared=shared):
            try:
                conn = sqlite3.connect(self.path)
            except sqlite3.Error as exc:
                raise StorageError(f"Cannot open database {self.path}: {exc}") from exc
            try:
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys=ON")
                yield conn
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StorageError(f"SQLite error on {self.path}: {exc}") from exc
            except BaseException:
                conn.rollback()
                raise
            finally:
                conn.close()

    def init(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create data directory {self.path.parent}: {exc}") from exc
        with self._transaction() as conn:
            conn.executescript(SCHEMA_SQL)
            current = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
        logger.info("SQLite storage ready at %s (schema v%s)", self.path, current)

    def load(self) -> list[tuple[Entry, ReviewState]]:
        """Return every entry with its review state, in insertion order."""
        with self._transaction(shared=True) as conn:
            rows = conn.execute(f"{SELECT_PAIRS_SQL} ORDER BY e.position ASC").fetchall()
        return [_row_to_pair(r) for r in rows]

    def insert(self, pairs: list[tuple[Entry, ReviewState]]) -> None:
        """Insert entries with their states in one transaction.

        Ids are checked against the file, not a cached copy, so an entry
        added by another session is reported as a duplicate.
        """
        with self._transaction() as conn:
            position = conn.execute("SELECT COALESCE(MAX(position), 0) FROM entries").fetchone()[0]
            for entry, state in pairs:
                if conn.execute("SELECT 1 FROM entries WHERE id = ?", (entry.id,)).fetchone():
                    raise DuplicateIdError(
                        f"Entry {entry.id!r} already exists", entry_id=entry.id, field="id"
                    )
                position += 1
                conn.execute(
                    """INSERT INTO entries
                       (id, position, category, prompt, answer, tags, difficulty, source)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        entry.id,
                        position,
                        entry.category,
                        entry.prompt,
                        entry.answer,
                        json.dumps(entry.tags),
                        entry.difficulty,
                        entry.source,
                    ),
                )
                self._write_state(conn, entry.id, state)

    def update_entry(self, entry: Entry) -> None:
        with self._transaction() as conn:
            cursor = conn.execute(
                """UPDATE entries
                   SET category = ?, prompt = ?, answer = ?, tags = ?, difficulty = ?, source = ?,
                       updated_at = datetime('now')
                   WHERE id = ?""",
                (
                    entry.category,
                    entry.prompt,
                    entry.answer,
                    json.dumps(entry.tags),
                    entry.difficulty,
                    entry.source,
                    entry.id,
                ),
            )
            if cursor.rowcount == 0:
                raise StorageError(f"Entry {entry.id!r} missing from {self.path}", entry_id=entry.id)

    def update_state(
        self,
        entry_id: str,
        step: Callable[[ReviewState], ReviewState],
    ) -> tuple[Entry, ReviewState, ReviewState]:
        """Read the stored state, apply ``step`` and write the result under one lock.

        Returns (entry, previous state, new state).
        """
        with self._transaction() as conn:
            row = conn.execute(f"{SELECT_PAIRS_SQL} WHERE e.id = ?", (entry_id,)).fetchone()
            if row is None:
                raise NotFoundError(f"Entry {entry_id!r} not found", entry_id=entry_id)
            entry, current = _row_to_pair(row)
            new = step(current)
            self._write_state(conn, entry_id, new)
        return entry, current, new

    def delete(self, entry_id: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM entries WHERE id = ?", (entry_id,))

    @staticmethod
    def _write_state(conn: sqlite3.Connection, entry_id: str, state: ReviewState) -> None:
        conn.execute(
            """INSERT INTO review_states
               (entry_id, last_reviewed, next_due, interval_days, consecutive_successes,
                ease_factor, review_count, lapse_count)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(entry_id) DO UPDATE SET
                   last_reviewed = excluded.last_reviewed,
                   next_due = excluded.next_due,
                   interval_days = excluded.interval_days,
                   consecutive_successes = excluded.consecutive_successes,
                   ease_factor = excluded.ease_factor,
                   review_count = excluded.review_count,
                   lapse_count = excluded.lapse_count""",
            (
                entry_id,
                _ts(state.last_reviewed),
                _ts(state.next_due),
                state.interval_days,
                state.consecutive_successes,
                state.ease_factor,
                state.review_count,
                state.lapse_count,
            ),
        )
