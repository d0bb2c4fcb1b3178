"""
Content repository: the single store of entries and their review states.

The repository is an explicit object handed to every caller. It keeps an
insertion-ordered in-memory copy and, when given a storage backend, writes
through to it before touching memory, so a failed write leaves the
in-memory view exactly as it was.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from prepdeck.db import init_storage
from prepdeck.db.sqlite import SQLiteStorage
from prepdeck.errors import DuplicateIdError, NotFoundError, ValidationError
from prepdeck.models.entry import Entry, EntryUpdate
from prepdeck.models.review import CategoryStats, ReviewState, ReviewStats, ensure_utc, utcnow
from prepdeck.validation import validate_entry

logger = logging.getLogger(__name__)


class ContentRepository:
    def __init__(
        self,
        storage: SQLiteStorage | None = None,
        *,
        initial_ease: float = 2.5,
    ) -> None:
        self.storage = storage
        self.initial_ease = initial_ease
        self._entries: dict[str, Entry] = {}
        self._states: dict[str, ReviewState] = {}
        self._lock = threading.RLock()
        if storage is not None:
            for entry, state in storage.load():
                self._entries[entry.id] = entry
                self._states[entry.id] = state
            logger.info("Loaded %d entries from %s", len(self._entries), storage.path)

    @classmethod
    def open(cls, data_dir: Path, *, initial_ease: float = 2.5) -> ContentRepository:
        return cls(init_storage(data_dir), initial_ease=initial_ease)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    # --- Entries ---

    def add(self, entry: Entry | Mapping[str, Any], *, now: datetime | None = None) -> Entry:
        """Store a new entry; it is due for review immediately."""
        return self.add_many([(entry, None)], now=now)[0]

    def add_many(
        self,
        pairs: Sequence[tuple[Entry | Mapping[str, Any], ReviewState | None]],
        *,
        now: datetime | None = None,
    ) -> list[Entry]:
        """All-or-nothing insert. A None state gets the defaults for a new entry."""
        now = ensure_utc(now) if now is not None else utcnow()
        prepared: list[tuple[Entry, ReviewState]] = []
        batch_ids: set[str] = set()
        for raw, state in pairs:
            entry = validate_entry(raw.model_dump() if isinstance(raw, Entry) else raw)
            if entry.id in self._entries or entry.id in batch_ids:
                raise DuplicateIdError(f"Entry {entry.id!r} already exists", entry_id=entry.id, field="id")
            batch_ids.add(entry.id)
            prepared.append((entry, state or ReviewState.initial(now, self.initial_ease)))

        with self._lock:
            clash = next((e.id for e, _ in prepared if e.id in self._entries), None)
            if clash is not None:
                raise DuplicateIdError(f"Entry {clash!r} already exists", entry_id=clash, field="id")
            if self.storage is not None and prepared:
                self.storage.insert(prepared)
            for entry, state in prepared:
                self._entries[entry.id] = entry
                self._states[entry.id] = state

        if prepared:
            logger.info("Added %d entries", len(prepared))
        return [entry for entry, _ in prepared]

    def get(self, entry_id: str) -> Entry:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise NotFoundError(f"Entry {entry_id!r} not found", entry_id=entry_id) from None

    def list(
        self,
        *,
        category: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[Entry]:
        """Entries matching the category and carrying all given tags, in insertion order."""
        wanted = tuple(tags or ())
        with self._lock:
            entries = list(self._entries.values())
        return [
            e
            for e in entries
            if (category is None or e.category == category) and e.has_tags(wanted)
        ]

    def list_page(
        self,
        *,
        category: str | None = None,
        tags: Iterable[str] | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[Entry], int]:
        matches = self.list(category=category, tags=tags)
        return matches[offset : offset + limit], len(matches)

    def update(self, entry_id: str, fields: Mapping[str, Any] | EntryUpdate) -> Entry:
        """Replace content fields of an entry. Review state is left alone."""
        if isinstance(fields, EntryUpdate):
            changes = fields.model_dump(exclude_unset=True)
        else:
            changes = dict(fields)
        if "id" in changes:
            raise ValidationError("Entry id cannot be changed", entry_id=entry_id, field="id")

        with self._lock:
            current = self.get(entry_id)
            updated = validate_entry({**current.model_dump(), **changes})
            if updated == current:
                return current
            if self.storage is not None:
                self.storage.update_entry(updated)
            self._entries[entry_id] = updated

        logger.info("Updated entry %s (%s)", entry_id, ", ".join(sorted(changes)))
        return updated

    def remove(self, entry_id: str) -> None:
        with self._lock:
            self.get(entry_id)
            if self.storage is not None:
                self.storage.delete(entry_id)
            del self._entries[entry_id]
            del self._states[entry_id]
        logger.info("Removed entry %s", entry_id)

    # --- Review state ---

    def state(self, entry_id: str) -> ReviewState:
        self.get(entry_id)
        return self._states[entry_id]

    def update_state(
        self,
        entry_id: str,
        step: Callable[[ReviewState], ReviewState],
    ) -> tuple[ReviewState, ReviewState]:
        """Replace an entry's state with ``step(current)``. Returns (previous, new).

        With storage, ``current`` is read from the file inside the write lock,
        so a review saved by another session is built on, not overwritten.
        """
        with self._lock:
            if self.storage is None:
                current = self.state(entry_id)
                new = step(current)
            else:
                try:
                    entry, current, new = self.storage.update_state(entry_id, step)
                except NotFoundError:
                    self._entries.pop(entry_id, None)
                    self._states.pop(entry_id, None)
                    raise
                self._entries[entry_id] = entry
            self._states[entry_id] = new
        return current, new

    def items(self) -> list[tuple[Entry, ReviewState]]:
        """(entry, state) pairs in insertion order."""
        with self._lock:
            return [(e, self._states[e.id]) for e in self._entries.values()]

    def stats(self, now: datetime | None = None) -> ReviewStats:
        now = ensure_utc(now) if now is not None else utcnow()
        per_category: dict[str, CategoryStats] = {}
        due_now = 0
        reviewed = 0
        for entry, state in self.items():
            bucket = per_category.setdefault(
                entry.category, CategoryStats(category=entry.category, total=0, due=0)
            )
            bucket.total += 1
            if state.is_due(now):
                bucket.due += 1
                due_now += 1
            if state.last_reviewed is not None:
                reviewed += 1
        return ReviewStats(
            total_entries=len(self._entries),
            due_now=due_now,
            reviewed=reviewed,
            per_category=sorted(per_category.values(), key=lambda c: c.category),
        )
