"""
Import/export of entries as structured records.

A record is a JSON object with the fields id, category, prompt, answer,
tags, difficulty, source (in that order). Exports add a ``review`` object
carrying the review state; importing an export restores it.

Files are JSON Lines (one record per line). A file whose first character is
``[`` is read as a single JSON array instead.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

import pydantic

from prepdeck.db.lock import file_lock
from prepdeck.errors import StorageError, ValidationError
from prepdeck.models.entry import RECORD_FIELDS, REQUIRED_FIELDS, Entry
from prepdeck.models.review import ReviewState
from prepdeck.services.repository import ContentRepository
from prepdeck.services.scheduler import ReviewPolicy
from prepdeck.validation import from_pydantic, validate_entry

logger = logging.getLogger(__name__)


def parse_record(
    raw: Any,
    *,
    number: int | None = None,
    policy: ReviewPolicy | None = None,
) -> tuple[Entry, ReviewState | None]:
    """Validate one record. Unknown fields are ignored; a missing required field rejects it.

    A restored ``review`` block must keep its ease within the policy's bounds.
    """
    policy = policy or ReviewPolicy()
    context = f"record {number}: " if number is not None else ""
    if not isinstance(raw, Mapping):
        raise ValidationError(f"{context}expected an object, got {type(raw).__name__}")

    entry_id = raw.get("id") if isinstance(raw.get("id"), str) else None
    for name in REQUIRED_FIELDS:
        if raw.get(name) is None:
            raise ValidationError(
                f"{context}missing required field '{name}'", entry_id=entry_id, field=name
            )

    entry = validate_entry({k: raw[k] for k in RECORD_FIELDS if k in raw}, context=context)

    state = None
    if raw.get("review") is not None:
        try:
            state = ReviewState.model_validate(raw["review"])
        except pydantic.ValidationError as exc:
            raise from_pydantic(exc, entry_id=entry.id, context=f"{context}review: ") from exc
        if not policy.min_ease <= state.ease_factor <= policy.max_ease:
            raise ValidationError(
                f"{context}review: ease_factor {state.ease_factor} outside "
                f"[{policy.min_ease}, {policy.max_ease}]",
                entry_id=entry.id,
                field="ease_factor",
            )
    return entry, state


def to_record(entry: Entry, state: ReviewState) -> dict[str, Any]:
    record = entry.model_dump()
    record["review"] = state.model_dump(mode="json")
    return record


def read_records(path: Path) -> list[Any]:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StorageError(f"Cannot read {path}: {exc}") from exc

    if text.lstrip().startswith("["):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"{path}: invalid JSON at line {exc.lineno}: {exc.msg}") from exc
        return list(data)

    records: list[Any] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as exc:
            raise ValidationError(f"{path}: line {lineno}: invalid JSON: {exc.msg}") from exc
    return records


def import_records(
    repository: ContentRepository,
    records: Iterable[Any],
    *,
    now: datetime | None = None,
    policy: ReviewPolicy | None = None,
) -> list[Entry]:
    """Add every record or none of them."""
    try:
        pairs = [
            parse_record(raw, number=i, policy=policy) for i, raw in enumerate(records, start=1)
        ]
        added = repository.add_many(pairs, now=now)
    except ValidationError as exc:
        logger.warning("Import rejected: %s", exc)
        raise
    logger.info("Imported %d records", len(added))
    return added


def import_file(
    repository: ContentRepository,
    path: Path,
    *,
    now: datetime | None = None,
    policy: ReviewPolicy | None = None,
) -> list[Entry]:
    return import_records(repository, read_records(path), now=now, policy=policy)


def export_records(repository: ContentRepository) -> list[dict[str, Any]]:
    return [to_record(entry, state) for entry, state in repository.items()]


def write_records(records: Iterable[Mapping[str, Any]], path: Path) -> int:
    """Write records as JSON Lines, replacing ``path`` atomically. Returns the count."""
    path = Path(path)
    count = 0
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with file_lock(path):
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    for record in records:
                        f.write(json.dumps(record, ensure_ascii=False))
                        f.write("\n")
                        count += 1
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
    except OSError as exc:
        raise StorageError(f"Cannot write {path}: {exc}") from exc
    logger.info("Exported %d records to %s", count, path)
    return count


def export_file(repository: ContentRepository, path: Path) -> int:
    return write_records(export_records(repository), path)
