from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pydantic

from prepdeck.errors import ValidationError
from prepdeck.models.entry import Entry


def from_pydantic(
    exc: pydantic.ValidationError,
    *,
    entry_id: str | None = None,
    context: str = "",
) -> ValidationError:
    """Convert the first pydantic error into a ValidationError naming the field."""
    first = exc.errors()[0]
    loc = first.get("loc") or ()
    field = str(loc[0]) if loc else None
    where = f"field '{field}'" if field else "record"
    return ValidationError(
        f"{context}invalid {where}: {first.get('msg', 'invalid value')}",
        entry_id=entry_id,
        field=field,
    )


def validate_entry(data: Mapping[str, Any], *, context: str = "") -> Entry:
    raw_id = data.get("id")
    entry_id = raw_id if isinstance(raw_id, str) else None
    try:
        return Entry.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        raise from_pydantic(exc, entry_id=entry_id, context=context) from exc
