from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator

# Record field order is part of the import/export contract.
RECORD_FIELDS = ("id", "category", "prompt", "answer", "tags", "difficulty", "source")
REQUIRED_FIELDS = ("id", "category", "prompt", "answer")

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value


def _check_tags(tags: list[str]) -> list[str]:
    seen: set[str] = set()
    for tag in tags:
        if not tag.strip():
            raise ValueError("tags must not be empty")
        if tag in seen:
            raise ValueError(f"duplicate tag '{tag}'")
        seen.add(tag)
    return tags


class Entry(BaseModel):
    """One interview question with its model answer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: StrictStr
    category: StrictStr           # e.g. behavioral, domain-technical, company-specific
    prompt: StrictStr
    answer: StrictStr
    tags: list[StrictStr] = Field(default_factory=list)
    difficulty: StrictInt = Field(default=MIN_DIFFICULTY, ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    source: StrictStr = ""

    @field_validator("id", "category", "prompt", "answer")
    @classmethod
    def check_not_blank(cls, value: str) -> str:
        return _not_blank(value)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, tags: list[str]) -> list[str]:
        return _check_tags(tags)

    def has_tags(self, tags: list[str] | tuple[str, ...]) -> bool:
        return all(t in self.tags for t in tags)


class EntryUpdate(BaseModel):
    """Editable content fields. The id is never editable."""

    model_config = ConfigDict(extra="forbid")

    category: StrictStr | None = None
    prompt: StrictStr | None = None
    answer: StrictStr | None = None
    tags: list[StrictStr] | None = None
    difficulty: StrictInt | None = None
    source: StrictStr | None = None


class EntryList(BaseModel):
    items: list[Entry]
    total: int
    offset: int
    limit: int
