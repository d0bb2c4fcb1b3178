from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from prepdeck.errors import ValidationError
from prepdeck.models.entry import Entry


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Grade(str, Enum):
    FAIL = "fail"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @classmethod
    def parse(cls, value: object) -> Grade:
        """Accept a Grade, its name, or the button index 0=Again .. 3=Easy."""
        if isinstance(value, Grade):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if 0 <= value < len(_GRADE_ORDER):
                return _GRADE_ORDER[value]
        elif isinstance(value, str):
            key = value.strip().lower()
            if key.isdigit():
                return cls.parse(int(key))
            if key == "again":
                return cls.FAIL
            for grade in cls:
                if grade.value == key:
                    return grade
        raise ValidationError(
            f"grade must be one of fail, hard, good, easy (or 0-3), got {value!r}",
            field="grade",
        )


_GRADE_ORDER = (Grade.FAIL, Grade.HARD, Grade.GOOD, Grade.EASY)


class ReviewState(BaseModel):
    """Spaced-repetition scheduling metadata for one entry."""

    model_config = ConfigDict(frozen=True)

    last_reviewed: datetime | None = None   # None = never reviewed
    next_due: datetime
    interval_days: float = Field(default=0.0, ge=0.0)   # unrounded
    consecutive_successes: int = Field(default=0, ge=0)
    ease_factor: float = Field(default=2.5, gt=0.0)
    review_count: int = Field(default=0, ge=0)
    lapse_count: int = Field(default=0, ge=0)

    @field_validator("last_reviewed", "next_due")
    @classmethod
    def normalize_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_due_order(self) -> ReviewState:
        if self.last_reviewed is not None and self.next_due < self.last_reviewed:
            raise ValueError("next_due must not be earlier than last_reviewed")
        return self

    @classmethod
    def initial(cls, now: datetime, ease_factor: float = 2.5) -> ReviewState:
        return cls(next_due=now, ease_factor=ease_factor)

    def overdue_days(self, now: datetime) -> float:
        return (ensure_utc(now) - self.next_due).total_seconds() / 86400.0

    def is_due(self, now: datetime) -> bool:
        return self.next_due <= ensure_utc(now)


class ReviewRequest(BaseModel):
    grade: Grade

    @field_validator("grade", mode="before")
    @classmethod
    def parse_grade(cls, v: object) -> Grade:
        return Grade.parse(v)


class ReviewResult(BaseModel):
    id: str
    grade: Grade
    interval_days: float
    due_in_days: int
    next_due: datetime
    ease_factor: float
    consecutive_successes: int


class SessionItem(BaseModel):
    entry: Entry
    state: ReviewState
    overdue_days: float


class ReviewSession(BaseModel):
    generated_at: datetime
    items: list[SessionItem]
    total: int


class CategoryStats(BaseModel):
    category: str
    total: int
    due: int


class ReviewStats(BaseModel):
    total_entries: int
    due_now: int
    reviewed: int
    per_category: list[CategoryStats]
