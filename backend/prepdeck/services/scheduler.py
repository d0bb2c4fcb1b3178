"""
SM-2 style spaced-review scheduler.

Grades: fail, hard, good, easy (buttons 0=Again .. 3=Easy).

  first review   interval = first_interval_days
  fail           interval = first_interval_days, successes = 0, ease -= fail_ease_penalty
  hard           interval = max(1, prev * hard_interval_multiplier), ease -= hard_ease_penalty
  good           interval = prev * ease
  easy           interval = prev * ease * easy_interval_bonus, ease += easy_ease_bonus

Ease is clamped to [min_ease, max_ease]. The interval is kept unrounded;
next_due = now + interval rounded half-up to whole days.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, model_validator

from prepdeck.config import Settings
from prepdeck.models.review import Grade, ReviewResult, ReviewState, ensure_utc, utcnow
from prepdeck.services.repository import ContentRepository

logger = logging.getLogger(__name__)


class ReviewPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial_ease: float = Field(default=2.5, gt=0)
    min_ease: float = Field(default=1.3, gt=0)
    max_ease: float = Field(default=5.0, gt=0)
    first_interval_days: float = Field(default=1.0, ge=1)
    fail_ease_penalty: float = Field(default=0.2, ge=0)
    hard_interval_multiplier: float = Field(default=1.2, gt=0)
    hard_ease_penalty: float = Field(default=0.15, ge=0)
    easy_interval_bonus: float = Field(default=1.3, gt=0)
    easy_ease_bonus: float = Field(default=0.15, ge=0)
    max_interval_days: float | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_ease_bounds(self) -> ReviewPolicy:
        if self.min_ease > self.max_ease:
            raise ValueError("min_ease must not exceed max_ease")
        if not self.min_ease <= self.initial_ease <= self.max_ease:
            raise ValueError("initial_ease must lie within [min_ease, max_ease]")
        return self

    @classmethod
    def from_settings(cls, s: Settings) -> ReviewPolicy:
        return cls(**{name: getattr(s, name) for name in cls.model_fields})

    def clamp_ease(self, ease: float) -> float:
        return max(self.min_ease, min(self.max_ease, ease))


def round_days(interval: float) -> int:
    """Whole days, halves rounded up, never below one."""
    return max(1, math.floor(interval + 0.5))


def next_state(
    state: ReviewState,
    grade: Grade,
    now: datetime,
    policy: ReviewPolicy,
) -> ReviewState:
    """Pure SM-2 step: the state after grading at ``now``."""
    now = ensure_utc(now)
    prev = state.interval_days
    ease = state.ease_factor
    successes = state.consecutive_successes
    lapses = state.lapse_count

    if grade is Grade.FAIL:
        interval = policy.first_interval_days
        successes = 0
        lapses += 1
        ease -= policy.fail_ease_penalty
    elif grade is Grade.HARD:
        interval = max(1.0, prev * policy.hard_interval_multiplier)
        successes += 1
        ease -= policy.hard_ease_penalty
    elif grade is Grade.GOOD:
        interval = prev * ease
        successes += 1
    else:
        interval = prev * ease * policy.easy_interval_bonus
        successes += 1
        ease += policy.easy_ease_bonus

    if state.last_reviewed is None:
        interval = policy.first_interval_days
    if policy.max_interval_days is not None:
        interval = min(interval, policy.max_interval_days)

    return ReviewState(
        last_reviewed=now,
        next_due=now + timedelta(days=round_days(interval)),
        interval_days=interval,
        consecutive_successes=successes,
        ease_factor=policy.clamp_ease(ease),
        review_count=state.review_count + 1,
        lapse_count=lapses,
    )


class Scheduler:
    def __init__(self, policy: ReviewPolicy | None = None) -> None:
        self.policy = policy or ReviewPolicy()

    def grade(
        self,
        repository: ContentRepository,
        entry_id: str,
        grade: Grade | str | int,
        *,
        now: datetime | None = None,
    ) -> ReviewResult:
        """Grade one entry and persist its new review state.

        Raises NotFoundError for unknown ids without touching the repository.
        Grading before the due date is allowed and reschedules from ``now``.
        """
        parsed = Grade.parse(grade)
        now = ensure_utc(now) if now is not None else utcnow()
        current, new = repository.update_state(
            entry_id, lambda state: next_state(state, parsed, now, self.policy)
        )
        logger.info(
            "Graded %s %s: interval %.2f -> %.2f days, ease %.2f",
            entry_id,
            parsed.value,
            current.interval_days,
            new.interval_days,
            new.ease_factor,
        )
        return ReviewResult(
            id=entry_id,
            grade=parsed,
            interval_days=new.interval_days,
            due_in_days=round_days(new.interval_days),
            next_due=new.next_due,
            ease_factor=new.ease_factor,
            consecutive_successes=new.consecutive_successes,
        )
