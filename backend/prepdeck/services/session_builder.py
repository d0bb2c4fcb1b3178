from __future__ import annotations

import logging
from datetime import datetime

from prepdeck.models.review import ReviewSession, SessionItem, ensure_utc, utcnow
from prepdeck.services.repository import ContentRepository

logger = logging.getLogger(__name__)


def build_session(
    repository: ContentRepository,
    now: datetime | None = None,
    *,
    category: str | None = None,
    limit: int | None = None,
) -> ReviewSession:
    """Due entries grouped by category, most overdue first within each category.

    Ties keep insertion order. Nothing due yields an empty session.
    """
    now = ensure_utc(now) if now is not None else utcnow()
    due = [
        SessionItem(entry=entry, state=state, overdue_days=state.overdue_days(now))
        for entry, state in repository.items()
        if state.is_due(now) and (category is None or entry.category == category)
    ]
    due.sort(key=lambda item: (item.entry.category, -item.overdue_days))
    if limit is not None:
        due = due[:limit]
    logger.debug("Session at %s: %d due entries", now.isoformat(), len(due))
    return ReviewSession(generated_at=now, items=due, total=len(due))
