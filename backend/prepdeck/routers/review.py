"""
Review & spaced repetition router.

Endpoints:
  GET  /review/due              entries due now, grouped by category, most overdue first
  POST /review/{id}             submit a grade (fail/hard/good/easy or 0-3), reschedule
  GET  /review/stats            totals, due count, per-category breakdown
  GET  /review/{id}/state       current review state of one entry
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from prepdeck.config import settings
from prepdeck.deps import get_repository, get_scheduler
from prepdeck.errors import NotFoundError, StorageError
from prepdeck.models.review import (
    ReviewRequest,
    ReviewResult,
    ReviewSession,
    ReviewState,
    ReviewStats,
)
from prepdeck.services.repository import ContentRepository
from prepdeck.services.scheduler import Scheduler
from prepdeck.services.session_builder import build_session

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/due", response_model=ReviewSession)
def get_due(
    limit: int = Query(default=settings.session_limit, ge=1, le=500),
    category: str | None = Query(default=None),
    repo: ContentRepository = Depends(get_repository),
) -> ReviewSession:
    """Entries due for review now."""
    return build_session(repo, category=category, limit=limit)


@router.get("/stats", response_model=ReviewStats)
def review_stats(repo: ContentRepository = Depends(get_repository)) -> ReviewStats:
    return repo.stats()


@router.post("/{entry_id}", response_model=ReviewResult)
def review_entry(
    entry_id: str,
    body: ReviewRequest,
    repo: ContentRepository = Depends(get_repository),
    scheduler: Scheduler = Depends(get_scheduler),
) -> ReviewResult:
    """Grade an entry and run the scheduler."""
    try:
        return scheduler.grade(repo, entry_id, body.grade)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Entry not found")
    except StorageError as exc:
        logger.warning("Review of %s not persisted: %s", entry_id, exc)
        raise HTTPException(status_code=503, detail=str(exc))


@router.get("/{entry_id}/state", response_model=ReviewState)
def get_state(entry_id: str, repo: ContentRepository = Depends(get_repository)) -> ReviewState:
    try:
        return repo.state(entry_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Entry not found")
