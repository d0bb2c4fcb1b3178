from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from prepdeck.deps import get_repository, get_scheduler
from prepdeck.errors import DuplicateIdError, StorageError, ValidationError
from prepdeck.services.records import export_records, import_records
from prepdeck.services.repository import ContentRepository
from prepdeck.services.scheduler import Scheduler

router = APIRouter()


@router.get("/export")
def export_all(repo: ContentRepository = Depends(get_repository)) -> list[dict[str, Any]]:
    """Every entry with its review state, in insertion order."""
    return export_records(repo)


@router.post("/import", status_code=201)
def import_all(
    records: list[Any] = Body(...),
    repo: ContentRepository = Depends(get_repository),
    scheduler: Scheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    try:
        added = import_records(repo, records, policy=scheduler.policy)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={"message": str(exc), "entry_id": exc.entry_id, "field": exc.field},
        )
    except DuplicateIdError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return {"imported": len(added), "ids": [e.id for e in added]}
