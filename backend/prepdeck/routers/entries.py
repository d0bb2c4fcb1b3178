from fastapi import APIRouter, Depends, HTTPException, Query

from prepdeck.deps import get_repository
from prepdeck.errors import DuplicateIdError, NotFoundError, StorageError, ValidationError
from prepdeck.models.entry import Entry, EntryList, EntryUpdate
from prepdeck.services.repository import ContentRepository

router = APIRouter()


@router.post("/", response_model=Entry, status_code=201)
def create_entry(body: Entry, repo: ContentRepository = Depends(get_repository)):
    try:
        return repo.add(body)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except DuplicateIdError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.get("/", response_model=EntryList)
def list_entries(
    category: str | None = Query(default=None),
    tag: list[str] = Query(default=[]),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    repo: ContentRepository = Depends(get_repository),
):
    items, total = repo.list_page(category=category, tags=tag, offset=offset, limit=limit)
    return EntryList(items=items, total=total, offset=offset, limit=limit)


@router.get("/{entry_id}", response_model=Entry)
def get_entry(entry_id: str, repo: ContentRepository = Depends(get_repository)):
    try:
        return repo.get(entry_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Entry not found")


@router.patch("/{entry_id}", response_model=Entry)
def update_entry(
    entry_id: str, body: EntryUpdate, repo: ContentRepository = Depends(get_repository)
):
    try:
        return repo.update(entry_id, body)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Entry not found")
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.delete("/{entry_id}", status_code=204)
def delete_entry(entry_id: str, repo: ContentRepository = Depends(get_repository)):
    try:
        repo.remove(entry_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Entry not found")
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
