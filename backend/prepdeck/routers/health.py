from fastapi import APIRouter, Depends

from prepdeck.deps import get_repository
from prepdeck.services.repository import ContentRepository

router = APIRouter()


@router.get("/health")
def health(repo: ContentRepository = Depends(get_repository)) -> dict:
    return {"status": "ok", "entries": len(repo)}
