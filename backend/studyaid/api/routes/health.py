from fastapi import APIRouter, Depends

from studyaid.api.deps import get_text_cache
from studyaid.services.text_cache import TextCache


router = APIRouter(tags=["health"])


@router.get("/health")
def health(cache: TextCache = Depends(get_text_cache)):
    return {"status": "ok", "cache": {"backend": type(cache).__name__, "entries": len(cache.keys())}}
