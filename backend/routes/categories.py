from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.auth import require_owner_id
from backend import repositories

router = APIRouter()


@router.get("/v1/categories")
async def list_categories(owner_id: str = Depends(require_owner_id)):
    return {"items": await repositories.list_categories()}
