from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.auth import require_owner_id
from backend import repositories
from backend.schemas import CompletionCreate

router = APIRouter()


@router.get("/v1/completions")
async def list_completions(
    daily_log_id: Optional[str] = Query(None),
    habit_id: Optional[List[str]] = Query(None),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    with_habit: bool = Query(False),
    owner_id: str = Depends(require_owner_id),
):
    items = await repositories.list_completions(
        owner_id,
        daily_log_id=daily_log_id,
        habit_ids=habit_id,
        start_iso=start.isoformat() if start else None,
        end_iso=end.isoformat() if end else None,
        with_habit=with_habit,
    )
    return {"items": items}


@router.post("/v1/completions")
async def create_completion(payload: CompletionCreate, owner_id: str = Depends(require_owner_id)):
    try:
        return await repositories.insert_completion(owner_id, payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/v1/completions")
async def delete_completion(
    daily_log_id: str = Query(...),
    habit_id: str = Query(...),
    owner_id: str = Depends(require_owner_id),
):
    await repositories.delete_completion(owner_id, daily_log_id, habit_id)
    return {"ok": True}
