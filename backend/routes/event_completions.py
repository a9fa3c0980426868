from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.auth import require_owner_id
from backend import repositories
from backend.schemas import EventCompletionCreate

router = APIRouter()


@router.get("/v1/event-completions")
async def list_event_completions(
    start: date = Query(...),
    end: date = Query(...),
    owner_id: str = Depends(require_owner_id),
):
    items = await repositories.list_event_completions(owner_id, start.isoformat(), end.isoformat())
    return {"items": items}


@router.post("/v1/event-completions")
async def create_event_completion(payload: EventCompletionCreate, owner_id: str = Depends(require_owner_id)):
    try:
        return await repositories.insert_event_completion(owner_id, payload.event_id, payload.target_date.isoformat())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/v1/event-completions")
async def delete_event_completion(
    event_id: str = Query(...),
    target_date: date = Query(...),
    owner_id: str = Depends(require_owner_id),
):
    await repositories.delete_event_completion(owner_id, event_id, target_date.isoformat())
    return {"ok": True}
