from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.auth import require_owner_id
from backend import repositories
from backend.schemas import DailyLogPatch

router = APIRouter()


@router.get("/v1/daily-logs")
async def list_daily_logs(
    start: date = Query(...),
    end: date = Query(...),
    owner_id: str = Depends(require_owner_id),
):
    items = await repositories.list_daily_logs(owner_id, start.isoformat(), end.isoformat())
    return {"items": items}


@router.get("/v1/daily-logs/{day}")
async def get_daily_log(day: date, owner_id: str = Depends(require_owner_id)):
    return {"item": await repositories.get_daily_log(owner_id, day.isoformat())}


@router.put("/v1/daily-logs/{day}")
async def upsert_daily_log(day: date, patch: DailyLogPatch, owner_id: str = Depends(require_owner_id)):
    try:
        return await repositories.upsert_daily_log(owner_id, day.isoformat(), patch.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
