from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.auth import require_owner_id
from backend import repositories
from backend.schemas import HabitCreate, HabitPatch

router = APIRouter()


@router.get("/v1/habits")
async def list_habits(active_only: bool = Query(True), owner_id: str = Depends(require_owner_id)):
    return {"items": await repositories.list_habits(owner_id, active_only=active_only)}


@router.get("/v1/habits/{habit_id}")
async def get_habit(habit_id: str, owner_id: str = Depends(require_owner_id)):
    habit = await repositories.get_habit(owner_id, habit_id)
    if not habit:
        raise HTTPException(status_code=404, detail="Habit not found")
    return habit


@router.post("/v1/habits")
async def create_habit(payload: HabitCreate, owner_id: str = Depends(require_owner_id)):
    try:
        return await repositories.create_habit(owner_id, payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.patch("/v1/habits/{habit_id}")
async def update_habit(habit_id: str, payload: HabitPatch, owner_id: str = Depends(require_owner_id)):
    if not await repositories.get_habit(owner_id, habit_id):
        raise HTTPException(status_code=404, detail="Habit not found")
    try:
        return await repositories.update_habit(owner_id, habit_id, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
