from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class HabitCreate(BaseModel):
    name: str
    category_id: int
    frequency: List[str] = Field(default_factory=list)
    schedule_type: str = "flexible"
    preferred_block: str = "anytime"
    fixed_time: Optional[str] = None
    estimated_duration: int = 15
    cognitive_load: str = "medium"
    icon: Optional[str] = None
    active: bool = True
    end_date: Optional[date] = None
    google_event_id: Optional[str] = None


class HabitPatch(BaseModel):
    name: Optional[str] = None
    category_id: Optional[int] = None
    frequency: Optional[List[str]] = None
    schedule_type: Optional[str] = None
    preferred_block: Optional[str] = None
    fixed_time: Optional[str] = None
    estimated_duration: Optional[int] = None
    cognitive_load: Optional[str] = None
    icon: Optional[str] = None
    active: Optional[bool] = None
    end_date: Optional[date] = None
    google_event_id: Optional[str] = None


class DailyLogPatch(BaseModel):
    mood_score: Optional[int] = Field(default=None, ge=1, le=5)
    energy_score: Optional[int] = Field(default=None, ge=1, le=10)
    notes: Optional[str] = None
    tags: Optional[List[str]] = None


class CompletionCreate(BaseModel):
    habit_id: str
    target_date: date
    daily_log_id: Optional[str] = None
    completed_at: Optional[str] = None
    value: Optional[float] = None


class EventCompletionCreate(BaseModel):
    event_id: str
    target_date: date
