from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

from sqlalchemy import text as sql_text, bindparam

from backend.db import get_sessionmaker
from backend.db_init import (
    CATEGORIES_TABLE,
    COMPLETIONS_TABLE,
    DAILY_LOGS_TABLE,
    EVENT_COMPLETIONS_TABLE,
    HABITS_TABLE,
)
from backend.settings import get_settings
from backend.streaks import compute_streaks

logger = logging.getLogger(__name__)

WEEKDAY_CODES = {"mon", "tue", "wed", "thu", "fri", "sat", "sun"}
COGNITIVE_LOADS = {"low", "medium", "high"}

HABIT_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "category_id",
    "frequency_json",
    "schedule_type",
    "preferred_block",
    "fixed_time",
    "estimated_duration",
    "cognitive_load",
    "icon",
    "active",
    "current_streak",
    "longest_streak",
    "last_completed_date",
    "end_date",
    "google_event_id",
    "created_at",
    "updated_at",
]

HABIT_PATCH_FIELDS = {
    "name",
    "category_id",
    "frequency",
    "schedule_type",
    "preferred_block",
    "fixed_time",
    "estimated_duration",
    "cognitive_load",
    "icon",
    "active",
    "end_date",
    "google_event_id",
}

LOG_COLUMNS = ["id", "owner_id", "date", "mood_score", "energy_score", "notes", "tags_json", "created_at", "updated_at"]


def _new_id() -> str:
    return uuid4().hex


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _iso(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _normalize_frequency(value) -> list[str]:
    if not value:
        return []
    codes = {str(item).strip().lower()[:3] for item in value}
    unknown = codes - WEEKDAY_CODES
    if unknown:
        raise ValueError(f"Unknown weekday codes: {sorted(unknown)}")
    return [code for code in ["mon", "tue", "wed", "thu", "fri", "sat", "sun"] if code in codes]


def _check_score(name: str, value, low: int, high: int):
    if value is None:
        return None
    score = int(value)
    if not low <= score <= high:
        raise ValueError(f"{name} must be between {low} and {high}")
    return score


def _normalize_habit_row(row) -> dict:
    if not row:
        return {}
    payload = dict(row)
    payload["frequency"] = json.loads(payload.pop("frequency_json", None) or "[]")
    payload["active"] = bool(payload.get("active"))
    for key in ("created_at", "updated_at"):
        value = payload.get(key)
        if value is not None and hasattr(value, "isoformat"):
            payload[key] = value.isoformat()
    return payload


def _normalize_log_row(row) -> dict:
    if not row:
        return {}
    payload = dict(row)
    payload["tags"] = json.loads(payload.pop("tags_json", None) or "[]")
    return payload


def _habit_patch_params(patch: dict) -> dict:
    params = {}
    for key, value in patch.items():
        if key not in HABIT_PATCH_FIELDS:
            continue
        if key == "frequency":
            params["frequency_json"] = json.dumps(_normalize_frequency(value))
        elif key == "active":
            params[key] = int(bool(value))
        elif key == "cognitive_load":
            if value not in COGNITIVE_LOADS:
                raise ValueError(f"Unknown cognitive load: {value}")
            params[key] = value
        elif key == "name":
            clean = str(value or "").strip()
            if not clean:
                raise ValueError("Habit name is required")
            params[key] = clean
        elif key == "end_date":
            params[key] = _iso(value)
        else:
            params[key] = value
    return params


# -- categories ------------------------------------------------------------


async def list_categories() -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(f"SELECT id, name, color, emoji FROM {CATEGORIES_TABLE} ORDER BY id")
        )).mappings().all()
    return [dict(row) for row in rows]


# -- habits ----------------------------------------------------------------


async def list_habits(owner_id: str, active_only: bool = True) -> list[dict]:
    query = f"SELECT {', '.join(HABIT_COLUMNS)} FROM {HABITS_TABLE} WHERE owner_id = :owner_id"
    if active_only:
        query += " AND active = 1"
    query += " ORDER BY created_at DESC"
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(sql_text(query), {"owner_id": owner_id})).mappings().all()
    return [_normalize_habit_row(row) for row in rows]


async def get_habit(owner_id: str, habit_id: str) -> dict:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(
                f"SELECT {', '.join(HABIT_COLUMNS)} FROM {HABITS_TABLE} "
                "WHERE id = :id AND owner_id = :owner_id"
            ),
            {"id": habit_id, "owner_id": owner_id},
        )).mappings().fetchone()
    return _normalize_habit_row(row)


async def create_habit(owner_id: str, payload: dict) -> dict:
    name = str(payload.get("name") or "").strip()
    if not name:
        raise ValueError("Habit name is required")
    if payload.get("category_id") is None:
        raise ValueError("Habit category is required")
    now = _now_iso()
    record = {
        "id": _new_id(),
        "owner_id": owner_id,
        "name": name,
        "category_id": payload.get("category_id"),
        "frequency_json": json.dumps(_normalize_frequency(payload.get("frequency"))),
        "schedule_type": payload.get("schedule_type") or "flexible",
        "preferred_block": payload.get("preferred_block") or "anytime",
        "fixed_time": payload.get("fixed_time"),
        "estimated_duration": int(payload.get("estimated_duration") or 15),
        "cognitive_load": payload.get("cognitive_load") or "medium",
        "icon": payload.get("icon") or "📌",
        "active": int(bool(payload.get("active", True))),
        "current_streak": 0,
        "longest_streak": 0,
        "last_completed_date": None,
        "end_date": _iso(payload.get("end_date")),
        "google_event_id": payload.get("google_event_id"),
        "created_at": now,
        "updated_at": now,
    }
    if record["cognitive_load"] not in COGNITIVE_LOADS:
        raise ValueError(f"Unknown cognitive load: {record['cognitive_load']}")
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {HABITS_TABLE} ({', '.join(HABIT_COLUMNS)})
                VALUES ({', '.join(f':{col}' for col in HABIT_COLUMNS)})
                """
            ),
            record,
        )
        await session.commit()
    return _normalize_habit_row(record)


async def update_habit(owner_id: str, habit_id: str, patch: dict) -> dict:
    params = _habit_patch_params(patch)
    if not params:
        return await get_habit(owner_id, habit_id)
    updates = [f"{key} = :{key}" for key in params]
    updates.append("updated_at = :updated_at")
    params.update({"id": habit_id, "owner_id": owner_id, "updated_at": _now_iso()})
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"UPDATE {HABITS_TABLE} SET {', '.join(updates)} WHERE id = :id AND owner_id = :owner_id"
            ),
            params,
        )
        await session.commit()
    return await get_habit(owner_id, habit_id)


async def recompute_habit_streaks(owner_id: str, habit_id: str) -> dict:
    habit = await get_habit(owner_id, habit_id)
    if not habit:
        return {}
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(f"SELECT target_date FROM {COMPLETIONS_TABLE} WHERE habit_id = :habit_id"),
            {"habit_id": habit_id},
        )).mappings().all()
    tz = ZoneInfo(get_settings().tracker_timezone)
    created = datetime.fromisoformat(str(habit["created_at"]).replace("Z", "+00:00"))
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    streaks = compute_streaks(
        habit.get("frequency"),
        created.astimezone(tz).date(),
        [date.fromisoformat(str(row["target_date"])) for row in rows],
        datetime.now(tz).date(),
        stored_longest=habit.get("longest_streak") or 0,
    )
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                UPDATE {HABITS_TABLE}
                SET current_streak = :current_streak,
                    longest_streak = :longest_streak,
                    last_completed_date = :last_completed_date
                WHERE id = :id AND owner_id = :owner_id
                """
            ),
            {**streaks, "id": habit_id, "owner_id": owner_id},
        )
        await session.commit()
    logger.debug("Streaks for habit %s: %s", habit_id, streaks)
    return streaks


# -- daily logs ------------------------------------------------------------


async def get_daily_log(owner_id: str, day_iso: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(
                f"SELECT {', '.join(LOG_COLUMNS)} FROM {DAILY_LOGS_TABLE} "
                "WHERE owner_id = :owner_id AND date = :date"
            ),
            {"owner_id": owner_id, "date": day_iso},
        )).mappings().fetchone()
    return _normalize_log_row(row) if row else None


async def list_daily_logs(owner_id: str, start_iso: str, end_iso: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT {', '.join(LOG_COLUMNS)}
                FROM {DAILY_LOGS_TABLE}
                WHERE owner_id = :owner_id AND date >= :start AND date <= :end
                ORDER BY date ASC
                """
            ),
            {"owner_id": owner_id, "start": start_iso, "end": end_iso},
        )).mappings().all()
    return [_normalize_log_row(row) for row in rows]


async def upsert_daily_log(owner_id: str, day_iso: str, patch: dict) -> dict:
    """Create the log for ``day_iso`` if missing, then apply ``patch``."""
    clean = {}
    if "mood_score" in patch:
        clean["mood_score"] = _check_score("mood_score", patch["mood_score"], 1, 5)
    if "energy_score" in patch:
        clean["energy_score"] = _check_score("energy_score", patch["energy_score"], 1, 10)
    if "notes" in patch:
        clean["notes"] = patch["notes"]
    if "tags" in patch:
        clean["tags_json"] = json.dumps(list(patch["tags"] or []), ensure_ascii=False)

    now = _now_iso()
    record = {
        "id": _new_id(),
        "owner_id": owner_id,
        "date": day_iso,
        "mood_score": None,
        "energy_score": None,
        "notes": None,
        "tags_json": "[]",
        "created_at": now,
        "updated_at": now,
        **clean,
    }
    if clean:
        on_conflict = "DO UPDATE SET " + ", ".join(
            [f"{col}=EXCLUDED.{col}" for col in clean] + ["updated_at=EXCLUDED.updated_at"]
        )
    else:
        on_conflict = "DO NOTHING"
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {DAILY_LOGS_TABLE} ({', '.join(LOG_COLUMNS)})
                VALUES ({', '.join(f':{col}' for col in LOG_COLUMNS)})
                ON CONFLICT (owner_id, date) {on_conflict}
                """
            ),
            record,
        )
        await session.commit()
    return await get_daily_log(owner_id, day_iso)


# -- habit completions -----------------------------------------------------


def _completion_row(row, with_habit: bool) -> dict:
    payload = {
        "id": row["id"],
        "habit_id": row["habit_id"],
        "daily_log_id": row["daily_log_id"],
        "target_date": row["target_date"],
        "completed_at": row["completed_at"],
        "value": row["value"],
    }
    if with_habit:
        payload["habit"] = {
            "id": row["habit_id"],
            "name": row["habit_name"],
            "category_id": row["habit_category_id"],
            "cognitive_load": row["habit_cognitive_load"],
            "estimated_duration": row["habit_estimated_duration"],
        } if row["habit_name"] is not None else None
    return payload


async def list_completions(
    owner_id: str,
    daily_log_id: str | None = None,
    habit_ids: list[str] | None = None,
    start_iso: str | None = None,
    end_iso: str | None = None,
    with_habit: bool = False,
) -> list[dict]:
    columns = "c.id, c.habit_id, c.daily_log_id, c.target_date, c.completed_at, c.value"
    joins = ""
    if with_habit:
        columns += (
            ", h.name AS habit_name, h.category_id AS habit_category_id,"
            " h.cognitive_load AS habit_cognitive_load, h.estimated_duration AS habit_estimated_duration"
        )
        joins = f"LEFT JOIN {HABITS_TABLE} h ON h.id = c.habit_id"
    filters = ["c.owner_id = :owner_id"]
    params: dict = {"owner_id": owner_id}
    if daily_log_id:
        filters.append("c.daily_log_id = :daily_log_id")
        params["daily_log_id"] = daily_log_id
    if start_iso:
        filters.append("c.target_date >= :start")
        params["start"] = start_iso
    if end_iso:
        filters.append("c.target_date <= :end")
        params["end"] = end_iso
    if habit_ids is not None:
        if not habit_ids:
            return []
        filters.append("c.habit_id IN :habit_ids")
        params["habit_ids"] = list(habit_ids)
    stmt = sql_text(
        f"""
        SELECT {columns}
        FROM {COMPLETIONS_TABLE} c
        {joins}
        WHERE {' AND '.join(filters)}
        ORDER BY c.target_date ASC, c.completed_at ASC
        """
    )
    if habit_ids is not None:
        stmt = stmt.bindparams(bindparam("habit_ids", expanding=True))
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(stmt, params)).mappings().all()
    return [_completion_row(row, with_habit) for row in rows]


async def insert_completion(owner_id: str, payload: dict) -> dict:
    """Record a completion; a second insert for the same habit and date updates the first."""
    habit_id = payload.get("habit_id")
    habit = await get_habit(owner_id, habit_id) if habit_id else {}
    if not habit:
        raise ValueError("Unknown habit")
    target_date = _iso(payload.get("target_date"))
    if not target_date:
        raise ValueError("target_date is required")
    log = await get_daily_log(owner_id, target_date)
    if not log:
        log = await upsert_daily_log(owner_id, target_date, {})
    daily_log_id = payload.get("daily_log_id") or log["id"]
    if daily_log_id != log["id"]:
        raise ValueError("daily_log_id does not match target_date")
    record = {
        "id": _new_id(),
        "owner_id": owner_id,
        "habit_id": habit_id,
        "daily_log_id": daily_log_id,
        "target_date": target_date,
        "completed_at": payload.get("completed_at") or _now_iso(),
        "value": payload.get("value"),
    }
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {COMPLETIONS_TABLE}
                (id, owner_id, habit_id, daily_log_id, target_date, completed_at, value)
                VALUES (:id, :owner_id, :habit_id, :daily_log_id, :target_date, :completed_at, :value)
                ON CONFLICT (habit_id, target_date) DO UPDATE SET
                    daily_log_id=EXCLUDED.daily_log_id,
                    completed_at=EXCLUDED.completed_at,
                    value=EXCLUDED.value
                """
            ),
            record,
        )
        await session.commit()
        row = (await session.execute(
            sql_text(
                f"""
                SELECT id, habit_id, daily_log_id, target_date, completed_at, value
                FROM {COMPLETIONS_TABLE}
                WHERE habit_id = :habit_id AND target_date = :target_date
                """
            ),
            {"habit_id": habit_id, "target_date": target_date},
        )).mappings().fetchone()
    await recompute_habit_streaks(owner_id, habit_id)
    return dict(row)


async def delete_completion(owner_id: str, daily_log_id: str, habit_id: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                DELETE FROM {COMPLETIONS_TABLE}
                WHERE owner_id = :owner_id AND daily_log_id = :daily_log_id AND habit_id = :habit_id
                """
            ),
            {"owner_id": owner_id, "daily_log_id": daily_log_id, "habit_id": habit_id},
        )
        await session.commit()
    await recompute_habit_streaks(owner_id, habit_id)


# -- generic event completions ---------------------------------------------


async def list_event_completions(owner_id: str, start_iso: str, end_iso: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT event_id, target_date, completed_at
                FROM {EVENT_COMPLETIONS_TABLE}
                WHERE owner_id = :owner_id AND target_date >= :start AND target_date <= :end
                ORDER BY target_date ASC
                """
            ),
            {"owner_id": owner_id, "start": start_iso, "end": end_iso},
        )).mappings().all()
    return [dict(row) for row in rows]


async def insert_event_completion(owner_id: str, event_id: str, target_date_iso: str) -> dict:
    if not event_id:
        raise ValueError("event_id is required")
    record = {
        "owner_id": owner_id,
        "event_id": event_id,
        "target_date": target_date_iso,
        "completed_at": _now_iso(),
    }
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {EVENT_COMPLETIONS_TABLE} (owner_id, event_id, target_date, completed_at)
                VALUES (:owner_id, :event_id, :target_date, :completed_at)
                ON CONFLICT (owner_id, event_id, target_date) DO NOTHING
                """
            ),
            record,
        )
        await session.commit()
    return {"event_id": event_id, "target_date": target_date_iso}


async def delete_event_completion(owner_id: str, event_id: str, target_date_iso: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                DELETE FROM {EVENT_COMPLETIONS_TABLE}
                WHERE owner_id = :owner_id AND event_id = :event_id AND target_date = :target_date
                """
            ),
            {"owner_id": owner_id, "event_id": event_id, "target_date": target_date_iso},
        )
        await session.commit()
