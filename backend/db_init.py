from __future__ import annotations

from sqlalchemy import text as sql_text

from backend.db import get_engine


CATEGORIES_TABLE = "habit_categories"
HABITS_TABLE = "habits"
DAILY_LOGS_TABLE = "daily_logs"
COMPLETIONS_TABLE = "habit_completions"
EVENT_COMPLETIONS_TABLE = "generic_event_completions"


async def init_db():
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {CATEGORIES_TABLE} (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    color TEXT,
                    emoji TEXT
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {HABITS_TABLE} (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    category_id INTEGER,
                    frequency_json TEXT,
                    schedule_type TEXT DEFAULT 'flexible',
                    preferred_block TEXT DEFAULT 'anytime',
                    fixed_time TEXT,
                    estimated_duration INTEGER DEFAULT 15,
                    cognitive_load TEXT DEFAULT 'medium',
                    icon TEXT,
                    active INTEGER DEFAULT 1,
                    current_streak INTEGER DEFAULT 0,
                    longest_streak INTEGER DEFAULT 0,
                    last_completed_date TEXT,
                    end_date TEXT,
                    google_event_id TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {DAILY_LOGS_TABLE} (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    mood_score INTEGER,
                    energy_score INTEGER,
                    notes TEXT,
                    tags_json TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT,
                    UNIQUE (owner_id, date)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {COMPLETIONS_TABLE} (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    habit_id TEXT NOT NULL,
                    daily_log_id TEXT NOT NULL,
                    target_date TEXT NOT NULL,
                    completed_at TEXT NOT NULL,
                    value REAL,
                    UNIQUE (habit_id, target_date)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {EVENT_COMPLETIONS_TABLE} (
                    owner_id TEXT NOT NULL,
                    event_id TEXT NOT NULL,
                    target_date TEXT NOT NULL,
                    completed_at TEXT NOT NULL,
                    PRIMARY KEY (owner_id, event_id, target_date)
                )
                """
            )
        )

    async def ensure_index(index_sql: str) -> None:
        try:
            async with engine.begin() as conn:
                await conn.execute(sql_text(index_sql))
        except Exception:
            return

    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{HABITS_TABLE}_owner_active "
        f"ON {HABITS_TABLE} (owner_id, active)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{COMPLETIONS_TABLE}_owner_date "
        f"ON {COMPLETIONS_TABLE} (owner_id, target_date)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{COMPLETIONS_TABLE}_log "
        f"ON {COMPLETIONS_TABLE} (daily_log_id)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{EVENT_COMPLETIONS_TABLE}_owner_date "
        f"ON {EVENT_COMPLETIONS_TABLE} (owner_id, target_date)"
    )
