from __future__ import annotations

import re
from typing import Iterable

from tracker.models import Habit

# \w stays ASCII-only; Spanish accented letters are kept explicitly.
_STRIP_PATTERN = re.compile(r"[^\w\sáéíóúñü]", re.ASCII)


def normalize_text(text: str | None) -> str:
    return _STRIP_PATTERN.sub("", str(text or "").lower()).strip()


def match_event_to_habit(title: str | None, habits: Iterable[Habit]) -> Habit | None:
    """First habit whose normalized name contains, or is contained in, the title."""
    normalized_title = normalize_text(title)
    if not normalized_title:
        return None
    for habit in habits:
        normalized_name = normalize_text(habit.name)
        if not normalized_name:
            continue
        if normalized_name in normalized_title or normalized_title in normalized_name:
            return habit
    return None
