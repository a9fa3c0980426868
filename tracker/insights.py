"""Statistics derived from the completion history and daily mood/energy logs.

Everything here is a pure function of its arguments; memoization lives in
``tracker.analytics_cache``. Percentages round half up.
"""

from __future__ import annotations

import enum
import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Sequence
from zoneinfo import ZoneInfo

from tracker.constants import (
    DAY_PERIODS,
    DEFAULT_ESTIMATED_DURATION,
    HIGH_ENERGY_THRESHOLD,
    LOW_ENERGY_THRESHOLD,
    MIN_COMPLETIONS_FOR_INSIGHTS,
    MIN_LOGS_FOR_INSIGHTS,
    NIGHT_PERIOD,
    WEEKDAY_NAMES,
)
from tracker.models import DailyLog, Habit, HabitCategory, HabitCompletion, HabitRef
from tracker.recurrence import is_scheduled, iter_days, local_date, potential_occurrences


class Marker(enum.Enum):
    INSUFFICIENT_DATA = "insufficient_data"


INSUFFICIENT_DATA = Marker.INSUFFICIENT_DATA


@dataclass(frozen=True)
class CategoryMastery:
    category_id: int
    name: str
    mastery: int
    full_mark: int = 100


@dataclass(frozen=True)
class TimeInvestment:
    hours: int
    minutes: int
    total_minutes: int


@dataclass(frozen=True)
class Momentum:
    value: int
    is_positive: bool


@dataclass(frozen=True)
class PerformanceMetrics:
    time_investment: TimeInvestment
    momentum: Momentum
    focus_index: int | None


@dataclass(frozen=True)
class Sufficiency:
    ok: bool
    reason: str = ""


@dataclass(frozen=True)
class GoldenHour:
    hour: int
    period: str
    biotype: str
    biotype_icon: str

    @property
    def label(self) -> str:
        return f"{self.hour}:00"


@dataclass(frozen=True)
class EnergyVampire:
    name: str
    correlation: int


@dataclass(frozen=True)
class KryptoniteDay:
    weekday: int
    name: str
    rate: int
    gap: int


@dataclass(frozen=True)
class QualitativeInsights:
    sufficiency: Sufficiency
    golden_hour: GoldenHour | Marker | None
    energy_vampire: EnergyVampire | Marker | None
    kryptonite_day: KryptoniteDay | Marker | None


@dataclass(frozen=True)
class HistoryDay:
    date: date
    status: str
    is_completed: bool = False


@dataclass(frozen=True)
class HabitYearHistory:
    habit_id: str
    name: str
    icon: str
    days: tuple[HistoryDay, ...]
    scheduled_total: int
    completed_total: int
    adherence: int


@dataclass(frozen=True)
class PixelDay:
    date: date
    mood_score: int | None
    completion_rate: int


@dataclass(frozen=True)
class CorrelationPoint:
    date: date
    performance: float
    energy: int


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: float, whole: float) -> int:
    if not whole:
        return 0
    return round_half_up(100 * part / whole)


def current_window(today: date, range_days: int) -> tuple[date, date]:
    return today - timedelta(days=range_days - 1), today


def previous_window(today: date, range_days: int) -> tuple[date, date]:
    start, _ = current_window(today, range_days)
    return start - timedelta(days=range_days), start - timedelta(days=1)


def resolve_ref(completion: HabitCompletion, habits_by_id: dict[str, Habit]) -> HabitRef | None:
    if completion.habit is not None:
        return completion.habit
    habit = habits_by_id.get(completion.habit_id)
    return habit.ref() if habit else None


def _in_window(completions: Iterable[HabitCompletion], window: tuple[date, date]) -> list[HabitCompletion]:
    start, end = window
    return [c for c in completions if start <= c.target_date <= end]


def _argmax_last(counts: dict) -> object | None:
    """Key with the highest count; on ties the key seen last wins."""
    best = None
    for key, count in counts.items():
        if best is None or count >= counts[best]:
            best = key
    return best


def category_mastery(
    habits: Sequence[Habit],
    categories: Sequence[HabitCategory],
    completions: Sequence[HabitCompletion],
    today: date,
    range_days: int,
    tz_name: str | None = None,
) -> list[CategoryMastery]:
    window = current_window(today, range_days)
    potentials = potential_occurrences(habits, *window, category_ids=[c.id for c in categories], tz_name=tz_name)
    habits_by_id = {h.id: h for h in habits}
    completed: Counter = Counter()
    for completion in _in_window(completions, window):
        ref = resolve_ref(completion, habits_by_id)
        if ref is not None and ref.category_id is not None:
            completed[ref.category_id] += 1
    result = []
    for category in categories:
        potential = potentials.get(category.id, 0)
        mastery = min(100, percentage(completed[category.id], potential)) if potential > 0 else 0
        result.append(CategoryMastery(category_id=category.id, name=category.name, mastery=mastery))
    return result


def time_investment(completions: Iterable[HabitCompletion], habits_by_id: dict[str, Habit]) -> TimeInvestment:
    total = 0
    for completion in completions:
        ref = resolve_ref(completion, habits_by_id)
        total += (ref.estimated_duration if ref and ref.estimated_duration else DEFAULT_ESTIMATED_DURATION)
    return TimeInvestment(hours=total // 60, minutes=total % 60, total_minutes=total)


def completion_rate(
    completions: Sequence[HabitCompletion],
    habits: Sequence[Habit],
    categories: Sequence[HabitCategory],
    window: tuple[date, date],
    tz_name: str | None = None,
) -> float:
    potentials = potential_occurrences(habits, *window, category_ids=[c.id for c in categories], tz_name=tz_name)
    total = sum(potentials.values())
    return 100 * len(completions) / total if total > 0 else 0.0


def momentum(
    habits: Sequence[Habit],
    categories: Sequence[HabitCategory],
    completions: Sequence[HabitCompletion],
    today: date,
    range_days: int,
    tz_name: str | None = None,
) -> Momentum:
    current = current_window(today, range_days)
    previous = previous_window(today, range_days)
    current_rate = completion_rate(_in_window(completions, current), habits, categories, current, tz_name)
    previous_rate = completion_rate(_in_window(completions, previous), habits, categories, previous, tz_name)
    value = round_half_up(current_rate - previous_rate)
    return Momentum(value=value, is_positive=value >= 0)


def focus_index(
    completions: Iterable[HabitCompletion],
    logs: Iterable[DailyLog],
    habits_by_id: dict[str, Habit],
) -> int | None:
    """Share of high-load completions done on high-energy days, or None without any."""
    high_energy_days = {
        log.date for log in logs if log.energy_score is not None and log.energy_score >= HIGH_ENERGY_THRESHOLD
    }
    high_load = []
    for completion in completions:
        ref = resolve_ref(completion, habits_by_id)
        if ref is not None and ref.cognitive_load == "high":
            high_load.append(completion)
    if not high_load:
        return None
    efficient = sum(1 for c in high_load if c.target_date in high_energy_days)
    return percentage(efficient, len(high_load))


def performance_metrics(
    habits: Sequence[Habit],
    categories: Sequence[HabitCategory],
    completions: Sequence[HabitCompletion],
    logs: Sequence[DailyLog],
    today: date,
    range_days: int,
    tz_name: str | None = None,
) -> PerformanceMetrics:
    habits_by_id = {h.id: h for h in habits}
    in_window = _in_window(completions, current_window(today, range_days))
    return PerformanceMetrics(
        time_investment=time_investment(in_window, habits_by_id),
        momentum=momentum(habits, categories, completions, today, range_days, tz_name),
        focus_index=focus_index(in_window, logs, habits_by_id),
    )


def analysis_sufficiency(logs: Sequence[DailyLog], completions: Sequence[HabitCompletion]) -> Sufficiency:
    if len(logs) < MIN_LOGS_FOR_INSIGHTS:
        return Sufficiency(False, f"Not enough daily logs (min. {MIN_LOGS_FOR_INSIGHTS} days)")
    if len(completions) < MIN_COMPLETIONS_FOR_INSIGHTS:
        return Sufficiency(False, f"Not enough completions (min. {MIN_COMPLETIONS_FOR_INSIGHTS})")
    return Sufficiency(True)


def classify_hour(hour: int) -> GoldenHour:
    for start, end, period, biotype, icon in DAY_PERIODS:
        if start <= hour < end:
            return GoldenHour(hour=hour, period=period, biotype=biotype, biotype_icon=icon)
    period, biotype, icon = NIGHT_PERIOD
    return GoldenHour(hour=hour, period=period, biotype=biotype, biotype_icon=icon)


def golden_hour(
    completions: Iterable[HabitCompletion],
    habits_by_id: dict[str, Habit],
    tz_name: str | None = None,
) -> GoldenHour | None:
    tz = ZoneInfo(tz_name) if tz_name else None
    by_hour: Counter = Counter()
    for completion in completions:
        ref = resolve_ref(completion, habits_by_id)
        if ref is None or ref.cognitive_load != "high" or completion.completed_at is None:
            continue
        moment = completion.completed_at.astimezone(tz) if tz else completion.completed_at
        by_hour[moment.hour] += 1
    best = _argmax_last(dict(sorted(by_hour.items())))
    return classify_hour(best) if best is not None else None


def energy_vampire(
    completions: Iterable[HabitCompletion],
    logs: Iterable[DailyLog],
    habits_by_id: dict[str, Habit],
) -> EnergyVampire | None:
    low_days = {
        log.date for log in logs if log.energy_score is not None and log.energy_score <= LOW_ENERGY_THRESHOLD
    }
    if not low_days:
        return None
    counts: dict[str, int] = {}
    for completion in completions:
        if completion.target_date not in low_days:
            continue
        ref = resolve_ref(completion, habits_by_id)
        name = ref.name if ref else "Habit"
        counts[name] = counts.get(name, 0) + 1
    best = _argmax_last(counts)
    if best is None:
        return None
    return EnergyVampire(name=best, correlation=percentage(counts[best], len(low_days)))


SUNDAY_FIRST = (6, 0, 1, 2, 3, 4, 5)


def kryptonite_day(
    habits: Sequence[Habit],
    completions: Iterable[HabitCompletion],
    logs: Iterable[DailyLog],
) -> KryptoniteDay | None:
    """Weekday with the lowest completed/potential rate.

    Potential per weekday is the number of habits scheduled that weekday times
    how many logged days fell on it (at least one). Weekdays are scanned from
    Sunday and the first lowest rate wins, so a week of equal rates reports
    Sunday.
    """
    log_days = Counter(log.date.weekday() for log in logs)
    actual = Counter(c.target_date.weekday() for c in completions)
    active = [h for h in habits if h.active]
    worst = None
    lowest = 101
    for weekday in SUNDAY_FIRST:
        name = WEEKDAY_NAMES[weekday]
        reference_day = date(2024, 1, 1) + timedelta(days=weekday)
        scheduled = sum(1 for h in active if is_scheduled(h, reference_day))
        potential = scheduled * (log_days[weekday] or 1)
        rate = percentage(actual[weekday], potential) if potential > 0 else 100
        if rate < lowest:
            lowest = rate
            worst = KryptoniteDay(weekday=weekday, name=name, rate=rate, gap=100 - rate)
    return worst


def qualitative_insights(
    habits: Sequence[Habit],
    completions: Sequence[HabitCompletion],
    logs: Sequence[DailyLog],
    tz_name: str | None = None,
) -> QualitativeInsights:
    sufficiency = analysis_sufficiency(logs, completions)
    if not sufficiency.ok:
        return QualitativeInsights(sufficiency, INSUFFICIENT_DATA, INSUFFICIENT_DATA, INSUFFICIENT_DATA)
    habits_by_id = {h.id: h for h in habits}
    return QualitativeInsights(
        sufficiency=sufficiency,
        golden_hour=golden_hour(completions, habits_by_id, tz_name),
        energy_vampire=energy_vampire(completions, logs, habits_by_id),
        kryptonite_day=kryptonite_day(habits, completions, logs),
    )


def habit_year_history(
    habit: Habit,
    completions: Iterable[HabitCompletion],
    today: date,
    tz_name: str | None = None,
    days: int = 365,
) -> HabitYearHistory:
    completed_days = {c.target_date for c in completions if c.habit_id == habit.id}
    created = local_date(habit.created_at, tz_name)
    history = []
    scheduled_total = 0
    completed_total = 0
    for day in iter_days(today - timedelta(days=days - 1), today):
        if day < created:
            history.append(HistoryDay(day, "blank"))
            continue
        done = day in completed_days
        if is_scheduled(habit, day):
            scheduled_total += 1
            if done:
                completed_total += 1
            history.append(HistoryDay(day, "completed" if done else "missed", done))
        else:
            history.append(HistoryDay(day, "neutral", done))
    return HabitYearHistory(
        habit_id=habit.id,
        name=habit.name,
        icon=habit.icon,
        days=tuple(history),
        scheduled_total=scheduled_total,
        completed_total=completed_total,
        adherence=percentage(completed_total, scheduled_total),
    )


def year_in_pixels(
    habits: Sequence[Habit],
    completions: Iterable[HabitCompletion],
    logs: Iterable[DailyLog],
) -> list[PixelDay]:
    active_count = len(habits) or 1
    per_day = Counter(c.target_date for c in completions)
    return [
        PixelDay(
            date=log.date,
            mood_score=log.mood_score,
            completion_rate=min(100, percentage(per_day[log.date], active_count)),
        )
        for log in logs
    ]


def correlation_data(
    habits: Sequence[Habit],
    completions: Iterable[HabitCompletion],
    logs: Iterable[DailyLog],
) -> list[CorrelationPoint]:
    per_day = Counter(c.target_date for c in completions)
    active = [h for h in habits if h.active]
    points = []
    for log in logs:
        if not log.energy_score:
            continue
        scheduled = sum(1 for h in active if is_scheduled(h, log.date))
        performance = 100 * per_day[log.date] / scheduled if scheduled > 0 else 0.0
        points.append(CorrelationPoint(date=log.date, performance=performance, energy=log.energy_score * 20))
    return points
