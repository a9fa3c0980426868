WEEKDAY_CODES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
CODE_TO_WEEKDAY = {code: idx for idx, code in enumerate(WEEKDAY_CODES)}

COGNITIVE_LOADS = ["low", "medium", "high"]
SCHEDULE_TYPES = ["flexible", "fixed"]
PREFERRED_BLOCKS = ["morning", "afternoon", "evening", "anytime"]

DEFAULT_ESTIMATED_DURATION = 15
DEFAULT_COGNITIVE_LOAD = "medium"
DEFAULT_HABIT_ICON = "📌"

ANALYSIS_RANGES = [30, 90, 180, 365]
DEFAULT_ANALYSIS_RANGE = 30
HISTORY_DAYS = 365

MOOD_RANGE = (1, 5)
ENERGY_RANGE = (1, 10)
HIGH_ENERGY_THRESHOLD = 7
LOW_ENERGY_THRESHOLD = 4

MIN_LOGS_FOR_INSIGHTS = 3
MIN_COMPLETIONS_FOR_INSIGHTS = 10

PROVISIONAL_ID_PREFIX = "temp-"

# (start_hour, end_hour, period, biotype, icon); anything outside is night.
DAY_PERIODS = [
    (5, 12, "Morning", "Lark", "🌅"),
    (12, 18, "Afternoon", "Hummingbird", "☀️"),
]
NIGHT_PERIOD = ("Night", "Owl", "🦉")

HABIT_EVENT_SOURCE = "app-habit-tracker"
HABIT_EVENT_COLOR_ID = "6"
BLOCK_DEFAULT_HOURS = {
    "morning": 8,
    "afternoon": 14,
    "evening": 20,
    "anytime": 9,
}
DEFAULT_EVENT_DURATION = 30

HABIT_TOGGLED_SIGNAL = "habit_completion_changed"
EVENT_TOGGLED_SIGNAL = "generic_event_status_changed"
SEVERITIES = {"success", "error", "info"}
