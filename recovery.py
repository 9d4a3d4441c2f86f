"""
Recovery scoring

Pure functions behind the recovery dashboard:
- daily wellness percentage from mood/energy/sleep ratings and activity flags
- the 7-day weekly window keyed by calendar date, and its average
- the streak of consecutive logged days ending today
- progress labels, goal progress and chart-friendly frames

Nothing here performs I/O. Callers pass in whatever snapshot of entries they have
and recompute whenever it changes.

Run the doctests with:
    RUN_DOCTESTS=1 python recovery.py
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd
from dateutil import parser as dateparser


# -------------------------------
# Constants
# -------------------------------
DEFAULT_SCORE = 5
ACTIVITY_POINTS = 5
SCORE_FIELDS = ("mood_score", "energy_level", "sleep_quality")
ACTIVITY_FIELDS = ("medication_adherence", "therapy_session", "exercise_completed", "social_connection")
RECOVERY_STATUSES = ("better", "same", "worse")
GOAL_TYPES = ("weekly", "monthly", "custom")
MILESTONE_TYPES = ("streak", "goal_completion", "improvement", "custom")
DAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
TODAY_LABEL = "Today"

# Checked high to low, first match wins
PROGRESS_LEVELS: List[Tuple[int, str]] = [
    (80, "Excellent Progress"),
    (60, "Good Progress"),
    (40, "Fair Progress"),
]
NEEDS_ATTENTION = "Needs Attention"

BAR_COLORS: List[Tuple[int, str]] = [
    (80, "#22c55e"),
    (60, "#eab308"),
    (40, "#f97316"),
]
LOW_BAR_COLOR = "#ef4444"

STATUS_RESPONSES: Dict[str, Dict[str, str]] = {
    "better": {
        "title": "That's wonderful to hear! 🌟",
        "message": "Your progress is inspiring. Keep up the great work! Remember to celebrate these small "
        "victories - they're building blocks to your overall wellness.",
        "tip": "Consider keeping a gratitude journal to maintain this positive momentum.",
    },
    "same": {
        "title": "Stability is progress too 💙",
        "message": "Some days we maintain, and that's perfectly okay. Consistency in your recovery journey is "
        "valuable, even when it doesn't feel like forward movement.",
        "tip": "Try a 5-minute breathing exercise or a short walk to refresh your perspective.",
    },
    "worse": {
        "title": "It's okay to have difficult days 🤗",
        "message": "Recovery isn't linear, and setbacks are part of the healing process. You're brave for "
        "reaching out and acknowledging how you feel.",
        "tip": "Consider reaching out to someone you trust or practicing a grounding technique. "
        "You don't have to face this alone.",
    },
}


# -------------------------------
# Data model
# -------------------------------

def ensure_date(obj) -> date:
    """
    Normalize anything date-like to a plain calendar date (time of day discarded).

    >>> ensure_date("2025-03-04")
    datetime.date(2025, 3, 4)
    >>> ensure_date(datetime(2025, 3, 4, 23, 59))
    datetime.date(2025, 3, 4)
    >>> ensure_date("2025-03-04T08:15:00+00:00")
    datetime.date(2025, 3, 4)
    """
    if isinstance(obj, pd.Timestamp):
        return obj.date()
    if isinstance(obj, datetime):
        return obj.date()
    if isinstance(obj, date):
        return obj
    return dateparser.parse(str(obj)).date()


def _optional_int(obj) -> Optional[int]:
    if obj is None or obj == "":
        return None
    return int(obj)


@dataclass
class RecoveryEntry:
    entry_date: date
    recovery_status: str = "same"
    mood_score: Optional[int] = None
    energy_level: Optional[int] = None
    sleep_quality: Optional[int] = None
    medication_adherence: bool = False
    therapy_session: bool = False
    exercise_completed: bool = False
    social_connection: bool = False
    notes: Optional[str] = None
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self):
        self.entry_date = ensure_date(self.entry_date)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RecoveryEntry":
        """Build an entry from a backend row (snake_case keys, ISO dates)."""
        return cls(
            entry_date=row["entry_date"],
            recovery_status=row.get("recovery_status") or "same",
            mood_score=_optional_int(row.get("mood_score")),
            energy_level=_optional_int(row.get("energy_level")),
            sleep_quality=_optional_int(row.get("sleep_quality")),
            medication_adherence=bool(row.get("medication_adherence")),
            therapy_session=bool(row.get("therapy_session")),
            exercise_completed=bool(row.get("exercise_completed")),
            social_connection=bool(row.get("social_connection")),
            notes=row.get("notes"),
            id=row.get("id"),
            user_id=row.get("user_id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_row(self) -> Dict[str, Any]:
        """Row for the backend; server-managed fields are left out when unset."""
        row = asdict(self)
        row["entry_date"] = self.entry_date.isoformat()
        for key in ("id", "user_id", "created_at", "updated_at"):
            if row[key] is None:
                del row[key]
        return row


@dataclass
class RecoveryGoal:
    title: str
    start_date: date
    end_date: date
    goal_type: str = "weekly"
    description: Optional[str] = None
    target_value: float = 1
    current_value: float = 0
    unit: Optional[str] = "times"
    is_completed: bool = False
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self):
        self.start_date = ensure_date(self.start_date)
        self.end_date = ensure_date(self.end_date)
        if self.goal_type not in GOAL_TYPES:
            raise ValueError(f"Unknown goal type: {self.goal_type!r}")
        if self.target_value is None or float(self.target_value) <= 0:
            raise ValueError("Goal target must be a positive number")
        if self.current_value is None or float(self.current_value) < 0:
            raise ValueError("Goal progress cannot be negative")
        if self.end_date < self.start_date:
            raise ValueError("Goal end date must not be before its start date")

    @classmethod
    def new(cls, title: str, start: Optional[date] = None, **kwargs) -> "RecoveryGoal":
        """A fresh goal with the check-in form defaults: one week long, starting today."""
        start = ensure_date(start or date.today())
        kwargs.setdefault("end_date", start + timedelta(days=7))
        return cls(title=title, start_date=start, **kwargs)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RecoveryGoal":
        return cls(
            title=row["title"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            goal_type=row.get("goal_type") or "weekly",
            description=row.get("description"),
            target_value=float(row["target_value"]),
            current_value=float(row.get("current_value") or 0),
            unit=row.get("unit"),
            is_completed=bool(row.get("is_completed")),
            id=row.get("id"),
            user_id=row.get("user_id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row["start_date"] = self.start_date.isoformat()
        row["end_date"] = self.end_date.isoformat()
        for key in ("id", "user_id", "created_at", "updated_at"):
            if row[key] is None:
                del row[key]
        return row


@dataclass
class RecoveryMilestone:
    milestone_type: str
    title: str
    achieved_date: date
    description: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None

    def __post_init__(self):
        self.achieved_date = ensure_date(self.achieved_date)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RecoveryMilestone":
        return cls(
            milestone_type=row.get("milestone_type") or "custom",
            title=row["title"],
            achieved_date=row["achieved_date"],
            description=row.get("description"),
            metadata=row.get("metadata") or {},
            id=row.get("id"),
            user_id=row.get("user_id"),
            created_at=row.get("created_at"),
        )


@dataclass
class WeeklyDataPoint:
    date: date
    day: str
    percentage: int
    entry: Optional[RecoveryEntry] = None


EntryLike = Union[RecoveryEntry, Mapping[str, Any]]


def _get(entry: EntryLike, name: str, default=None):
    if isinstance(entry, Mapping):
        return entry.get(name, default)
    return getattr(entry, name, default)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


# -------------------------------
# Scoring
# -------------------------------

def resolve_scores(entry: EntryLike) -> Tuple[int, int, int]:
    """
    Mood, energy and sleep ratings with missing values replaced by the midpoint (5).

    >>> resolve_scores({"mood_score": 8})
    (8, 5, 5)
    """
    resolved = []
    for name in SCORE_FIELDS:
        value = _get(entry, name)
        resolved.append(DEFAULT_SCORE if value is None else int(value))
    return resolved[0], resolved[1], resolved[2]


def status_index(status: Optional[str]) -> int:
    """
    Position of a status in RECOVERY_STATUSES; anything unknown maps to "same".

    >>> status_index("worse"), status_index("great"), status_index(None)
    (2, 1, 1)
    """
    if status in RECOVERY_STATUSES:
        return RECOVERY_STATUSES.index(status)
    return RECOVERY_STATUSES.index("same")


def count_activities(entry: EntryLike) -> int:
    return sum(1 for name in ACTIVITY_FIELDS if _get(entry, name, False))


def compute_daily_percentage(entry: EntryLike) -> int:
    """
    Daily wellness percentage: the 1-10 average scaled to 100, plus 5 points per
    completed activity, capped at 100.

    >>> compute_daily_percentage({})
    50
    >>> compute_daily_percentage({"mood_score": 1, "energy_level": 1, "sleep_quality": 1})
    10
    >>> full = {name: 10 for name in SCORE_FIELDS}
    >>> full.update({name: True for name in ACTIVITY_FIELDS})
    >>> compute_daily_percentage(full)
    100
    >>> compute_daily_percentage({"mood_score": 4, "exercise_completed": True, "therapy_session": True})
    57
    """
    mood, energy, sleep = resolve_scores(entry)
    base_score = _round_half_up(((mood + energy + sleep) / 3) * 10)
    activity_bonus = ACTIVITY_POINTS * count_activities(entry)
    return max(0, min(100, base_score + activity_bonus))


def week_start_for(today: date, week_start: str = "Monday") -> date:
    """
    First day of the window containing `today`.

    >>> week_start_for(date(2025, 1, 8))   # a Wednesday
    datetime.date(2025, 1, 6)
    >>> week_start_for(date(2025, 1, 12))  # a Sunday stays in the week that began Monday
    datetime.date(2025, 1, 6)
    >>> week_start_for(date(2025, 1, 8), "Sunday")
    datetime.date(2025, 1, 5)
    >>> week_start_for(date(2025, 1, 8), "rolling")
    datetime.date(2025, 1, 2)
    """
    today = ensure_date(today)
    mode = week_start.lower()
    if mode.startswith("roll"):
        return today - timedelta(days=6)
    if mode.startswith("sun"):
        return today - timedelta(days=(today.weekday() + 1) % 7)
    return today - timedelta(days=today.weekday())


def build_weekly_window(today, entries: Iterable[EntryLike], week_start: str = "Monday") -> List[WeeklyDataPoint]:
    """
    Seven points, one per calendar day from the start of the week, with today's
    point labelled "Today". Days without an entry score 0.

    >>> window = build_weekly_window(date(2025, 1, 8), [{"entry_date": "2025-01-07"}])
    >>> [p.day for p in window]
    ['Mon', 'Tue', 'Today', 'Thu', 'Fri', 'Sat', 'Sun']
    >>> [p.percentage for p in window]
    [0, 50, 0, 0, 0, 0, 0]
    >>> window[1].entry is not None, window[0].entry is None
    (True, True)
    """
    today = ensure_date(today)
    start = week_start_for(today, week_start)

    by_date: Dict[date, EntryLike] = {}
    for entry in entries:
        by_date[ensure_date(_get(entry, "entry_date"))] = entry

    window: List[WeeklyDataPoint] = []
    for i in range(7):
        day = start + timedelta(days=i)
        label = TODAY_LABEL if day == today else DAY_LABELS[day.weekday()]
        entry = by_date.get(day)
        if entry is not None:
            window.append(WeeklyDataPoint(day, label, compute_daily_percentage(entry), entry))
        else:
            window.append(WeeklyDataPoint(day, label, 0, None))
    return window


def compute_average(window: Iterable[WeeklyDataPoint]) -> int:
    """
    Average of the window's percentages; missing days count as 0.

    >>> pts = [WeeklyDataPoint(date(2025, 1, 6) + timedelta(days=i), "", p) for i, p in enumerate([0, 0, 0, 0, 0, 0, 100])]
    >>> compute_average(pts)
    14
    """
    percentages = [p.percentage for p in window]
    if not percentages:
        return 0
    return _round_half_up(sum(percentages) / len(percentages))


def compute_streak(entries: Iterable[EntryLike], today) -> int:
    """
    Consecutive logged days ending today. A day without an entry, today included,
    ends the run.

    >>> today = date(2025, 1, 8)
    >>> compute_streak([{"entry_date": "2025-01-06"}, {"entry_date": "2025-01-08"}, {"entry_date": "2025-01-07"}], today)
    3
    >>> compute_streak([{"entry_date": "2025-01-06"}, {"entry_date": "2025-01-07"}], today)
    0
    >>> compute_streak([{"entry_date": "2025-01-08"}, {"entry_date": "2025-01-06"}], today)
    1
    """
    today = ensure_date(today)
    dates = sorted({ensure_date(_get(e, "entry_date")) for e in entries}, reverse=True)
    streak = 0
    for i, d in enumerate(dates):
        if d != today - timedelta(days=i):
            break
        streak += 1
    return streak


def classify_progress(percentage: float) -> str:
    """
    >>> classify_progress(80), classify_progress(79), classify_progress(39)
    ('Excellent Progress', 'Good Progress', 'Needs Attention')
    """
    for threshold, label in PROGRESS_LEVELS:
        if percentage >= threshold:
            return label
    return NEEDS_ATTENTION


def bar_color(percentage: float) -> str:
    for threshold, color in BAR_COLORS:
        if percentage >= threshold:
            return color
    return LOW_BAR_COLOR


def motivational_message(percentage: float) -> str:
    if percentage >= 80:
        return "🌟 Outstanding work! You're building strong healthy habits."
    if percentage >= 60:
        return "💪 Great progress! Keep following your recovery plan."
    return "🤗 Every step counts. Small consistent actions lead to big changes."


def best_day(window: List[WeeklyDataPoint], today=None) -> Optional[WeeklyDataPoint]:
    """
    Highest-scoring day of the window strictly before today. `today` defaults to
    the date of the window's "Today" point.

    >>> best_day(build_weekly_window(date(2025, 1, 6), [{"entry_date": "2025-01-06"}])) is None
    True
    """
    if today is None:
        current = today_point(window)
        today = current.date if current else None
    if today is None:
        earlier = list(window)
    else:
        today = ensure_date(today)
        earlier = [p for p in window if p.date < today]
    if not earlier:
        return None
    return max(earlier, key=lambda p: p.percentage)


def today_point(window: List[WeeklyDataPoint]) -> Optional[WeeklyDataPoint]:
    for point in window:
        if point.day == TODAY_LABEL:
            return point
    return None


# -------------------------------
# Goals
# -------------------------------

def goal_progress(goal: RecoveryGoal) -> int:
    """
    Share of the goal target reached, capped at 100.

    >>> goal_progress(RecoveryGoal("Walks", date(2025, 1, 1), date(2025, 1, 7), target_value=4, current_value=1))
    25
    >>> goal_progress(RecoveryGoal("Walks", date(2025, 1, 1), date(2025, 1, 7), target_value=4, current_value=9))
    100
    """
    return min(100, _round_half_up(float(goal.current_value) / float(goal.target_value) * 100))


def split_goals(goals: Iterable[RecoveryGoal]) -> Tuple[List[RecoveryGoal], List[RecoveryGoal]]:
    active, completed = [], []
    for goal in goals:
        (completed if goal.is_completed else active).append(goal)
    return active, completed


# -------------------------------
# Frames for charts and tables
# -------------------------------

FRAME_COLUMNS = ["Date", "Status", *SCORE_FIELDS, *ACTIVITY_FIELDS, "Percentage", "Notes"]


def entries_frame(entries: Iterable[EntryLike]) -> pd.DataFrame:
    """
    Entries as a DataFrame sorted by date, one row per calendar day (later rows win).

    >>> df = entries_frame([{"entry_date": "2025-01-02", "mood_score": 8}, {"entry_date": "2025-01-01"}])
    >>> df["Date"].tolist() == [date(2025, 1, 1), date(2025, 1, 2)], df["Percentage"].tolist()
    (True, [50, 60])
    """
    rows = []
    for entry in entries:
        mood, energy, sleep = resolve_scores(entry)
        rows.append({
            "Date": ensure_date(_get(entry, "entry_date")),
            "Status": _get(entry, "recovery_status", "same") or "same",
            "mood_score": mood,
            "energy_level": energy,
            "sleep_quality": sleep,
            **{name: bool(_get(entry, name, False)) for name in ACTIVITY_FIELDS},
            "Percentage": compute_daily_percentage(entry),
            "Notes": _get(entry, "notes") or "",
        })
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df = df.drop_duplicates(subset=["Date"], keep="last")
    return df.sort_values("Date").reset_index(drop=True)


def _run_doctests_if_requested():
    import os as _os
    if _os.environ.get("RUN_DOCTESTS", "0") == "1":
        import doctest as _doctest
        _doctest.testmod(verbose=True)


if __name__ == "__main__":
    _run_doctests_if_requested()
