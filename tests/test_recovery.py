import doctest
import itertools
from datetime import date, datetime, timedelta

import pandas as pd
import pytest

import recovery
from recovery import (
    ACTIVITY_FIELDS,
    RECOVERY_STATUSES,
    RecoveryEntry,
    RecoveryGoal,
    WeeklyDataPoint,
    best_day,
    build_weekly_window,
    classify_progress,
    compute_average,
    compute_daily_percentage,
    compute_streak,
    entries_frame,
    goal_progress,
    resolve_scores,
    split_goals,
    status_index,
)

WEDNESDAY = date(2025, 1, 8)


def entry(d, **kwargs):
    return RecoveryEntry(entry_date=d, **kwargs)


def test_doctests():
    result = doctest.testmod(recovery)
    assert result.failed == 0


# Daily percentage

def test_perfect_day_is_capped_at_100():
    e = entry(WEDNESDAY, mood_score=10, energy_level=10, sleep_quality=10,
              **{name: True for name in ACTIVITY_FIELDS})
    assert compute_daily_percentage(e) == 100


def test_lowest_scores_without_activities():
    assert compute_daily_percentage(entry(WEDNESDAY, mood_score=1, energy_level=1, sleep_quality=1)) == 10


def test_missing_scores_default_to_midpoint():
    e = entry(WEDNESDAY)
    assert resolve_scores(e) == (5, 5, 5)
    assert compute_daily_percentage(e) == 50


def test_each_activity_adds_five_points():
    e = entry(WEDNESDAY, mood_score=5, energy_level=5, sleep_quality=5, therapy_session=True, social_connection=True)
    assert compute_daily_percentage(e) == 60


def test_percentage_stays_in_range_for_all_inputs():
    for mood, energy, sleep in itertools.product([1, 4, 7, 10], repeat=3):
        for flags in itertools.product([False, True], repeat=4):
            e = {"mood_score": mood, "energy_level": energy, "sleep_quality": sleep,
                 **dict(zip(ACTIVITY_FIELDS, flags))}
            assert 0 <= compute_daily_percentage(e) <= 100


def test_plain_mappings_are_accepted():
    assert compute_daily_percentage({"mood_score": 8, "energy_level": 8, "sleep_quality": 8}) == 80


# Weekly window

def test_window_has_seven_points_without_entries():
    window = build_weekly_window(WEDNESDAY, [])
    assert len(window) == 7
    assert all(p.percentage == 0 and p.entry is None for p in window)


def test_window_runs_monday_to_sunday_with_today_label():
    window = build_weekly_window(WEDNESDAY, [])
    assert window[0].date == date(2025, 1, 6)
    assert [p.date for p in window] == [date(2025, 1, 6) + timedelta(days=i) for i in range(7)]
    assert [p.day for p in window] == ["Mon", "Tue", "Today", "Thu", "Fri", "Sat", "Sun"]


def test_window_on_sunday_ends_at_today():
    sunday = date(2025, 1, 12)
    window = build_weekly_window(sunday, [])
    assert window[-1].date == sunday
    assert window[-1].day == "Today"


def test_rolling_window_ends_at_today():
    window = build_weekly_window(WEDNESDAY, [], week_start="rolling")
    assert [p.date for p in window] == [WEDNESDAY - timedelta(days=6 - i) for i in range(7)]
    assert window[-1].day == "Today"


def test_window_matches_entries_by_calendar_date():
    entries = [
        entry(date(2025, 1, 6), mood_score=8, energy_level=8, sleep_quality=8),
        {"entry_date": "2025-01-08T21:30:00", "mood_score": 2, "energy_level": 2, "sleep_quality": 2},
        entry(date(2024, 12, 30)),  # previous week
    ]
    window = build_weekly_window(WEDNESDAY, entries)
    assert [p.percentage for p in window] == [80, 0, 20, 0, 0, 0, 0]
    assert window[0].entry is entries[0]
    assert window[2].entry is entries[1]


def test_window_is_idempotent():
    entries = [entry(date(2025, 1, 7), mood_score=6)]
    assert build_weekly_window(WEDNESDAY, entries) == build_weekly_window(WEDNESDAY, entries)


# Average

def _points(percentages):
    return [WeeklyDataPoint(date(2025, 1, 6) + timedelta(days=i), "", p) for i, p in enumerate(percentages)]


def test_average_of_flat_week():
    assert compute_average(_points([80] * 7)) == 80


def test_average_counts_missing_days_as_zero():
    assert compute_average(_points([0, 0, 0, 0, 0, 0, 100])) == 14
    assert compute_average(_points([0] * 7)) == 0


# Streak

def test_streak_counts_consecutive_days_ending_today():
    entries = [entry(WEDNESDAY - timedelta(days=i)) for i in (2, 0, 1)]
    assert compute_streak(entries, WEDNESDAY) == 3


def test_streak_is_zero_without_todays_entry():
    entries = [entry(WEDNESDAY - timedelta(days=i)) for i in (1, 2, 3)]
    assert compute_streak(entries, WEDNESDAY) == 0


def test_streak_stops_at_first_gap():
    entries = [entry(WEDNESDAY), entry(WEDNESDAY - timedelta(days=2))]
    assert compute_streak(entries, WEDNESDAY) == 1


def test_streak_empty_and_time_of_day():
    assert compute_streak([], WEDNESDAY) == 0
    entries = [{"entry_date": "2025-01-08"}, {"entry_date": "2025-01-07"}]
    assert compute_streak(entries, datetime(2025, 1, 8, 23, 59)) == 2


# Labels

@pytest.mark.parametrize(
    "percentage, label",
    [
        (100, "Excellent Progress"),
        (80, "Excellent Progress"),
        (79, "Good Progress"),
        (60, "Good Progress"),
        (59, "Fair Progress"),
        (40, "Fair Progress"),
        (39, "Needs Attention"),
        (0, "Needs Attention"),
    ],
)
def test_classify_progress(percentage, label):
    assert classify_progress(percentage) == label


def test_best_day_ignores_today():
    window = build_weekly_window(WEDNESDAY, [
        entry(date(2025, 1, 6), mood_score=6, energy_level=6, sleep_quality=6),
        entry(WEDNESDAY, mood_score=10, energy_level=10, sleep_quality=10),
    ])
    assert best_day(window).date == date(2025, 1, 6)


# Goals

def test_goal_rejects_end_before_start():
    with pytest.raises(ValueError):
        RecoveryGoal("Sleep early", date(2025, 1, 8), date(2025, 1, 1))


def test_goal_rejects_non_positive_target():
    with pytest.raises(ValueError):
        RecoveryGoal("Sleep early", date(2025, 1, 1), date(2025, 1, 8), target_value=0)


def test_new_goal_defaults():
    goal = RecoveryGoal.new("Walk", start=date(2025, 1, 1))
    assert goal.end_date == date(2025, 1, 8)
    assert goal.goal_type == "weekly"
    assert goal.unit == "times"
    assert goal.current_value == 0 and not goal.is_completed


def test_goal_progress_and_split():
    done = RecoveryGoal("A", date(2025, 1, 1), date(2025, 1, 2), target_value=3, current_value=3, is_completed=True)
    half = RecoveryGoal("B", date(2025, 1, 1), date(2025, 1, 2), target_value=4, current_value=2)
    assert goal_progress(half) == 50
    active, completed = split_goals([done, half])
    assert active == [half] and completed == [done]


# Rows and frames

def test_entry_row_round_trip_keeps_dates_as_iso_strings():
    row = {"id": "abc", "user_id": "u1", "entry_date": "2025-01-08", "recovery_status": "better",
           "mood_score": 7, "energy_level": None, "sleep_quality": 6, "exercise_completed": True}
    e = RecoveryEntry.from_row(row)
    assert e.entry_date == WEDNESDAY
    assert e.energy_level is None
    out = e.to_row()
    assert out["entry_date"] == "2025-01-08"
    assert out["id"] == "abc"
    assert "created_at" not in out


def test_entries_frame_is_sorted_and_deduplicated():
    df = entries_frame([
        entry(date(2025, 1, 7), mood_score=5),
        entry(date(2025, 1, 6), mood_score=9),
        entry(date(2025, 1, 7), mood_score=8),
    ])
    assert isinstance(df, pd.DataFrame)
    assert df["Date"].tolist() == [date(2025, 1, 6), date(2025, 1, 7)]
    assert df.loc[1, "mood_score"] == 8


def test_entries_frame_empty_has_columns():
    df = entries_frame([])
    assert df.empty
    assert "Percentage" in df.columns


def test_best_day_is_none_on_a_monday():
    monday = date(2025, 1, 6)
    window = build_weekly_window(monday, [entry(monday, mood_score=9)])
    assert best_day(window) is None
    assert best_day(window, monday) is None


def test_best_day_never_picks_a_later_day():
    window = build_weekly_window(WEDNESDAY, [entry(date(2025, 1, 6), mood_score=2, energy_level=2, sleep_quality=2)])
    best = best_day(window, WEDNESDAY)
    assert best.date == date(2025, 1, 6)
    assert best.percentage == 20


def test_unknown_status_falls_back_to_same():
    assert status_index("better") == 0
    assert status_index("improving") == RECOVERY_STATUSES.index("same")
    assert status_index(None) == 1
