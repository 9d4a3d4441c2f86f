import doctest
from datetime import date, datetime

import pytz

import config
import helplines
from config import DEFAULT_TIMEZONE, load_settings, local_today
from generatedata import generate_entries
from recovery import compute_streak


def test_doctests():
    assert doctest.testmod(config).failed == 0
    assert doctest.testmod(helplines).failed == 0


def test_secrets_take_priority_over_environment():
    settings = load_settings(
        secrets={"SUPABASE_URL": "https://a.supabase.co", "SUPABASE_ANON_KEY": "anon"},
        environ={"SUPABASE_URL": "https://b.supabase.co", "GEMINI_API_KEY": "g"},
    )
    assert settings.supabase_url == "https://a.supabase.co"
    assert settings.supabase_configured
    assert settings.gemini_api_key == "g"
    assert settings.gemini_configured


def test_defaults_and_bad_timezone():
    settings = load_settings(secrets={}, environ={"APP_TIMEZONE": "Mars/Olympus"})
    assert settings.timezone == DEFAULT_TIMEZONE
    assert not settings.supabase_configured
    assert settings.gemini_model == "gemini-1.5-flash"


def test_local_today_uses_timezone():
    now = datetime(2025, 1, 7, 23, 0, tzinfo=pytz.utc)
    assert local_today("UTC", now=now) == date(2025, 1, 7)
    assert local_today("Asia/Kolkata", now=now) == date(2025, 1, 8)


def test_demo_entries_keep_a_live_streak():
    end = date(2025, 1, 8)
    entries = generate_entries(days=30, end=end, seed=7)
    assert max(e.entry_date for e in entries) == end
    assert len({e.entry_date for e in entries}) == len(entries)
    assert compute_streak(entries, end) >= 7
    assert all(1 <= e.mood_score <= 10 for e in entries)


def test_helplines_have_numbers():
    assert all(h["number"] for h in helplines.HELPLINES)
