"""
Configuration and logging.

Settings come from Streamlit secrets (.streamlit/secrets.toml) first and fall back to
environment variables of the same name, so the app runs both on Streamlit Cloud and
locally with a plain shell environment.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Optional

import pytz

DEFAULT_TIMEZONE = "Asia/Kolkata"
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_LOCAL_STORE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "recovery_entries.json")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    timezone: str = DEFAULT_TIMEZONE
    local_store_path: str = DEFAULT_LOCAL_STORE
    log_level: str = "INFO"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def tz(self):
        return pytz.timezone(self.timezone)


def _streamlit_secrets() -> Mapping[str, Any]:
    try:
        import streamlit as st

        # Accessing a missing secrets.toml raises; treat it as "no secrets"
        return dict(st.secrets)
    except Exception:
        return {}


def load_settings(secrets: Optional[Mapping[str, Any]] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings with priority: secrets -> environment -> defaults.

    >>> s = load_settings(secrets={"SUPABASE_URL": "https://x.supabase.co"}, environ={"SUPABASE_URL": "ignored", "APP_TIMEZONE": "UTC"})
    >>> s.supabase_url, s.timezone, s.supabase_configured
    ('https://x.supabase.co', 'UTC', False)
    """
    if secrets is None:
        secrets = _streamlit_secrets()
    if environ is None:
        environ = os.environ

    def get(key: str, default: Optional[str] = None) -> Optional[str]:
        value = secrets.get(key)
        if value in (None, ""):
            value = environ.get(key)
        if value in (None, ""):
            return default
        return str(value)

    timezone = get("APP_TIMEZONE", DEFAULT_TIMEZONE)
    try:
        pytz.timezone(timezone)
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown timezone %r, falling back to %s", timezone, DEFAULT_TIMEZONE)
        timezone = DEFAULT_TIMEZONE

    return Settings(
        supabase_url=get("SUPABASE_URL"),
        supabase_anon_key=get("SUPABASE_ANON_KEY"),
        gemini_api_key=get("GEMINI_API_KEY"),
        gemini_model=get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
        timezone=timezone,
        local_store_path=get("LOCAL_STORE_PATH", DEFAULT_LOCAL_STORE),
        log_level=get("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)


def local_today(timezone: str = DEFAULT_TIMEZONE, now: Optional[datetime] = None) -> date:
    """
    Today's calendar date in the given timezone.

    >>> local_today("Asia/Kolkata", now=datetime(2025, 1, 7, 20, 0, tzinfo=pytz.utc))
    datetime.date(2025, 1, 8)
    """
    tz = pytz.timezone(timezone)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(tz).date()
