#!/usr/bin/env python3
"""
Check the Supabase and Gemini configuration.
Run this script to verify the project is set up before starting the app:
    python check_supabase_config.py
"""

import sys

from config import load_settings
from store import (
    CONVERSATIONS_TABLE,
    ENTRIES_TABLE,
    GOALS_TABLE,
    JOURNAL_TABLE,
    MESSAGES_TABLE,
    MILESTONES_TABLE,
    MOOD_TABLE,
    create_supabase_client,
)

TABLES = (ENTRIES_TABLE, GOALS_TABLE, MILESTONES_TABLE, MOOD_TABLE, JOURNAL_TABLE, CONVERSATIONS_TABLE, MESSAGES_TABLE)


def check_supabase_config() -> bool:
    """Check secrets, client creation and access to each table the app uses."""
    print("🔍 Checking Supabase configuration...")
    print("=" * 50)

    settings = load_settings()
    if not settings.supabase_configured:
        print("❌ SUPABASE_URL / SUPABASE_ANON_KEY not found")
        print("💡 Add them to .streamlit/secrets.toml or export them:")
        print("   SUPABASE_URL = 'your-project-url'")
        print("   SUPABASE_ANON_KEY = 'your-anon-key'")
        return False
    print("✅ Supabase settings found")

    try:
        client = create_supabase_client(settings.supabase_url, settings.supabase_anon_key)
        print("✅ Supabase client created successfully")
    except Exception as e:
        print(f"❌ Failed to create Supabase client: {e}")
        return False

    ok = True
    for table in TABLES:
        try:
            client.table(table).select("*").limit(1).execute()
            print(f"✅ Table {table} reachable")
        except Exception as e:
            print(f"❌ Table {table} failed: {e}")
            ok = False
    if not ok:
        print("💡 Make sure the recovery tables and their row-level security policies exist")

    if settings.gemini_configured:
        print(f"✅ Gemini key found (model {settings.gemini_model})")
    else:
        print("⚠️  GEMINI_API_KEY not set; the chat tab will be disabled")

    print(f"🕒 Local timezone: {settings.timezone}")
    return ok


if __name__ == "__main__":
    success = check_supabase_config()
    if success:
        print("\n✅ Configuration check completed successfully!")
    else:
        print("\n❌ Configuration check failed. Please fix the issues above.")
        sys.exit(1)
