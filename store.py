"""
Persistence for recovery entries, goals, milestones, mood logs, journal entries
and chat history.

Signed-in users go to Supabase (tables recovery_entries, recovery_goals,
recovery_milestones, mood_entries, journal_entries, conversations and
chat_messages; row-level security scopes every query to the session's user).
Guest and demo users get a JSON file next to the app with the same method
surface, one section per user id.
"""
from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from supabase import Client, create_client

from recovery import RecoveryEntry, RecoveryGoal, RecoveryMilestone, ensure_date
from wellbeing import DEFAULT_CONVERSATION_TITLE, ChatMessage, Conversation, JournalEntry, MoodEntry

logger = logging.getLogger(__name__)

ENTRIES_TABLE = "recovery_entries"
GOALS_TABLE = "recovery_goals"
MILESTONES_TABLE = "recovery_milestones"
MOOD_TABLE = "mood_entries"
JOURNAL_TABLE = "journal_entries"
CONVERSATIONS_TABLE = "conversations"
MESSAGES_TABLE = "chat_messages"
GUEST_IDS = ("guest", "demo")

# Sections of a user's data in the local JSON file
LOCAL_SECTIONS = ("entries", "goals", "milestones", "mood_entries", "journal_entries", "conversations", "messages")


class StoreError(RuntimeError):
    """A read or write against the backing store failed."""


def create_supabase_client(url: str, key: str) -> Client:
    return create_client(url, key)


def _completion_updates(updates: Dict[str, Any], goal: Optional[RecoveryGoal]) -> Dict[str, Any]:
    """Flag a goal completed once its progress reaches the target."""
    if goal is None or "current_value" not in updates:
        return updates
    target = float(updates.get("target_value", goal.target_value))
    if float(updates["current_value"]) >= target:
        return {**updates, "is_completed": True}
    return updates


def _serialize(updates: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.isoformat() if isinstance(v, (date, datetime)) else v) for k, v in updates.items()}


def _goals_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[RecoveryGoal]:
    """Goals from stored rows; a row that fails goal validation is logged and left out."""
    goals = []
    for row in rows:
        try:
            goals.append(RecoveryGoal.from_row(row))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping unreadable goal %s: %s", row.get("id"), e)
    return goals


def _first(response, build, default=None):
    data = response.data or []
    return build(data[0]) if data else default


class RecoveryStore:
    """Supabase-backed store scoped to one signed-in user."""

    def __init__(self, client: Client, user_id: str):
        self.client = client
        self.user_id = user_id

    def _run(self, action: str, query):
        try:
            return query.execute()
        except Exception as e:
            logger.error("Supabase %s failed for user %s: %s", action, self.user_id, e)
            raise StoreError(f"Failed to {action}: {e}") from e

    def _mine(self, table: str):
        return self.client.table(table).select("*").eq("user_id", self.user_id)

    # Entries

    def list_entries_for_user(self) -> List[RecoveryEntry]:
        response = self._run("load recovery entries", self._mine(ENTRIES_TABLE).order("entry_date", desc=True))
        return [RecoveryEntry.from_row(row) for row in response.data or []]

    def list_entries_between(self, start: date, end: date) -> List[RecoveryEntry]:
        response = self._run(
            "load recovery entries",
            self._mine(ENTRIES_TABLE)
            .gte("entry_date", ensure_date(start).isoformat())
            .lte("entry_date", ensure_date(end).isoformat())
            .order("entry_date"),
        )
        return [RecoveryEntry.from_row(row) for row in response.data or []]

    def upsert_entry(self, entry: RecoveryEntry) -> RecoveryEntry:
        """Insert the entry, replacing any earlier entry for the same date."""
        row = entry.to_row()
        row["user_id"] = self.user_id
        response = self._run(
            "save recovery entry",
            self.client.table(ENTRIES_TABLE).upsert(row, on_conflict="user_id,entry_date"),
        )
        return _first(response, RecoveryEntry.from_row, entry)

    def update_entry(self, entry_id: str, updates: Dict[str, Any]) -> Optional[RecoveryEntry]:
        response = self._run(
            "update recovery entry",
            self.client.table(ENTRIES_TABLE).update(_serialize(updates)).eq("id", entry_id).eq("user_id", self.user_id),
        )
        return _first(response, RecoveryEntry.from_row)

    def delete_entry(self, entry_id: str) -> None:
        self._run(
            "delete recovery entry",
            self.client.table(ENTRIES_TABLE).delete().eq("id", entry_id).eq("user_id", self.user_id),
        )

    # Goals

    def list_goals(self) -> List[RecoveryGoal]:
        response = self._run("load recovery goals", self._mine(GOALS_TABLE).order("created_at", desc=True))
        return _goals_from_rows(response.data or [])

    def add_goal(self, goal: RecoveryGoal) -> RecoveryGoal:
        row = goal.to_row()
        row["user_id"] = self.user_id
        response = self._run("save recovery goal", self.client.table(GOALS_TABLE).insert(row))
        return _first(response, RecoveryGoal.from_row, goal)

    def update_goal(self, goal_id: str, updates: Dict[str, Any], goal: Optional[RecoveryGoal] = None) -> Optional[RecoveryGoal]:
        updates = _completion_updates(updates, goal)
        response = self._run(
            "update recovery goal",
            self.client.table(GOALS_TABLE).update(_serialize(updates)).eq("id", goal_id).eq("user_id", self.user_id),
        )
        goals = _goals_from_rows(response.data or [])
        return goals[0] if goals else None

    def delete_goal(self, goal_id: str) -> None:
        self._run(
            "delete recovery goal",
            self.client.table(GOALS_TABLE).delete().eq("id", goal_id).eq("user_id", self.user_id),
        )

    # Milestones

    def list_milestones(self) -> List[RecoveryMilestone]:
        response = self._run("load milestones", self._mine(MILESTONES_TABLE).order("achieved_date", desc=True))
        return [RecoveryMilestone.from_row(row) for row in response.data or []]

    # Mood log

    def list_mood_entries(self) -> List[MoodEntry]:
        response = self._run("load mood entries", self._mine(MOOD_TABLE).order("created_at", desc=True))
        return [MoodEntry.from_row(row) for row in response.data or []]

    def add_mood_entry(self, entry: MoodEntry) -> MoodEntry:
        entry.validate()
        row = entry.to_row()
        row["user_id"] = self.user_id
        response = self._run("save mood entry", self.client.table(MOOD_TABLE).insert(row))
        return _first(response, MoodEntry.from_row, entry)

    # Journal

    def list_journal_entries(self) -> List[JournalEntry]:
        response = self._run("load journal entries", self._mine(JOURNAL_TABLE).order("created_at", desc=True))
        return [JournalEntry.from_row(row) for row in response.data or []]

    def add_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        entry.validate()
        row = entry.to_row()
        row["user_id"] = self.user_id
        response = self._run("save journal entry", self.client.table(JOURNAL_TABLE).insert(row))
        return _first(response, JournalEntry.from_row, entry)

    def update_journal_entry(self, entry_id: str, updates: Dict[str, Any]) -> Optional[JournalEntry]:
        response = self._run(
            "update journal entry",
            self.client.table(JOURNAL_TABLE).update(_serialize(updates)).eq("id", entry_id).eq("user_id", self.user_id),
        )
        return _first(response, JournalEntry.from_row)

    def delete_journal_entry(self, entry_id: str) -> None:
        self._run(
            "delete journal entry",
            self.client.table(JOURNAL_TABLE).delete().eq("id", entry_id).eq("user_id", self.user_id),
        )

    # Chat history

    def list_conversations(self) -> List[Conversation]:
        response = self._run("load conversations", self._mine(CONVERSATIONS_TABLE).order("created_at", desc=True))
        return [Conversation.from_row(row) for row in response.data or []]

    def create_conversation(self, title: Optional[str] = None) -> Conversation:
        row = {"user_id": self.user_id, "title": title or DEFAULT_CONVERSATION_TITLE}
        response = self._run("start conversation", self.client.table(CONVERSATIONS_TABLE).insert(row))
        return _first(response, Conversation.from_row, Conversation.from_row(row))

    def list_messages(self, conversation_id: str) -> List[ChatMessage]:
        response = self._run(
            "load chat messages",
            self.client.table(MESSAGES_TABLE).select("*").eq("conversation_id", conversation_id).order("created_at"),
        )
        return [ChatMessage.from_row(row) for row in response.data or []]

    def add_message(self, conversation_id: str, content: str, sender: str) -> ChatMessage:
        message = ChatMessage(conversation_id=conversation_id, sender=sender, content=content)
        response = self._run("save chat message", self.client.table(MESSAGES_TABLE).insert(message.to_row()))
        return _first(response, ChatMessage.from_row, message)


class LocalStore:
    """
    JSON-file store for guest and demo sessions.

    The file holds one section per user id, so guest and demo data never mix:
    {"users": {"guest": {"entries": [...], ...}, "demo": {...}}, "saved_at": ...}
    """

    def __init__(self, path: str, user_id: str = "guest"):
        self.path = path
        self.user_id = user_id

    def _read_document(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                obj = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable local store %s: %s", self.path, e)
            return {}
        return obj if isinstance(obj, dict) else {}

    def _load(self) -> Dict[str, List[Dict[str, Any]]]:
        users = self._read_document().get("users") or {}
        section = users.get(self.user_id) or {}
        data = {}
        for key in LOCAL_SECTIONS:
            data[key] = [r for r in section.get(key, []) if r.get("user_id", self.user_id) == self.user_id]
        return data

    def _save(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        document = self._read_document()
        users = dict(document.get("users") or {})
        users[self.user_id] = data
        payload = {"users": users, "saved_at": datetime.now().isoformat()}
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            logger.error("Could not write local store %s: %s", self.path, e)
            raise StoreError(f"Failed to save local data: {e}") from e

    def _stamp(self, row: Dict[str, Any], existing: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        now = datetime.now().isoformat()
        row["id"] = (existing or {}).get("id") or row.get("id") or str(uuid.uuid4())
        row["user_id"] = self.user_id
        row["created_at"] = (existing or {}).get("created_at") or now
        row["updated_at"] = now
        return row

    def _update_row(self, section: str, row_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        data = self._load()
        for row in data[section]:
            if row.get("id") == row_id:
                row.update(_serialize(updates))
                row["updated_at"] = datetime.now().isoformat()
                self._save(data)
                return row
        return None

    def _delete_row(self, section: str, row_id: str) -> None:
        data = self._load()
        data[section] = [r for r in data[section] if r.get("id") != row_id]
        self._save(data)

    # Entries

    def list_entries_for_user(self) -> List[RecoveryEntry]:
        entries = [RecoveryEntry.from_row(row) for row in self._load()["entries"]]
        return sorted(entries, key=lambda e: e.entry_date, reverse=True)

    def list_entries_between(self, start: date, end: date) -> List[RecoveryEntry]:
        start, end = ensure_date(start), ensure_date(end)
        entries = [e for e in self.list_entries_for_user() if start <= e.entry_date <= end]
        return sorted(entries, key=lambda e: e.entry_date)

    def upsert_entry(self, entry: RecoveryEntry) -> RecoveryEntry:
        data = self._load()
        same_day = [r for r in data["entries"] if ensure_date(r["entry_date"]) == entry.entry_date]
        row = self._stamp(entry.to_row(), same_day[0] if same_day else None)
        data["entries"] = [r for r in data["entries"] if ensure_date(r["entry_date"]) != entry.entry_date]
        data["entries"].append(row)
        self._save(data)
        return RecoveryEntry.from_row(row)

    def update_entry(self, entry_id: str, updates: Dict[str, Any]) -> Optional[RecoveryEntry]:
        row = self._update_row("entries", entry_id, updates)
        return RecoveryEntry.from_row(row) if row else None

    def delete_entry(self, entry_id: str) -> None:
        self._delete_row("entries", entry_id)

    def replace_entries(self, entries: List[RecoveryEntry]) -> None:
        """Swap this user's whole entry set, used to seed demo data."""
        data = self._load()
        data["entries"] = []
        for entry in entries:
            row = entry.to_row()
            row.setdefault("id", str(uuid.uuid4()))
            row["user_id"] = self.user_id
            data["entries"].append(row)
        self._save(data)

    # Goals

    def list_goals(self) -> List[RecoveryGoal]:
        goals = _goals_from_rows(self._load()["goals"])
        return sorted(goals, key=lambda g: g.created_at or "", reverse=True)

    def add_goal(self, goal: RecoveryGoal) -> RecoveryGoal:
        data = self._load()
        row = self._stamp(goal.to_row())
        data["goals"].append(row)
        self._save(data)
        return RecoveryGoal.from_row(row)

    def update_goal(self, goal_id: str, updates: Dict[str, Any], goal: Optional[RecoveryGoal] = None) -> Optional[RecoveryGoal]:
        data = self._load()
        for row in data["goals"]:
            if row.get("id") == goal_id:
                current = goal or RecoveryGoal.from_row(row)
                row.update(_serialize(_completion_updates(updates, current)))
                row["updated_at"] = datetime.now().isoformat()
                self._save(data)
                return RecoveryGoal.from_row(row)
        return None

    def delete_goal(self, goal_id: str) -> None:
        self._delete_row("goals", goal_id)

    # Milestones

    def list_milestones(self) -> List[RecoveryMilestone]:
        milestones = [RecoveryMilestone.from_row(row) for row in self._load()["milestones"]]
        return sorted(milestones, key=lambda m: m.achieved_date, reverse=True)

    # Mood log

    def list_mood_entries(self) -> List[MoodEntry]:
        rows = sorted(self._load()["mood_entries"], key=lambda r: r.get("created_at") or "", reverse=True)
        return [MoodEntry.from_row(row) for row in rows]

    def add_mood_entry(self, entry: MoodEntry) -> MoodEntry:
        entry.validate()
        data = self._load()
        row = self._stamp(entry.to_row())
        row.setdefault("entry_date", date.today().isoformat())
        data["mood_entries"].append(row)
        self._save(data)
        return MoodEntry.from_row(row)

    # Journal

    def list_journal_entries(self) -> List[JournalEntry]:
        rows = sorted(self._load()["journal_entries"], key=lambda r: r.get("created_at") or "", reverse=True)
        return [JournalEntry.from_row(row) for row in rows]

    def add_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        entry.validate()
        data = self._load()
        row = self._stamp(entry.to_row())
        row.setdefault("entry_date", date.today().isoformat())
        data["journal_entries"].append(row)
        self._save(data)
        return JournalEntry.from_row(row)

    def update_journal_entry(self, entry_id: str, updates: Dict[str, Any]) -> Optional[JournalEntry]:
        row = self._update_row("journal_entries", entry_id, updates)
        return JournalEntry.from_row(row) if row else None

    def delete_journal_entry(self, entry_id: str) -> None:
        self._delete_row("journal_entries", entry_id)

    # Chat history

    def list_conversations(self) -> List[Conversation]:
        rows = sorted(self._load()["conversations"], key=lambda r: r.get("created_at") or "", reverse=True)
        return [Conversation.from_row(row) for row in rows]

    def create_conversation(self, title: Optional[str] = None) -> Conversation:
        data = self._load()
        row = self._stamp({"title": title or DEFAULT_CONVERSATION_TITLE})
        data["conversations"].append(row)
        self._save(data)
        return Conversation.from_row(row)

    def list_messages(self, conversation_id: str) -> List[ChatMessage]:
        rows = [r for r in self._load()["messages"] if r.get("conversation_id") == conversation_id]
        return [ChatMessage.from_row(row) for row in rows]

    def add_message(self, conversation_id: str, content: str, sender: str) -> ChatMessage:
        message = ChatMessage(conversation_id=conversation_id, sender=sender, content=content)
        data = self._load()
        row = message.to_row()
        row.update({"id": str(uuid.uuid4()), "created_at": datetime.now().isoformat()})
        data["messages"].append(row)
        self._save(data)
        return ChatMessage.from_row(row)


def is_guest(user_id: Optional[str]) -> bool:
    return not user_id or user_id in GUEST_IDS


def make_store(user_id: Optional[str], client: Optional[Client], local_path: str):
    """Supabase store for signed-in users, JSON store for guests or when Supabase is unavailable."""
    if client is None or is_guest(user_id):
        return LocalStore(local_path, user_id or "guest")
    return RecoveryStore(client, user_id)
