"""
Mood log, journal and chat history records.

Row conversions for the mood_entries, journal_entries, conversations and
chat_messages tables, plus the small helpers the dashboard needs to show them.

Run the doctests with:
    RUN_DOCTESTS=1 python wellbeing.py
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from recovery import ensure_date


# -------------------------------
# Constants
# -------------------------------
MOOD_MIN, MOOD_MAX = 1, 10

# Upper bound of each band, checked low to high
MOOD_LABELS: List[Tuple[int, str]] = [
    (2, "Very Low"),
    (4, "Low"),
    (6, "Okay"),
    (8, "Good"),
]
TOP_MOOD_LABEL = "Excellent"

EMOTIONS = [
    "Happy", "Sad", "Anxious", "Stressed", "Calm", "Angry",
    "Hopeful", "Lonely", "Grateful", "Overwhelmed", "Peaceful", "Frustrated",
]
TRIGGERS = [
    "Academics", "Family", "Relationships", "Career", "Health",
    "Social Media", "Finances", "Future Uncertainty", "Peer Pressure", "Other",
]

JOURNAL_MOODS = ("happy", "good", "okay", "low", "sad")
DEFAULT_JOURNAL_MOOD = "okay"

DEFAULT_CONVERSATION_TITLE = "New Conversation"
SENDERS = ("user", "ai")

_SERVER_FIELDS = ("id", "user_id", "created_at", "updated_at")


def _drop_unset(row: Dict[str, Any], keys=_SERVER_FIELDS) -> Dict[str, Any]:
    for key in keys:
        if key in row and row[key] is None:
            del row[key]
    return row


def mood_label(level: int) -> str:
    """
    >>> mood_label(1), mood_label(5), mood_label(8), mood_label(10)
    ('Very Low', 'Okay', 'Good', 'Excellent')
    """
    for upper, label in MOOD_LABELS:
        if level <= upper:
            return label
    return TOP_MOOD_LABEL


# -------------------------------
# Records
# -------------------------------

@dataclass
class MoodEntry:
    mood_level: int
    emotions: List[str] = field(default_factory=list)
    triggers: List[str] = field(default_factory=list)
    additional_thoughts: Optional[str] = None
    entry_date: Optional[date] = None
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self):
        if self.entry_date is not None:
            self.entry_date = ensure_date(self.entry_date)

    def validate(self) -> None:
        """Reject what the mood form would never produce."""
        if not MOOD_MIN <= int(self.mood_level) <= MOOD_MAX:
            raise ValueError(f"Mood level must be between {MOOD_MIN} and {MOOD_MAX}")
        if not self.emotions:
            raise ValueError("Please select at least one emotion")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "MoodEntry":
        return cls(
            mood_level=int(row["mood_level"]),
            emotions=list(row.get("emotions") or []),
            triggers=list(row.get("triggers") or []),
            additional_thoughts=row.get("additional_thoughts"),
            entry_date=row.get("entry_date"),
            id=row.get("id"),
            user_id=row.get("user_id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row["entry_date"] = self.entry_date.isoformat() if self.entry_date else None
        return _drop_unset(row, _SERVER_FIELDS + ("entry_date",))


@dataclass
class JournalEntry:
    title: str
    content: str
    mood: str = DEFAULT_JOURNAL_MOOD
    entry_date: Optional[date] = None
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self):
        if self.entry_date is not None:
            self.entry_date = ensure_date(self.entry_date)

    def validate(self) -> None:
        if not (self.title or "").strip() or not (self.content or "").strip():
            raise ValueError("A journal entry needs a title and some content")
        if self.mood not in JOURNAL_MOODS:
            raise ValueError(f"Unknown journal mood: {self.mood!r}")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "JournalEntry":
        return cls(
            title=row.get("title") or "",
            content=row.get("content") or "",
            mood=row.get("mood") or DEFAULT_JOURNAL_MOOD,
            entry_date=row.get("entry_date"),
            id=row.get("id"),
            user_id=row.get("user_id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row["entry_date"] = self.entry_date.isoformat() if self.entry_date else None
        return _drop_unset(row, _SERVER_FIELDS + ("entry_date",))


@dataclass
class Conversation:
    title: Optional[str] = DEFAULT_CONVERSATION_TITLE
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Conversation":
        return cls(
            title=row.get("title"),
            id=row.get("id"),
            user_id=row.get("user_id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    @property
    def label(self) -> str:
        started = f" · {self.created_at[:10]}" if self.created_at else ""
        return (self.title or DEFAULT_CONVERSATION_TITLE) + started


@dataclass
class ChatMessage:
    conversation_id: str
    sender: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
    created_at: Optional[str] = None

    def __post_init__(self):
        if self.sender not in SENDERS:
            raise ValueError(f"Unknown message sender: {self.sender!r}")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ChatMessage":
        return cls(
            conversation_id=row["conversation_id"],
            sender=row.get("sender") or "user",
            content=row.get("content") or "",
            metadata=row.get("metadata") or {},
            id=row.get("id"),
            created_at=row.get("created_at"),
        )

    def to_row(self) -> Dict[str, Any]:
        return _drop_unset(asdict(self), ("id", "created_at"))


# -------------------------------
# Helpers for the dashboard
# -------------------------------

def gemini_history(messages: Iterable[ChatMessage]) -> List[Dict[str, Any]]:
    """
    Stored messages in the role/parts shape the Gemini API expects.

    >>> gemini_history([ChatMessage("c1", "user", "hi"), ChatMessage("c1", "ai", "hello")])
    [{'role': 'user', 'parts': [{'text': 'hi'}]}, {'role': 'model', 'parts': [{'text': 'hello'}]}]
    """
    return [
        {"role": "user" if m.sender == "user" else "model", "parts": [{"text": m.content}]}
        for m in messages
    ]


MOOD_FRAME_COLUMNS = ["Date", "Mood", "Label", "Emotions", "Triggers"]


def mood_frame(entries: Iterable[MoodEntry]) -> pd.DataFrame:
    """Mood log as a DataFrame sorted oldest first, for the mood chart."""
    rows = []
    for e in entries:
        when = e.entry_date or (ensure_date(e.created_at) if e.created_at else None)
        if when is None:
            continue
        rows.append({
            "Date": when,
            "Mood": int(e.mood_level),
            "Label": mood_label(int(e.mood_level)),
            "Emotions": ", ".join(e.emotions),
            "Triggers": ", ".join(e.triggers),
        })
    if not rows:
        return pd.DataFrame(columns=MOOD_FRAME_COLUMNS)
    return pd.DataFrame(rows, columns=MOOD_FRAME_COLUMNS).sort_values("Date", kind="stable").reset_index(drop=True)


def _run_doctests_if_requested():
    import os as _os
    if _os.environ.get("RUN_DOCTESTS", "0") == "1":
        import doctest as _doctest
        _doctest.testmod(verbose=True)


if __name__ == "__main__":
    _run_doctests_if_requested()
