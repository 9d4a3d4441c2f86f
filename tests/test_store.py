import json
from datetime import date
from types import SimpleNamespace

import pytest

from recovery import RecoveryEntry, RecoveryGoal
from generatedata import generate_entries
from store import LocalStore, RecoveryStore, StoreError, make_store
from wellbeing import JournalEntry, MoodEntry


class FakeQuery:
    """Chainable stand-in for the Supabase query builder that records every call."""

    def __init__(self, table, data=None, error=None):
        self.table = table
        self.calls = []
        self.data = data if data is not None else []
        self.error = error

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return method

    def execute(self):
        if self.error:
            raise self.error
        return SimpleNamespace(data=self.data)


class FakeClient:
    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error
        self.queries = []

    def table(self, name):
        query = FakeQuery(name, self.data, self.error)
        self.queries.append(query)
        return query


ROW = {
    "id": "e1",
    "user_id": "u1",
    "entry_date": "2025-01-08",
    "recovery_status": "better",
    "mood_score": 7,
    "energy_level": 6,
    "sleep_quality": 8,
    "medication_adherence": True,
    "therapy_session": False,
    "exercise_completed": False,
    "social_connection": True,
    "notes": None,
    "created_at": "2025-01-08T10:00:00+00:00",
    "updated_at": "2025-01-08T10:00:00+00:00",
}


def test_list_entries_scopes_to_user_and_orders_newest_first():
    client = FakeClient(data=[ROW])
    entries = RecoveryStore(client, "u1").list_entries_for_user()

    query = client.queries[0]
    assert query.table == "recovery_entries"
    assert ("eq", ("user_id", "u1"), {}) in query.calls
    assert ("order", ("entry_date",), {"desc": True}) in query.calls
    assert entries[0].entry_date == date(2025, 1, 8)
    assert entries[0].medication_adherence is True


def test_upsert_entry_conflicts_on_user_and_date():
    client = FakeClient(data=[ROW])
    saved = RecoveryStore(client, "u1").upsert_entry(RecoveryEntry(entry_date=date(2025, 1, 8), mood_score=7))

    name, args, kwargs = client.queries[0].calls[0]
    assert name == "upsert"
    assert args[0]["user_id"] == "u1"
    assert args[0]["entry_date"] == "2025-01-08"
    assert kwargs == {"on_conflict": "user_id,entry_date"}
    assert saved.id == "e1"


def test_list_entries_between_uses_iso_bounds():
    client = FakeClient(data=[])
    RecoveryStore(client, "u1").list_entries_between(date(2025, 1, 6), date(2025, 1, 8))
    calls = client.queries[0].calls
    assert ("gte", ("entry_date", "2025-01-06"), {}) in calls
    assert ("lte", ("entry_date", "2025-01-08"), {}) in calls


def test_update_goal_marks_completion_at_target():
    client = FakeClient(data=[])
    goal = RecoveryGoal("Walk", date(2025, 1, 1), date(2025, 1, 8), target_value=3, current_value=2, id="g1")
    RecoveryStore(client, "u1").update_goal("g1", {"current_value": 3}, goal)

    name, args, _ = client.queries[0].calls[0]
    assert name == "update"
    assert args[0] == {"current_value": 3, "is_completed": True}


def test_list_milestones_orders_by_achieved_date():
    client = FakeClient(data=[{"milestone_type": "streak", "title": "7 days", "achieved_date": "2025-01-07",
                               "metadata": {"days": 7}}])
    milestones = RecoveryStore(client, "u1").list_milestones()
    assert client.queries[0].table == "recovery_milestones"
    assert ("order", ("achieved_date",), {"desc": True}) in client.queries[0].calls
    assert milestones[0].metadata == {"days": 7}


def test_client_errors_become_store_errors():
    client = FakeClient(error=ConnectionError("network down"))
    with pytest.raises(StoreError):
        RecoveryStore(client, "u1").list_goals()


def test_local_store_upsert_replaces_same_date(tmp_path):
    store = LocalStore(str(tmp_path / "entries.json"))
    first = store.upsert_entry(RecoveryEntry(entry_date=date(2025, 1, 8), mood_score=3))
    second = store.upsert_entry(RecoveryEntry(entry_date=date(2025, 1, 8), mood_score=9))
    store.upsert_entry(RecoveryEntry(entry_date=date(2025, 1, 7)))

    entries = store.list_entries_for_user()
    assert [e.entry_date for e in entries] == [date(2025, 1, 8), date(2025, 1, 7)]
    assert entries[0].mood_score == 9
    assert second.id == first.id


def test_local_store_goals_and_deletes(tmp_path):
    store = LocalStore(str(tmp_path / "entries.json"))
    goal = store.add_goal(RecoveryGoal("Journal", date(2025, 1, 1), date(2025, 1, 8), target_value=2))
    updated = store.update_goal(goal.id, {"current_value": 2})
    assert updated.is_completed

    e = store.upsert_entry(RecoveryEntry(entry_date=date(2025, 1, 8)))
    store.delete_entry(e.id)
    store.delete_goal(goal.id)
    assert store.list_entries_for_user() == []
    assert store.list_goals() == []


def test_local_store_missing_file_is_empty(tmp_path):
    store = LocalStore(str(tmp_path / "nothing.json"))
    assert store.list_entries_for_user() == []
    assert store.list_milestones() == []


def test_make_store_picks_backend(tmp_path):
    path = str(tmp_path / "entries.json")
    assert isinstance(make_store("guest", FakeClient(), path), LocalStore)
    assert isinstance(make_store("u1", None, path), LocalStore)
    assert isinstance(make_store("u1", FakeClient(), path), RecoveryStore)


# Guest and demo data

def test_demo_seed_leaves_guest_entries_alone(tmp_path):
    path = str(tmp_path / "entries.json")
    guest = make_store("guest", None, path)
    guest.upsert_entry(RecoveryEntry(entry_date=date(2025, 1, 8), notes="mine"))

    demo = make_store("demo", None, path)
    demo.replace_entries(generate_entries(days=7, end=date(2025, 1, 8), seed=1, gaps=0))

    assert [e.notes for e in guest.list_entries_for_user()] == ["mine"]
    assert all(e.notes != "mine" for e in demo.list_entries_for_user())
    assert {e.user_id for e in demo.list_entries_for_user()} == {"demo"}


def test_local_store_reads_only_its_own_rows(tmp_path):
    path = tmp_path / "entries.json"
    path.write_text(json.dumps({"users": {"guest": {"entries": [
        {"id": "a", "user_id": "guest", "entry_date": "2025-01-08"},
        {"id": "b", "user_id": "someone-else", "entry_date": "2025-01-07"},
    ]}}}))
    entries = LocalStore(str(path), "guest").list_entries_for_user()
    assert [e.id for e in entries] == ["a"]


# Stored goals that fail validation

def test_list_goals_skips_a_goal_ending_before_it_starts(tmp_path):
    path = tmp_path / "entries.json"
    path.write_text(json.dumps({"users": {"guest": {"goals": [
        {"id": "bad", "user_id": "guest", "title": "Backwards", "start_date": "2025-01-08",
         "end_date": "2025-01-01", "target_value": 3},
        {"id": "ok", "user_id": "guest", "title": "Walk", "start_date": "2025-01-01",
         "end_date": "2025-01-08", "target_value": 3},
    ]}}}))
    goals = LocalStore(str(path), "guest").list_goals()
    assert [g.id for g in goals] == ["ok"]


def test_supabase_goal_rows_with_unknown_type_are_skipped():
    rows = [
        {"id": "g1", "title": "Old", "goal_type": "daily", "start_date": "2025-01-01",
         "end_date": "2025-01-08", "target_value": 1},
        {"id": "g2", "title": "Walk", "goal_type": "weekly", "start_date": "2025-01-01",
         "end_date": "2025-01-08", "target_value": 1},
    ]
    goals = RecoveryStore(FakeClient(data=rows), "u1").list_goals()
    assert [g.id for g in goals] == ["g2"]


# Mood log, journal and chat history

def test_mood_entries_query_and_insert():
    client = FakeClient(data=[{"id": "m1", "user_id": "u1", "mood_level": 7, "emotions": ["Calm"],
                               "triggers": [], "created_at": "2025-01-08T10:00:00+00:00"}])
    store = RecoveryStore(client, "u1")
    moods = store.list_mood_entries()
    assert client.queries[0].table == "mood_entries"
    assert ("eq", ("user_id", "u1"), {}) in client.queries[0].calls
    assert ("order", ("created_at",), {"desc": True}) in client.queries[0].calls
    assert moods[0].mood_level == 7 and moods[0].emotions == ["Calm"]

    store.add_mood_entry(MoodEntry(mood_level=4, emotions=["Anxious"], triggers=["Academics"]))
    name, args, _ = client.queries[1].calls[0]
    assert name == "insert"
    assert args[0] == {"mood_level": 4, "emotions": ["Anxious"], "triggers": ["Academics"],
                       "additional_thoughts": None, "user_id": "u1"}


def test_mood_entry_needs_an_emotion():
    client = FakeClient()
    with pytest.raises(ValueError):
        RecoveryStore(client, "u1").add_mood_entry(MoodEntry(mood_level=5))
    assert client.queries == []


def test_journal_update_and_delete_are_user_scoped():
    client = FakeClient(data=[])
    store = RecoveryStore(client, "u1")
    store.update_journal_entry("j1", {"title": "Better day"})
    store.delete_journal_entry("j1")

    update, delete = client.queries
    assert update.table == delete.table == "journal_entries"
    assert update.calls[0] == ("update", ({"title": "Better day"},), {})
    assert ("eq", ("id", "j1"), {}) in update.calls and ("eq", ("user_id", "u1"), {}) in update.calls
    assert delete.calls[0] == ("delete", (), {})
    assert ("eq", ("user_id", "u1"), {}) in delete.calls


def test_conversation_defaults_and_message_order():
    client = FakeClient(data=[])
    store = RecoveryStore(client, "u1")
    conversation = store.create_conversation()
    assert client.queries[0].calls[0] == ("insert", ({"user_id": "u1", "title": "New Conversation"},), {})
    assert conversation.title == "New Conversation"

    store.list_messages("c1")
    calls = client.queries[1].calls
    assert client.queries[1].table == "chat_messages"
    assert ("eq", ("conversation_id", "c1"), {}) in calls
    assert ("order", ("created_at",), {}) in calls

    store.add_message("c1", "hello", "ai")
    assert client.queries[2].calls[0][1][0] == {"conversation_id": "c1", "sender": "ai", "content": "hello",
                                                "metadata": {}}


def test_local_store_mood_and_journal(tmp_path):
    store = LocalStore(str(tmp_path / "entries.json"))
    store.add_mood_entry(MoodEntry(mood_level=3, emotions=["Sad"], entry_date=date(2025, 1, 7)))
    assert [m.mood_level for m in store.list_mood_entries()] == [3]

    note = store.add_journal_entry(JournalEntry(title="Day one", content="Started.", mood="good"))
    store.update_journal_entry(note.id, {"content": "Started again."})
    assert store.list_journal_entries()[0].content == "Started again."
    store.delete_journal_entry(note.id)
    assert store.list_journal_entries() == []


def test_local_chat_history_persists_per_user(tmp_path):
    path = str(tmp_path / "entries.json")
    guest = LocalStore(path, "guest")
    conversation = guest.create_conversation()
    guest.add_message(conversation.id, "I slept badly", "user")
    guest.add_message(conversation.id, "That sounds hard.", "ai")

    reopened = LocalStore(path, "guest")
    assert [c.id for c in reopened.list_conversations()] == [conversation.id]
    assert [(m.sender, m.content) for m in reopened.list_messages(conversation.id)] == [
        ("user", "I slept badly"), ("ai", "That sounds hard."),
    ]
    assert LocalStore(path, "demo").list_conversations() == []
