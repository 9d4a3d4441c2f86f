#!/usr/bin/env python3
"""
Run instructions
- Install the project (a virtualenv is optional):
    pip install -e .
- Run the app:
    streamlit run app.py

Notes
- Signed-in users are persisted to Supabase (SUPABASE_URL / SUPABASE_ANON_KEY in
  .streamlit/secrets.toml or the environment).
- Guest and demo sessions use a local JSON file; demo mode is seeded with synthetic entries.
- The chat tab needs GEMINI_API_KEY.
- Dates are calendar days in APP_TIMEZONE (default Asia/Kolkata).
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import List, MutableMapping, Optional

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from config import Settings, configure_logging, load_settings, local_today
from gemini import GeminiClient, GeminiError, user_message
from generatedata import generate_entries
from helplines import EMERGENCY_TIPS, HELPLINES, tel_link
from recovery import (
    GOAL_TYPES,
    RECOVERY_STATUSES,
    STATUS_RESPONSES,
    RecoveryEntry,
    RecoveryGoal,
    WeeklyDataPoint,
    bar_color,
    best_day,
    build_weekly_window,
    classify_progress,
    compute_average,
    compute_daily_percentage,
    compute_streak,
    entries_frame,
    goal_progress,
    motivational_message,
    split_goals,
    status_index,
    today_point,
)
from store import LocalStore, StoreError, create_supabase_client, is_guest, make_store
from wellbeing import (
    EMOTIONS,
    JOURNAL_MOODS,
    MOOD_MAX,
    MOOD_MIN,
    TRIGGERS,
    JournalEntry,
    MoodEntry,
    gemini_history,
    mood_frame,
    mood_label,
)

logger = logging.getLogger(__name__)


# -------------------------------
# Service construction
# -------------------------------

SUPABASE_STATE_KEY = "supabase_client"
FLASH_KEY = "flash"


def get_supabase(url: Optional[str], key: Optional[str], state: Optional[MutableMapping] = None):
    """
    The Supabase client for this browser session. Each session keeps its own
    client in session state because the client carries the signed-in user's auth.
    """
    state = st.session_state if state is None else state
    if SUPABASE_STATE_KEY in state:
        return state[SUPABASE_STATE_KEY]
    client = None
    if url and key:
        try:
            client = create_supabase_client(url, key)
        except Exception as e:
            logger.error("Supabase initialization failed: %s", e)
    state[SUPABASE_STATE_KEY] = client
    return client


@st.cache_resource(show_spinner=False)
def get_gemini(api_key: Optional[str], model: str) -> Optional[GeminiClient]:
    if not api_key:
        return None
    return GeminiClient(api_key, model=model)


def set_flash(message: str, state: Optional[MutableMapping] = None) -> None:
    """Keep a message to show on the next run, so it survives st.rerun()."""
    state = st.session_state if state is None else state
    state[FLASH_KEY] = message


def pop_flash(state: Optional[MutableMapping] = None) -> Optional[str]:
    state = st.session_state if state is None else state
    return state.pop(FLASH_KEY, None)


def _restore_session(client) -> None:
    session = st.session_state.get("session")
    if client is None or session is None:
        return
    try:
        client.auth.set_session(session.access_token, session.refresh_token)
    except Exception as e:
        logger.warning("Could not restore Supabase session: %s", e)


# -------------------------------
# Authentication
# -------------------------------

def render_auth_ui(client) -> None:
    """Render login/signup/guest options, or the signed-in header."""
    st.session_state.setdefault("user", None)
    st.session_state.setdefault("session", None)

    if st.session_state.user is None:
        st.markdown("### Welcome")
        st.markdown("**Track your recovery one day at a time.**")

        demo_col1, demo_col2, demo_col3 = st.columns([1, 2, 1])
        with demo_col2:
            if st.button("🚀 **Try the demo**", key="demo_btn", use_container_width=True, type="primary"):
                st.session_state.user = {"id": "demo", "email": "demo@example.com"}
                st.session_state.seed_demo = True
                st.rerun()

        tabs = ["Email Login", "Sign Up", "Continue as Guest"] if client is not None else ["Continue as Guest"]
        tab_objs = st.tabs(tabs)

        if client is not None:
            with tab_objs[0]:
                login_email = st.text_input("Email", key="login_email")
                login_password = st.text_input("Password", type="password", key="login_password")
                if st.button("Login", key="login_btn"):
                    if login_email and login_password:
                        try:
                            response = client.auth.sign_in_with_password({"email": login_email, "password": login_password})
                            st.session_state.user = {"id": response.user.id, "email": response.user.email}
                            st.session_state.session = response.session
                            st.rerun()
                        except Exception as e:
                            logger.warning("Login failed for %s: %s", login_email, e)
                            st.error(f"Login failed: {e}")
                    else:
                        st.error("Please enter both email and password.")

            with tab_objs[1]:
                signup_email = st.text_input("Email", key="signup_email")
                signup_password = st.text_input("Password", type="password", key="signup_password")
                signup_confirm = st.text_input("Confirm Password", type="password", key="signup_confirm")
                if st.button("Sign Up", key="signup_btn"):
                    if not (signup_email and signup_password and signup_confirm):
                        st.error("Please fill in all fields.")
                    elif signup_password != signup_confirm:
                        st.error("Passwords don't match.")
                    else:
                        try:
                            response = client.auth.sign_up({"email": signup_email, "password": signup_password})
                            st.session_state.user = {"id": response.user.id, "email": response.user.email}
                            st.session_state.session = response.session
                            st.rerun()
                        except Exception as e:
                            logger.warning("Sign up failed for %s: %s", signup_email, e)
                            st.error(f"Sign up failed: {e}")

        with tab_objs[-1]:
            st.info("Guest mode stores entries on this machine only.")
            if st.button("Continue as Guest", key="guest_btn"):
                st.session_state.user = {"id": "guest", "email": "guest@example.com"}
                st.rerun()
        return

    col1, col2 = st.columns([3, 1])
    with col1:
        st.markdown(f"### Welcome, {st.session_state.user.get('email', 'friend')}")
    with col2:
        if st.button("🚪 Logout", use_container_width=True):
            if client is not None and not is_guest(st.session_state.user.get("id")):
                try:
                    client.auth.sign_out()
                except Exception as e:
                    logger.warning("Sign out failed: %s", e)
            st.session_state.clear()
            st.rerun()
    st.markdown("---")


# -------------------------------
# Visualization helpers
# -------------------------------

def make_weekly_chart(window: List[WeeklyDataPoint]) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(
        go.Bar(
            x=[p.day for p in window],
            # Keep empty days visible as a sliver
            y=[max(p.percentage, 2) for p in window],
            marker_color=[bar_color(p.percentage) for p in window],
            text=[f"{p.percentage}%" for p in window],
            customdata=[p.date.isoformat() for p in window],
            hovertemplate="%{customdata}: %{text}<extra></extra>",
            textposition="outside",
        )
    )
    fig.update_layout(
        title="Weekly Recovery Progress",
        yaxis=dict(range=[0, 110], title="Progress (%)"),
        template="plotly_white",
        showlegend=False,
    )
    return fig


def make_history_chart(df: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    if df.empty:
        fig.update_layout(title="Daily Recovery", template="plotly_white")
        return fig
    fig.add_trace(go.Scatter(x=df["Date"], y=df["Percentage"], mode="lines+markers", name="Daily",
                             hovertemplate="%{x|%Y-%m-%d}: %{y}%"))
    roll7 = df["Percentage"].rolling(window=7, min_periods=1).mean()
    fig.add_trace(go.Scatter(x=df["Date"], y=roll7, mode="lines", name="7-entry avg"))
    fig.update_layout(
        title="Daily Recovery & Rolling Average",
        xaxis_title="Date",
        yaxis_title="Progress (%)",
        yaxis=dict(range=[0, 105]),
        hovermode="x unified",
        template="plotly_white",
    )
    return fig


# -------------------------------
# Sections
# -------------------------------

def render_progress(entries: List[RecoveryEntry], today: date) -> None:
    window = build_weekly_window(today, entries)
    average = compute_average(window)
    streak = compute_streak(entries, today)
    current = today_point(window)
    current_pct = current.percentage if current else 0
    best = best_day(window, today)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Weekly average", f"{average}%", classify_progress(average), delta_color="off")
    c2.metric("Today", f"{current_pct}%", classify_progress(current_pct), delta_color="off")
    c3.metric("Best day", f"{best.percentage}%" if best else "—", best.day if best else None, delta_color="off")
    c4.metric("🔥 Streak", f"{streak} day{'s' if streak != 1 else ''}")

    st.plotly_chart(make_weekly_chart(window), use_container_width=True)
    st.info(motivational_message(current_pct))


def render_checkin_form(store, entries: List[RecoveryEntry], today: date) -> None:
    existing = next((e for e in entries if e.entry_date == today), None)
    with st.expander("📝 Daily recovery check-in" + (" (update today's entry)" if existing else ""), expanded=existing is None):
        with st.form("checkin_form"):
            status = st.radio(
                "Compared to yesterday, I feel",
                RECOVERY_STATUSES,
                index=status_index(existing.recovery_status if existing else None),
                horizontal=True,
            )
            mood = st.slider("Mood", 1, 10, existing.mood_score or 5 if existing else 5)
            energy = st.slider("Energy", 1, 10, existing.energy_level or 5 if existing else 5)
            sleep = st.slider("Sleep quality", 1, 10, existing.sleep_quality or 5 if existing else 5)
            a1, a2 = st.columns(2)
            meds = a1.checkbox("Took medication", value=bool(existing and existing.medication_adherence))
            therapy = a1.checkbox("Therapy session", value=bool(existing and existing.therapy_session))
            exercise = a2.checkbox("Exercised", value=bool(existing and existing.exercise_completed))
            social = a2.checkbox("Connected with someone", value=bool(existing and existing.social_connection))
            notes = st.text_area("Notes", value=(existing.notes or "") if existing else "")
            submitted = st.form_submit_button("Save entry")

        if submitted:
            entry = RecoveryEntry(
                entry_date=today,
                recovery_status=status,
                mood_score=mood,
                energy_level=energy,
                sleep_quality=sleep,
                medication_adherence=meds,
                therapy_session=therapy,
                exercise_completed=exercise,
                social_connection=social,
                notes=notes or None,
            )
            try:
                store.upsert_entry(entry)
            except StoreError as e:
                st.error(f"❌ {e}")
                return
            st.session_state.last_status = status
            set_flash(f"Saved! Today's progress: {compute_daily_percentage(entry)}%")
            st.rerun()


def render_status_response(status: Optional[str]) -> None:
    if status not in STATUS_RESPONSES:
        return
    response = STATUS_RESPONSES[status]
    st.markdown(f"#### {response['title']}")
    st.write(response["message"])
    st.caption(f"💡 {response['tip']}")


def render_goals(store, today: date) -> None:
    try:
        goals = store.list_goals()
    except StoreError as e:
        st.error(str(e))
        goals = []
    active, completed = split_goals(goals)

    st.markdown("#### 🎯 Active goals")
    if not active:
        st.caption("No active goals. Create your first recovery goal to start tracking progress!")
    for goal in active:
        st.markdown(f"**{goal.title}** · {goal.current_value:g}/{goal.target_value:g} {goal.unit or ''}")
        if goal.description:
            st.caption(goal.description)
        st.progress(goal_progress(goal) / 100)
        if st.button("+1", key=f"goal_inc_{goal.id}"):
            try:
                store.update_goal(goal.id, {"current_value": goal.current_value + 1}, goal)
            except StoreError as e:
                st.error(str(e))
            else:
                st.rerun()

    with st.expander("➕ New goal"):
        with st.form("goal_form"):
            title = st.text_input("Title")
            description = st.text_area("Description", placeholder="Describe your goal and why it's important to you")
            g1, g2 = st.columns(2)
            goal_type = g1.selectbox("Goal type", GOAL_TYPES)
            target = g2.number_input("Target", min_value=1.0, value=1.0, step=1.0)
            unit = g1.text_input("Unit", value="times")
            start = g2.date_input("Start date", value=today)
            end = g1.date_input("End date", value=today + timedelta(days=7))
            submitted = st.form_submit_button("Create goal")
        if submitted:
            if not title.strip():
                st.error("Please give the goal a title.")
                return
            try:
                goal = RecoveryGoal(title=title.strip(), start_date=start, end_date=end, goal_type=goal_type,
                                    description=description or None, target_value=target, unit=unit or None)
                store.add_goal(goal)
            except ValueError as e:
                st.error(str(e))
            except StoreError as e:
                st.error(f"❌ {e}")
            else:
                st.rerun()

    if completed:
        st.markdown("#### ✅ Completed goals")
        for goal in completed:
            st.markdown(f"- **{goal.title}** ({goal.target_value:g} {goal.unit or ''})")


def render_milestones(store) -> None:
    try:
        milestones = store.list_milestones()
    except StoreError as e:
        st.error(str(e))
        return
    st.markdown("#### 🏆 Milestones")
    if not milestones:
        st.caption("Milestones appear here as you keep going.")
        return
    for m in milestones:
        st.markdown(f"- **{m.title}** · {m.achieved_date:%b %d, %Y}" + (f" — {m.description}" if m.description else ""))


def render_crisis() -> None:
    st.error("If you are in danger right now, please call a helpline or emergency services.")
    for tip in EMERGENCY_TIPS:
        st.markdown(f"- {tip}")
    cols = st.columns(2)
    for i, helpline in enumerate(HELPLINES):
        with cols[i % 2]:
            st.markdown(f"**{helpline['name']}**  \n{helpline['description']}  \n🕒 {helpline['hours']}")
            st.markdown(f"[📞 Call {helpline['number']}]({tel_link(helpline)})")


def make_mood_chart(df: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    if not df.empty:
        fig.add_trace(go.Scatter(x=df["Date"], y=df["Mood"], mode="lines+markers", name="Mood",
                                 text=df["Label"], hovertemplate="%{x|%Y-%m-%d}: %{y} (%{text})<extra></extra>"))
    fig.update_layout(
        title="Mood over time",
        yaxis=dict(range=[0, MOOD_MAX + 0.5], title="Mood level"),
        template="plotly_white",
    )
    return fig


def render_mood(store, today: date) -> None:
    with st.form("mood_form", clear_on_submit=True):
        level = st.slider("Mood level (1 = very low, 10 = excellent)", MOOD_MIN, MOOD_MAX, 5)
        st.caption(mood_label(level))
        emotions = st.multiselect("What emotions are you experiencing?", EMOTIONS)
        triggers = st.multiselect("What might be affecting your mood?", TRIGGERS)
        thoughts = st.text_area("Anything else on your mind?")
        submitted = st.form_submit_button("Save mood")
    if submitted:
        entry = MoodEntry(mood_level=level, emotions=emotions, triggers=triggers,
                          additional_thoughts=thoughts or None, entry_date=today)
        try:
            store.add_mood_entry(entry)
        except ValueError as e:
            st.error(str(e))
        except StoreError as e:
            st.error(f"❌ {e}")
        else:
            set_flash("Mood entry saved.")
            st.rerun()

    try:
        moods = store.list_mood_entries()
    except StoreError as e:
        st.error(str(e))
        return
    df = mood_frame(moods)
    st.plotly_chart(make_mood_chart(df), use_container_width=True)
    for m in moods[:10]:
        when = m.entry_date.isoformat() if m.entry_date else (m.created_at or "")[:10]
        st.markdown(f"**{when}** · {m.mood_level}/10 {mood_label(m.mood_level)}"
                    + (f"  \nEmotions: {', '.join(m.emotions)}" if m.emotions else "")
                    + (f"  \nTriggers: {', '.join(m.triggers)}" if m.triggers else ""))
        if m.additional_thoughts:
            st.caption(m.additional_thoughts)


def render_journal(store, today: date) -> None:
    with st.expander("✍️ New journal entry"):
        with st.form("journal_form", clear_on_submit=True):
            title = st.text_input("Title")
            content = st.text_area("What's on your mind?", height=200)
            mood = st.radio("Mood", JOURNAL_MOODS, index=JOURNAL_MOODS.index("okay"), horizontal=True)
            submitted = st.form_submit_button("Save entry")
        if submitted:
            try:
                store.add_journal_entry(JournalEntry(title=title.strip(), content=content, mood=mood, entry_date=today))
            except ValueError as e:
                st.error(str(e))
            except StoreError as e:
                st.error(f"❌ {e}")
            else:
                set_flash("Journal entry saved.")
                st.rerun()

    try:
        journal = store.list_journal_entries()
    except StoreError as e:
        st.error(str(e))
        return
    if not journal:
        st.caption("Your journal is empty. Writing a few lines a day helps.")
    for item in journal:
        when = item.entry_date.isoformat() if item.entry_date else (item.created_at or "")[:10]
        with st.expander(f"{when} · {item.title} ({item.mood})"):
            with st.form(f"journal_edit_{item.id}"):
                new_title = st.text_input("Title", value=item.title)
                new_content = st.text_area("Entry", value=item.content, height=160)
                new_mood = st.radio("Mood", JOURNAL_MOODS, horizontal=True,
                                    index=JOURNAL_MOODS.index(item.mood) if item.mood in JOURNAL_MOODS else 2)
                c1, c2 = st.columns(2)
                save = c1.form_submit_button("Update")
                remove = c2.form_submit_button("Delete")
            try:
                if save:
                    store.update_journal_entry(item.id, {"title": new_title.strip() or item.title,
                                                         "content": new_content, "mood": new_mood})
                elif remove:
                    store.delete_journal_entry(item.id)
            except StoreError as e:
                st.error(f"❌ {e}")
            else:
                if save or remove:
                    st.rerun()


def _current_conversation(store):
    """The conversation picked in the chat tab, or None before the first message."""
    conversations = store.list_conversations()
    if not conversations:
        return None
    by_id = {c.id: c for c in conversations}
    ids = list(by_id)
    current = st.session_state.get("conversation_id")
    chosen = st.selectbox(
        "Conversation",
        ids,
        index=ids.index(current) if current in by_id else 0,
        format_func=lambda cid: by_id[cid].label,
    )
    st.session_state.conversation_id = chosen
    return by_id[chosen]


def _render_chat_panel(gemini: Optional[GeminiClient], store, entries: List[RecoveryEntry]) -> None:
    if gemini is None:
        st.info("Chat is unavailable: set GEMINI_API_KEY to enable it.")
        return

    col1, col2 = st.columns([3, 1])
    with col2:
        if st.button("🆕 New conversation", use_container_width=True):
            try:
                st.session_state.conversation_id = store.create_conversation().id
            except StoreError as e:
                st.error(str(e))
            else:
                st.rerun()
    try:
        with col1:
            conversation = _current_conversation(store)
        messages = store.list_messages(conversation.id) if conversation else []
    except StoreError as e:
        st.error(f"Could not load chat history: {e}")
        return

    for message in messages:
        with st.chat_message("user" if message.sender == "user" else "assistant"):
            st.write(message.content)

    crisis_mode = st.toggle("I'm in crisis", value=False)
    if st.button("✨ Insights from my check-ins", disabled=not entries):
        data = entries_frame(entries).tail(14).to_dict(orient="records")
        with st.spinner("Thinking..."):
            try:
                st.session_state.insights = gemini.generate_mood_insights(data)
            except GeminiError as e:
                st.error(f"Could not generate insights: {e}")
    if st.session_state.get("insights"):
        st.markdown(st.session_state.insights)

    prompt = st.chat_input("How are you feeling today?")
    if not prompt:
        return
    history = gemini_history(messages)
    with st.spinner("Thinking..."):
        try:
            if crisis_mode:
                reply = gemini.generate_crisis_response(prompt)
            elif history:
                reply = gemini.generate_response(history + [user_message(prompt)])
            else:
                reply = gemini.generate_support_response(prompt)
        except GeminiError as e:
            st.error(f"Sorry, I couldn't respond right now: {e}")
            return
    try:
        if conversation is None:
            conversation = store.create_conversation()
            st.session_state.conversation_id = conversation.id
        store.add_message(conversation.id, prompt, "user")
        store.add_message(conversation.id, reply, "ai")
    except StoreError as e:
        st.error(f"Could not save the conversation: {e}")
        return
    st.rerun()


# -------------------------------
# Main UI
# -------------------------------

def main():
    st.set_page_config(page_title="Recovery Tracker", layout="wide")
    settings: Settings = load_settings()
    configure_logging(settings.log_level)

    st.title("Recovery Tracker")
    st.caption("Small consistent steps, tracked day by day.")

    client = get_supabase(settings.supabase_url, settings.supabase_anon_key)
    if client is None:
        st.warning("⚠️ Supabase not configured. Running in guest mode only.")
    _restore_session(client)

    render_auth_ui(client)
    user = st.session_state.get("user")
    if user is None:
        return

    store = make_store(user.get("id"), client, settings.local_store_path)
    today = local_today(settings.timezone)

    if st.session_state.pop("seed_demo", False) and isinstance(store, LocalStore):
        store.replace_entries(generate_entries(days=45, end=today))

    try:
        entries = store.list_entries_for_user()
    except StoreError as e:
        st.error(f"Failed to load data: {e}")
        entries = []

    gemini = get_gemini(settings.gemini_api_key, settings.gemini_model)

    flash = pop_flash()
    if flash:
        st.success(flash)

    tab_progress, tab_goals, tab_mood, tab_journal, tab_chat, tab_crisis = st.tabs(
        ["📈 Progress", "🎯 Goals", "😊 Mood", "📓 Journal", "💬 Chat", "🆘 Crisis support"]
    )

    with tab_progress:
        render_progress(entries, today)
        render_checkin_form(store, entries, today)
        render_status_response(st.session_state.get("last_status"))
        df = entries_frame(entries)
        st.plotly_chart(make_history_chart(df), use_container_width=True)
        st.dataframe(df, use_container_width=True, hide_index=True)

    with tab_goals:
        render_goals(store, today)
        render_milestones(store)

    with tab_mood:
        render_mood(store, today)

    with tab_journal:
        render_journal(store, today)

    with tab_chat:
        st.markdown("Made with AI. Not a substitute for professional care.")
        _render_chat_panel(gemini, store, entries)

    with tab_crisis:
        render_crisis()


if __name__ == "__main__":
    main()
