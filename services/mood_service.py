"""Recording and listing raw mood entries and chat logs.

Raw listings keep every mood, Uncertain included; only the aggregates in
analytics and the user summary leave it out.
"""

from loguru import logger

from services import summary_service
from services.errors import ValidationError
from services.moods import parse_mood
from services.timestamps import day_bounds, parse_day


def save_mood_entry(store, user_id, mood, note=None):
    """Validate, store, then refresh the user's rolling summary."""
    if not user_id:
        raise ValidationError("userId is required")
    mood = parse_mood(mood)
    entry = store.insert_mood(user_id, mood, note=note or None)
    logger.info(f"Saved mood {mood.value} for user {user_id}")
    summary_service.refresh_user_summary(store, user_id)
    return entry


def list_mood_entries(store, user_id, start, end):
    """Entries inside [start, end], newest first."""
    entries = store.moods_between(user_id, start, end)
    return list(reversed(entries))


def day_moods(store, user_id, day):
    """All entries of one UTC calendar day, oldest first."""
    start, end = day_bounds(parse_day(day))
    return store.moods_between(user_id, start, end, end_inclusive=False)


def chat_logs(store, user_id, day=None, limit=50):
    """The message log, newest first, optionally for a single day."""
    if day is None:
        return store.latest_messages(user_id, limit=limit)
    start, end = day_bounds(parse_day(day))
    return store.latest_messages(user_id, limit=limit, start=start, end=end)
