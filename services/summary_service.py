"""Rolling user summaries and per-day narrative summaries.

The user summary is recomputed from full history and written with one
upsert statement, so concurrent refreshes settle on one of the computed
snapshots (last writer wins). Day summaries are inserted with
ON CONFLICT DO NOTHING, so a duplicate request keeps the first row.
"""

import json
from collections import Counter

from loguru import logger

from services.errors import UpstreamGenerationError
from services.models import MoodShare, PeriodCount, UserSummary
from services.moods import is_counted, time_period
from services.timestamps import day_bounds, parse_day, utcnow

DAY_SUMMARY_PROMPT = (
    "Please generate a thoughtful summary of the user's day based on their "
    "mood entries and conversations."
)

DAY_SUMMARY_SYSTEM = """\
You are Tala, a compassionate mental wellness support assistant.
Your task is to create a brief, empathetic summary of the user's day based on \
their mood entries and chat logs.
Focus on emotional patterns, potential triggers, and positive moments.
Keep your summary supportive, non-judgmental, and focused on the user's well-being.
Do not include any recommendations that could be interpreted as medical advice.

Day Data:
{day_data}\
"""


def compute_user_summary(user_id, entries, now=None):
    counted = [e.mood for e in entries if is_counted(e.mood)]
    total = len(counted)
    distribution = [
        MoodShare(mood=mood, count=count, percentage=round(count * 100.0 / total, 2))
        for mood, count in sorted(
            Counter(counted).items(), key=lambda item: (-item[1], item[0].value)
        )
    ]

    periods = Counter(time_period(e.timestamp.hour) for e in entries)
    active = [
        PeriodCount(period=period, count=count)
        for period, count in sorted(periods.items(), key=lambda item: (-item[1], item[0]))
    ]

    return UserSummary(
        user_id=user_id,
        mood_distribution=distribution,
        active_time_periods=active,
        last_updated=now or utcnow(),
    )


def refresh_user_summary(store, user_id, clock=utcnow):
    """Recompute the summary from full history and replace the stored row."""
    summary = compute_user_summary(user_id, store.all_moods(user_id), now=clock())
    store.upsert_user_summary(summary)
    return summary


def get_user_summary(store, user_id):
    return store.get_user_summary(user_id)


def get_or_create_day_summary(store, generator, user_id, day):
    """Return the narrative for (user, day), generating it at most once.

    Returns None when the day has neither moods nor messages. Generation
    failures propagate as UpstreamGenerationError and nothing is stored.
    """
    day = parse_day(day)
    existing = store.get_day_summary(user_id, day)
    if existing is not None:
        return existing

    start, end = day_bounds(day)
    moods = store.moods_between(user_id, start, end, end_inclusive=False)
    messages = store.messages_between(user_id, start, end)
    if not moods and not messages:
        logger.info(f"No data for user {user_id} on {day}; nothing to summarize")
        return None

    day_data = {
        "moods": [m.model_dump(mode="json", include={"mood", "timestamp", "note"}) for m in moods],
        "messages": [
            m.model_dump(mode="json", include={"content", "sender", "timestamp"}) for m in messages
        ],
    }
    text = generator.generate(
        DAY_SUMMARY_PROMPT, DAY_SUMMARY_SYSTEM.format(day_data=json.dumps(day_data))
    )
    text = text.strip()
    if not text:
        raise UpstreamGenerationError("Generation service returned an empty summary")
    summary = store.insert_day_summary(user_id, day, text)
    logger.info(f"Stored day summary for user {user_id} on {day}")
    return summary
