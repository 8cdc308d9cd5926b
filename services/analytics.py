"""Mood analytics: frequencies, transitions and volatility over a window.

All computation happens in Python over the entries read for the window;
nothing here writes. Reads take no locks, so a window that is being written
to while it is analysed may come back slightly stale.
"""

from collections import Counter, defaultdict
from datetime import datetime, time, timedelta, timezone

from services.models import (
    DailyMoodSummary,
    MoodFrequency,
    MoodTransition,
    TrendResult,
    Volatility,
)
from services.moods import is_counted
from services.timestamps import parse_timestamp, to_utc, utcnow

TRANSITION_LIMIT = 10

TIMEFRAME_DAYS = {
    "week": 7,
    "month": 30,
    "year": 365,
}


def _counted(entries):
    return [e for e in entries if is_counted(e.mood)]


def _chronological(entries):
    return sorted(entries, key=lambda e: (e.timestamp, e.id))


def frequencies(entries):
    """Count per mood, highest first; ties broken by mood name."""
    counts = Counter(e.mood for e in _counted(entries))
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0].value))
    return [MoodFrequency(mood=mood, count=count) for mood, count in ordered]


def transitions(entries, limit=TRANSITION_LIMIT):
    """Most common (previous, next) pairs between adjacent counted entries.

    Excluded entries are dropped before pairing, so the entries on either
    side of one become neighbours.
    """
    ordered = _chronological(_counted(entries))
    # Counter keeps first-seen order, so sorted() leaves ties in that order
    pairs = Counter(zip((e.mood for e in ordered), (e.mood for e in ordered[1:])))
    ranked = sorted(pairs.items(), key=lambda item: -item[1])[:limit]
    return [
        MoodTransition(from_mood=prev, to_mood=nxt, count=count)
        for (prev, nxt), count in ranked
    ]


def volatility(entries):
    """Average distinct moods per day over average entries per day.

    Only days with at least one counted entry take part. An empty window
    gives the all-zero record.
    """
    days = defaultdict(list)
    for e in _counted(entries):
        days[e.timestamp.date()].append(e.mood)
    if not days:
        return Volatility()

    avg_distinct = sum(len(set(moods)) for moods in days.values()) / len(days)
    avg_total = sum(len(moods) for moods in days.values()) / len(days)
    if avg_total <= 0:
        return Volatility()
    return Volatility(
        avg_daily_mood_variety=avg_distinct,
        avg_daily_entries=avg_total,
        volatility_index=avg_distinct / avg_total,
    )


def compute_trends(entries):
    return TrendResult(
        frequencies=frequencies(entries),
        transitions=transitions(entries),
        volatility=volatility(entries),
    )


def get_trends(store, user_id, start, end):
    """Trends for the inclusive window [start, end]."""
    entries = store.moods_between(user_id, start, end)
    return compute_trends(entries)


def daily_summaries(entries):
    """First mood, last mood and entry count per day, newest day first."""
    days = defaultdict(list)
    for e in _chronological(entries):
        days[e.timestamp.date()].append(e)
    return [
        DailyMoodSummary(
            date=day,
            initial_mood=day_entries[0].mood,
            final_mood=day_entries[-1].mood,
            total_entries=len(day_entries),
        )
        for day, day_entries in sorted(days.items(), reverse=True)
    ]


def daily_summary_list(store, user_id, start, end):
    """Calendar rows for every day that has entries inside [start, end].

    Initial and final moods come from the window; total_entries counts the
    whole calendar day, so the edge days are widened before counting.
    """
    start, end = to_utc(start), to_utc(end)
    first = datetime.combine(start.date(), time.min, tzinfo=timezone.utc)
    last = datetime.combine(end.date(), time.min, tzinfo=timezone.utc) + timedelta(days=1)
    whole_days = store.moods_between(user_id, first, last, end_inclusive=False)
    totals = Counter(e.timestamp.date() for e in whole_days)

    rows = daily_summaries([e for e in whole_days if start <= e.timestamp <= end])
    for row in rows:
        row.total_entries = totals[row.date]
    return rows


def default_window(start=None, end=None, days=30, clock=utcnow):
    """Resolve optional window bounds; the default lookback is anchored on end."""
    end_dt = parse_timestamp(end) if end else clock()
    start_dt = parse_timestamp(start) if start else end_dt - timedelta(days=days)
    return start_dt, end_dt


def timeframe_window(timeframe=None, clock=utcnow):
    end = clock()
    return end - timedelta(days=TIMEFRAME_DAYS.get(timeframe, 30)), end


def earliest_data_date(store, user_id):
    """Earliest timestamp among the user's moods and messages, or None."""
    candidates = [
        record.timestamp
        for record in (store.oldest_mood(user_id), store.oldest_message(user_id))
        if record is not None
    ]
    return min(candidates) if candidates else None
