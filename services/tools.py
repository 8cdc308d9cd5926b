"""Auxiliary read-only operations the assistant can ask for by kind.

Kinds are an enum parsed at the boundary; dispatch goes through a table
keyed by that enum.
"""

from datetime import timedelta
from enum import Enum

from services.analytics import TIMEFRAME_DAYS
from services.errors import ValidationError
from services.timestamps import utcnow


class ToolKind(str, Enum):
    MOOD_TREND = "getMoodTrend"
    FREQUENT_MOODS = "getFrequentMoods"


def parse_tool_kind(value):
    if isinstance(value, ToolKind):
        return value
    for kind in ToolKind:
        if value in (kind.value, kind.name, kind.name.lower()):
            return kind
    raise ValidationError(f"Unknown tool: {value!r}")


def _mood_trend(store, user_id, params, clock):
    timeframe = params.get("timeframe", "month")
    if timeframe not in TIMEFRAME_DAYS:
        raise ValidationError(f"Unknown timeframe: {timeframe!r}")
    since = clock() - timedelta(days=TIMEFRAME_DAYS[timeframe])
    return store.mood_counts_by_day(user_id, since)


def _frequent_moods(store, user_id, params, clock):
    try:
        limit = int(params.get("limit") or 3)
    except (TypeError, ValueError) as exc:
        raise ValidationError("limit must be an integer") from exc
    if limit < 1:
        raise ValidationError("limit must be positive")
    return store.frequent_moods(user_id, limit=limit)


HANDLERS = {
    ToolKind.MOOD_TREND: _mood_trend,
    ToolKind.FREQUENT_MOODS: _frequent_moods,
}


def execute_tool(store, user_id, kind, params=None, clock=utcnow):
    kind = parse_tool_kind(kind)
    return HANDLERS[kind](store, user_id, params or {}, clock)
