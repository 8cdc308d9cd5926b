"""The closed mood vocabulary. Every mood that reaches storage has passed
through ``parse_mood`` first."""

from enum import Enum

from services.errors import ValidationError


class Mood(str, Enum):
    DESPAIRING = "Despairing"
    IRRITATED = "Irritated"
    ANXIOUS = "Anxious"
    DRAINED = "Drained"
    RESTLESS = "Restless"
    INDIFFERENT = "Indifferent"
    CALM = "Calm"
    HOPEFUL = "Hopeful"
    CONTENT = "Content"
    ENERGIZED = "Energized"
    UNCERTAIN = "Uncertain"


# Left out of every aggregate, kept in raw listings
EXCLUDED_MOOD = Mood.UNCERTAIN

_BY_NAME = {m.value.lower(): m for m in Mood}


def parse_mood(value):
    """Return the Mood for a user-supplied value, or raise ValidationError."""
    if isinstance(value, Mood):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Mood is required")
    mood = _BY_NAME.get(value.strip().lower())
    if mood is None:
        raise ValidationError(f"Invalid mood value: {value!r}")
    return mood


def parse_optional_mood(value):
    """Like parse_mood, but empty input means no mood was reported."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_mood(value)


def is_counted(mood):
    """Whether a mood takes part in aggregates."""
    return Mood(mood) is not EXCLUDED_MOOD


def time_period(hour):
    """Map an hour (0-23) to the period used by the user summary."""
    if 5 <= hour <= 11:
        return "morning"
    elif 12 <= hour <= 17:
        return "afternoon"
    elif 18 <= hour <= 21:
        return "evening"
    else:
        return "night"


def trajectory_string(entries):
    """Return a concise oldest-to-newest mood trail for the generator's context."""
    if not entries:
        return ""
    ordered = sorted(entries, key=lambda e: (e.timestamp, e.id))
    parts = [e.mood.value for e in ordered]
    return "User mood trajectory (oldest→newest): " + " → ".join(parts)
