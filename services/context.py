"""Context assembly for a conversational turn.

Gathers the rolling user summary, the latest mood entries and today's
conversation into one bundle, then renders it under the persona preamble
as the generator's system context. Reads only.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Optional

from config import Config
from services.moods import Mood, trajectory_string
from services.models import ChatMessage, MoodEntry
from services.timestamps import day_bounds, utcnow

DEFAULT_PERSONA = """\
Tala is a compassionate, non-judgmental mental wellness support chatbot in the \
SinagTala app. She listens with care, reflects thoughtfully, and offers gentle \
insights based on users' emotional patterns, not medical diagnoses or clinical advice.
Tala is designed solely to support emotional well-being. If unrelated or \
sensitive topics such as politics or news arise, she kindly guides the \
conversation back to feelings, self-care, or reflections.
Tala is not equipped to respond to crises. If a user is in distress, she gently \
suggests the app's Crisis Hotlines and Mental Health Resources pages.\
"""


def load_persona(path=None):
    """Load the persona profile JSON. Returns (preamble, raw_profile)."""
    path = path or Config.PROFILE_PATH
    if not path or not os.path.exists(path):
        return DEFAULT_PERSONA, {}
    with open(path, "r") as f:
        profile = json.load(f)

    parts = [f"You are {profile.get('name', 'Tala')}."]

    if profile.get("description"):
        parts.append(profile["description"])
    if profile.get("tone"):
        parts.append(f"Tone: {profile['tone']}.")
    if profile.get("topics"):
        parts.append(f"Stay within these topics: {', '.join(profile['topics'])}.")
    if profile.get("boundaries"):
        parts.append(f"Boundaries: {profile['boundaries']}.")
    if profile.get("crisis_guidance"):
        parts.append(profile["crisis_guidance"])
    if profile.get("custom_instructions"):
        parts.append(profile["custom_instructions"])

    return " ".join(parts), profile


@dataclass
class ContextBundle:
    user_summary: dict = field(default_factory=dict)
    recent_moods: list[MoodEntry] = field(default_factory=list)
    todays_messages: list[ChatMessage] = field(default_factory=list)
    current_mood: Optional[Mood] = None

    def as_json(self):
        return {
            "recentMoods": [
                m.model_dump(mode="json", include={"mood", "timestamp"}) for m in self.recent_moods
            ],
            "userSummary": self.user_summary,
            "todaysChatHistory": [
                m.model_dump(mode="json", include={"content", "sender", "timestamp"})
                for m in self.todays_messages
            ],
        }


def assemble(store, user_id, current_mood=None, recent_limit=None, clock=utcnow):
    """Collect everything the generator should know about this user right now.

    A user with no summary yet gets an empty dict rather than an error.
    """
    summary = store.get_user_summary(user_id)
    start, end = day_bounds(clock().date())
    return ContextBundle(
        user_summary=summary.summary_data() if summary else {},
        recent_moods=store.recent_moods(user_id, limit=recent_limit or Config.RECENT_MOOD_LIMIT),
        todays_messages=store.messages_between(user_id, start, end),
        current_mood=current_mood,
    )


def build_system_context(persona, bundle):
    """Render the persona preamble and the bundle as the system context."""
    parts = [f"About Tala:\n{persona}"]

    if bundle.current_mood is not None:
        parts.append(f"The user's current reported mood is: {bundle.current_mood.value}")

    trail = trajectory_string(bundle.recent_moods)
    if trail:
        parts.append(trail)

    parts.append(f"User Context:\n{json.dumps(bundle.as_json())}")
    return "\n\n".join(parts)
