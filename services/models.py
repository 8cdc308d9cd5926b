"""Records passed between the store, the services and the HTTP layer"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from services.moods import Mood
from services.timestamps import to_utc


class Sender(str, Enum):
    """Who wrote a chat message"""

    USER = "user"
    ASSISTANT = "assistant"


class _UTCModel(BaseModel):
    @field_validator("timestamp", "last_updated", "created_at", check_fields=False)
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return value
        return to_utc(value)


class MoodEntry(_UTCModel):
    """A single recorded mood. Append-only."""

    id: int
    user_id: str
    mood: Mood
    note: Optional[str] = None
    timestamp: datetime


class ChatMessage(_UTCModel):
    """One line of the conversation log. Append-only."""

    id: int
    user_id: str
    content: str
    sender: Sender
    timestamp: datetime


class MoodShare(BaseModel):
    mood: Mood
    count: int
    percentage: float


class PeriodCount(BaseModel):
    period: str
    count: int


class UserSummary(_UTCModel):
    """Rolling per-user snapshot, replaced wholesale on every refresh"""

    user_id: str
    mood_distribution: list[MoodShare] = Field(default_factory=list)
    active_time_periods: list[PeriodCount] = Field(default_factory=list)
    last_updated: datetime

    def summary_data(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"user_id"})


class DaySummary(_UTCModel):
    """Narrative for one (user, date). Created once, never regenerated."""

    id: int
    user_id: str
    date: date
    summary: str
    created_at: datetime


class MoodFrequency(BaseModel):
    mood: Mood
    count: int


class MoodTransition(BaseModel):
    from_mood: Mood
    to_mood: Mood
    count: int


class Volatility(BaseModel):
    avg_daily_mood_variety: float = 0.0
    avg_daily_entries: float = 0.0
    volatility_index: float = 0.0


class TrendResult(BaseModel):
    frequencies: list[MoodFrequency] = Field(default_factory=list)
    transitions: list[MoodTransition] = Field(default_factory=list)
    volatility: Volatility = Field(default_factory=Volatility)


class DailyMoodSummary(BaseModel):
    date: date
    initial_mood: Mood
    final_mood: Mood
    total_entries: int


class InsightReport(BaseModel):
    summary: str = ""
    insight: str = ""
    advice: str = ""
