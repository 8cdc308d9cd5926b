"""Tests for the mood vocabulary and UTC helpers"""

from datetime import date, datetime, timedelta, timezone

import pytest

from services.errors import ValidationError
from services.models import MoodEntry
from services.moods import (
    EXCLUDED_MOOD,
    Mood,
    is_counted,
    parse_mood,
    parse_optional_mood,
    time_period,
    trajectory_string,
)
from services.timestamps import day_bounds, from_db, parse_day, parse_timestamp, to_db


class TestParseMood:
    def test_vocabulary_is_closed_at_eleven(self) -> None:
        assert len(Mood) == 11
        assert EXCLUDED_MOOD is Mood.UNCERTAIN

    @pytest.mark.parametrize("raw", ["Calm", "calm", "  CALM "])
    def test_case_insensitive(self, raw: str) -> None:
        assert parse_mood(raw) is Mood.CALM

    @pytest.mark.parametrize("raw", ["Ecstatic", "", None, 3])
    def test_rejects_unknown_values(self, raw) -> None:
        with pytest.raises(ValidationError):
            parse_mood(raw)

    def test_optional_mood_allows_blank(self) -> None:
        assert parse_optional_mood(None) is None
        assert parse_optional_mood("  ") is None
        assert parse_optional_mood("Hopeful") is Mood.HOPEFUL

    def test_uncertain_is_not_counted(self) -> None:
        assert not is_counted(Mood.UNCERTAIN)
        assert is_counted("Anxious")


class TestTimePeriod:
    @pytest.mark.parametrize(
        "hour,period",
        [
            (5, "morning"),
            (11, "morning"),
            (12, "afternoon"),
            (17, "afternoon"),
            (18, "evening"),
            (21, "evening"),
            (22, "night"),
            (0, "night"),
            (4, "night"),
        ],
    )
    def test_bucket_edges(self, hour: int, period: str) -> None:
        assert time_period(hour) == period


def test_trajectory_is_oldest_first() -> None:
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    entries = [
        MoodEntry(id=2, user_id="u", mood=Mood.CALM, timestamp=base + timedelta(hours=2)),
        MoodEntry(id=1, user_id="u", mood=Mood.ANXIOUS, timestamp=base),
    ]
    assert trajectory_string(entries).endswith("Anxious → Calm")
    assert trajectory_string([]) == ""


class TestTimestamps:
    def test_naive_input_is_utc(self) -> None:
        parsed = parse_timestamp("2026-03-14T08:00:00")
        assert parsed == datetime(2026, 3, 14, 8, tzinfo=timezone.utc)

    def test_z_suffix_and_offsets_normalize(self) -> None:
        assert parse_timestamp("2026-03-14T08:00:00Z").tzinfo == timezone.utc
        shifted = parse_timestamp("2026-03-14T10:00:00+02:00")
        assert shifted == datetime(2026, 3, 14, 8, tzinfo=timezone.utc)

    def test_bad_timestamp_is_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            parse_timestamp("yesterday-ish")
        with pytest.raises(ValidationError):
            parse_day("14/03/2026")

    def test_parse_day_uses_utc_date_of_full_timestamps(self) -> None:
        assert parse_day("2026-03-10") == date(2026, 3, 10)
        assert parse_day("2026-03-10T23:00:00-05:00") == date(2026, 3, 11)
        assert parse_day("2026-03-10T01:00:00+08:00") == date(2026, 3, 9)
        assert parse_day(datetime(2026, 3, 10, 23, tzinfo=timezone(timedelta(hours=-5)))) == date(2026, 3, 11)

    def test_day_bounds_are_half_open(self) -> None:
        start, end = day_bounds(date(2026, 3, 14))
        assert end - start == timedelta(days=1)
        assert start.tzinfo == timezone.utc

    def test_db_format_sorts_chronologically(self) -> None:
        early = datetime(2026, 3, 14, 9, 5, tzinfo=timezone.utc)
        late = early + timedelta(microseconds=1)
        assert to_db(early) < to_db(late)
        assert from_db(to_db(late)) == late
