"""HTTP surface tests using Flask's test client"""

import json
from datetime import timedelta

import pytest

from app import create_app
from config import Config
from services.models import Sender
from services.store import MoodStore

from conftest import NOW, FakeGenerator


class AppTestConfig(Config):
    TESTING = True
    PROFILE_PATH = "profiles/missing.json"


def _client(store, generator, clock):
    app = create_app(config=AppTestConfig, store=store, generator=generator, clock=clock)
    return app.test_client()


@pytest.fixture
def client(store: MoodStore, generator, clock):
    return _client(store, generator, clock)


def _events(response):
    return [
        json.loads(line[len("data: "):])
        for line in response.get_data(as_text=True).splitlines()
        if line.startswith("data: ")
    ]


class TestMoodRoutes:
    def test_save_mood(self, client, store: MoodStore) -> None:
        response = client.post("/api/mood", json={"userId": "u1", "mood": "Calm", "note": "tea"})

        assert response.status_code == 201
        body = response.get_json()
        assert body["success"] is True
        assert body["data"]["mood"] == "Calm"
        assert body["data"]["note"] == "tea"
        assert store.get_user_summary("u1") is not None

    def test_invalid_mood_is_400(self, client, store: MoodStore) -> None:
        response = client.post("/api/mood", json={"userId": "u1", "mood": "Ecstatic"})

        assert response.status_code == 400
        assert response.get_json()["success"] is False
        assert store.all_moods("u1") == []

    def test_entries_calendar_and_day(self, client, store: MoodStore) -> None:
        store.insert_mood("u1", "Anxious", timestamp=NOW - timedelta(hours=3))
        store.insert_mood("u1", "Calm", timestamp=NOW - timedelta(hours=1))

        entries = client.get("/api/mood/u1").get_json()["data"]
        assert [e["mood"] for e in entries] == ["Calm", "Anxious"]

        calendar = client.get("/api/mood/calendar/u1").get_json()["data"]
        assert calendar == [
            {"date": "2026-03-14", "initial_mood": "Anxious", "final_mood": "Calm", "total_entries": 2}
        ]

        day = client.get("/api/mood/day/u1/2026-03-14").get_json()["data"]
        assert [e["mood"] for e in day] == ["Anxious", "Calm"]

    def test_bad_day_is_400(self, client) -> None:
        assert client.get("/api/mood/day/u1/yesterday").status_code == 400

    def test_trends(self, client, store: MoodStore) -> None:
        for i, mood in enumerate(["Calm", "Anxious", "Calm"]):
            store.insert_mood("u1", mood, timestamp=NOW - timedelta(hours=5 - i))

        data = client.get("/api/mood/trends/u1").get_json()["data"]

        assert data["frequencies"][0] == {"mood": "Calm", "count": 2}
        assert {"from_mood": "Calm", "to_mood": "Anxious", "count": 1} in data["transitions"]
        assert data["volatility"]["volatility_index"] > 0


class TestChatRoutes:
    def test_blocking_message(self, store: MoodStore, clock) -> None:
        client = _client(store, FakeGenerator(text="I'm here."), clock)

        response = client.post("/api/chat/message", json={"userId": "u1", "message": "hi"})

        assert response.status_code == 200
        assert response.get_json()["data"]["response"] == "I'm here."

    def test_streaming_message(self, client, store: MoodStore) -> None:
        response = client.post(
            "/api/chat/message?stream=true",
            json={"userId": "u1", "message": "hi", "currentMood": "Hopeful"},
        )

        assert response.mimetype == "text/event-stream"
        events = _events(response)
        assert [e["type"] for e in events] == ["chunk", "chunk", "done"]
        assert "".join(e["content"] for e in events[:-1]) == "Hello"
        assert events[-1]["text"] == "Hello"
        assert [m.sender for m in store.latest_messages("u1")] == [Sender.ASSISTANT, Sender.USER]

    def test_streaming_rejects_empty_message(self, client) -> None:
        response = client.post("/api/chat/message?stream=true", json={"userId": "u1", "message": ""})
        assert response.status_code == 400

    def test_streaming_when_offline_sends_error_event(self, store: MoodStore, clock) -> None:
        client = _client(store, FakeGenerator(unreachable=True), clock)

        events = _events(client.post("/api/chat/message?stream=true", json={"userId": "u1", "message": "hi"}))

        assert events == [
            {
                "type": "error",
                "kind": "UpstreamGenerationError",
                "message": "Generation service unreachable: connection refused",
                "text": "",
            }
        ]

    def test_blocking_when_offline_is_503(self, store: MoodStore, clock) -> None:
        client = _client(store, FakeGenerator(unreachable=True), clock)
        response = client.post("/api/chat/message", json={"userId": "u1", "message": "hi"})
        assert response.status_code == 503

    def test_status(self, store: MoodStore, clock) -> None:
        assert _client(store, FakeGenerator(), clock).get("/api/chat/status").status_code == 200
        assert _client(store, FakeGenerator(unreachable=True), clock).get("/api/chat/status").status_code == 503

    def test_logs_filtered_by_date(self, client, store: MoodStore) -> None:
        store.insert_message("u1", "older", Sender.USER, timestamp=NOW - timedelta(days=1))
        store.insert_message("u1", "today", Sender.USER, timestamp=NOW)

        data = client.get("/api/chat/logs/u1?date=2026-03-14").get_json()["data"]
        assert [m["content"] for m in data] == ["today"]

    def test_day_summary(self, store: MoodStore, clock) -> None:
        generator = FakeGenerator(text="A steady day.")
        client = _client(store, generator, clock)
        store.insert_mood("u1", "Calm", timestamp=NOW)

        first = client.get("/api/chat/summary/u1/2026-03-14").get_json()["data"]
        second = client.get("/api/chat/summary/u1/2026-03-14").get_json()["data"]

        assert first["summary"] == second["summary"] == "A steady day."
        assert len(generator.generate_calls) == 1

    def test_day_summary_without_data_is_404(self, client) -> None:
        assert client.get("/api/chat/summary/u1/2026-03-01").status_code == 404


class TestDashboardRoutes:
    def test_dashboard(self, client, store: MoodStore) -> None:
        client.post("/api/mood", json={"userId": "u1", "mood": "Content"})

        data = client.get("/api/dashboard/u1?timeframe=week").get_json()["data"]

        assert data["calendarData"][0]["final_mood"] == "Content"
        assert data["trendData"]["frequencies"] == [{"mood": "Content", "count": 1}]
        assert data["userSummary"]["mood_distribution"][0]["mood"] == "Content"
        assert data["earliestDataDate"].startswith("2026-03-14")

    def test_unknown_timeframe_uses_default_window(self, client, store: MoodStore) -> None:
        store.insert_mood("u1", "Calm", timestamp=NOW - timedelta(days=20))
        store.insert_mood("u1", "Drained", timestamp=NOW - timedelta(days=40))

        data = client.get("/api/dashboard/u1?timeframe=decade").get_json()["data"]

        assert data["trendData"]["frequencies"] == [{"mood": "Calm", "count": 1}]

    def test_ai_insight(self, store: MoodStore, clock) -> None:
        report = {"summary": "Calm week.", "insight": "Mornings are best.", "advice": "Keep walking."}
        client = _client(store, FakeGenerator(text=json.dumps(report)), clock)

        assert client.get("/api/dashboard/u1/ai-insight").get_json()["data"] == report

    def test_refresh(self, client, store: MoodStore) -> None:
        store.insert_mood("u1", "Energized", timestamp=NOW)

        data = client.post("/api/dashboard/u1/refresh").get_json()["data"]

        assert data["mood_distribution"] == [{"mood": "Energized", "count": 1, "percentage": 100.0}]
        assert data["active_time_periods"] == [{"period": "afternoon", "count": 1}]

    def test_tools(self, client, store: MoodStore) -> None:
        store.insert_mood("u1", "Calm", timestamp=NOW)

        response = client.post("/api/tools/u1/getFrequentMoods", json={"limit": 1})
        assert response.get_json()["data"] == [{"mood": "Calm", "count": 1}]
        assert client.post("/api/tools/u1/nope", json={}).status_code == 400
