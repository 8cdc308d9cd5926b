"""Shared fixtures: a temporary store, a fixed clock and a scripted generator"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from services.errors import UpstreamGenerationError
from services.store import MoodStore

NOW = datetime(2026, 3, 14, 15, 30, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


class FakeGenerator:
    """Stands in for OllamaClient.

    ``fragments`` are streamed in order; ``fail_after`` raises once that many
    fragments went out; ``unreachable`` fails before anything is sent.
    """

    def __init__(self, fragments=None, text="A gentle reply.", fail_after=None, unreachable=False):
        self.fragments = list(fragments or [])
        self.text = text
        self.fail_after = fail_after
        self.unreachable = unreachable
        self.generate_calls = []
        self.stream_calls = []
        self.stream_closed = False

    def generate(self, prompt, system=None):
        self.generate_calls.append((prompt, system))
        if self.unreachable:
            raise UpstreamGenerationError("Generation service unreachable: connection refused")
        return self.text

    def stream_generate(self, prompt, system=None):
        self.stream_calls.append((prompt, system))
        return self._stream()

    def _stream(self):
        try:
            if self.unreachable:
                raise UpstreamGenerationError("Generation service unreachable: connection refused")
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i >= self.fail_after:
                    raise UpstreamGenerationError("Generation stream broke: reset by peer")
                yield fragment
        finally:
            self.stream_closed = True

    def status(self):
        if self.unreachable:
            return {"status": "offline", "message": "AI service is not available", "details": {}}
        return {"status": "online", "message": "AI service is available", "details": {}}


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store(tmp_path: Path, clock: FixedClock) -> MoodStore:
    """Create temporary database for testing"""
    store = MoodStore(tmp_path / "test_moods.db", clock=clock)
    store.connect()
    return store


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator(fragments=["Hel", "lo"])
