"""Conversational turn coordinator.

A turn persists the user's message (and reported mood), assembles context,
relays the generator's fragments to the caller in arrival order, and
persists the assistant's reply. The user's message is never rolled back:
if generation fails afterwards the log keeps the input without a reply.

Whatever ends the upstream stream (a ``done`` marker, the body ending, or
a transport error) funnels into the same GENERATE_CLOSED step.
"""

from enum import Enum

from loguru import logger

from services.context import assemble, build_system_context
from services.errors import MoodCoreError, StoreError, UpstreamGenerationError, ValidationError
from services.models import Sender
from services.moods import parse_optional_mood
from services.timestamps import utcnow


class TurnState(Enum):
    START = "start"
    PERSIST_USER_MESSAGE = "persist_user_message"
    PERSIST_MOOD = "persist_mood"
    GENERATE_OPEN = "generate_open"
    GENERATING = "generating"
    GENERATE_CLOSED = "generate_closed"
    PERSIST_ASSISTANT_MESSAGE = "persist_assistant_message"
    DONE = "done"
    ERROR = "error"


class Turn:
    """One streamed exchange. Iterate it for events; close it to abandon it.

    Events are dicts:
      {"type": "chunk", "content": str}
      {"type": "done", "text": str, "message": dict}
      {"type": "error", "kind": str, "message": str, "text": str}
    """

    def __init__(self, coordinator, user_id, message, current_mood=None):
        self.user_id = user_id
        self.message = message
        self.current_mood = current_mood
        self.state = TurnState.START
        self.chunks = []
        self.user_message = None
        self.assistant_message = None
        self.error = None
        self._events = coordinator._run(self)

    @property
    def text(self):
        return "".join(self.chunks)

    def __iter__(self):
        return self._events

    def close(self):
        self._events.close()


def _release(upstream):
    close = getattr(upstream, "close", None)
    if close is not None:
        close()


def _validate(user_id, message, current_mood):
    if not user_id:
        raise ValidationError("userId is required")
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("message is required")
    return parse_optional_mood(current_mood)


class TurnCoordinator:
    def __init__(self, store, generator, persona, clock=utcnow):
        self.store = store
        self.generator = generator
        self.persona = persona
        self.clock = clock

    def stream(self, user_id, message, current_mood=None):
        """Start a streamed turn. Input is validated here, before any write."""
        mood = _validate(user_id, message, current_mood)
        return Turn(self, user_id, message, mood)

    def send_turn(self, user_id, message, current_mood=None, on_chunk=None):
        """Drive a streamed turn to the end and return its final event.

        ``on_chunk`` receives every fragment in order. If it raises, the
        turn is abandoned the same way a disconnected client abandons it.
        """
        turn = self.stream(user_id, message, current_mood)
        final = None
        try:
            for event in turn:
                if event["type"] == "chunk":
                    if on_chunk is not None:
                        on_chunk(event["content"])
                else:
                    final = event
        finally:
            turn.close()
        return final

    def reply(self, user_id, message, current_mood=None):
        """Non-streaming turn: same persistence, one blocking generate call."""
        mood = _validate(user_id, message, current_mood)
        self.store.insert_message(user_id, message, Sender.USER)
        if mood is not None:
            self.store.insert_mood(user_id, mood, note=message)

        system = self._system_context(user_id, mood)
        text = self.generator.generate(message, system)
        if not text or not text.strip():
            raise UpstreamGenerationError("Generation service returned an empty reply")
        self.store.insert_message(user_id, text, Sender.ASSISTANT)
        return text

    def _system_context(self, user_id, mood):
        bundle = assemble(self.store, user_id, current_mood=mood, clock=self.clock)
        return build_system_context(self.persona, bundle)

    def _run(self, turn):
        try:
            turn.state = TurnState.PERSIST_USER_MESSAGE
            turn.user_message = self.store.insert_message(turn.user_id, turn.message, Sender.USER)
            if turn.current_mood is not None:
                turn.state = TurnState.PERSIST_MOOD
                self.store.insert_mood(turn.user_id, turn.current_mood, note=turn.message)
        except StoreError as exc:
            yield self._fail(turn, exc)
            return

        upstream = None
        try:
            turn.state = TurnState.GENERATE_OPEN
            system = self._system_context(turn.user_id, turn.current_mood)
            upstream = iter(self.generator.stream_generate(turn.message, system))
            for fragment in upstream:
                turn.state = TurnState.GENERATING
                turn.chunks.append(fragment)
                yield {"type": "chunk", "content": fragment}
        except GeneratorExit:
            _release(upstream)
            turn.state = TurnState.GENERATE_CLOSED
            logger.info(
                f"Turn for user {turn.user_id} abandoned after {len(turn.chunks)} chunks"
            )
            self._save_partial(turn)
            turn.state = TurnState.ERROR
            raise
        except Exception as exc:
            _release(upstream)
            turn.state = TurnState.GENERATE_CLOSED
            if not isinstance(exc, MoodCoreError):
                logger.exception(f"Unexpected failure while generating for user {turn.user_id}")
                exc = UpstreamGenerationError(f"Generation failed: {exc}")
            self._save_partial(turn)
            yield self._fail(turn, exc)
            return

        _release(upstream)
        turn.state = TurnState.GENERATE_CLOSED
        if not turn.text.strip():
            yield self._fail(
                turn, UpstreamGenerationError("Generation service returned an empty reply")
            )
            return

        turn.state = TurnState.PERSIST_ASSISTANT_MESSAGE
        try:
            turn.assistant_message = self.store.insert_message(
                turn.user_id, turn.text, Sender.ASSISTANT
            )
        except StoreError as exc:
            yield self._fail(turn, exc)
            return

        turn.state = TurnState.DONE
        yield {
            "type": "done",
            "text": turn.text,
            "message": turn.assistant_message.model_dump(mode="json"),
        }

    def _save_partial(self, turn):
        """Best effort; a failure here is logged and not retried."""
        if not turn.text:
            return
        turn.state = TurnState.PERSIST_ASSISTANT_MESSAGE
        try:
            turn.assistant_message = self.store.insert_message(
                turn.user_id, turn.text, Sender.ASSISTANT
            )
        except StoreError as exc:
            logger.error(f"Could not save partial reply for user {turn.user_id}: {exc}")

    def _fail(self, turn, exc):
        turn.state = TurnState.ERROR
        turn.error = exc
        logger.error(f"Turn for user {turn.user_id} failed: {exc}")
        return {
            "type": "error",
            "kind": type(exc).__name__,
            "message": str(exc),
            "text": turn.text,
        }
