"""SQLite storage for mood entries, chat logs and derived summaries"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from loguru import logger

from services.errors import StoreError, wrap_store_error
from services.models import ChatMessage, DaySummary, MoodEntry, Sender, UserSummary
from services.moods import EXCLUDED_MOOD, parse_mood
from services.timestamps import from_db, to_db, utcnow


SCHEMA = """
    CREATE TABLE IF NOT EXISTS mood_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        mood TEXT NOT NULL,
        note TEXT,
        timestamp TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_mood_entries_user_time
        ON mood_entries(user_id, timestamp);

    CREATE TABLE IF NOT EXISTS chat_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        content TEXT NOT NULL,
        sender TEXT NOT NULL CHECK (sender IN ('user', 'assistant')),
        timestamp TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_chat_messages_user_time
        ON chat_messages(user_id, timestamp);

    CREATE TABLE IF NOT EXISTS user_summaries (
        user_id TEXT PRIMARY KEY,
        summary_data TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS day_summaries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        date TEXT NOT NULL,
        summary TEXT NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE(user_id, date)
    );
"""


class MoodStore:
    """
    Storage handle built once per process and passed to every service.

    Every call opens its own connection, so the handle is safe to share
    between the threads of a threaded Flask server. Single-statement upserts
    carry the concurrency guarantees; nothing here takes an application lock.
    """

    def __init__(self, db_path: Union[Path, str], busy_timeout: float = 10.0, clock=utcnow) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self.clock = clock

    def connect(self) -> None:
        """Create the database file and schema if needed"""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._db() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)
        logger.info(f"Connected to database: {self.db_path}")

    @contextmanager
    def _db(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.busy_timeout)
        except sqlite3.Error as exc:
            logger.error(f"Could not open database {self.db_path}: {exc}")
            raise wrap_store_error(exc) from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error(f"Database error: {exc}")
            raise wrap_store_error(exc) from exc
        finally:
            conn.close()

    # -- mood entries -------------------------------------------------------

    def insert_mood(self, user_id: str, mood, note: Optional[str] = None, timestamp=None) -> MoodEntry:
        mood = parse_mood(mood)
        ts = timestamp or self.clock()
        with self._db() as conn:
            cursor = conn.execute(
                "INSERT INTO mood_entries (user_id, mood, note, timestamp) VALUES (?, ?, ?, ?)",
                (user_id, mood.value, note, to_db(ts)),
            )
            entry_id = cursor.lastrowid
        logger.debug(f"Inserted mood entry {entry_id} for user {user_id}: {mood.value}")
        return MoodEntry(id=entry_id, user_id=user_id, mood=mood, note=note, timestamp=ts)

    def moods_between(self, user_id: str, start, end, end_inclusive: bool = True) -> list[MoodEntry]:
        """Entries in the window, oldest first"""
        op = "<=" if end_inclusive else "<"
        with self._db() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM mood_entries
                WHERE user_id = ? AND timestamp >= ? AND timestamp {op} ?
                ORDER BY timestamp, id
                """,
                (user_id, to_db(start), to_db(end)),
            ).fetchall()
        return [_mood_from_row(r) for r in rows]

    def all_moods(self, user_id: str) -> list[MoodEntry]:
        with self._db() as conn:
            rows = conn.execute(
                "SELECT * FROM mood_entries WHERE user_id = ? ORDER BY timestamp, id",
                (user_id,),
            ).fetchall()
        return [_mood_from_row(r) for r in rows]

    def recent_moods(self, user_id: str, limit: int = 5) -> list[MoodEntry]:
        """Newest first"""
        with self._db() as conn:
            rows = conn.execute(
                """
                SELECT * FROM mood_entries WHERE user_id = ?
                ORDER BY timestamp DESC, id DESC LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()
        return [_mood_from_row(r) for r in rows]

    def oldest_mood(self, user_id: str) -> Optional[MoodEntry]:
        with self._db() as conn:
            row = conn.execute(
                "SELECT * FROM mood_entries WHERE user_id = ? ORDER BY timestamp, id LIMIT 1",
                (user_id,),
            ).fetchone()
        return _mood_from_row(row) if row else None

    def mood_counts_by_day(self, user_id: str, since) -> list[dict]:
        with self._db() as conn:
            rows = conn.execute(
                """
                SELECT substr(timestamp, 1, 10) AS date, mood, COUNT(*) AS count
                FROM mood_entries
                WHERE user_id = ? AND timestamp >= ?
                GROUP BY date, mood
                ORDER BY date, mood
                """,
                (user_id, to_db(since)),
            ).fetchall()
        return [dict(r) for r in rows]

    def frequent_moods(self, user_id: str, limit: int = 3) -> list[dict]:
        with self._db() as conn:
            rows = conn.execute(
                """
                SELECT mood, COUNT(*) AS count
                FROM mood_entries
                WHERE user_id = ? AND mood != ?
                GROUP BY mood
                ORDER BY count DESC, mood
                LIMIT ?
                """,
                (user_id, EXCLUDED_MOOD.value, limit),
            ).fetchall()
        return [dict(r) for r in rows]

    # -- chat log -----------------------------------------------------------

    def insert_message(self, user_id: str, content: str, sender: Sender, timestamp=None) -> ChatMessage:
        sender = Sender(sender)
        ts = timestamp or self.clock()
        with self._db() as conn:
            cursor = conn.execute(
                "INSERT INTO chat_messages (user_id, content, sender, timestamp) VALUES (?, ?, ?, ?)",
                (user_id, content, sender.value, to_db(ts)),
            )
            message_id = cursor.lastrowid
        logger.debug(f"Inserted {sender.value} message {message_id} for user {user_id}")
        return ChatMessage(id=message_id, user_id=user_id, content=content, sender=sender, timestamp=ts)

    def messages_between(self, user_id: str, start, end) -> list[ChatMessage]:
        """Messages in the half-open range [start, end), oldest first"""
        with self._db() as conn:
            rows = conn.execute(
                """
                SELECT * FROM chat_messages
                WHERE user_id = ? AND timestamp >= ? AND timestamp < ?
                ORDER BY timestamp, id
                """,
                (user_id, to_db(start), to_db(end)),
            ).fetchall()
        return [_message_from_row(r) for r in rows]

    def latest_messages(self, user_id: str, limit: int = 50, start=None, end=None) -> list[ChatMessage]:
        """Newest first, optionally restricted to [start, end)"""
        query = "SELECT * FROM chat_messages WHERE user_id = ?"
        params: list = [user_id]
        if start is not None and end is not None:
            query += " AND timestamp >= ? AND timestamp < ?"
            params += [to_db(start), to_db(end)]
        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)
        with self._db() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_message_from_row(r) for r in rows]

    def oldest_message(self, user_id: str) -> Optional[ChatMessage]:
        with self._db() as conn:
            row = conn.execute(
                "SELECT * FROM chat_messages WHERE user_id = ? ORDER BY timestamp, id LIMIT 1",
                (user_id,),
            ).fetchone()
        return _message_from_row(row) if row else None

    # -- summaries ----------------------------------------------------------

    def upsert_user_summary(self, summary: UserSummary) -> None:
        """Replace the user's summary in one statement; last writer wins"""
        now = to_db(summary.last_updated)
        with self._db() as conn:
            conn.execute(
                """
                INSERT INTO user_summaries (user_id, summary_data, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    summary_data = excluded.summary_data,
                    updated_at = excluded.updated_at
                """,
                (summary.user_id, json.dumps(summary.summary_data()), now, now),
            )
        logger.debug(f"Replaced user summary for {summary.user_id}")

    def get_user_summary(self, user_id: str) -> Optional[UserSummary]:
        with self._db() as conn:
            row = conn.execute(
                "SELECT * FROM user_summaries WHERE user_id = ? ORDER BY updated_at DESC LIMIT 1",
                (user_id,),
            ).fetchone()
        if not row:
            return None
        try:
            data = json.loads(row["summary_data"])
        except ValueError as exc:
            raise StoreError(f"Corrupt summary data for user {user_id}") from exc
        return UserSummary(user_id=user_id, **data)

    def get_day_summary(self, user_id: str, day) -> Optional[DaySummary]:
        with self._db() as conn:
            row = conn.execute(
                "SELECT * FROM day_summaries WHERE user_id = ? AND date = ?",
                (user_id, day.isoformat()),
            ).fetchone()
        return _day_summary_from_row(row) if row else None

    def insert_day_summary(self, user_id: str, day, summary: str) -> DaySummary:
        """Insert unless a row for (user, date) exists; returns whichever row won"""
        with self._db() as conn:
            cursor = conn.execute(
                """
                INSERT INTO day_summaries (user_id, date, summary, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, date) DO NOTHING
                """,
                (user_id, day.isoformat(), summary, to_db(self.clock())),
            )
            if cursor.rowcount == 0:
                logger.info(f"Day summary for {user_id} on {day} already existed; keeping it")
            row = conn.execute(
                "SELECT * FROM day_summaries WHERE user_id = ? AND date = ?",
                (user_id, day.isoformat()),
            ).fetchone()
        return _day_summary_from_row(row)


def _mood_from_row(row) -> MoodEntry:
    return MoodEntry(
        id=row["id"],
        user_id=row["user_id"],
        mood=row["mood"],
        note=row["note"],
        timestamp=from_db(row["timestamp"]),
    )


def _message_from_row(row) -> ChatMessage:
    return ChatMessage(
        id=row["id"],
        user_id=row["user_id"],
        content=row["content"],
        sender=row["sender"],
        timestamp=from_db(row["timestamp"]),
    )


def _day_summary_from_row(row) -> DaySummary:
    return DaySummary(
        id=row["id"],
        user_id=row["user_id"],
        date=row["date"],
        summary=row["summary"],
        created_at=from_db(row["created_at"]),
    )
