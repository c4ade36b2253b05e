"""
State Store for the recall engine.

Provides portable persistence for:
- Scheduling state per question (ReviewCard)
- Review history log for the rating tally
- Activity ledger (one ISO date per day with at least one review)
- The learner's XP total

Two implementations share the CardStore protocol: MemoryStateStore keeps
serialized records in dicts, StateStore keeps them in a SQLite file
(default ~/.recall/state.db). Neither assumes anything about scheduling.
"""

from __future__ import annotations

import math
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from recall.core.clock import as_aware
from recall.core.errors import StorageCorruption
from recall.core.mastery import MasteryLevel
from recall.core.ratings import Rating

DEFAULT_EASE_FACTOR = 2.5

# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ReviewCard:
    """Scheduling state for a single question."""

    question_id: str
    channel: str = ""
    difficulty: str = ""
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: float = 0.0  # Days until next review
    repetitions: int = 0  # Consecutive non-Again reviews since last lapse
    lapses: int = 0  # Lifetime Again count
    mastery_level: MasteryLevel = MasteryLevel.NEW
    due_at: datetime | None = None
    last_reviewed_at: datetime | None = None
    total_reviews: int = 0

    @classmethod
    def fresh(
        cls,
        question_id: str,
        channel: str = "",
        difficulty: str = "",
        ease_factor: float = DEFAULT_EASE_FACTOR,
        due_at: datetime | None = None,
    ) -> ReviewCard:
        """A never-reviewed card."""
        return cls(
            question_id=question_id,
            channel=channel,
            difficulty=difficulty,
            ease_factor=ease_factor,
            due_at=due_at,
        )

    @property
    def is_new(self) -> bool:
        """True until the first review has been recorded."""
        return self.last_reviewed_at is None

    def is_due(self, now: datetime) -> bool:
        """Check if this card is due for review at ``now``."""
        if self.due_at is None:
            return False
        return as_aware(self.due_at) <= as_aware(now)

    def days_overdue(self, now: datetime) -> int:
        """Whole days past the scheduled review time."""
        if self.due_at is None:
            return 0
        delta = as_aware(now) - as_aware(self.due_at)
        return max(0, delta.days)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation; inverse of ``from_dict``."""
        return {
            "question_id": self.question_id,
            "channel": self.channel,
            "difficulty": self.difficulty,
            "ease_factor": self.ease_factor,
            "interval_days": self.interval_days,
            "repetitions": self.repetitions,
            "lapses": self.lapses,
            "mastery_level": self.mastery_level.value,
            "due_at": self.due_at.isoformat() if self.due_at else None,
            "last_reviewed_at": (
                self.last_reviewed_at.isoformat() if self.last_reviewed_at else None
            ),
            "total_reviews": self.total_reviews,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ReviewCard:
        """
        Decode a persisted record.

        Raises:
            StorageCorruption: If any field is missing, mistyped or unparseable.
        """
        if not isinstance(data, dict):
            raise StorageCorruption(None, f"expected a mapping, got {type(data).__name__}")

        question_id = data.get("question_id")
        if not isinstance(question_id, str) or not question_id:
            raise StorageCorruption(None, "missing question_id")

        try:
            mastery = MasteryLevel(data["mastery_level"])
        except (KeyError, ValueError) as e:
            raise StorageCorruption(question_id, f"bad mastery_level: {e}") from e

        return cls(
            question_id=question_id,
            channel=_text(data, "channel", question_id),
            difficulty=_text(data, "difficulty", question_id),
            ease_factor=_number(data, "ease_factor", question_id, minimum=0.0, strict=True),
            interval_days=_number(data, "interval_days", question_id, minimum=0.0),
            repetitions=_count(data, "repetitions", question_id),
            lapses=_count(data, "lapses", question_id),
            mastery_level=mastery,
            due_at=_timestamp(data, "due_at", question_id),
            last_reviewed_at=_timestamp(data, "last_reviewed_at", question_id),
            total_reviews=_count(data, "total_reviews", question_id, default=0),
        )


@dataclass
class ReviewEvent:
    """A single review, as logged for analytics."""

    question_id: str
    rating: Rating
    reviewed_at: datetime


# -----------------------------------------------------------------------------
# Field decoders
# -----------------------------------------------------------------------------


def _text(data: dict, key: str, question_id: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise StorageCorruption(question_id, f"{key} is not text")
    return value


def _number(
    data: dict,
    key: str,
    question_id: str,
    minimum: float,
    strict: bool = False,
) -> float:
    if key not in data:
        raise StorageCorruption(question_id, f"missing {key}")
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StorageCorruption(question_id, f"{key} is not a number")
    if not math.isfinite(value) or value < minimum or (strict and value == minimum):
        raise StorageCorruption(question_id, f"{key} out of range: {value}")
    return value


def _count(data: dict, key: str, question_id: str, default: int | None = None) -> int:
    if key not in data and default is not None:
        return default
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise StorageCorruption(question_id, f"{key} is not a non-negative integer")
    return value


def _timestamp(data: dict, key: str, question_id: str) -> datetime | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise StorageCorruption(question_id, f"{key} is not an ISO timestamp")
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise StorageCorruption(question_id, f"bad {key}: {value!r}") from e


# =============================================================================
# Store Protocol
# =============================================================================


class CardStore(Protocol):
    """Persistence abstraction the engine depends on."""

    def get(self, question_id: str) -> ReviewCard | None: ...

    def put(self, card: ReviewCard) -> None: ...

    def list_ids(self) -> list[str]: ...

    def list_all(self) -> list[ReviewCard]: ...

    def add_day(self, day: date) -> None: ...

    def list_days(self) -> list[str]: ...

    def get_xp(self) -> int: ...

    def set_xp(self, total_xp: int) -> None: ...

    def log_review(self, event: ReviewEvent) -> None: ...

    def list_reviews(self, question_id: str | None = None) -> list[ReviewEvent]: ...

    def lock(self) -> AbstractContextManager: ...


def _decode_event(question_id: str, rating: str, reviewed_at: str) -> ReviewEvent | None:
    try:
        return ReviewEvent(
            question_id=question_id,
            rating=Rating(rating),
            reviewed_at=datetime.fromisoformat(reviewed_at),
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"Skipping unreadable review log entry for {question_id}: {e}")
        return None


# =============================================================================
# In-memory Store
# =============================================================================


class MemoryStateStore:
    """
    Dict-backed store.

    Cards are kept in serialized form (``records``) so every read goes
    through ``ReviewCard.from_dict`` exactly as it would against disk.
    """

    def __init__(self) -> None:
        self.records: dict[str, Any] = {}
        self.days: set[str] = set()
        self.total_xp = 0
        self.reviews: list[tuple[str, str, str]] = []
        self._lock = threading.RLock()

    def get(self, question_id: str) -> ReviewCard | None:
        if question_id not in self.records:
            return None
        raw = self.records[question_id]
        try:
            return ReviewCard.from_dict(dict(raw) if isinstance(raw, dict) else raw)
        except StorageCorruption as e:
            e.question_id = e.question_id or question_id
            raise

    def put(self, card: ReviewCard) -> None:
        self.records[card.question_id] = card.to_dict()

    def list_ids(self) -> list[str]:
        return sorted(self.records)

    def list_all(self) -> list[ReviewCard]:
        return [card for qid in self.list_ids() if (card := self.get(qid)) is not None]

    def add_day(self, day: date) -> None:
        self.days.add(day.isoformat())

    def list_days(self) -> list[str]:
        return sorted(self.days)

    def get_xp(self) -> int:
        return self.total_xp

    def set_xp(self, total_xp: int) -> None:
        self.total_xp = total_xp

    def log_review(self, event: ReviewEvent) -> None:
        self.reviews.append(
            (event.question_id, event.rating.value, event.reviewed_at.isoformat())
        )

    def list_reviews(self, question_id: str | None = None) -> list[ReviewEvent]:
        events = (
            _decode_event(*row)
            for row in self.reviews
            if question_id is None or row[0] == question_id
        )
        return [e for e in events if e is not None]

    def lock(self) -> AbstractContextManager:
        return self._lock


# =============================================================================
# SQLite Store
# =============================================================================


class StateStore:
    """
    SQLite-backed state persistence.

    Handles:
    - ReviewCard per question
    - Review log (question, rating, timestamp)
    - Activity ledger of ISO dates
    - Singleton XP record

    Writes that span a read-modify-write must hold ``lock()``. The outermost
    ``lock()`` opens a ``BEGIN IMMEDIATE`` transaction, so it serializes
    writers across every connection to the same file, not just this instance.
    """

    DEFAULT_DB_PATH = Path.home() / ".recall" / "state.db"
    BUSY_TIMEOUT = 30.0  # Seconds to wait for another writer

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the state store.

        Args:
            db_path: Custom database path (defaults to ~/.recall/state.db)
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0
        self._init_schema()

        logger.info(f"StateStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path), timeout=self.BUSY_TIMEOUT, check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()

        # Scheduling state per question
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS review_cards (
                question_id TEXT PRIMARY KEY,
                channel TEXT,
                difficulty TEXT,
                ease_factor REAL,
                interval_days REAL,
                repetitions INTEGER,
                lapses INTEGER,
                mastery_level TEXT,
                due_at TEXT,
                last_reviewed_at TEXT,
                total_reviews INTEGER DEFAULT 0
            )
        """)

        # Review history log
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS review_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                question_id TEXT NOT NULL,
                rating TEXT NOT NULL,
                reviewed_at TEXT NOT NULL
            )
        """)

        # Activity ledger
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS activity_days (
                day TEXT PRIMARY KEY
            )
        """)

        # Singleton XP record
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS user_xp (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                total_xp INTEGER NOT NULL DEFAULT 0
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_review_log_question
            ON review_log(question_id)
        """)

        self.conn.commit()

    # =========================================================================
    # Card Operations
    # =========================================================================

    def get(self, question_id: str) -> ReviewCard | None:
        """
        Get the card for a question.

        Returns:
            ReviewCard, or None if the question was never reviewed

        Raises:
            StorageCorruption: If the stored row cannot be decoded
        """
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM review_cards WHERE question_id = ?", (question_id,))
        row = cursor.fetchone()

        if row is None:
            return None

        try:
            return ReviewCard.from_dict(dict(row))
        except StorageCorruption as e:
            e.question_id = e.question_id or question_id
            raise

    def put(self, card: ReviewCard) -> None:
        """Insert or replace a card."""
        record = card.to_dict()
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO review_cards (
                question_id, channel, difficulty, ease_factor, interval_days,
                repetitions, lapses, mastery_level, due_at, last_reviewed_at,
                total_reviews
            ) VALUES (
                :question_id, :channel, :difficulty, :ease_factor, :interval_days,
                :repetitions, :lapses, :mastery_level, :due_at, :last_reviewed_at,
                :total_reviews
            )
            ON CONFLICT(question_id) DO UPDATE SET
                channel = excluded.channel,
                difficulty = excluded.difficulty,
                ease_factor = excluded.ease_factor,
                interval_days = excluded.interval_days,
                repetitions = excluded.repetitions,
                lapses = excluded.lapses,
                mastery_level = excluded.mastery_level,
                due_at = excluded.due_at,
                last_reviewed_at = excluded.last_reviewed_at,
                total_reviews = excluded.total_reviews
        """,
            record,
        )
        self._commit()

    def list_ids(self) -> list[str]:
        """All tracked question IDs, sorted."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT question_id FROM review_cards ORDER BY question_id")
        return [row["question_id"] for row in cursor.fetchall()]

    def list_all(self) -> list[ReviewCard]:
        """
        Every stored card.

        Raises:
            StorageCorruption: On the first undecodable row
        """
        return [card for qid in self.list_ids() if (card := self.get(qid)) is not None]

    # =========================================================================
    # Activity Ledger
    # =========================================================================

    def add_day(self, day: date) -> None:
        """Record activity for a calendar day (idempotent)."""
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR IGNORE INTO activity_days (day) VALUES (?)", (day.isoformat(),)
        )
        self._commit()

    def list_days(self) -> list[str]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT day FROM activity_days ORDER BY day")
        return [row["day"] for row in cursor.fetchall()]

    # =========================================================================
    # XP
    # =========================================================================

    def get_xp(self) -> int:
        cursor = self.conn.cursor()
        cursor.execute("SELECT total_xp FROM user_xp WHERE id = 1")
        row = cursor.fetchone()
        return int(row["total_xp"]) if row else 0

    def set_xp(self, total_xp: int) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO user_xp (id, total_xp) VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET total_xp = excluded.total_xp
        """,
            (total_xp,),
        )
        self._commit()

    # =========================================================================
    # Review Log Operations
    # =========================================================================

    def log_review(self, event: ReviewEvent) -> None:
        """Append a review event."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO review_log (question_id, rating, reviewed_at)
            VALUES (?, ?, ?)
        """,
            (event.question_id, event.rating.value, event.reviewed_at.isoformat()),
        )
        self._commit()

    def list_reviews(self, question_id: str | None = None) -> list[ReviewEvent]:
        """Review events in insertion order, optionally for one question."""
        cursor = self.conn.cursor()
        if question_id is None:
            cursor.execute("SELECT * FROM review_log ORDER BY id")
        else:
            cursor.execute(
                "SELECT * FROM review_log WHERE question_id = ? ORDER BY id", (question_id,)
            )
        events = (
            _decode_event(row["question_id"], row["rating"], row["reviewed_at"])
            for row in cursor.fetchall()
        )
        return [e for e in events if e is not None]

    # =========================================================================
    # Transactions
    # =========================================================================

    def _commit(self) -> None:
        # Inside lock() the outermost block commits
        if self._depth == 0:
            self.conn.commit()

    @contextmanager
    def lock(self) -> Iterator[None]:
        """
        Hold the database write lock.

        Re-entrant. The outermost block runs in one ``BEGIN IMMEDIATE``
        transaction that commits on exit and rolls back if the block raises.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                if self.conn.in_transaction:
                    self.conn.commit()
                self.conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                if outermost:
                    self.conn.rollback()
                raise
            self._depth -= 1
            if outermost:
                self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

