"""SQLite-backed record store for feedback items.

Runs parameterized reads and the two writes the core needs: creating an
item and recording its classification. Errors from sqlite3 propagate to
the caller unchanged.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

from src.models import ClassificationResult

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS feedback (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    channel TEXT NOT NULL,
    title TEXT,
    content TEXT NOT NULL,
    author TEXT,
    sentiment TEXT NOT NULL DEFAULT 'pending',
    sentiment_score REAL NOT NULL DEFAULT 0,
    theme TEXT NOT NULL DEFAULT 'uncategorized',
    urgency TEXT NOT NULL DEFAULT 'low',
    value_score TEXT NOT NULL DEFAULT 'medium',
    analyzed INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_feedback_date ON feedback(created_at);
CREATE INDEX IF NOT EXISTS idx_feedback_theme ON feedback(theme);
CREATE INDEX IF NOT EXISTS idx_feedback_sentiment ON feedback(sentiment);
CREATE INDEX IF NOT EXISTS idx_feedback_channel ON feedback(channel);
"""

# Columns a caller may set on insert; everything else comes from the schema defaults
_INSERT_COLUMNS = (
    "created_at", "channel", "title", "content", "author",
    "sentiment", "sentiment_score", "theme", "urgency", "value_score", "analyzed",
)


class FeedbackStore:
    """SQLite store for the ``feedback`` relation.

    Args:
        db_path: Path to SQLite database file, or ':memory:' for in-memory.

    Example::

        with FeedbackStore("signalflow.db") as store:
            store.initialize_schema()
            feedback_id = store.insert({"channel": "github", "content": "..."})
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._conn = sqlite3.connect(self._db_path)
        self._conn.row_factory = sqlite3.Row

    def __enter__(self) -> FeedbackStore:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def initialize_schema(self) -> None:
        """Create the feedback table and indexes if they don't exist."""
        self._conn.executescript(_SCHEMA_SQL)
        self._conn.commit()

    def insert(self, record: dict) -> int:
        """Insert one feedback row and return its id.

        Only known columns are written; keys set to None fall back to the
        column default (so ``created_at=None`` means "now").
        """
        columns = [c for c in _INSERT_COLUMNS if record.get(c) is not None]
        placeholders = ", ".join("?" for _ in columns)
        cursor = self._conn.execute(
            f"INSERT INTO feedback ({', '.join(columns)}) VALUES ({placeholders})",
            tuple(record[c] for c in columns),
        )
        self._conn.commit()
        return cursor.lastrowid

    def update_classification(self, feedback_id: int, result: ClassificationResult) -> None:
        """Record a classification on an existing row and mark it analyzed."""
        self._conn.execute(
            "UPDATE feedback SET sentiment = ?, sentiment_score = ?, theme = ?, "
            "urgency = ?, analyzed = 1 WHERE id = ?",
            (result.sentiment, result.sentiment_score, result.theme, result.urgency, feedback_id),
        )
        self._conn.commit()

    def query(self, sql: str, params: tuple | list = ()) -> list[dict]:
        """Run a parameterized read and return all rows as dicts."""
        rows = self._conn.execute(sql, tuple(params)).fetchall()
        return [dict(row) for row in rows]

    def first(self, sql: str, params: tuple | list = ()) -> dict | None:
        """Run a parameterized read and return the first row, or None."""
        row = self._conn.execute(sql, tuple(params)).fetchone()
        return dict(row) if row is not None else None
