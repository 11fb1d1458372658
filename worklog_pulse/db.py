"""SQLite persistence layer for peer feedback."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List

Connection = sqlite3.Connection
Row = sqlite3.Row


class Database:
    """Lightweight wrapper around SQLite operations."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _initialize(self) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS feedback (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    author_email TEXT NOT NULL,
                    author_slack_id TEXT NOT NULL,
                    recipient_email TEXT NOT NULL,
                    recipient_slack_id TEXT NOT NULL,
                    feedback TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS feedback_recipient ON feedback(recipient_slack_id)"
            )
            conn.commit()

    def record_feedback(self, record: Dict[str, Any]) -> int:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO feedback (date, author_email, author_slack_id, recipient_email, recipient_slack_id, feedback)
                VALUES (:date, :author_email, :author_slack_id, :recipient_email, :recipient_slack_id, :feedback)
                """,
                record,
            )
            conn.commit()
            return int(cursor.lastrowid)

    def get_feedback_for(self, recipient_ids: Iterable[str]) -> List[Row]:
        ids = list(recipient_ids)
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        with self.connect() as conn:
            cursor = conn.execute(
                f"SELECT * FROM feedback WHERE recipient_slack_id IN ({placeholders}) ORDER BY date, id",
                ids,
            )
            return cursor.fetchall()

    def count_feedback(self) -> int:
        with self.connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM feedback").fetchone()
            return int(row["total"]) if row else 0


__all__ = ["Database"]
