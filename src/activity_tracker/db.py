"""SQLite storage for activity rules and per-activity ratings."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from .models import ActivityRule, RuleCondition, RuleType


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS activity_rules (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            rule_type TEXT NOT NULL,
            condition TEXT NOT NULL,
            value TEXT NOT NULL,
            rating INTEGER NOT NULL,
            active INTEGER NOT NULL DEFAULT 1,
            created_at INTEGER
        );

        CREATE TABLE IF NOT EXISTS activity_ratings (
            timestamp INTEGER PRIMARY KEY,
            rating INTEGER NOT NULL,
            rule_id TEXT REFERENCES activity_rules(id) ON DELETE SET NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_ratings_rule_id
            ON activity_ratings(rule_id);
        """
    )


class SqliteRuleStore:
    """Rule-storage collaborator backed by a SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get_rule(self, rule_id: str) -> Optional[ActivityRule]:
        row = self._conn.execute(
            "SELECT * FROM activity_rules WHERE id = ?", (rule_id,)
        ).fetchone()
        return _row_to_rule(row) if row is not None else None

    def list_rules(self, *, active_only: bool = False) -> list[ActivityRule]:
        query = "SELECT * FROM activity_rules"
        if active_only:
            query += " WHERE active = 1"
        query += " ORDER BY created_at DESC, id"
        return [_row_to_rule(row) for row in self._conn.execute(query)]

    def save_rule(self, rule: ActivityRule) -> None:
        self._conn.execute(
            """
            INSERT INTO activity_rules (
                id, name, description, rule_type, condition, value, rating, active, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                description = excluded.description,
                rule_type = excluded.rule_type,
                condition = excluded.condition,
                value = excluded.value,
                rating = excluded.rating,
                active = excluded.active
            """,
            (
                rule.id,
                rule.name,
                rule.description,
                rule.rule_type.value,
                rule.condition.value,
                rule.value,
                rule.rating,
                1 if rule.active else 0,
                rule.created_at,
            ),
        )

    def delete_rule(self, rule_id: str) -> bool:
        cur = self._conn.execute("DELETE FROM activity_rules WHERE id = ?", (rule_id,))
        return cur.rowcount > 0

    def set_activity_rating(
        self, timestamp: int, rating: int, rule_id: Optional[str] = None
    ) -> None:
        self._conn.execute(
            """
            INSERT INTO activity_ratings (timestamp, rating, rule_id, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(timestamp) DO UPDATE SET
                rating = excluded.rating,
                rule_id = excluded.rule_id,
                updated_at = excluded.updated_at
            """,
            (timestamp, rating, rule_id, datetime.now().strftime(DATETIME_FMT)),
        )

    def fetch_ratings(self) -> dict[int, tuple[int, Optional[str]]]:
        """Return ``{timestamp: (rating, rule_id)}`` for every rated activity."""
        return {
            row["timestamp"]: (row["rating"], row["rule_id"])
            for row in self._conn.execute(
                "SELECT timestamp, rating, rule_id FROM activity_ratings ORDER BY timestamp"
            )
        }


def _row_to_rule(row: sqlite3.Row) -> ActivityRule:
    return ActivityRule(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        rule_type=RuleType(row["rule_type"]),
        condition=RuleCondition(row["condition"]),
        value=row["value"],
        rating=row["rating"],
        active=bool(row["active"]),
        created_at=row["created_at"],
    )
