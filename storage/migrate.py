"""SQLite schema migrations."""
from __future__ import annotations

from typing import Iterable, Optional

from .sqlite import get_conn

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS interview_plans (
  bot_id TEXT PRIMARY KEY,
  base_plan TEXT NOT NULL,
  overrides TEXT,
  version INTEGER NOT NULL DEFAULT 1,
  updated_at TEXT NOT NULL
);
""",
]


def migrate(db_path: Optional[str] = None) -> None:
    """Apply schema migrations to the SQLite database."""

    with get_conn(db_path) as conn:
        for stmt in SCHEMA:
            conn.execute(stmt)


if __name__ == "__main__":
    migrate()
