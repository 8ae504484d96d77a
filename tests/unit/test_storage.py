"""Tests for the SQLite connection helper and plan rows."""
from __future__ import annotations

import os
import sqlite3

import pytest

from config.settings import settings
from storage.migrate import migrate
from storage.plans import get_plan_record, upsert_plan_record
from storage.sqlite import get_conn


def test_rows_are_addressable_by_column_name():
    upsert_plan_record("bot-1", '{"topics": []}', None, 4)
    with get_conn() as conn:
        row = conn.execute("SELECT bot_id, version FROM interview_plans").fetchone()
    assert row["bot_id"] == "bot-1"
    assert row["version"] == 4
    assert get_plan_record("bot-1").version == 4


def test_explicit_path_creates_directory_and_commits(tmp_path):
    db_path = str(tmp_path / "nested" / "plans.db")
    migrate(db_path)
    with get_conn(db_path) as conn:
        conn.execute(
            "INSERT INTO interview_plans (bot_id, base_plan, version, updated_at) VALUES (?, ?, ?, ?)",
            ("bot-2", "{}", 1, "2026-01-01T00:00:00+00:00"),
        )
    assert os.path.exists(db_path)
    with sqlite3.connect(db_path) as raw:
        assert raw.execute("SELECT COUNT(*) FROM interview_plans").fetchone()[0] == 1
    assert get_plan_record("bot-2") is None
    assert settings.DB_PATH != db_path


def test_failed_block_is_not_committed():
    with pytest.raises(RuntimeError):
        with get_conn() as conn:
            conn.execute(
                "INSERT INTO interview_plans (bot_id, base_plan, version, updated_at) VALUES (?, ?, ?, ?)",
                ("bot-3", "{}", 1, "2026-01-01T00:00:00+00:00"),
            )
            raise RuntimeError("boom")
    assert get_plan_record("bot-3") is None
