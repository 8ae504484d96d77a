"""Persistence for per-bot interview plans."""
from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel

from .sqlite import get_conn


class PlanRecord(BaseModel):
    bot_id: str
    base_plan: str
    overrides: Optional[str] = None
    version: int = 1
    updated_at: str = ""


def get_plan_record(bot_id: str) -> Optional[PlanRecord]:
    """Return the stored plan row for ``bot_id`` or ``None``."""

    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(
            "SELECT bot_id, base_plan, overrides, version, updated_at FROM interview_plans WHERE bot_id = ?",
            (bot_id,),
        )
        row = cur.fetchone()
    if row is None:
        return None
    return PlanRecord(**dict(row))


def upsert_plan_record(bot_id: str, base_plan: str, overrides: Optional[str], version: int) -> PlanRecord:
    """Insert or replace the plan row; JSON columns are stored verbatim."""

    timestamp = dt.datetime.now(dt.timezone.utc).isoformat()
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(
            """INSERT INTO interview_plans (bot_id, base_plan, overrides, version, updated_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(bot_id) DO UPDATE SET
                 base_plan = excluded.base_plan,
                 overrides = excluded.overrides,
                 version = excluded.version,
                 updated_at = excluded.updated_at""",
            (bot_id, base_plan, overrides, version, timestamp),
        )
    return PlanRecord(bot_id=bot_id, base_plan=base_plan, overrides=overrides, version=version, updated_at=timestamp)


__all__ = ["PlanRecord", "get_plan_record", "upsert_plan_record"]
