"""Load-or-create and override updates for stored interview plans."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from pydantic import ValidationError

from agents.types import InterviewPlan, PlanOverrides, Topic
from services.plan_builder import build_base_plan, clean_override_values, is_plan_stale, merge_plan
from storage.plans import PlanRecord, get_plan_record, upsert_plan_record

logger = logging.getLogger(__name__)


def _overrides_of(record: Optional[PlanRecord]) -> Optional[PlanOverrides]:
    if record is None or not record.overrides:
        return None
    try:
        return PlanOverrides.model_validate_json(record.overrides)
    except ValidationError as exc:
        logger.warning("Dropping unreadable overrides bot=%s: %s", record.bot_id, exc)
        return None


def _stored_base(record: Optional[PlanRecord]) -> Optional[InterviewPlan]:
    if record is None:
        return None
    try:
        return InterviewPlan.model_validate_json(record.base_plan)
    except ValidationError as exc:
        logger.warning("Discarding unreadable plan bot=%s: %s", record.bot_id, exc)
        return None


def _dump_overrides(overrides: Optional[PlanOverrides]) -> Optional[str]:
    return overrides.model_dump_json() if overrides is not None else None


def load_or_create_plan(bot_id: str, topics: Sequence[Topic], max_duration_mins: int) -> InterviewPlan:
    """Return the merged plan for ``bot_id``, rebuilding the base when it is stale."""
    record = get_plan_record(bot_id)
    if record is None:
        base = build_base_plan(topics, max_duration_mins)
        upsert_plan_record(bot_id, base.model_dump_json(), None, 1)
        logger.info("Plan created bot=%s topics=%d", bot_id, len(base.topics))
        return base

    existing = _stored_base(record)
    overrides = _overrides_of(record)
    if existing is not None and not is_plan_stale(existing, topics, max_duration_mins):
        return merge_plan(existing, overrides)

    base = build_base_plan(topics, max_duration_mins)
    upsert_plan_record(bot_id, base.model_dump_json(), _dump_overrides(overrides), record.version + 1)
    logger.info("Plan rebuilt bot=%s version=%d", bot_id, record.version + 1)
    return merge_plan(base, overrides)


def regenerate_plan(bot_id: str, topics: Sequence[Topic], max_duration_mins: int) -> InterviewPlan:
    """Force a fresh base plan; stored overrides are re-applied."""
    record = get_plan_record(bot_id)
    overrides = _overrides_of(record)
    base = build_base_plan(topics, max_duration_mins)
    version = record.version + 1 if record else 1
    upsert_plan_record(bot_id, base.model_dump_json(), _dump_overrides(overrides), version)
    return merge_plan(base, overrides)


def update_plan_overrides(
    bot_id: str,
    topics: Sequence[Topic],
    max_duration_mins: int,
    raw_overrides: Mapping[str, Any],
) -> InterviewPlan:
    """Replace the stored overrides and return the merged plan."""
    record = get_plan_record(bot_id)
    overrides = clean_override_values(raw_overrides)
    if record is not None and not is_plan_stale(_stored_base(record), topics, max_duration_mins):
        base_json = record.base_plan
    else:
        base_json = build_base_plan(topics, max_duration_mins).model_dump_json()
    version = record.version + 1 if record else 1
    upsert_plan_record(bot_id, base_json, _dump_overrides(overrides), version)
    return merge_plan(InterviewPlan.model_validate_json(base_json), overrides)


__all__ = ["load_or_create_plan", "regenerate_plan", "update_plan_overrides"]
