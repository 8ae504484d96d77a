"""Baseline interview plans and the override merge applied on top of them."""
from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from agents.types import (
    DeepenOverride,
    DeepenSettings,
    InterviewPlan,
    PlanMeta,
    PlanOverrides,
    PlanTopic,
    Topic,
    TopicOverride,
)

SECONDS_PER_TURN = 45
PLAN_LOGIC_VERSION = 1
MIN_BASE_TURNS = 2
MAX_TURNS_HEADROOM = 2


def build_topics_signature(topics: Sequence[Topic]) -> str:
    """Hash of every topic attribute that shapes the plan."""
    basis = "||".join(
        f"{t.id}:{t.order_index}:{t.max_turns if t.max_turns is not None else ''}:{t.label}:{'|'.join(t.sub_goals)}"
        for t in topics
    )
    return hashlib.sha256(basis.encode("utf-8")).hexdigest()


def ordered_topics(topics: Sequence[Topic]) -> list[Topic]:
    return sorted(topics, key=lambda t: t.order_index)


def build_base_plan(
    topics: Sequence[Topic],
    max_duration_mins: int,
    generated_at: Optional[str] = None,
) -> InterviewPlan:
    """Derive per-topic turn budgets from topic count and session length.

    ``base = max(2, floor(per_topic_sec / 45))``, ``min = 1`` and
    ``max = base + 2``; deepen caps start at their defaults.
    """
    ordered = ordered_topics(topics)
    total_sec = max_duration_mins * 60
    per_topic_sec = total_sec / max(1, len(ordered))
    time_based = int(per_topic_sec // SECONDS_PER_TURN)
    base_turns = max(MIN_BASE_TURNS, time_based)

    return InterviewPlan(
        version=1,
        meta=PlanMeta(
            generated_at=generated_at or datetime.now(timezone.utc).isoformat(),
            plan_logic_version=PLAN_LOGIC_VERSION,
            max_duration_mins=max_duration_mins,
            total_time_sec=total_sec,
            per_topic_time_sec=per_topic_sec,
            seconds_per_turn=SECONDS_PER_TURN,
            time_based_max_turns=time_based,
            topics_signature=build_topics_signature(ordered),
        ),
        topics=[
            PlanTopic(
                topic_id=t.id,
                label=t.label,
                order_index=t.order_index,
                sub_goals=list(t.sub_goals),
                base_turns=base_turns,
                min_turns=1,
                max_turns=base_turns + MAX_TURNS_HEADROOM,
            )
            for t in ordered
        ],
        deepen=DeepenSettings(),
    )


def _positive_int(value: Any) -> Optional[int]:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return None
    return value


def clean_override_values(raw: Optional[Mapping[str, Any]]) -> PlanOverrides:
    """Parse untrusted override input, dropping anything that is not a positive int."""
    if not isinstance(raw, Mapping):
        return PlanOverrides()
    topics: dict[str, TopicOverride] = {}
    raw_topics = raw.get("topics")
    if isinstance(raw_topics, Mapping):
        for topic_id, entry in raw_topics.items():
            if not isinstance(entry, Mapping):
                continue
            override = TopicOverride(
                min_turns=_positive_int(entry.get("min_turns")),
                max_turns=_positive_int(entry.get("max_turns")),
            )
            if override.min_turns is not None or override.max_turns is not None:
                topics[str(topic_id)] = override
    raw_deepen = raw.get("deepen")
    deepen = DeepenOverride()
    if isinstance(raw_deepen, Mapping):
        deepen = DeepenOverride(
            max_turns_per_topic=_positive_int(raw_deepen.get("max_turns_per_topic")),
            fallback_turns=_positive_int(raw_deepen.get("fallback_turns")),
        )
    return PlanOverrides(topics=topics, deepen=deepen)


def sanitize_overrides(base: InterviewPlan, overrides: Optional[PlanOverrides]) -> PlanOverrides:
    """Keep only overrides for topics present in ``base``."""
    if overrides is None:
        return PlanOverrides()
    known = {t.topic_id for t in base.topics}
    cleaned = clean_override_values(overrides.model_dump())
    return PlanOverrides(
        topics={tid: value for tid, value in cleaned.topics.items() if tid in known},
        deepen=cleaned.deepen,
    )


def merge_plan(base: InterviewPlan, overrides: Optional[PlanOverrides]) -> InterviewPlan:
    """Apply sanitized overrides to a copy of ``base``; min <= base <= max holds after."""
    merged = base.model_copy(deep=True)
    safe = sanitize_overrides(base, overrides)

    for entry in merged.topics:
        override = safe.topics.get(entry.topic_id)
        if override is None:
            continue
        min_turns = max(1, override.min_turns or entry.min_turns)
        max_turns = max(min_turns, override.max_turns or entry.max_turns)
        entry.min_turns = min_turns
        entry.max_turns = max_turns
        entry.base_turns = min(max(entry.base_turns, min_turns), max_turns)

    if safe.deepen.max_turns_per_topic is not None:
        merged.deepen.max_turns_per_topic = safe.deepen.max_turns_per_topic
    if safe.deepen.fallback_turns is not None:
        merged.deepen.fallback_turns = safe.deepen.fallback_turns
    return merged


def is_plan_stale(existing: Optional[InterviewPlan], topics: Sequence[Topic], max_duration_mins: int) -> bool:
    if existing is None:
        return True
    meta = existing.meta
    return (
        meta.topics_signature != build_topics_signature(ordered_topics(topics))
        or meta.max_duration_mins != max_duration_mins
        or meta.plan_logic_version != PLAN_LOGIC_VERSION
    )


__all__ = [
    "PLAN_LOGIC_VERSION",
    "SECONDS_PER_TURN",
    "build_base_plan",
    "build_topics_signature",
    "clean_override_values",
    "is_plan_stale",
    "merge_plan",
    "ordered_topics",
    "sanitize_overrides",
]
