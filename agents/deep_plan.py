"""Deep-dive planning: topic priority, per-topic turns and focus points."""
from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from agents.text_utils import lexical_overlap, sanitize_snippet
from agents.types import InterviewPlan, Topic

SECONDS_PER_DEEP_TURN = 45
PREVIEW_MAX_ITEMS = 2
PREVIEW_MAX_WORDS = 10


def remaining_sub_goals(topic: Topic, history: Mapping[str, Sequence[str]]) -> List[str]:
    used = set(history.get(topic.id, ()))
    return [goal for goal in topic.sub_goals if goal not in used]


def get_deep_topics(topics: Sequence[Topic], deep_order: Sequence[str]) -> List[Topic]:
    """Topics in ``deep_order``; all topics when no order is set."""
    if not deep_order:
        return list(topics)
    by_id = {topic.id: topic for topic in topics}
    return [by_id[topic_id] for topic_id in deep_order if topic_id in by_id]


def _semantic_text(topic: Topic) -> str:
    return f"{topic.label} {' '.join(topic.sub_goals)}".strip()


def build_deep_topic_order(
    topics: Sequence[Topic],
    history: Mapping[str, Sequence[str]],
    engagement: Mapping[str, float],
    snippets: Mapping[str, str],
    objective: Optional[str] = None,
    language: str = "en",
) -> List[str]:
    """Order topics by uncovered sub-goals, then by a blended priority score."""
    ranked: List[Tuple[int, float, int, str]] = []
    for idx, topic in enumerate(topics):
        remaining = len(remaining_sub_goals(topic, history))
        total = max(1, len(topic.sub_goals))
        text = _semantic_text(topic)
        snippet = snippets.get(topic.id, "")
        priority = (
            min(1.0, remaining / total) * 0.4
            + engagement.get(topic.id, 0.0) * 0.25
            + (lexical_overlap(text, snippet, language) if snippet else 0.0) * 0.15
            + (lexical_overlap(text, objective, language) if objective else 0.0) * 0.2
        )
        ranked.append((remaining, priority, idx, topic.id))
    ranked.sort(key=lambda item: (-item[0], -item[1], item[2]))
    return [topic_id for _, _, _, topic_id in ranked]


def build_deep_plan(
    topics: Sequence[Topic],
    plan: InterviewPlan,
    history: Mapping[str, Sequence[str]],
    engagement: Mapping[str, float],
    snippets: Mapping[str, str],
    remaining_sec: Optional[float],
    objective: Optional[str] = None,
    language: str = "en",
) -> Tuple[List[str], Dict[str, int]]:
    """Return ``(deep_topic_order, deep_turns_by_topic)``.

    Every topic with unused sub-goals gets one turn; spare turns from the
    remaining time are then handed out round-robin in priority order, capped
    by the topic's unused sub-goals and the plan's per-topic deepen cap. With
    nothing left uncovered, the top ``fallback_turns`` topics get one turn.
    """
    order = build_deep_topic_order(topics, history, engagement, snippets, objective, language)
    by_id = {topic.id: topic for topic in topics}
    with_remaining = [tid for tid in order if remaining_sub_goals(by_id[tid], history)]

    if not with_remaining:
        fallback = order[: max(1, plan.deepen.fallback_turns)]
        return fallback, {tid: 1 for tid in fallback}

    per_topic_cap = max(1, plan.deepen.max_turns_per_topic)
    if remaining_sec is None:
        available_raw = len(with_remaining) * per_topic_cap
    else:
        available_raw = int(max(0.0, remaining_sec) // SECONDS_PER_DEEP_TURN)
    spare = max(len(with_remaining), available_raw) - len(with_remaining)

    turns = {tid: 1 for tid in with_remaining}
    caps = {
        tid: max(1, min(per_topic_cap, len(remaining_sub_goals(by_id[tid], history))))
        for tid in with_remaining
    }
    while spare > 0:
        granted = False
        for tid in with_remaining:
            if spare <= 0:
                break
            if turns[tid] < caps[tid]:
                turns[tid] += 1
                spare -= 1
                granted = True
        if not granted:
            break
    return with_remaining, turns


def select_deep_focus_point(
    topic: Topic,
    available_sub_goals: Sequence[str],
    *,
    snippet: str = "",
    last_user_message: str = "",
    objective: Optional[str] = None,
    language: str = "en",
) -> str:
    """Pick the unused sub-goal closest to the objective and recent context."""
    if not available_sub_goals:
        return topic.label
    context = " ".join(part for part in (snippet, last_user_message) if part).strip()
    objective_text = (objective or "").strip()

    best, best_score = available_sub_goals[0], -1.0
    for goal in available_sub_goals:
        score = (
            (lexical_overlap(goal, objective_text, language) if objective_text else 0.0) * 0.6
            + (lexical_overlap(goal, context, language) if context else 0.0) * 0.4
        )
        if score > best_score:
            best, best_score = goal, score
    return best


def build_extension_preview(
    topics: Sequence[Topic],
    deep_order: Sequence[str],
    history: Mapping[str, Sequence[str]],
    snippets: Mapping[str, str],
    *,
    objective: Optional[str] = None,
    language: str = "en",
    start_index: int = 0,
    max_items: int = PREVIEW_MAX_ITEMS,
) -> List[str]:
    """Short focus points that tell the user what an extension would cover."""
    base = get_deep_topics(topics, deep_order) or list(topics)
    if not base:
        return []
    start = max(0, min(start_index, len(base) - 1))
    rotated = base[start:] + base[:start]

    preview: List[str] = []
    for topic in rotated:
        available = remaining_sub_goals(topic, history)
        if not available:
            continue
        focus = select_deep_focus_point(
            topic,
            available,
            snippet=snippets.get(topic.id, ""),
            objective=objective,
            language=language,
        )
        preview.append(sanitize_snippet(focus, PREVIEW_MAX_WORDS) or focus or topic.label)
        if len(preview) >= max_items:
            break
    if preview:
        return preview
    return [topic.label for topic in rotated[:max_items] if topic.label]


__all__ = [
    "build_deep_plan",
    "build_deep_topic_order",
    "build_extension_preview",
    "get_deep_topics",
    "remaining_sub_goals",
    "select_deep_focus_point",
]
