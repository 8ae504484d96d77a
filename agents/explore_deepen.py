"""EXPLORE and DEEPEN phase handlers.

EXPLORE walks the topics in order with elastic, signal-driven budgets.
DEEPEN then revisits the topics EXPLORE left under-covered, with a small
per-topic cap. Both handlers are reducers: they copy the incoming state
and return the new one.
"""
from __future__ import annotations

import logging
from typing import Optional

from agents.data_collection import enter_data_collection
from agents.deep_plan import build_extension_preview, remaining_sub_goals, select_deep_focus_point
from agents.signal_scorer import ALLOCATOR_WEIGHTS, score_signal
from agents.turn_budget import (
    action_without_bonus,
    compute_budget_action,
    ensure_budgets,
    find_bonus_donor,
    initial_budget,
)
from agents.types import SupervisorInsight, Topic
from engine.state import PhaseResult, SessionState, TurnInput

logger = logging.getLogger(__name__)

KEY_INSIGHT_THRESHOLD = 0.5
DEEPEN_DEFAULT_CAP = 2


def offer_insight(state: SessionState, turn: TurnInput) -> SupervisorInsight:
    """DEEP_OFFER_ASK with a preview of what the extension would cover."""
    preview = build_extension_preview(
        turn.topics,
        state.deep_topic_order,
        state.topic_sub_goal_history,
        state.topic_key_insights,
        objective=turn.research_goal,
        language=turn.language,
    )
    return SupervisorInsight(status="DEEP_OFFER_ASK", extension_preview=preview)


def raise_deep_offer(nxt: SessionState, turn: TurnInput, *, return_phase: str) -> PhaseResult:
    nxt.phase = "DEEP_OFFER"
    nxt.deep_accepted = False
    nxt.extension_return_phase = return_phase  # type: ignore[assignment]
    nxt.extension_return_topic_index = nxt.topic_index
    nxt.extension_return_turn_in_topic = nxt.turn_in_topic
    return PhaseResult(state=nxt, insight=offer_insight(nxt, turn))


def _next_sub_goal(state: SessionState, topic: Topic) -> str:
    remaining = remaining_sub_goals(topic, state.topic_sub_goal_history)
    return remaining[0] if remaining else topic.label


def _deepen_insight(state: SessionState, turn: TurnInput, topic: Topic) -> SupervisorInsight:
    snippet = state.topic_key_insights.get(topic.id)
    focus = select_deep_focus_point(
        topic,
        remaining_sub_goals(topic, state.topic_sub_goal_history),
        snippet=snippet or "",
        last_user_message=turn.user_message,
        objective=turn.research_goal,
        language=turn.language,
    )
    return SupervisorInsight(status="DEEPENING", focus_point=focus or topic.label, engaging_snippet=snippet)


def _close_explore(nxt: SessionState, turn: TurnInput) -> PhaseResult:
    ensure_budgets(nxt.topic_budgets, turn.topics, turn.plan)
    uncovered = [
        topic.id
        for topic in turn.topics
        if nxt.topic_budgets[topic.id].turns_used < nxt.topic_budgets[topic.id].base_turns
    ]
    uncovered.sort(key=lambda tid: nxt.topic_engagement_scores.get(tid, 0.0), reverse=True)
    nxt.uncovered_topics = uncovered
    nxt.deep_topic_order = list(uncovered)
    nxt.topic_index = 0
    nxt.turn_in_topic = 0

    remaining = turn.remaining_sec
    logger.info("EXPLORE complete uncovered=%d remaining_sec=%.0f", len(uncovered), remaining)
    if remaining <= 0:
        return raise_deep_offer(nxt, turn, return_phase="DEEPEN")
    if not uncovered:
        return enter_data_collection(nxt, turn, reason="topics_covered")

    nxt.phase = "DEEPEN"
    first = turn.topic_by_id(uncovered[0])
    insight = _deepen_insight(nxt, turn, first) if first else SupervisorInsight(status="DEEPENING")
    return PhaseResult(state=nxt, insight=insight, next_topic_id=uncovered[0])


def handle_explore(state: SessionState, turn: TurnInput) -> PhaseResult:
    nxt = state.model_copy(deep=True)
    if not turn.topics:
        return enter_data_collection(nxt, turn, reason="no_topics")

    idx = min(max(0, state.topic_index), len(turn.topics) - 1)
    topic = turn.topics[idx]
    nxt.topic_index = idx
    budget = nxt.topic_budgets.get(topic.id) or initial_budget(turn.plan, topic)

    signal = score_signal(turn.user_message, turn.language, ALLOCATOR_WEIGHTS)
    nxt.last_signal_score = signal.score
    nxt.topic_engagement_scores[topic.id] = max(state.topic_engagement_scores.get(topic.id, 0.0), signal.score)
    if signal.score >= KEY_INSIGHT_THRESHOLD and signal.snippet:
        nxt.topic_key_insights[topic.id] = signal.snippet

    action = compute_budget_action(signal.band, budget)
    donor: Optional[str] = None
    if action == "bonus":
        ensure_budgets(nxt.topic_budgets, turn.topics, turn.plan)
        donor = find_bonus_donor(topic.id, nxt.topic_budgets)
        if donor is None:
            action = action_without_bonus(budget)

    logger.info(
        "EXPLORE topic=%s band=%s action=%s turns=%d/%d",
        topic.id,
        signal.band,
        action,
        budget.turns_used,
        budget.base_turns,
    )

    if action in ("continue", "bonus"):
        nxt.topic_budgets[topic.id] = budget.consume(bonus=action == "bonus")
        if donor is not None:
            nxt.topic_budgets[donor] = nxt.topic_budgets[donor].shrink_ceiling()
        nxt.turn_in_topic = state.turn_in_topic + 1
        nxt.turns_used_total = state.turns_used_total + 1
        insight = SupervisorInsight(
            status="EXPLORING_DEEP" if action == "bonus" else "EXPLORING",
            next_sub_goal=_next_sub_goal(nxt, topic),
            engaging_snippet=nxt.topic_key_insights.get(topic.id),
        )
        return PhaseResult(state=nxt, insight=insight, next_topic_id=topic.id)

    nxt.topic_budgets[topic.id] = budget
    if idx + 1 < len(turn.topics):
        following = turn.topics[idx + 1]
        nxt.topic_index = idx + 1
        nxt.turn_in_topic = 0
        insight = SupervisorInsight(
            status="TRANSITION",
            next_topic=following.label,
            next_sub_goal=_next_sub_goal(nxt, following),
            engaging_snippet=nxt.topic_key_insights.get(topic.id),
        )
        return PhaseResult(state=nxt, insight=insight, next_topic_id=following.id)
    return _close_explore(nxt, turn)


def deepen_turn_cap(state: SessionState, turn: TurnInput, topic_id: str) -> int:
    """Turns allowed for ``topic_id`` in DEEPEN; never below 1."""
    if topic_id in state.deep_turns_by_topic:
        return max(1, state.deep_turns_by_topic[topic_id])
    budget = state.topic_budgets.get(topic_id)
    slack = (budget.max_turns - budget.turns_used) if budget else DEEPEN_DEFAULT_CAP
    return min(max(1, turn.plan.deepen.max_turns_per_topic), max(1, slack))


def handle_deepen(state: SessionState, turn: TurnInput) -> PhaseResult:
    nxt = state.model_copy(deep=True)
    order = [tid for tid in (state.deep_topic_order or state.uncovered_topics) if turn.topic_by_id(tid)]
    pos = max(0, state.topic_index)
    if not order or pos >= len(order):
        return enter_data_collection(nxt, turn, reason="deepen_complete")

    topic_id = order[pos]
    cap = deepen_turn_cap(state, turn, topic_id)
    if state.turn_in_topic >= cap:
        if pos + 1 >= len(order):
            logger.info("DEEPEN complete topics=%d", len(order))
            return enter_data_collection(nxt, turn, reason="deepen_complete")
        topic_id = order[pos + 1]
        nxt.topic_index = pos + 1
        nxt.turn_in_topic = 0
    else:
        nxt.turn_in_topic = state.turn_in_topic + 1
    nxt.turns_used_total = state.turns_used_total + 1

    topic = turn.topic_by_id(topic_id)
    insight = _deepen_insight(nxt, turn, topic) if topic else SupervisorInsight(status="DEEPENING")
    logger.info("DEEPEN topic=%s turn=%d/%d", topic_id, nxt.turn_in_topic, cap)

    if turn.remaining_sec <= 0 and state.deep_accepted is not True:
        return raise_deep_offer(nxt, turn, return_phase="DEEPEN")
    return PhaseResult(state=nxt, insight=insight, next_topic_id=topic_id)


__all__ = [
    "deepen_turn_cap",
    "handle_deepen",
    "handle_explore",
    "offer_insight",
    "raise_deep_offer",
]
