"""DEEP_OFFER phase: ask whether the user wants a few extra minutes.

Unclear replies re-ask the offer up to ``MAX_OFFER_ATTEMPTS`` times; the next
unclear reply, or any refusal, hands over to data collection. Replies that
follow some other assistant message count toward the same limit and hand
over as soon as it is reached.
"""
from __future__ import annotations

import logging
from typing import Callable

from agents.data_collection import enter_data_collection
from agents.deep_plan import build_deep_plan, get_deep_topics, remaining_sub_goals, select_deep_focus_point
from agents.explore_deepen import offer_insight
from agents.turn_signals import is_extension_offer_question
from agents.types import IntentResult, SupervisorInsight
from engine.state import PhaseResult, SessionState, TurnInput

logger = logging.getLogger(__name__)

MAX_OFFER_ATTEMPTS = 2

IntentFn = Callable[..., IntentResult]


def _previous_was_offer(turn: TurnInput) -> bool:
    # Without a transcript the last assistant turn is taken to be the offer
    if turn.previous_assistant_message is None:
        return True
    return is_extension_offer_question(turn.previous_assistant_message, turn.language)


def _reoffer(nxt: SessionState, turn: TurnInput, attempts: int) -> PhaseResult:
    nxt.deep_accepted = False
    nxt.extension_offer_attempts = attempts
    return PhaseResult(state=nxt, insight=offer_insight(nxt, turn))


def _resume_explore(nxt: SessionState, turn: TurnInput) -> PhaseResult:
    nxt.phase = "EXPLORE"
    if not turn.topics:
        return enter_data_collection(nxt, turn, reason="no_topics")
    idx = min(nxt.topic_index, len(turn.topics) - 1)
    nxt.topic_index = idx
    topic = turn.topics[idx]
    available = remaining_sub_goals(topic, nxt.topic_sub_goal_history)
    insight = SupervisorInsight(status="EXPLORING", next_sub_goal=available[0] if available else topic.label)
    return PhaseResult(state=nxt, insight=insight, next_topic_id=topic.id)


def _resume_deepen(nxt: SessionState, turn: TurnInput) -> PhaseResult:
    nxt.phase = "DEEPEN"
    inside_order = bool(nxt.deep_topic_order) and nxt.topic_index < len(nxt.deep_topic_order)
    if not nxt.deep_turns_by_topic and not inside_order:
        order, turns = build_deep_plan(
            turn.topics,
            turn.plan,
            nxt.topic_sub_goal_history,
            nxt.topic_engagement_scores,
            nxt.topic_key_insights,
            turn.remaining_sec,
            objective=turn.research_goal,
            language=turn.language,
        )
        nxt.deep_topic_order = order
        nxt.deep_turns_by_topic = turns
        nxt.topic_index = 0
        nxt.turn_in_topic = 0
        logger.info("Deep plan built topics=%d turns=%d", len(order), sum(turns.values()))

    deep_topics = get_deep_topics(turn.topics, nxt.deep_topic_order)
    if not deep_topics:
        return enter_data_collection(nxt, turn, reason="deepen_complete")
    current = deep_topics[min(nxt.topic_index, len(deep_topics) - 1)]
    snippet = nxt.topic_key_insights.get(current.id)
    focus = select_deep_focus_point(
        current,
        remaining_sub_goals(current, nxt.topic_sub_goal_history),
        snippet=snippet or "",
        last_user_message=turn.user_message,
        objective=turn.research_goal,
        language=turn.language,
    )
    insight = SupervisorInsight(status="DEEPENING", focus_point=focus or current.label, engaging_snippet=snippet)
    return PhaseResult(state=nxt, insight=insight, next_topic_id=current.id)


def handle_deep_offer(state: SessionState, turn: TurnInput, classify: IntentFn) -> PhaseResult:
    nxt = state.model_copy(deep=True)
    has_reply = bool(turn.user_message.strip())
    waiting = state.deep_accepted is not True

    if not has_reply or not waiting:
        return _reoffer(nxt, turn, state.extension_offer_attempts)

    intent = classify(turn.user_message, context="deep_offer", language=turn.language).intent
    logger.info("Extension reply classified intent=%s attempts=%d", intent, state.extension_offer_attempts)

    if not _previous_was_offer(turn):
        if intent == "REFUSE":
            return enter_data_collection(nxt, turn, reason="extension_declined")
        attempts = state.extension_offer_attempts + 1
        if attempts >= MAX_OFFER_ATTEMPTS:
            return enter_data_collection(nxt, turn, reason="extension_unresolved")
        return _reoffer(nxt, turn, attempts)

    if intent == "ACCEPT":
        return_phase = state.extension_return_phase or "DEEPEN"
        nxt.deep_accepted = True
        nxt.extension_offer_attempts = 0
        nxt.extension_return_phase = None
        nxt.extension_return_topic_index = None
        nxt.extension_return_turn_in_topic = None
        resume_index = state.extension_return_topic_index
        resume_turn = state.extension_return_turn_in_topic
        nxt.topic_index = max(0, state.topic_index if resume_index is None else resume_index)
        nxt.turn_in_topic = max(0, state.turn_in_topic if resume_turn is None else resume_turn)
        if return_phase == "EXPLORE":
            return _resume_explore(nxt, turn)
        return _resume_deepen(nxt, turn)

    if intent == "REFUSE":
        return enter_data_collection(nxt, turn, reason="extension_declined")

    if state.extension_offer_attempts >= MAX_OFFER_ATTEMPTS:
        return enter_data_collection(nxt, turn, reason="extension_unresolved")
    return _reoffer(nxt, turn, state.extension_offer_attempts + 1)


__all__ = ["handle_deep_offer"]
