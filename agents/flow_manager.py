"""Phase routing and next-question planning for interview turns."""
from __future__ import annotations

import logging
from functools import partial
from typing import Callable, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from agents.data_collection import handle_data_collection
from agents.deep_offer import handle_deep_offer
from agents.explore_deepen import deepen_turn_cap, handle_deepen, handle_explore
from agents.intent_classifier import classify_intent
from agents.manual_knowledge import build_manual_knowledge_prompt_block
from agents.micro_planner import MicroPlannerInput, build_micro_planner_decision, build_micro_planner_prompt_block
from agents.runtime_knowledge import RuntimeKnowledgeBuilder, build_runtime_knowledge_prompt_block
from agents.turn_budget import initial_budget
from agents.turn_signals import detect_user_turn_signal
from agents.types import IntentResult, MicroPlannerDecision
from config import INTENT_ROLE, KNOWLEDGE_ROLE, AppConfig, resolve_route, settings
from engine.state import PhaseResult, SessionState, TurnInput
from llm_gateway import route_generator

logger = logging.getLogger(__name__)


class FlowDeps(BaseModel):
    """Collaborators a turn needs; swapped for fakes in tests."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    classify: Callable[..., IntentResult]
    knowledge: RuntimeKnowledgeBuilder


def build_flow_deps(cfg: Optional[AppConfig] = None) -> FlowDeps:
    """Wire routes from ``cfg``; roles without a route fall back to local rules."""
    intent_gen = knowledge_gen = None
    if cfg is not None:
        try:
            intent_gen = route_generator(resolve_route(cfg, INTENT_ROLE))
        except KeyError as exc:
            logger.warning("No intent route configured: %s", exc)
        try:
            knowledge_gen = route_generator(resolve_route(cfg, KNOWLEDGE_ROLE))
        except KeyError as exc:
            logger.warning("No runtime knowledge route configured: %s", exc)
    return FlowDeps(
        classify=partial(classify_intent, generate=intent_gen, timeout_ms=settings.INTENT_TIMEOUT_MS),
        knowledge=RuntimeKnowledgeBuilder(knowledge_gen, timeout_ms=settings.RUNTIME_KNOWLEDGE_TIMEOUT_MS),
    )


def route_phase(state: SessionState, turn: TurnInput, deps: FlowDeps) -> PhaseResult:
    if state.phase == "EXPLORE":
        return handle_explore(state, turn)
    if state.phase == "DEEPEN":
        return handle_deepen(state, turn)
    if state.phase == "DEEP_OFFER":
        return handle_deep_offer(state, turn, deps.classify)
    return handle_data_collection(state, turn, deps.classify)


def _turn_ceiling(state: SessionState, turn: TurnInput, topic_id: str) -> int:
    if state.phase == "DEEPEN":
        return deepen_turn_cap(state, turn, topic_id)
    budget = state.topic_budgets.get(topic_id)
    if budget is None:
        topic = turn.topic_by_id(topic_id)
        return initial_budget(turn.plan, topic).max_turns if topic else 1
    return budget.max_turns


def plan_next_question(
    state: SessionState,
    turn: TurnInput,
    topic_id: Optional[str],
    deps: FlowDeps,
) -> Tuple[SessionState, Optional[MicroPlannerDecision], str]:
    """Attach knowledge, pick the question tactic and render the prompt block.

    Only EXPLORE and DEEPEN turns are planned; other phases come back
    unchanged with an empty block.
    """
    topic = turn.topic_by_id(topic_id) if topic_id else None
    if state.phase not in ("EXPLORE", "DEEPEN") or topic is None:
        return state, None, ""

    knowledge = deps.knowledge.get(
        language=turn.language,
        plan=turn.plan,
        topics=turn.topics,
        research_goal=turn.research_goal,
        target_audience=turn.target_audience,
        existing=state.runtime_knowledge,
    )
    state.runtime_knowledge = knowledge

    signal = detect_user_turn_signal(turn.user_message, turn.language, state.phase, topic, turn.research_goal)
    decision = build_micro_planner_decision(
        MicroPlannerInput(
            language=turn.language,
            phase=state.phase,
            topic_id=topic.id,
            topic_label=topic.label,
            topic_sub_goals=topic.sub_goals,
            used_sub_goals=state.used_sub_goals(topic.id),
            turn_in_topic=state.turn_in_topic,
            max_turns_in_topic=_turn_ceiling(state, turn, topic.id),
            user_message=turn.user_message,
            user_turn_signal=signal,
            previous_assistant_question=turn.previous_assistant_message,
            manual_guide=turn.manual_guide,
            runtime_knowledge=knowledge,
        )
    )
    if decision.mode == "cover_subgoal" and decision.focus_sub_goal in topic.sub_goals:
        history = state.topic_sub_goal_history.setdefault(topic.id, [])
        if decision.focus_sub_goal not in history:
            history.append(decision.focus_sub_goal)

    blocks = [
        build_runtime_knowledge_prompt_block(
            knowledge, phase=state.phase, topic_id=topic.id, language=turn.language
        ),
        build_manual_knowledge_prompt_block(
            turn.manual_guide,
            phase=state.phase,
            language=turn.language,
            topic_label=topic.label,
            sub_goals=topic.sub_goals,
        ),
        build_micro_planner_prompt_block(turn.language, state.phase, topic.label, decision),
    ]
    return state, decision, "\n\n".join(block for block in blocks if block)


__all__ = ["FlowDeps", "build_flow_deps", "plan_next_question", "route_phase"]
