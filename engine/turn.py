"""Single entry point for one interview turn."""
from __future__ import annotations

from typing import Any, Dict, List

from agents.flow_manager import FlowDeps, plan_next_question, route_phase
from engine.state import SessionState, TurnInput, TurnResult
from observability import log_event, span


def process_turn(state: SessionState, turn: TurnInput, deps: FlowDeps) -> TurnResult:
    """Advance ``state`` by one user turn and plan the next question.

    ``state`` is left untouched; the returned ``TurnResult.state`` is a new
    object. Callers must not run two turns of the same session concurrently.
    """
    events: List[Dict[str, Any]] = []
    log_event("turn.start", turn.session_id, phase=state.phase, topic=state.topic_index)

    with span(events, "route_phase"):
        result = route_phase(state, turn, deps)
    with span(events, "plan_question"):
        next_state, decision, prompt_block = plan_next_question(
            result.state, turn, result.next_topic_id, deps
        )

    log_event(
        "turn.end",
        turn.session_id,
        phase=next_state.phase,
        status=result.insight.status,
        topic=result.next_topic_id,
        mode=decision.mode if decision else None,
        source=decision.knowledge_source if decision else None,
        ms=sum(evt["ms"] for evt in events),
    )
    return TurnResult(
        state=next_state,
        insight=result.insight,
        next_topic_id=result.next_topic_id,
        decision=decision,
        prompt_block=prompt_block,
        events=events,
    )


__all__ = ["process_turn"]
