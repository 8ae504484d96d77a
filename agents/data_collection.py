"""DATA_COLLECTION phase: consent, then one contact field per turn."""
from __future__ import annotations

import logging
from typing import Callable, Literal, Optional, Sequence

from agents.types import IntentContext, IntentResult, SupervisorInsight
from engine.state import PhaseResult, SessionState, TurnInput

logger = logging.getLogger(__name__)

MAX_CONSENT_ATTEMPTS = 2

GuardAction = Literal["ask_consent", "ask_missing_field", "allow_completion"]
IntentFn = Callable[..., IntentResult]


def missing_field(candidate_fields: Sequence[str], collected: dict) -> Optional[str]:
    for field in candidate_fields:
        if not str(collected.get(field, "")).strip():
            return field
    return None


def get_completion_guard_action(
    *,
    should_collect_data: bool,
    candidate_fields: Sequence[str],
    consent_given: Optional[bool],
    data_collection_refused: bool,
    missing: Optional[str],
) -> GuardAction:
    """Whether closing now is allowed or a consent/field question is still owed."""
    if not should_collect_data or not candidate_fields or data_collection_refused:
        return "allow_completion"
    if consent_given is not True:
        return "ask_consent"
    if missing:
        return "ask_missing_field"
    return "allow_completion"


def _clear_offer(nxt: SessionState) -> None:
    nxt.extension_offer_attempts = 0
    nxt.extension_return_phase = None
    nxt.extension_return_topic_index = None
    nxt.extension_return_turn_in_topic = None


def _complete_without_data(nxt: SessionState, reason: str) -> PhaseResult:
    nxt.completed = True
    nxt.pending_field = None
    nxt.force_consent_question = False
    return PhaseResult(state=nxt, insight=SupervisorInsight(status="COMPLETE_WITHOUT_DATA", stop_reason=reason))


def _guard(state: SessionState, turn: TurnInput) -> GuardAction:
    return get_completion_guard_action(
        should_collect_data=turn.should_collect_data,
        candidate_fields=turn.candidate_fields,
        consent_given=state.consent_given,
        data_collection_refused=state.data_collection_refused,
        missing=missing_field(turn.candidate_fields, state.collected_fields),
    )


def enter_data_collection(nxt: SessionState, turn: TurnInput, *, reason: str) -> PhaseResult:
    """Move ``nxt`` (already a private copy) into DATA_COLLECTION."""
    _clear_offer(nxt)
    nxt.phase = "DATA_COLLECTION"
    nxt.turn_in_topic = 0
    if _guard(nxt, turn) == "ask_consent":
        nxt.consent_given = False
        nxt.force_consent_question = True
        nxt.data_collection_attempts = 0
        return PhaseResult(
            state=nxt,
            insight=SupervisorInsight(status="DATA_COLLECTION_CONSENT", stop_reason=reason),
        )
    return _complete_without_data(nxt, reason)


def _ask_next_field(nxt: SessionState, turn: TurnInput) -> PhaseResult:
    field = missing_field(turn.candidate_fields, nxt.collected_fields)
    nxt.pending_field = field
    if _guard(nxt, turn) == "allow_completion":
        nxt.completed = True
        return PhaseResult(state=nxt, insight=SupervisorInsight(status="FINAL_GOODBYE"))
    return PhaseResult(state=nxt, insight=SupervisorInsight(status="DATA_COLLECTION", pending_field=field))


def handle_data_collection(state: SessionState, turn: TurnInput, classify: IntentFn) -> PhaseResult:
    nxt = state.model_copy(deep=True)
    reply = turn.user_message.strip()

    if state.completed:
        status = "FINAL_GOODBYE" if state.consent_given and not state.pending_field else "COMPLETE_WITHOUT_DATA"
        return PhaseResult(state=nxt, insight=SupervisorInsight(status=status))
    action = _guard(state, turn)
    if action == "allow_completion" and state.consent_given is not True:
        return _complete_without_data(nxt, "no_data_required")

    if action == "ask_consent":
        if not reply:
            nxt.force_consent_question = True
            return PhaseResult(state=nxt, insight=SupervisorInsight(status="DATA_COLLECTION_CONSENT"))
        context: IntentContext = "consent"
        intent = classify(reply, context=context, language=turn.language).intent
        logger.info("Consent reply classified intent=%s attempts=%d", intent, state.data_collection_attempts)
        if intent == "ACCEPT":
            nxt.consent_given = True
            nxt.force_consent_question = False
            return _ask_next_field(nxt, turn)
        if intent == "REFUSE":
            nxt.data_collection_refused = True
            return _complete_without_data(nxt, "consent_refused")
        nxt.data_collection_attempts = state.data_collection_attempts + 1
        if nxt.data_collection_attempts >= MAX_CONSENT_ATTEMPTS:
            return _complete_without_data(nxt, "consent_unresolved")
        nxt.force_consent_question = True
        return PhaseResult(state=nxt, insight=SupervisorInsight(status="DATA_COLLECTION_CONSENT"))

    if state.pending_field and reply:
        nxt.collected_fields[state.pending_field] = reply
    return _ask_next_field(nxt, turn)


__all__ = [
    "enter_data_collection",
    "get_completion_guard_action",
    "handle_data_collection",
    "missing_field",
]
