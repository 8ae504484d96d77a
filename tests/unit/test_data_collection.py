"""Tests for consent and contact-field collection."""
from __future__ import annotations

from agents.data_collection import (
    enter_data_collection,
    get_completion_guard_action,
    handle_data_collection,
)
from engine.state import SessionState


def _collecting(**kw):
    fields = {"phase": "DATA_COLLECTION", "consent_given": False, "force_consent_question": True}
    fields.update(kw)
    return SessionState(**fields)


def test_enter_without_policy_completes(make_turn):
    result = enter_data_collection(SessionState(), make_turn(), reason="done")
    assert result.state.completed is True
    assert result.insight.status == "COMPLETE_WITHOUT_DATA"
    assert result.insight.stop_reason == "done"


def test_consent_accepted_asks_first_field(make_turn, intent_stub):
    turn = make_turn("yes", should_collect_data=True, candidate_fields=["name", "email"])
    result = handle_data_collection(_collecting(), turn, intent_stub("ACCEPT"))
    assert result.state.consent_given is True
    assert result.state.pending_field == "name"
    assert result.insight.status == "DATA_COLLECTION"
    assert result.insight.pending_field == "name"


def test_fields_are_collected_in_order(make_turn, intent_stub):
    classify = intent_stub("ACCEPT")
    turn_kw = {"should_collect_data": True, "candidate_fields": ["name", "email"]}
    state = _collecting(consent_given=True, pending_field="name")
    result = handle_data_collection(state, make_turn("Ada Lovelace", **turn_kw), classify)
    assert result.state.collected_fields == {"name": "Ada Lovelace"}
    assert result.state.pending_field == "email"
    final = handle_data_collection(result.state, make_turn("ada@example.com", **turn_kw), classify)
    assert final.state.completed is True
    assert final.insight.status == "FINAL_GOODBYE"
    assert classify.calls == []


def test_consent_refused(make_turn, intent_stub):
    turn = make_turn("no", should_collect_data=True, candidate_fields=["email"])
    result = handle_data_collection(_collecting(), turn, intent_stub("REFUSE"))
    assert result.state.data_collection_refused is True
    assert result.state.completed is True
    assert result.insight.status == "COMPLETE_WITHOUT_DATA"


def test_unclear_consent_is_bounded(make_turn, intent_stub):
    classify = intent_stub("NEUTRAL")
    turn = make_turn("hmm, what for", should_collect_data=True, candidate_fields=["email"])
    first = handle_data_collection(_collecting(), turn, classify)
    assert first.insight.status == "DATA_COLLECTION_CONSENT"
    second = handle_data_collection(first.state, turn, classify)
    assert second.insight.status == "COMPLETE_WITHOUT_DATA"
    assert second.insight.stop_reason == "consent_unresolved"


def test_completion_guard():
    common = {"should_collect_data": True, "candidate_fields": ["email"], "data_collection_refused": False}
    assert get_completion_guard_action(consent_given=None, missing="email", **common) == "ask_consent"
    assert get_completion_guard_action(consent_given=True, missing="email", **common) == "ask_missing_field"
    assert get_completion_guard_action(consent_given=True, missing=None, **common) == "allow_completion"
    assert (
        get_completion_guard_action(
            should_collect_data=False, candidate_fields=["email"], consent_given=None,
            data_collection_refused=False, missing="email",
        )
        == "allow_completion"
    )


def test_policy_without_fields_skips_consent(make_turn, intent_stub):
    classify = intent_stub("ACCEPT")
    turn = make_turn("yes", should_collect_data=True, candidate_fields=[])
    entered = enter_data_collection(SessionState(), turn, reason="topics_done")
    assert entered.state.completed is True
    assert entered.insight.status == "COMPLETE_WITHOUT_DATA"

    result = handle_data_collection(_collecting(), turn, classify)
    assert result.insight.status == "COMPLETE_WITHOUT_DATA"
    assert result.insight.stop_reason == "no_data_required"
    assert classify.calls == []


def test_prefilled_fields_close_right_after_consent(make_turn, intent_stub):
    turn = make_turn("yes", should_collect_data=True, candidate_fields=["email"])
    state = _collecting(collected_fields={"email": "ada@example.com"})
    result = handle_data_collection(state, turn, intent_stub("ACCEPT"))
    assert result.state.completed is True
    assert result.state.pending_field is None
    assert result.insight.status == "FINAL_GOODBYE"
