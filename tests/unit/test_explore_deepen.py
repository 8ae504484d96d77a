"""Tests for the EXPLORE and DEEPEN phase handlers."""
from __future__ import annotations

from agents.explore_deepen import deepen_turn_cap, handle_deepen, handle_explore
from engine.state import SessionState, TopicBudget

RICH = (
    "Last quarter we lost 3 deals because our reporting took two weeks, and that delay hurt every "
    "pricing decision we made. "
) * 3
PLAIN = "we mostly use shared spreadsheets and email threads to track things " * 4


def _budget(**kw):
    fields = {"base_turns": 4, "min_turns": 1, "max_turns": 6}
    fields.update(kw)
    return TopicBudget(**fields)


def test_low_reply_continues_until_min(fresh_state, make_turn):
    result = handle_explore(fresh_state, make_turn("Not much."))
    assert result.insight.status == "EXPLORING"
    assert result.next_topic_id == "t1"
    assert result.state.topic_budgets["t1"].turns_used == 1
    assert result.state.turn_in_topic == 1


def test_low_reply_after_min_advances(make_turn):
    state = SessionState(topic_budgets={"t1": _budget(turns_used=1)}, turn_in_topic=1)
    result = handle_explore(state, make_turn("Not much."))
    assert result.insight.status == "TRANSITION"
    assert result.insight.next_topic == "Decision making"
    assert result.state.topic_index == 1
    assert result.state.turn_in_topic == 0


def test_high_reply_takes_bonus_from_untouched_topic(fresh_state, make_turn):
    result = handle_explore(fresh_state, make_turn(RICH))
    budgets = result.state.topic_budgets
    assert result.insight.status == "EXPLORING_DEEP"
    assert budgets["t1"].turns_used == 1
    assert budgets["t1"].bonus_turns_granted == 1
    assert budgets["t2"].max_turns == 5
    assert budgets["t3"].max_turns == 6
    assert result.state.topic_key_insights["t1"].startswith("Last quarter")


def test_high_reply_without_donor_continues(make_turn):
    state = SessionState(
        topic_budgets={"t2": _budget(turns_used=1), "t3": _budget(turns_used=2)},
    )
    result = handle_explore(state, make_turn(RICH))
    assert result.insight.status == "EXPLORING"
    assert result.state.topic_budgets["t1"].turns_used == 1
    assert result.state.topic_budgets["t1"].bonus_turns_granted == 0


def test_input_state_is_not_mutated(fresh_state, make_turn):
    before = fresh_state.model_dump()
    handle_explore(fresh_state, make_turn(RICH))
    assert fresh_state.model_dump() == before


def test_closing_explore_with_time_left_enters_deepen(make_turn):
    state = SessionState(
        topic_index=2,
        topic_budgets={
            "t1": _budget(turns_used=4),
            "t2": _budget(turns_used=1),
            "t3": _budget(turns_used=4),
        },
        topic_engagement_scores={"t2": 0.4},
    )
    result = handle_explore(state, make_turn(PLAIN, elapsed_sec=300))
    assert result.state.phase == "DEEPEN"
    assert result.state.uncovered_topics == ["t2"]
    assert result.next_topic_id == "t2"
    assert result.insight.status == "DEEPENING"


def test_uncovered_topics_sorted_by_engagement(make_turn):
    state = SessionState(
        topic_index=2,
        topic_budgets={"t1": _budget(turns_used=1), "t2": _budget(turns_used=1), "t3": _budget(turns_used=4)},
        topic_engagement_scores={"t1": 0.2, "t2": 0.7},
    )
    result = handle_explore(state, make_turn(PLAIN, elapsed_sec=300))
    assert result.state.uncovered_topics == ["t2", "t1"]


def test_closing_explore_without_time_raises_offer(make_turn):
    state = SessionState(topic_index=2, topic_budgets={"t3": _budget(turns_used=4)})
    result = handle_explore(state, make_turn(PLAIN, elapsed_sec=600))
    assert result.state.phase == "DEEP_OFFER"
    assert result.state.deep_accepted is False
    assert result.state.extension_return_phase == "DEEPEN"
    assert result.insight.status == "DEEP_OFFER_ASK"
    assert result.insight.extension_preview


def test_closing_explore_fully_covered_completes(make_turn):
    state = SessionState(
        topic_index=2,
        topic_budgets={"t1": _budget(turns_used=4), "t2": _budget(turns_used=4), "t3": _budget(turns_used=4)},
    )
    result = handle_explore(state, make_turn(PLAIN, elapsed_sec=60))
    assert result.state.phase == "DATA_COLLECTION"
    assert result.state.completed is True
    assert result.insight.status == "COMPLETE_WITHOUT_DATA"


def _deepen_state(**kw):
    fields = {
        "phase": "DEEPEN",
        "deep_topic_order": ["t2", "t3"],
        "uncovered_topics": ["t2", "t3"],
        "topic_budgets": {"t2": _budget(turns_used=1), "t3": _budget(turns_used=1)},
    }
    fields.update(kw)
    return SessionState(**fields)


def test_deepen_stays_on_topic_within_cap(make_turn):
    result = handle_deepen(_deepen_state(), make_turn("We rely on the sales lead.", elapsed_sec=120))
    assert result.state.phase == "DEEPEN"
    assert result.state.turn_in_topic == 1
    assert result.next_topic_id == "t2"
    assert result.insight.status == "DEEPENING"
    assert result.insight.focus_point in ("who decides", "data sources")


def test_deepen_advances_when_cap_hit(make_turn):
    result = handle_deepen(_deepen_state(turn_in_topic=2), make_turn("ok", elapsed_sec=120))
    assert result.state.topic_index == 1
    assert result.state.turn_in_topic == 0
    assert result.next_topic_id == "t3"


def test_deepen_exhausted_moves_to_consent(make_turn):
    state = _deepen_state(topic_index=1, turn_in_topic=2)
    turn = make_turn("ok", elapsed_sec=120, should_collect_data=True, candidate_fields=["email"])
    result = handle_deepen(state, turn)
    assert result.state.phase == "DATA_COLLECTION"
    assert result.state.force_consent_question is True
    assert result.insight.status == "DATA_COLLECTION_CONSENT"


def test_deepen_out_of_time_raises_offer(make_turn):
    result = handle_deepen(_deepen_state(), make_turn("ok", elapsed_sec=700))
    assert result.state.phase == "DEEP_OFFER"
    assert result.state.extension_return_phase == "DEEPEN"
    assert result.state.extension_return_topic_index == 0
    assert result.state.extension_return_turn_in_topic == 1


def test_deepen_after_accepted_extension_ignores_clock(make_turn):
    result = handle_deepen(_deepen_state(deep_accepted=True), make_turn("ok", elapsed_sec=700))
    assert result.state.phase == "DEEPEN"


def test_deepen_cap_is_at_least_one(make_turn):
    state = _deepen_state(topic_budgets={"t2": _budget(turns_used=6)})
    assert deepen_turn_cap(state, make_turn(), "t2") == 1
    assert deepen_turn_cap(_deepen_state(deep_turns_by_topic={"t2": 3}), make_turn(), "t2") == 3
