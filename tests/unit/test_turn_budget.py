"""Tests for topic budgets and the bonus/advance rules."""
from __future__ import annotations

from agents.turn_budget import (
    action_without_bonus,
    compute_budget_action,
    ensure_budgets,
    find_bonus_donor,
    initial_budget,
)
from agents.types import Topic
from engine.state import TopicBudget


def _budget(**kw):
    fields = {"base_turns": 4, "min_turns": 1, "max_turns": 6}
    fields.update(kw)
    return TopicBudget(**fields)


def test_budget_invariants_are_clamped():
    budget = TopicBudget(base_turns=9, min_turns=0, max_turns=3, turns_used=7, bonus_turns_granted=5)
    assert 1 <= budget.min_turns <= budget.base_turns <= budget.max_turns == 3
    assert budget.turns_used == 3
    assert budget.bonus_turns_granted == 2


def test_consume_and_shrink():
    budget = _budget().consume(bonus=True)
    assert budget.turns_used == 1
    assert budget.bonus_turns_granted == 1
    tiny = TopicBudget(base_turns=1, min_turns=1, max_turns=1).shrink_ceiling()
    assert tiny.max_turns == 1


def test_shrink_pulls_base_down():
    budget = TopicBudget(base_turns=4, min_turns=1, max_turns=4).shrink_ceiling()
    assert budget.max_turns == 3
    assert budget.base_turns == 3


def test_low_band_continues_until_min():
    assert compute_budget_action("LOW", _budget(turns_used=0)) == "continue"
    assert compute_budget_action("LOW", _budget(turns_used=1)) == "advance"


def test_medium_band_follows_base():
    assert compute_budget_action("MEDIUM", _budget(turns_used=3)) == "continue"
    assert compute_budget_action("MEDIUM", _budget(turns_used=4)) == "advance"


def test_high_band_requests_bonus_until_cap():
    assert compute_budget_action("HIGH", _budget(turns_used=1)) == "bonus"
    assert compute_budget_action("HIGH", _budget(turns_used=5, bonus_turns_granted=2)) == "advance"
    assert compute_budget_action("HIGH", _budget(turns_used=2, bonus_turns_granted=2)) == "continue"


def test_action_without_bonus():
    assert action_without_bonus(_budget(turns_used=1)) == "continue"
    assert action_without_bonus(_budget(turns_used=4)) == "advance"


def test_donor_is_untouched_with_largest_ceiling():
    budgets = {
        "a": _budget(turns_used=1),
        "b": _budget(max_turns=5),
        "c": _budget(max_turns=6),
        "d": _budget(max_turns=6),
    }
    assert find_bonus_donor("a", budgets) == "c"


def test_no_donor_when_all_visited_or_single_turn():
    budgets = {
        "a": _budget(turns_used=1),
        "b": _budget(turns_used=2),
        "c": TopicBudget(base_turns=1, min_turns=1, max_turns=1),
    }
    assert find_bonus_donor("a", budgets) is None


def test_initial_budget_from_plan_and_missing_topic(plan, topics):
    assert initial_budget(plan, topics[0]).base_turns == 4
    stray = Topic(id="zz", label="Stray")
    assert initial_budget(plan, stray).max_turns == 1


def test_ensure_budgets_fills_only_missing(plan, topics):
    budgets = {"t1": _budget(turns_used=2)}
    ensure_budgets(budgets, topics, plan)
    assert set(budgets) == {"t1", "t2", "t3"}
    assert budgets["t1"].turns_used == 2
