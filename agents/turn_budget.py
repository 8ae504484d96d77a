"""Turn budget rules for the EXPLORE phase."""
from __future__ import annotations

from typing import Literal, Mapping, MutableMapping, Optional, Sequence

from agents.types import Band, InterviewPlan, PlanTopic, Topic
from engine.state import MAX_BONUS_TURNS, TopicBudget

BudgetAction = Literal["continue", "advance", "bonus"]


def budget_from_plan(plan_topic: PlanTopic) -> TopicBudget:
    return TopicBudget(
        base_turns=plan_topic.base_turns,
        min_turns=plan_topic.min_turns,
        max_turns=plan_topic.max_turns,
    )


def initial_budget(plan: InterviewPlan, topic: Topic) -> TopicBudget:
    """Budget for a first visit; topics missing from the plan get a 1-turn budget."""
    entry = plan.topic(topic.id)
    if entry is None:
        return TopicBudget(base_turns=1, min_turns=1, max_turns=1)
    return budget_from_plan(entry)


def ensure_budgets(
    budgets: MutableMapping[str, TopicBudget],
    topics: Sequence[Topic],
    plan: InterviewPlan,
) -> None:
    """Lazily create budgets for every topic not visited yet."""
    for topic in topics:
        if topic.id not in budgets:
            budgets[topic.id] = initial_budget(plan, topic)


def compute_budget_action(band: Band, budget: TopicBudget) -> BudgetAction:
    if (
        band == "HIGH"
        and budget.turns_used < budget.max_turns
        and budget.bonus_turns_granted < MAX_BONUS_TURNS
    ):
        return "bonus"
    if band == "LOW":
        return "continue" if budget.turns_used < budget.min_turns else "advance"
    return "continue" if budget.turns_used < budget.base_turns else "advance"


def action_without_bonus(budget: TopicBudget) -> BudgetAction:
    """What a bonus request turns into when no donor can fund it."""
    return "continue" if budget.turns_used < budget.base_turns else "advance"


def find_bonus_donor(current_topic_id: str, budgets: Mapping[str, TopicBudget]) -> Optional[str]:
    """Untouched topic with the largest ceiling above 1, first one wins ties."""
    donor: Optional[str] = None
    for topic_id, budget in budgets.items():
        if topic_id == current_topic_id or budget.turns_used != 0 or budget.max_turns <= 1:
            continue
        if donor is None or budget.max_turns > budgets[donor].max_turns:
            donor = topic_id
    return donor


__all__ = [
    "BudgetAction",
    "action_without_bonus",
    "budget_from_plan",
    "compute_budget_action",
    "ensure_budgets",
    "find_bonus_donor",
    "initial_budget",
]
