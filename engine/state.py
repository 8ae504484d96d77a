"""Serializable session state threaded through interview turns."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from agents.types import (
    InterviewPlan,
    MicroPlannerDecision,
    Phase,
    RuntimeKnowledge,
    SupervisorInsight,
    Topic,
)

MAX_BONUS_TURNS = 2


class TopicBudget(BaseModel):
    """Elastic turn budget for one topic.

    Values are clamped on construction so ``1 <= min <= base <= max``,
    ``0 <= used <= max`` and ``0 <= bonus <= MAX_BONUS_TURNS`` always hold.
    """

    base_turns: int
    min_turns: int
    max_turns: int
    turns_used: int = 0
    bonus_turns_granted: int = 0

    @model_validator(mode="after")
    def _clamp(self) -> "TopicBudget":
        self.max_turns = max(1, self.max_turns)
        self.min_turns = min(max(1, self.min_turns), self.max_turns)
        self.base_turns = min(max(self.base_turns, self.min_turns), self.max_turns)
        self.turns_used = min(max(0, self.turns_used), self.max_turns)
        self.bonus_turns_granted = min(max(0, self.bonus_turns_granted), MAX_BONUS_TURNS)
        return self

    def _with(self, **changes: int) -> "TopicBudget":
        return TopicBudget.model_validate({**self.model_dump(), **changes})

    def consume(self, *, bonus: bool = False) -> "TopicBudget":
        """Spend one more turn, optionally counting it as a bonus turn."""
        changes = {"turns_used": self.turns_used + 1}
        if bonus:
            changes["bonus_turns_granted"] = self.bonus_turns_granted + 1
        return self._with(**changes)

    def shrink_ceiling(self) -> "TopicBudget":
        """Give one turn of ceiling away (floor 1); base and min follow it down."""
        return self._with(max_turns=max(1, self.max_turns - 1))


class SessionState(BaseModel):
    """Everything a turn decision depends on; safe to JSON round-trip."""

    phase: Phase = "EXPLORE"
    topic_index: int = 0
    turn_in_topic: int = 0
    turns_used_total: int = 0

    topic_budgets: Dict[str, TopicBudget] = Field(default_factory=dict)
    topic_engagement_scores: Dict[str, float] = Field(default_factory=dict)
    topic_key_insights: Dict[str, str] = Field(default_factory=dict)
    last_signal_score: float = 0.0

    uncovered_topics: List[str] = Field(default_factory=list)
    deep_topic_order: List[str] = Field(default_factory=list)
    deep_turns_by_topic: Dict[str, int] = Field(default_factory=dict)
    topic_sub_goal_history: Dict[str, List[str]] = Field(default_factory=dict)

    deep_accepted: Optional[bool] = None
    extension_offer_attempts: int = 0
    extension_return_phase: Optional[Literal["EXPLORE", "DEEPEN"]] = None
    extension_return_topic_index: Optional[int] = None
    extension_return_turn_in_topic: Optional[int] = None

    consent_given: Optional[bool] = None
    force_consent_question: bool = False
    data_collection_refused: bool = False
    data_collection_attempts: int = 0
    pending_field: Optional[str] = None
    collected_fields: Dict[str, str] = Field(default_factory=dict)
    completed: bool = False

    runtime_knowledge: Optional[RuntimeKnowledge] = None

    def used_sub_goals(self, topic_id: str) -> List[str]:
        return list(self.topic_sub_goal_history.get(topic_id, []))


class TurnInput(BaseModel):
    """The per-turn call: latest utterance plus the session's fixed context."""

    session_id: str = "local"
    user_message: str = ""
    previous_assistant_message: Optional[str] = None
    language: str = "en"
    topics: List[Topic]
    plan: InterviewPlan
    max_duration_mins: int
    elapsed_sec: float = 0.0

    should_collect_data: bool = False
    candidate_fields: List[str] = Field(default_factory=list)
    research_goal: Optional[str] = None
    target_audience: Optional[str] = None
    manual_guide: Optional[str] = None

    @property
    def remaining_sec(self) -> float:
        return self.max_duration_mins * 60 - self.elapsed_sec

    def topic_by_id(self, topic_id: str) -> Optional[Topic]:
        for topic in self.topics:
            if topic.id == topic_id:
                return topic
        return None


class SessionSetup(BaseModel):
    """Per-session context fixed at start; each turn is built from it."""

    bot_id: str
    language: str = "en"
    topics: List[Topic]
    plan: InterviewPlan
    max_duration_mins: int
    started_at: float
    should_collect_data: bool = False
    candidate_fields: List[str] = Field(default_factory=list)
    research_goal: Optional[str] = None
    target_audience: Optional[str] = None
    manual_guide: Optional[str] = None

    def turn_input(
        self,
        session_id: str,
        user_message: str,
        *,
        elapsed_sec: float,
        previous_assistant_message: Optional[str] = None,
    ) -> TurnInput:
        return TurnInput(
            session_id=session_id,
            user_message=user_message,
            previous_assistant_message=previous_assistant_message,
            language=self.language,
            topics=self.topics,
            plan=self.plan,
            max_duration_mins=self.max_duration_mins,
            elapsed_sec=elapsed_sec,
            should_collect_data=self.should_collect_data,
            candidate_fields=self.candidate_fields,
            research_goal=self.research_goal,
            target_audience=self.target_audience,
            manual_guide=self.manual_guide,
        )


class PhaseResult(BaseModel):
    state: SessionState
    insight: SupervisorInsight
    next_topic_id: Optional[str] = None


class TurnResult(BaseModel):
    state: SessionState
    insight: SupervisorInsight
    next_topic_id: Optional[str] = None
    decision: Optional[MicroPlannerDecision] = None
    prompt_block: str = ""
    events: List[Dict[str, Any]] = Field(default_factory=list)


__all__ = [
    "MAX_BONUS_TURNS",
    "PhaseResult",
    "SessionSetup",
    "SessionState",
    "TopicBudget",
    "TurnInput",
    "TurnResult",
]
