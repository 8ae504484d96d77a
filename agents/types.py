"""Shared type definitions for agents."""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

Phase = Literal["EXPLORE", "DEEPEN", "DEEP_OFFER", "DATA_COLLECTION"]
Band = Literal["LOW", "MEDIUM", "HIGH"]
Intent = Literal["ACCEPT", "REFUSE", "NEUTRAL"]
IntentContext = Literal["consent", "deep_offer", "stop_confirmation"]
UserTurnSignal = Literal["none", "clarification", "off_topic_question"]
KnowledgeSource = Literal["runtime", "manual", "fallback"]

SupervisorStatus = Literal[
    "EXPLORING",
    "EXPLORING_DEEP",
    "TRANSITION",
    "DEEPENING",
    "DEEP_OFFER_ASK",
    "DATA_COLLECTION_CONSENT",
    "DATA_COLLECTION",
    "COMPLETE_WITHOUT_DATA",
    "FINAL_GOODBYE",
]


class Topic(BaseModel):
    id: str
    label: str
    order_index: int = 0
    sub_goals: List[str] = Field(default_factory=list)
    max_turns: Optional[int] = None
    description: Optional[str] = None


class SignalResult(BaseModel):
    score: float = Field(ge=0.0, le=1.0)
    band: Band
    snippet: str = ""


class IntentResult(BaseModel):
    intent: Intent
    confidence: float = Field(ge=0.0, le=1.0)
    rationale: str = ""


class SupervisorInsight(BaseModel):
    """Phase-level guidance handed to question generation."""

    status: SupervisorStatus
    next_sub_goal: Optional[str] = None
    focus_point: Optional[str] = None
    next_topic: Optional[str] = None
    engaging_snippet: Optional[str] = None
    extension_preview: List[str] = Field(default_factory=list)
    pending_field: Optional[str] = None
    stop_reason: Optional[str] = None


# --- interview plan -------------------------------------------------------


class PlanTopic(BaseModel):
    topic_id: str
    label: str
    order_index: int
    sub_goals: List[str] = Field(default_factory=list)
    base_turns: int
    min_turns: int
    max_turns: int


class PlanMeta(BaseModel):
    generated_at: str
    plan_logic_version: int
    max_duration_mins: int
    total_time_sec: int
    per_topic_time_sec: float
    seconds_per_turn: int
    time_based_max_turns: int
    topics_signature: str


class DeepenSettings(BaseModel):
    strategy: Literal["uncovered_first"] = "uncovered_first"
    max_turns_per_topic: int = 2
    fallback_turns: int = 2


class InterviewPlan(BaseModel):
    version: int = 1
    meta: PlanMeta
    topics: List[PlanTopic] = Field(default_factory=list)
    deepen: DeepenSettings = Field(default_factory=DeepenSettings)

    def topic(self, topic_id: str) -> Optional[PlanTopic]:
        for entry in self.topics:
            if entry.topic_id == topic_id:
                return entry
        return None


class TopicOverride(BaseModel):
    min_turns: Optional[int] = None
    max_turns: Optional[int] = None


class DeepenOverride(BaseModel):
    max_turns_per_topic: Optional[int] = None
    fallback_turns: Optional[int] = None


class PlanOverrides(BaseModel):
    topics: Dict[str, TopicOverride] = Field(default_factory=dict)
    deepen: DeepenOverride = Field(default_factory=DeepenOverride)


# --- knowledge cues -------------------------------------------------------


class RuntimeTopicKnowledge(BaseModel):
    topic_id: str
    topic_label: str
    interpretation_cues: List[str] = Field(default_factory=list)
    significance_signals: List[str] = Field(default_factory=list)
    probe_angles: List[str] = Field(default_factory=list)


class RuntimeKnowledge(BaseModel):
    version: int = 1
    signature: str
    generated_at: str
    source: Literal["llm", "fallback"]
    summary: str
    topics: List[RuntimeTopicKnowledge] = Field(default_factory=list)


class KnowledgeCue(BaseModel):
    source: KnowledgeSource
    interpretation_cue: str
    significance_cue: str
    probe_cue: str


# --- micro-planner --------------------------------------------------------


class TopicCoverage(BaseModel):
    total: int
    used: int
    remaining: int
    turns_left: int
    prioritize_coverage: bool


class MicroPlannerDecision(BaseModel):
    mode: Literal["cover_subgoal", "probe_example", "probe_impact", "probe_constraint"]
    comment_style: Literal["direct_clarification", "evidence_reflection", "neutral_bridge"]
    focus_sub_goal: str
    followup_hint: str
    topic_coverage: TopicCoverage
    signal_score: float
    knowledge_source: KnowledgeSource
