"""Pydantic schemas for the interview session API."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from agents.types import InterviewPlan, MicroPlannerDecision, Phase, SupervisorInsight, Topic


class StartReq(BaseModel):
    bot_id: str
    topics: List[Topic] = Field(min_length=1)
    language: Optional[str] = None
    max_duration_mins: Optional[int] = Field(default=None, ge=1)
    should_collect_data: bool = False
    candidate_fields: List[str] = Field(default_factory=list)
    research_goal: Optional[str] = None
    target_audience: Optional[str] = None
    manual_guide: Optional[str] = None
    knowledge_sources: List[Dict[str, Optional[str]]] = Field(default_factory=list)
    auto_guide: bool = False
    bot_name: Optional[str] = None


class StartResp(BaseModel):
    session_id: str
    phase: Phase
    first_topic_id: str
    plan: InterviewPlan


class TurnReq(BaseModel):
    session_id: str
    user_msg: str = ""
    assistant_msg: Optional[str] = None
    elapsed_sec: Optional[float] = Field(default=None, ge=0)


class TurnResp(BaseModel):
    session_id: str
    phase: Phase
    completed: bool
    insight: SupervisorInsight
    next_topic_id: Optional[str] = None
    decision: Optional[MicroPlannerDecision] = None
    prompt_block: str = ""
    events: List[Dict[str, Any]] = Field(default_factory=list)


class PlanOverridesReq(BaseModel):
    topics: List[Topic] = Field(min_length=1)
    max_duration_mins: int = Field(ge=1)
    overrides: Dict[str, Any] = Field(default_factory=dict)


class PlanRegenerateReq(BaseModel):
    topics: List[Topic] = Field(min_length=1)
    max_duration_mins: int = Field(ge=1)


__all__ = ["PlanOverridesReq", "PlanRegenerateReq", "StartReq", "StartResp", "TurnReq", "TurnResp"]
