"""FastAPI routes for interview sessions and per-bot plans."""
from __future__ import annotations

import re
import time

from fastapi import APIRouter, HTTPException, Request

from agents.flow_manager import FlowDeps
from agents.types import InterviewPlan
from api.schemas import PlanOverridesReq, PlanRegenerateReq, StartReq, StartResp, TurnReq, TurnResp
from engine.checkpointer import save_session
from engine.turn import process_turn
from services.plans import regenerate_plan, update_plan_overrides
from services.sessions import load_session, new_session

router = APIRouter(prefix="/api/interview-sessions")
plans_router = APIRouter(prefix="/api/interview-plans")

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def get_flow_deps(request: Request) -> FlowDeps:
    return request.app.state.flow_deps


@router.post("/start", response_model=StartResp)
def start(req: StartReq) -> StartResp:
    record = new_session(
        req.bot_id,
        req.topics,
        language=req.language,
        max_duration_mins=req.max_duration_mins,
        should_collect_data=req.should_collect_data,
        candidate_fields=req.candidate_fields,
        research_goal=req.research_goal,
        target_audience=req.target_audience,
        manual_guide=req.manual_guide,
        knowledge_sources=req.knowledge_sources,
        auto_guide=req.auto_guide,
        bot_name=req.bot_name,
    )
    return StartResp(
        session_id=record.session_id,
        phase=record.state.phase,
        first_topic_id=record.setup.topics[0].id,
        plan=record.setup.plan,
    )


@router.post("/turn", response_model=TurnResp)
def turn(req: TurnReq, request: Request) -> TurnResp:
    if not _SESSION_ID_RE.match(req.session_id):
        raise HTTPException(status_code=400, detail="Invalid session id")
    record = load_session(req.session_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Session not found")

    elapsed = req.elapsed_sec if req.elapsed_sec is not None else time.time() - record.setup.started_at
    previous = req.assistant_msg
    turn_input = record.setup.turn_input(
        record.session_id,
        req.user_msg,
        elapsed_sec=elapsed,
        previous_assistant_message=previous,
    )
    result = process_turn(record.state, turn_input, get_flow_deps(request))

    record.state = result.state
    save_session(record)
    return TurnResp(
        session_id=record.session_id,
        phase=result.state.phase,
        completed=result.state.completed,
        insight=result.insight,
        next_topic_id=result.next_topic_id,
        decision=result.decision,
        prompt_block=result.prompt_block,
        events=result.events,
    )


@plans_router.put("/{bot_id}/overrides", response_model=InterviewPlan)
def put_overrides(bot_id: str, req: PlanOverridesReq) -> InterviewPlan:
    return update_plan_overrides(bot_id, req.topics, req.max_duration_mins, req.overrides)


@plans_router.post("/{bot_id}/regenerate", response_model=InterviewPlan)
def post_regenerate(bot_id: str, req: PlanRegenerateReq) -> InterviewPlan:
    return regenerate_plan(bot_id, req.topics, req.max_duration_mins)


__all__ = ["get_flow_deps", "plans_router", "router"]
