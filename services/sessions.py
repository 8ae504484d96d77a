"""Helpers for starting and resuming interview sessions."""
from __future__ import annotations

import time
import uuid
from typing import List, Mapping, Optional, Sequence

from agents.manual_knowledge import build_auto_guide_content, extract_manual_guide_source
from agents.types import Topic
from config.settings import settings
from engine.checkpointer import SessionRecord, load_session as load_record, save_session
from engine.state import SessionSetup, SessionState
from services.plan_builder import ordered_topics
from services.plans import load_or_create_plan


def new_session(
    bot_id: str,
    topics: List[Topic],
    *,
    language: Optional[str] = None,
    max_duration_mins: Optional[int] = None,
    should_collect_data: bool = False,
    candidate_fields: Optional[List[str]] = None,
    research_goal: Optional[str] = None,
    target_audience: Optional[str] = None,
    manual_guide: Optional[str] = None,
    knowledge_sources: Optional[Sequence[Mapping[str, Optional[str]]]] = None,
    auto_guide: bool = False,
    bot_name: Optional[str] = None,
) -> SessionRecord:
    """Create and checkpoint a session with a generated identifier.

    The interview guide is ``manual_guide`` when given, else the knowledge source
    that looks most like a guide. With ``auto_guide`` set and neither present, a
    guide is generated from the topic list.
    """

    duration = max_duration_mins or settings.DEFAULT_MAX_DURATION_MINS
    language = language or settings.DEFAULT_LANGUAGE
    ordered = ordered_topics(topics)
    guide = manual_guide or extract_manual_guide_source(knowledge_sources)
    if not guide and auto_guide:
        guide = build_auto_guide_content(
            language=language,
            topics=ordered,
            bot_name=bot_name,
            research_goal=research_goal,
            target_audience=target_audience,
        )
    setup = SessionSetup(
        bot_id=bot_id,
        language=language,
        topics=ordered,
        plan=load_or_create_plan(bot_id, topics, duration),
        max_duration_mins=duration,
        started_at=time.time(),
        should_collect_data=should_collect_data,
        candidate_fields=list(candidate_fields or []),
        research_goal=research_goal,
        target_audience=target_audience,
        manual_guide=guide,
    )
    record = SessionRecord(session_id=uuid.uuid4().hex, setup=setup, state=SessionState())
    save_session(record)
    return record


def load_session(session_id: str) -> Optional[SessionRecord]:
    """Load the last checkpointed record for ``session_id`` if present."""

    return load_record(session_id)


__all__ = ["load_session", "new_session"]
