"""Per-turn question tactics for EXPLORE and DEEPEN."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from agents.manual_knowledge import extract_manual_cue
from agents.signal_scorer import PLANNER_WEIGHTS, score_signal
from agents.text_utils import first_non_empty, fold, is_italian
from agents.types import (
    KnowledgeCue,
    MicroPlannerDecision,
    Phase,
    RuntimeKnowledge,
    TopicCoverage,
    UserTurnSignal,
)

HINT_MAX_CHARS = 180
EXPLORE_IMPACT_FLOOR = 0.42
EXPLORE_EXAMPLE_FLOOR = 0.28
DEEPEN_IMPACT_FLOOR = 0.34
REFLECTION_FLOOR = 0.2


class MicroPlannerInput(BaseModel):
    language: str = "en"
    phase: Phase
    topic_id: str
    topic_label: str
    topic_sub_goals: List[str] = Field(default_factory=list)
    used_sub_goals: List[str] = Field(default_factory=list)
    turn_in_topic: int = 0
    max_turns_in_topic: int = 1
    user_message: Optional[str] = None
    user_turn_signal: UserTurnSignal = "none"
    previous_assistant_question: Optional[str] = None
    manual_guide: Optional[str] = None
    runtime_knowledge: Optional[RuntimeKnowledge] = None


def _runtime_cue(knowledge: Optional[RuntimeKnowledge], topic_id: str, topic_label: str) -> Optional[KnowledgeCue]:
    if knowledge is None or not knowledge.topics:
        return None
    topic = next((item for item in knowledge.topics if item.topic_id == topic_id), knowledge.topics[0])
    return KnowledgeCue(
        source="runtime",
        interpretation_cue=first_non_empty(
            topic.interpretation_cues, f'Read the answer against the "{topic_label}" theme.'
        ),
        significance_cue=first_non_empty(topic.significance_signals, "Look for concrete operational impact."),
        probe_cue=first_non_empty(topic.probe_angles, "Ask for one specific recent example."),
    )


def _fallback_cue(language: str, topic_label: str, focus_sub_goal: str) -> KnowledgeCue:
    if is_italian(language):
        return KnowledgeCue(
            source="fallback",
            interpretation_cue=f'Interpreta la risposta nel perimetro di "{topic_label}".',
            significance_cue="Valuta se emergono vincoli reali o impatti su decisioni e priorita.",
            probe_cue=f'Approfondisci "{focus_sub_goal}" con un caso pratico recente.',
        )
    return KnowledgeCue(
        source="fallback",
        interpretation_cue=f'Interpret the response within the "{topic_label}" scope.',
        significance_cue="Check for real constraints and impact on decisions or priorities.",
        probe_cue=f'Deepen "{focus_sub_goal}" with one recent practical case.',
    )


def select_knowledge_cue(planner_input: MicroPlannerInput, focus_sub_goal: str) -> KnowledgeCue:
    """Runtime knowledge first, then the manual guide, then a template."""
    cue = _runtime_cue(planner_input.runtime_knowledge, planner_input.topic_id, planner_input.topic_label)
    if cue is not None:
        return cue
    cue = extract_manual_cue(
        planner_input.manual_guide,
        planner_input.topic_label,
        planner_input.topic_sub_goals,
        planner_input.language,
    )
    if cue is not None:
        return cue
    return _fallback_cue(planner_input.language, planner_input.topic_label, focus_sub_goal)


def _mode(phase: Phase, score: float, prioritize_coverage: bool, signal: UserTurnSignal) -> str:
    if signal == "clarification" or prioritize_coverage:
        return "cover_subgoal"
    if phase == "DEEPEN":
        return "probe_impact" if score >= DEEPEN_IMPACT_FLOOR else "probe_example"
    if score >= EXPLORE_IMPACT_FLOOR:
        return "probe_impact"
    if score >= EXPLORE_EXAMPLE_FLOOR:
        return "probe_example"
    return "cover_subgoal"


def _comment_style(signal: UserTurnSignal, score: float) -> str:
    if signal == "clarification":
        return "direct_clarification"
    if score >= REFLECTION_FLOOR:
        return "evidence_reflection"
    return "neutral_bridge"


def build_micro_planner_decision(planner_input: MicroPlannerInput) -> MicroPlannerDecision:
    score = score_signal(planner_input.user_message or "", planner_input.language, PLANNER_WEIGHTS).score

    sub_goals = [goal for goal in planner_input.topic_sub_goals if goal]
    used = [goal for goal in planner_input.used_sub_goals if goal]
    remaining = [goal for goal in sub_goals if goal not in used]
    total = max(1, len(sub_goals))
    turns_left = max(1, (planner_input.max_turns_in_topic or 1) - planner_input.turn_in_topic + 1)
    prioritize = planner_input.phase == "EXPLORE" and bool(remaining) and turns_left <= len(remaining)

    focus = remaining[0] if remaining else (sub_goals[0] if sub_goals else planner_input.topic_label)
    cue = select_knowledge_cue(planner_input, focus)
    mode = _mode(planner_input.phase, score, prioritize, planner_input.user_turn_signal)

    if mode == "probe_impact":
        hint = cue.significance_cue
    elif mode == "cover_subgoal":
        hint = cue.interpretation_cue
    else:
        hint = cue.probe_cue

    return MicroPlannerDecision(
        mode=mode,
        comment_style=_comment_style(planner_input.user_turn_signal, score),
        focus_sub_goal=focus,
        followup_hint=fold(hint)[:HINT_MAX_CHARS],
        topic_coverage=TopicCoverage(
            total=total,
            used=min(total, len(used)),
            remaining=len(remaining),
            turns_left=turns_left,
            prioritize_coverage=prioritize,
        ),
        signal_score=score,
        knowledge_source=cue.source,
    )


def build_micro_planner_prompt_block(
    language: str,
    phase: str,
    topic_label: str,
    decision: MicroPlannerDecision,
) -> str:
    if phase not in ("EXPLORE", "DEEPEN"):
        return ""
    cov = decision.topic_coverage
    if is_italian(language):
        lines = [
            "## MICRO-PLANNER PRE-TURN (NO FALLBACK REWRITE)",
            f'- Topic attivo: "{topic_label}"',
            f"- Strategia domanda: {decision.mode}",
            f"- Stile commento iniziale: {decision.comment_style}",
            f'- Focus sub-goal: "{decision.focus_sub_goal}"',
            f"- Hint di approfondimento: {decision.followup_hint}",
            f"- Copertura topic: usati={cov.used}/{cov.total}, rimanenti={cov.remaining}, turni_residui={cov.turns_left}",
            f"- Sorgente knowledge: {decision.knowledge_source}",
            "",
            "Regole operative:",
            "1) Se stile=direct_clarification, chiarisci prima in modo diretto e breve.",
            "2) Se stile=evidence_reflection, commenta un dettaglio concreto dell'utente (no formule generiche).",
            "3) Se strategia=cover_subgoal, orienta la domanda al sub-goal indicato.",
            "4) Se strategia=probe_example/probe_impact/probe_constraint, approfondisci quel punto prima di allargare.",
            "5) Mantieni naturalezza: UNA domanda sola, niente liste, niente chiusure.",
        ]
    else:
        lines = [
            "## MICRO-PLANNER PRE-TURN (NO FALLBACK REWRITE)",
            f'- Active topic: "{topic_label}"',
            f"- Question strategy: {decision.mode}",
            f"- Opening style: {decision.comment_style}",
            f'- Focus sub-goal: "{decision.focus_sub_goal}"',
            f"- Follow-up hint: {decision.followup_hint}",
            f"- Topic coverage: used={cov.used}/{cov.total}, remaining={cov.remaining}, turns_left={cov.turns_left}",
            f"- Knowledge source: {decision.knowledge_source}",
            "",
            "Operational rules:",
            "1) If style=direct_clarification, clarify first in one short direct sentence.",
            "2) If style=evidence_reflection, reference one concrete user detail (avoid generic openers).",
            "3) If strategy=cover_subgoal, align the question to the selected sub-goal.",
            "4) If strategy=probe_example/probe_impact/probe_constraint, deepen that point before broadening.",
            "5) Keep it natural: one question only, no lists, no closure cues.",
        ]
    return "\n".join(lines)


__all__ = [
    "MicroPlannerInput",
    "build_micro_planner_decision",
    "build_micro_planner_prompt_block",
    "select_knowledge_cue",
]
