"""Per-session interviewer notes generated once from the topic list.

A text generator is asked for compact cues per topic; when it is missing,
slow, or returns something unusable, a deterministic template takes over.
Results are cached by a signature of the inputs that shape them.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from agents.text_utils import fold, is_italian
from agents.types import InterviewPlan, RuntimeKnowledge, RuntimeTopicKnowledge, Topic
from llm_gateway import TextGenerator, generate_with_deadline

logger = logging.getLogger(__name__)

KNOWLEDGE_VERSION = 1
MIN_TIMEOUT_MS = 600
MAX_TIMEOUT_MS = 2400
DEFAULT_TIMEOUT_MS = 1400
TEMPERATURE = 0.25
MAX_ITEMS = 3
ITEM_CHARS = 140
SUMMARY_CHARS = 280

_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619


class GeneratedTopicKnowledge(BaseModel):
    topic_id: str = Field(min_length=1)
    topic_label: str = Field(min_length=1)
    interpretation_cues: List[str] = Field(min_length=1, max_length=3)
    significance_signals: List[str] = Field(min_length=1, max_length=3)
    probe_angles: List[str] = Field(min_length=1, max_length=3)


class GeneratedKnowledge(BaseModel):
    summary: str = Field(min_length=12, max_length=SUMMARY_CHARS)
    topics: List[GeneratedTopicKnowledge] = Field(min_length=1)


def _fnv1a(text: str) -> str:
    value = _FNV_OFFSET
    for ch in text:
        value ^= ord(ch)
        value = (value * _FNV_PRIME) & 0xFFFFFFFF
    return f"{value:08x}"


def build_knowledge_signature(
    *,
    language: str,
    plan: InterviewPlan,
    research_goal: Optional[str] = None,
    target_audience: Optional[str] = None,
) -> str:
    """Stable ``rk-v1-<hex>`` key; changes whenever the inputs change."""
    basis = "|".join(
        [
            language or "en",
            research_goal or "",
            target_audience or "",
            plan.meta.topics_signature,
            str(plan.meta.max_duration_mins),
        ]
    )
    return f"rk-v1-{_fnv1a(basis)}"


def clamp_timeout(timeout_ms: Optional[int]) -> int:
    value = DEFAULT_TIMEOUT_MS if timeout_ms is None else int(timeout_ms)
    return max(MIN_TIMEOUT_MS, min(value, MAX_TIMEOUT_MS))


def clean_items(items: Optional[Sequence[str]], fallback: Sequence[str]) -> List[str]:
    """Trimmed, case-insensitively deduplicated, at most three entries."""
    candidate = fallback if items is None else items
    seen = set()
    out: List[str] = []
    for raw in candidate:
        normalized = fold(raw)[:ITEM_CHARS]
        key = normalized.lower()
        if not normalized or key in seen:
            continue
        seen.add(key)
        out.append(normalized)
        if len(out) >= MAX_ITEMS:
            break
    if not out:
        return [item for item in (fold(v) for v in fallback) if item][:2]
    return out


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def fallback_topic_knowledge(topic: Topic, language: str) -> RuntimeTopicKnowledge:
    first = topic.sub_goals[0] if topic.sub_goals else topic.label
    second = topic.sub_goals[1] if len(topic.sub_goals) > 1 else first
    if is_italian(language):
        interpretation = [
            f'Valuta quanto "{first}" è oggi strutturato o solo intuitivo.',
            f'Distinguere bisogno urgente da interesse esplorativo su "{second}".',
        ]
        significance = [
            "Menziona impatti su decisioni, tempo o qualità delle risposte.",
            "Porta esempi concreti di frizioni, ritardi o opportunità perse.",
        ]
        probes = [
            f'Chiedi un caso recente in cui "{first}" ha inciso su una scelta.',
            "Esplora quale risultato operativo vorrebbe vedere nei prossimi 90 giorni.",
        ]
    else:
        interpretation = [
            f'Assess whether "{first}" is structured today or mostly ad hoc.',
            f'Separate urgent needs from exploratory interest around "{second}".',
        ]
        significance = [
            "Mentions impact on decisions, response speed, or output quality.",
            "Provides concrete examples of friction, delays, or missed opportunities.",
        ]
        probes = [
            f'Ask for a recent case where "{first}" affected a business decision.',
            "Probe which operational outcome they want to see in the next 90 days.",
        ]
    return RuntimeTopicKnowledge(
        topic_id=topic.id,
        topic_label=topic.label,
        interpretation_cues=clean_items(interpretation, interpretation),
        significance_signals=clean_items(significance, significance),
        probe_angles=clean_items(probes, probes),
    )


def build_fallback_knowledge(
    *,
    signature: str,
    language: str,
    topics: Sequence[Topic],
    research_goal: Optional[str] = None,
) -> RuntimeKnowledge:
    goal = fold(research_goal)[:120]
    if is_italian(language):
        tail = f' rispetto a "{goal}"' if goal else ""
        summary = (
            "Sintesi: usa i topic per distinguere bisogni immediati, impatti decisionali "
            f"e priorità di adozione{tail}."
        )
    else:
        tail = f' against "{goal}"' if goal else ""
        summary = f"Summary: use topics to separate immediate needs, decision impact, and adoption priorities{tail}."
    return RuntimeKnowledge(
        version=KNOWLEDGE_VERSION,
        signature=signature,
        generated_at=_now_iso(),
        source="fallback",
        summary=fold(summary)[:SUMMARY_CHARS],
        topics=[fallback_topic_knowledge(topic, language) for topic in topics],
    )


def is_knowledge_valid(knowledge: object, expected_signature: str) -> bool:
    if not isinstance(knowledge, RuntimeKnowledge):
        return False
    return (
        knowledge.version == KNOWLEDGE_VERSION
        and knowledge.signature == expected_signature
        and bool(knowledge.topics)
    )


def _prompt(
    topics: Sequence[Topic],
    language: str,
    research_goal: Optional[str],
    target_audience: Optional[str],
) -> str:
    listing = "\n".join(
        f"{idx}) {topic.id} | {topic.label} | sub-goals: {' ; '.join(topic.sub_goals) or '-'}"
        for idx, topic in enumerate(topics, start=1)
    )
    return "\n".join(
        [
            f"Language: {language}",
            "Task: Build compact interviewer intelligence notes for a qualitative interview.",
            f"Interview goal: {research_goal or '-'}",
            f"Target audience: {target_audience or '-'}",
            "Topics:",
            listing,
            "",
            "Output constraints:",
            "- Keep it practical, non-generic, and tied to business decisions.",
            "- For each topic provide:",
            "  1) interpretation_cues -> how to read user answers",
            "  2) significance_signals -> signs that deserve deeper probing",
            "  3) probe_angles -> follow-up directions with concrete business framing",
            "- Max 3 short bullets per list.",
            "- Do NOT include markdown, numbering, or commentary outside JSON.",
        ]
    )


def _merge(generated: GeneratedKnowledge, topics: Sequence[Topic], language: str) -> List[RuntimeTopicKnowledge]:
    by_id: Dict[str, GeneratedTopicKnowledge] = {item.topic_id: item for item in generated.topics}
    merged: List[RuntimeTopicKnowledge] = []
    for topic in topics:
        fallback = fallback_topic_knowledge(topic, language)
        item = by_id.get(topic.id)
        if item is None:
            merged.append(fallback)
            continue
        merged.append(
            RuntimeTopicKnowledge(
                topic_id=topic.id,
                topic_label=fold(item.topic_label)[:80] or topic.label,
                interpretation_cues=clean_items(item.interpretation_cues, fallback.interpretation_cues),
                significance_signals=clean_items(item.significance_signals, fallback.significance_signals),
                probe_angles=clean_items(item.probe_angles, fallback.probe_angles),
            )
        )
    return merged


def generate_runtime_knowledge(
    *,
    signature: str,
    language: str,
    topics: Sequence[Topic],
    generate: Optional[TextGenerator] = None,
    research_goal: Optional[str] = None,
    target_audience: Optional[str] = None,
    timeout_ms: Optional[int] = None,
) -> RuntimeKnowledge:
    """Ask ``generate`` for topic notes; any failure yields the fallback."""
    fallback = build_fallback_knowledge(
        signature=signature, language=language, topics=topics, research_goal=research_goal
    )
    if not topics or generate is None:
        return fallback
    try:
        raw = generate_with_deadline(
            generate,
            _prompt(topics, language, research_goal, target_audience),
            GeneratedKnowledge,
            temperature=TEMPERATURE,
            timeout_ms=clamp_timeout(timeout_ms),
        )
        generated = GeneratedKnowledge.model_validate(raw)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Runtime knowledge generation failed signature=%s: %s", signature, exc)
        return fallback
    return RuntimeKnowledge(
        version=KNOWLEDGE_VERSION,
        signature=signature,
        generated_at=_now_iso(),
        source="llm",
        summary=fold(generated.summary)[:SUMMARY_CHARS],
        topics=_merge(generated, topics, language),
    )


class RuntimeKnowledgeBuilder:
    """Generates knowledge at most once per signature and keeps the result."""

    def __init__(
        self,
        generate: Optional[TextGenerator] = None,
        *,
        timeout_ms: Optional[int] = None,
        producer: Callable[..., RuntimeKnowledge] = generate_runtime_knowledge,
    ) -> None:
        self._generate = generate
        self._timeout_ms = timeout_ms
        self._producer = producer
        self._cache: Dict[str, RuntimeKnowledge] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, signature: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(signature)
            if lock is None:
                lock = threading.Lock()
                self._locks[signature] = lock
        return lock

    def get(
        self,
        *,
        language: str,
        plan: InterviewPlan,
        topics: Sequence[Topic],
        research_goal: Optional[str] = None,
        target_audience: Optional[str] = None,
        existing: Optional[RuntimeKnowledge] = None,
    ) -> RuntimeKnowledge:
        signature = build_knowledge_signature(
            language=language, plan=plan, research_goal=research_goal, target_audience=target_audience
        )
        if existing is not None and is_knowledge_valid(existing, signature):
            return existing
        # one generation per signature; different signatures run in parallel
        with self._lock_for(signature):
            cached = self._cache.get(signature)
            if cached is not None:
                return cached
            knowledge = self._producer(
                signature=signature,
                language=language,
                topics=topics,
                generate=self._generate,
                research_goal=research_goal,
                target_audience=target_audience,
                timeout_ms=self._timeout_ms,
            )
            self._cache[signature] = knowledge
        logger.info("Runtime knowledge ready signature=%s source=%s", signature, knowledge.source)
        return knowledge


def build_runtime_knowledge_prompt_block(
    knowledge: Optional[RuntimeKnowledge],
    *,
    phase: str,
    topic_id: Optional[str],
    language: str,
) -> str:
    if knowledge is None or phase not in ("EXPLORE", "DEEPEN") or not knowledge.topics:
        return ""
    topic = next((item for item in knowledge.topics if item.topic_id == topic_id), knowledge.topics[0])
    cues = " | ".join(topic.interpretation_cues[:2])
    signals = " | ".join(topic.significance_signals[:2])
    probes = " | ".join(topic.probe_angles[:2])
    if is_italian(language):
        lines = [
            "## RUNTIME TOPIC INTELLIGENCE",
            f"- Sintesi: {knowledge.summary}",
            f'- Topic attivo: "{topic.topic_label}"',
            f"- Cosa interpretare: {cues}",
            f"- Segnali da approfondire: {signals}",
            f"- Direzioni di probing: {probes}",
            "Usa questi spunti in modo naturale, senza elencarli all'utente.",
        ]
    else:
        lines = [
            "## RUNTIME TOPIC INTELLIGENCE",
            f"- Summary: {knowledge.summary}",
            f'- Active topic: "{topic.topic_label}"',
            f"- Interpretation cues: {cues}",
            f"- Signals worth deepening: {signals}",
            f"- Probing directions: {probes}",
            "Use these cues naturally without listing them to the interviewee.",
        ]
    return "\n".join(lines)


__all__ = [
    "GeneratedKnowledge",
    "RuntimeKnowledgeBuilder",
    "build_fallback_knowledge",
    "build_knowledge_signature",
    "build_runtime_knowledge_prompt_block",
    "clamp_timeout",
    "clean_items",
    "generate_runtime_knowledge",
    "is_knowledge_valid",
]
