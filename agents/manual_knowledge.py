"""Hand-written interview guides: source selection, cues and prompt blocks."""
from __future__ import annotations

import re
from typing import List, Mapping, Optional, Sequence

from agents.text_utils import first_non_empty, fold, is_italian, sentences, tokenize
from agents.types import KnowledgeCue, Topic

GUIDE_MAX_CHARS = 2200
GUIDE_TITLE_HINTS = (
    "interview knowledge",
    "interview guide",
    "guida intervista",
    "conoscenza intervista",
    "research guide",
    "linee guida intervista",
    "playbook intervista",
)

_HEADER_RE = re.compile(r"^##\s+")
_BULLET_RE = re.compile(r"^[-*]\s+")
_INTERPRETATION_RE = re.compile(r"(come|cosa capire|valuta|distinguere|how|what to understand|assess|separate)", re.I)
_SIGNIFICANCE_RE = re.compile(
    r"(segnali|indicatori|impatto|decision|frizion|opportunit|signals|impact|friction|missed)", re.I
)
_PROBE_RE = re.compile(r"(follow-up|puoi|chiedi|raccontami|esempio|can you|ask|example)", re.I)


def extract_manual_guide_source(sources: Optional[Sequence[Mapping[str, Optional[str]]]]) -> Optional[str]:
    """Return the content of the source that looks most like an interview guide."""
    best_score, best_content = -1, ""
    for source in sources or ():
        content = str(source.get("content") or "").strip()
        if not content:
            continue
        title = fold(source.get("title")).lower()
        kind = fold(source.get("type")).lower()
        score = 0
        if "interview" in kind:
            score += 4
        if any(hint in title for hint in GUIDE_TITLE_HINTS):
            score += 3
        if any(word in title for word in ("guide", "guida", "knowledge", "conoscenza")):
            score += 1
        if len(content) >= 200:
            score += 1
        if score > best_score:
            best_score, best_content = score, content
    return best_content[:GUIDE_MAX_CHARS] or None


def _sections(guide: str) -> List[List[str]]:
    sections: List[List[str]] = []
    for raw in guide.splitlines():
        line = raw.strip()
        if not line:
            continue
        if _HEADER_RE.match(line) or not sections:
            sections.append([line])
        else:
            sections[-1].append(line)
    return sections


def _topic_section(guide: str, label: str, sub_goals: Sequence[str], language: str) -> List[str]:
    sections = [section for section in _sections(guide) if _HEADER_RE.match(section[0])]
    if not sections:
        return []
    wanted = fold(label).lower()
    for section in sections:
        if wanted and wanted in fold(section[0]).lower():
            return section[1:]
    vocabulary = tokenize(f"{label} {' '.join(sub_goals)}", language)
    best, best_hits = None, 0
    for section in sections:
        hits = len(vocabulary & tokenize(section[0], language))
        if hits > best_hits:
            best, best_hits = section, hits
    return best[1:] if best else []


def _ranked_lines(section: List[str], vocabulary: set, language: str) -> List[str]:
    bullets = [fold(_BULLET_RE.sub("", line)) for line in section if _BULLET_RE.match(line)]
    bullets = [line for line in bullets if line]
    if not bullets:
        return [fold(line) for line in section[:3] if fold(line)]
    # sorted() is stable, so equal overlap keeps guide order
    return sorted(bullets, key=lambda line: -len(vocabulary & tokenize(line, language)))


def _pick(lines: List[str], pattern: "re.Pattern[str]") -> Optional[str]:
    for line in lines:
        if pattern.search(line):
            return line
    return lines[0] if lines else None


def extract_manual_cue(
    guide: Optional[str],
    topic_label: str,
    sub_goals: Sequence[str],
    language: str = "en",
) -> Optional[KnowledgeCue]:
    """Map the guide section for ``topic_label`` to the three cue kinds."""
    text = str(guide or "").strip()
    if not text:
        return None
    section = _topic_section(text, topic_label, sub_goals, language)
    if not section:
        return None
    vocabulary = tokenize(f"{topic_label} {' '.join(sub_goals)}", language)
    ranked = _ranked_lines(section, vocabulary, language)

    focus = sub_goals[0] if sub_goals else topic_label
    if is_italian(language):
        defaults = (
            f'Interpreta la risposta rispetto a "{focus}" distinguendo situazione attuale e obiettivo.',
            "Cerca segnali concreti: impatto su decisioni, tempi, qualita o mercato.",
            "Approfondisci con un esempio reale recente.",
        )
    else:
        defaults = (
            f'Interpret the response on "{focus}" by separating current state and target outcome.',
            "Look for concrete signals: impact on decisions, timing, quality, or market.",
            "Deepen using one concrete recent example.",
        )
    return KnowledgeCue(
        source="manual",
        interpretation_cue=first_non_empty([_pick(ranked, _INTERPRETATION_RE)], defaults[0]),
        significance_cue=first_non_empty([_pick(ranked, _SIGNIFICANCE_RE)], defaults[1]),
        probe_cue=first_non_empty([_pick(ranked, _PROBE_RE)], defaults[2]),
    )


def build_manual_knowledge_prompt_block(
    guide: Optional[str],
    *,
    phase: str,
    language: str,
    topic_label: str,
    sub_goals: Sequence[str] = (),
) -> str:
    if not guide or phase not in ("EXPLORE", "DEEPEN"):
        return ""
    chunks = [fold(chunk) for chunk in sentences(guide)]
    chunks = [chunk for chunk in chunks if chunk]
    if not chunks:
        return ""

    topic_tokens = {tok for tok in fold(f"{topic_label} {' '.join(sub_goals)}").lower().split() if len(tok) >= 4}
    scored = []
    for chunk in chunks:
        chunk_tokens = {tok for tok in chunk.lower().split() if len(tok) >= 4}
        scored.append((len(topic_tokens & chunk_tokens), chunk))
    scored.sort(key=lambda item: -item[0])
    selected = [chunk for overlap, chunk in scored if overlap > 0][:3]
    lines = selected or chunks[:2]
    bullets = "\n- ".join(lines)

    if is_italian(language):
        return (
            "## KNOWLEDGE GUIDA INTERVISTA (MANUALE, EDITABILE)\n"
            f'Per il topic "{topic_label}" tieni presente:\n'
            f"- {bullets}\n"
            "Usa questa guida come prioritaria e applicala in modo naturale."
        )
    return (
        "## INTERVIEW GUIDE KNOWLEDGE (MANUAL, EDITABLE)\n"
        f'For topic "{topic_label}" keep in mind:\n'
        f"- {bullets}\n"
        "Treat this guide as primary and apply it naturally."
    )


def _clean(text: Optional[str], limit: int) -> str:
    return " ".join(str(text or "").split())[:limit]


def _topic_block(index: int, topic: Topic, italian: bool) -> str:
    label = _clean(topic.label, 120) or f"Topic {index}"
    description = _clean(topic.description, 280)
    goals = [goal for goal in (_clean(item, 140) for item in topic.sub_goals[:6]) if goal]
    primary = goals[0] if goals else label
    secondary = goals[1] if len(goals) > 1 else primary

    if italian:
        lines = [
            f"## Topic {index} - {label}",
            f"Contesto: {description}" if description else None,
            "Cosa capire:",
            f'- Come viene gestito oggi "{primary}" e con quali limiti.',
            f'- Quale risultato concreto si aspettano da un miglioramento su "{secondary}".',
            "Segnali da approfondire:",
            "- Riferimenti a tempi di risposta, qualità decisionale, opportunità perse, frizioni col mercato/clienti.",
            "- Indicatori concreti (esempi reali, casi recenti, numeri o frequenze).",
            "Follow-up suggeriti:",
            '- "Puoi raccontarmi un caso recente in cui questo tema ha influenzato una decisione?"',
            '- "Quale cambiamento operativo vorresti vedere nei primi 90 giorni?"',
            f"Sub-goal dichiarati: {' | '.join(goals)}" if goals else None,
        ]
    else:
        lines = [
            f"## Topic {index} - {label}",
            f"Context: {description}" if description else None,
            "What to understand:",
            f'- How "{primary}" is currently handled and where it breaks down.',
            f'- Which concrete outcome they expect from improving "{secondary}".',
            "Signals worth probing:",
            "- Mentions of response time, decision quality, missed opportunities, or market/client friction.",
            "- Concrete indicators (real examples, recent events, numbers, frequency).",
            "Suggested follow-ups:",
            '- "Can you walk me through a recent case where this influenced a decision?"',
            '- "What operational change would you want in the first 90 days?"',
            f"Declared sub-goals: {' | '.join(goals)}" if goals else None,
        ]
    return "\n".join(line for line in lines if line)


def build_auto_guide_content(
    *,
    language: str,
    topics: Sequence[Topic],
    bot_name: Optional[str] = None,
    research_goal: Optional[str] = None,
    target_audience: Optional[str] = None,
) -> str:
    """Deterministic, editable markdown guide seeded from the topic list."""
    italian = is_italian(language)
    unspecified = "Non specificato" if italian else "Not specified"
    goal = _clean(research_goal, 400) or unspecified
    audience = _clean(target_audience, 300) or unspecified
    name = _clean(bot_name, 120) or ("Intervista" if italian else "Interview")

    if italian:
        intro = [
            "# Interview Knowledge (Auto-generated)",
            "",
            f'Questa guida è stata generata automaticamente per "{name}" e può essere modificata manualmente.',
            "",
            "## Obiettivo di ricerca",
            goal,
            "",
            "## Target intervistati",
            audience,
            "",
            "## Criteri trasversali di interpretazione",
            "- Distinguere sempre stato attuale, obiettivo desiderato e vincolo reale.",
            "- Cercare impatti su decisioni, tempi, qualità delle risposte e rapporto col mercato.",
            "- Se emerge un punto significativo, chiedere esempi concreti, frequenza e conseguenze operative.",
            "- Evitare domande duplicate o generiche: un solo focus per turno.",
            "",
        ]
        closing = [
            "## Nota operativa",
            "Questa guida è un supporto interpretativo: usala per approfondire i segnali più rilevanti "
            "mantenendo naturalezza conversazionale.",
        ]
    else:
        intro = [
            "# Interview Knowledge (Auto-generated)",
            "",
            f'This guide was auto-generated for "{name}" and can be edited manually.',
            "",
            "## Research Goal",
            goal,
            "",
            "## Target Audience",
            audience,
            "",
            "## Cross-topic interpretation criteria",
            "- Separate current state, desired outcome, and real constraints.",
            "- Look for impact on decisions, timing, response quality, and market relationship.",
            "- When a meaningful point appears, ask for concrete examples, frequency, and operational impact.",
            "- Avoid duplicate or generic questions: keep one focus per turn.",
            "",
        ]
        closing = [
            "## Operational note",
            "This guide is an interpretation aid: use it to deepen high-value signals while keeping "
            "the conversation natural.",
        ]

    blocks = [_topic_block(idx, topic, italian) + "\n" for idx, topic in enumerate(topics[:12], start=1)]
    return "\n".join(intro + blocks + closing).strip()


__all__ = [
    "build_auto_guide_content",
    "build_manual_knowledge_prompt_block",
    "extract_manual_cue",
    "extract_manual_guide_source",
]
