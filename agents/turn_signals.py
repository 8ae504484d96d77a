"""Lightweight detectors for what the last user or assistant turn was doing."""
from __future__ import annotations

import re
from typing import Optional

from agents.text_utils import fold, is_italian, tokenize, words
from agents.types import Phase, Topic, UserTurnSignal

_OFFER_IT = re.compile(
    r"\b(ti va di continuare|vuoi continuare|qualche minuto in piu|hai ancora qualche minuto|hai disponibilita"
    r"|estendere(?:\s+l')?\s*intervista|proseguire|ulteriori? domand[ae] di approfondimento)\b",
    re.IGNORECASE,
)
_OFFER_EN = re.compile(
    r"\b(would you like to continue|do you want to continue|few more minutes|are you available"
    r"|extend the interview|continue for a few more minutes|follow-up questions|deep-dive questions)\b",
    re.IGNORECASE,
)

_GENERIC_CLARIFY = re.compile(r"^(boh|eh|mh|hmm|\?+|ok\??)$", re.IGNORECASE)
_CLARIFY_IT = re.compile(
    r"\b(non capisco|non ho capito|non mi e chiaro|puoi chiarire|puoi spiegare meglio|cosa intendi"
    r"|intendi dire|ti riferisci|in che senso|parli di|quale dei due)\b",
    re.IGNORECASE,
)
_CLARIFY_EN = re.compile(
    r"\b(i don't understand|i do not understand|not clear|can you clarify|can you explain"
    r"|what do you mean|do you mean|are you referring to|which one)\b",
    re.IGNORECASE,
)

_QUESTION_START_IT = re.compile(
    r"^(come|cosa|perche|quando|dove|chi|quale|quali|quanto|in che modo|mi spieghi|puoi spiegare)", re.IGNORECASE
)
_QUESTION_START_EN = re.compile(
    r"^(how|what|why|when|where|who|which|can you|could you|would you|please explain)", re.IGNORECASE
)

_OFF_TOPIC_IT = re.compile(
    r"\b(che ore|che tempo|meteo|oroscopo|barzelletta|storia divertente|chi sei|come stai|quanti anni hai"
    r"|dove vivi|che modello usi|chatgpt|openai|calcio|sport|borsa|bitcoin|criptovalute|ricetta)\b",
    re.IGNORECASE,
)
_OFF_TOPIC_EN = re.compile(
    r"\b(what time|weather|horoscope|joke|funny story|who are you|how are you|how old are you"
    r"|where do you live|what model do you use|chatgpt|openai|football|soccer|sports|stock market"
    r"|bitcoin|crypto|recipe)\b",
    re.IGNORECASE,
)
_META_IT = re.compile(r"\b(tu|ti|te|sei|puoi)\b", re.IGNORECASE)
_META_EN = re.compile(r"\b(you|your|are you|can you)\b", re.IGNORECASE)


def is_extension_offer_question(message: Optional[str], language: str) -> bool:
    """True when an assistant message asks whether to extend the interview."""
    text = fold(message).lower()
    if not text or "?" not in text:
        return False
    pattern = _OFFER_IT if is_italian(language) else _OFFER_EN
    return bool(pattern.search(text))


def is_clarification_signal(message: Optional[str], language: str) -> bool:
    text = fold(message).lower()
    if not text:
        return False
    if _GENERIC_CLARIFY.match(text):
        return True
    pattern = _CLARIFY_IT if is_italian(language) else _CLARIFY_EN
    if pattern.search(text):
        return True
    # short "A or B?" questions ask which reading was meant
    either_or = re.search(r"\bor\b", text) or re.search(r"\bo\b", text)
    return "?" in text and len(words(text)) <= 12 and bool(either_or)


def is_likely_user_question(message: Optional[str], language: str) -> bool:
    text = fold(message).lower()
    if not text:
        return False
    if "?" in text:
        return True
    pattern = _QUESTION_START_IT if is_italian(language) else _QUESTION_START_EN
    return bool(pattern.match(text))


def detect_user_turn_signal(
    message: Optional[str],
    language: str,
    phase: Phase,
    topic: Optional[Topic] = None,
    objective: Optional[str] = None,
) -> UserTurnSignal:
    text = str(message or "").strip()
    if not text or phase not in ("EXPLORE", "DEEPEN"):
        return "none"
    if is_clarification_signal(text, language):
        return "clarification"
    if not is_likely_user_question(text, language):
        return "none"

    user_tokens = tokenize(text, language)
    anchors = tokenize(" ".join([topic.label, *topic.sub_goals]) if topic else "", language)
    anchors |= tokenize(objective, language)
    if user_tokens & anchors:
        return "none"

    italian = is_italian(language)
    folded = fold(text)
    if (_OFF_TOPIC_IT if italian else _OFF_TOPIC_EN).search(folded):
        return "off_topic_question"
    if len(words(text)) <= 10 and (_META_IT if italian else _META_EN).search(folded):
        return "off_topic_question"
    return "none"


__all__ = [
    "detect_user_turn_signal",
    "is_clarification_signal",
    "is_extension_offer_question",
    "is_likely_user_question",
]
