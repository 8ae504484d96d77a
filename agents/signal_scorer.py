"""Engagement signal scoring for interviewee replies.

One scorer, two weight tables. ``ALLOCATOR_WEIGHTS`` drives elastic turn
allocation during EXPLORE; ``PLANNER_WEIGHTS`` drives the micro-planner's
question strategy. The two tables weigh different evidence, so the same
reply gets a different score under each.
"""
from __future__ import annotations

import re
from typing import Dict, List, Pattern

from pydantic import BaseModel, ConfigDict

from agents.text_utils import fold, is_italian, sentences, words
from agents.types import Band, SignalResult

LOW_BAND_CEILING = 0.3
HIGH_BAND_FLOOR = 0.6
SNIPPET_MAX_WORDS = 20
LONG_ANSWER_WORDS = 40


class SignalWeights(BaseModel):
    """Weight per feature; a zero weight switches the feature off."""

    model_config = ConfigDict(frozen=True)

    length_divisor: float
    length: float
    example_proxy: float = 0.0
    example_marker: float = 0.0
    impact: float = 0.0
    emotion: float = 0.0
    long_answer: float = 0.0
    cause_effect: float = 0.0
    numbers: float = 0.0


ALLOCATOR_WEIGHTS = SignalWeights(
    length_divisor=60,
    length=0.35,
    example_proxy=0.20,
    impact=0.15,
    emotion=0.15,
    long_answer=0.15,
)

PLANNER_WEIGHTS = SignalWeights(
    length_divisor=55,
    length=0.42,
    cause_effect=0.22,
    example_marker=0.18,
    impact=0.12,
    numbers=0.06,
)


def _compile(*patterns: str) -> List[Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


_KEYWORDS: Dict[str, Dict[str, List[Pattern[str]]]] = {
    "en": {
        "cause_effect": _compile(r"\bbecause\b", r"\btherefore\b", r"\bas a result\b", r"\bled to\b"),
        "example_marker": _compile(r"\bfor example\b", r"\bfor instance\b", r"\bcase\b", r"\bincident\b"),
        "impact": _compile(r"\bdecision\b", r"\btime\b", r"\bcost\b", r"\bquality\b", r"\bmarket\b"),
        "emotion": _compile(
            r"\b(love|hate|frustrat\w*|exciting|excited|disappointed|satisfied|concerned|worried)\b"
        ),
    },
    "it": {
        "cause_effect": _compile(r"\bperche\b", r"\bquindi\b", r"\bdi conseguenza\b", r"\bha portato\b"),
        "example_marker": _compile(r"\bad esempio\b", r"\bper esempio\b", r"\bcaso\b", r"\bepisodio\b"),
        "impact": _compile(r"\bdecision", r"\btempo\b", r"\bcosto\b", r"\bqualita\b", r"\bmercato\b"),
        "emotion": _compile(
            r"\b(adoro|odio|frustrante|entusiasmante|deluso|soddisfatto|preoccupato)\b"
        ),
    },
}

_NUMBER_RE = re.compile(r"\b\d{1,4}\b")
_DIGIT_RE = re.compile(r"\d")


def band_for(score: float) -> Band:
    if score < LOW_BAND_CEILING:
        return "LOW"
    if score <= HIGH_BAND_FLOOR:
        return "MEDIUM"
    return "HIGH"


def extract_snippet(text: str) -> str:
    """Longest sentence by word count, cut to ``SNIPPET_MAX_WORDS`` words."""
    best: List[str] = []
    for sentence in sentences(text):
        tokens = words(sentence)
        if len(tokens) > len(best):
            best = tokens
    return " ".join(best[:SNIPPET_MAX_WORDS])


def _has_example_proxy(text: str) -> bool:
    # A capitalised token mid-sentence usually names a client, product or place.
    if _DIGIT_RE.search(text):
        return True
    for sentence in sentences(text):
        for token in words(sentence)[1:]:
            if token[:1].isupper():
                return True
    return False


def _matches(patterns: List[Pattern[str]], text: str) -> bool:
    return any(p.search(text) for p in patterns)


def score_signal(text: str, language: str = "en", weights: SignalWeights = ALLOCATOR_WEIGHTS) -> SignalResult:
    """Score how engaged and concrete a reply is."""
    raw = str(text or "").strip()
    if not raw:
        return SignalResult(score=0.0, band="LOW", snippet="")

    folded = fold(raw)
    keywords = _KEYWORDS["it" if is_italian(language) else "en"]
    word_count = len(words(raw))

    features = {
        "length": min(1.0, word_count / weights.length_divisor),
        "example_proxy": 1.0 if weights.example_proxy and _has_example_proxy(raw) else 0.0,
        "example_marker": 1.0 if _matches(keywords["example_marker"], folded) else 0.0,
        "impact": 1.0 if _matches(keywords["impact"], folded) else 0.0,
        "emotion": 1.0 if _matches(keywords["emotion"], folded) else 0.0,
        "long_answer": 1.0 if word_count >= LONG_ANSWER_WORDS else 0.0,
        "cause_effect": 1.0 if _matches(keywords["cause_effect"], folded) else 0.0,
        "numbers": 1.0 if _NUMBER_RE.search(raw) else 0.0,
    }
    total = sum(getattr(weights, name) * value for name, value in features.items())
    score = round(max(0.0, min(1.0, total)), 4)
    return SignalResult(score=score, band=band_for(score), snippet=extract_snippet(raw))


__all__ = [
    "ALLOCATOR_WEIGHTS",
    "PLANNER_WEIGHTS",
    "SignalWeights",
    "band_for",
    "extract_snippet",
    "score_signal",
]
