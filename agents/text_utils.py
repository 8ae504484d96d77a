"""Text normalisation and lexical overlap helpers shared by the agents."""
from __future__ import annotations

import re
import unicodedata
from typing import Iterable, List, Set

ITALIAN_STOPWORDS = frozenset(
    """
    il lo la i gli le un uno una di a da in con su per tra fra e o ma se che non piu
    del dello della dei degli delle al allo alla ai agli alle nel nello nella nei negli nelle
    """.split()
)
ENGLISH_STOPWORDS = frozenset(
    """
    the a an and or but if then of to in on at for with from by as is are was were be been
    being this that these those it its their them
    """.split()
)

_WS_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^a-z0-9\s]")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_SNIPPET_PUNCT_RE = re.compile(r"[?!.,;:()\[\]{}\"“”‘’'`]")


def is_italian(language: str | None) -> bool:
    return (language or "en").strip().lower().startswith("it")


def fold(text: str | None) -> str:
    """Strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", str(text or ""))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WS_RE.sub(" ", stripped).strip()


def words(text: str | None) -> List[str]:
    return [w for w in str(text or "").split() if w]


def sentences(text: str | None) -> List[str]:
    compact = _WS_RE.sub(" ", str(text or "")).strip()
    if not compact:
        return []
    return [chunk.strip() for chunk in _SENTENCE_SPLIT_RE.split(compact) if chunk.strip()]


def tokenize(text: str | None, language: str | None) -> Set[str]:
    source = _NON_WORD_RE.sub(" ", fold(text).lower())
    stopwords = ITALIAN_STOPWORDS if is_italian(language) else ENGLISH_STOPWORDS
    return {tok for tok in source.split() if len(tok) >= 3 and tok not in stopwords}


def lexical_overlap(a_text: str | None, b_text: str | None, language: str | None) -> float:
    """Shared tokens over the size of the smaller token set, in [0, 1]."""
    a = tokenize(a_text, language)
    b = tokenize(b_text, language)
    if not a or not b:
        return 0.0
    return len(a & b) / max(1, min(len(a), len(b)))


def sanitize_snippet(text: str | None, max_words: int = 10) -> str:
    compact = _WS_RE.sub(" ", str(text or "")).strip()
    if not compact:
        return ""
    cleaned = _SNIPPET_PUNCT_RE.sub("", compact).strip()
    return " ".join(cleaned.split()[:max_words])


def clip(text: str | None, limit: int) -> str:
    return fold(text)[:limit]


def first_non_empty(items: Iterable[str | None], fallback: str, limit: int = 180) -> str:
    for item in items:
        cleaned = clip(item, limit)
        if cleaned:
            return cleaned
    return clip(fallback, limit)


__all__ = [
    "ENGLISH_STOPWORDS",
    "ITALIAN_STOPWORDS",
    "clip",
    "first_non_empty",
    "fold",
    "is_italian",
    "lexical_overlap",
    "sanitize_snippet",
    "sentences",
    "tokenize",
    "words",
]
