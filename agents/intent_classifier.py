"""ACCEPT / REFUSE / NEUTRAL classification of replies to yes/no prompts.

Explicit yes/no phrasings are resolved locally; anything else goes to the
injected text generator. Errors, timeouts and low-confidence answers all
resolve to NEUTRAL so an unclear reply never extends or ends a session.
"""
from __future__ import annotations

import logging
import re
from typing import Optional

from pydantic import ValidationError

from agents.text_utils import fold
from agents.turn_signals import is_clarification_signal
from agents.types import IntentContext, IntentResult
from llm_gateway import TextGenerator, generate_with_deadline

logger = logging.getLogger(__name__)

CONF_THRESHOLD = 0.60
DEFAULT_TIMEOUT_MS = 1500

REFUSE_EXACT = frozenset(
    {
        "no", "no grazie", "direi di no", "anche no", "non ora", "meglio di no", "preferisco di no",
        "stop", "basta", "no thanks", "no thank you", "not now", "nope",
    }
)
ACCEPT_EXACT = frozenset(
    {
        "si", "yes", "ok", "va bene", "certo", "volentieri", "volontieri", "continuiamo", "proseguiamo",
        "andiamo avanti", "sure", "yes please", "of course", "okay",
    }
)

_REFUSE_RE = re.compile(
    r"\b(non voglio continuare|non continuare|non continuiamo|abbiamo gia parlato troppo|chiudiamo qui"
    r"|fermiamoci|preferisco chiudere|basta|i don't want to continue|let's stop|let's wrap up"
    r"|i'd rather stop|that's enough|i have to go)\b"
)
_ACCEPT_RE = re.compile(
    r"\b(voglio continuare|possiamo continuare|continuiamo|proseguiamo|andiamo avanti|estendiamo"
    r"|let's continue|happy to continue|keep going|we can continue)\b"
)
_LEADING_NO_RE = re.compile(r"^(no|nope|nah)\b")
_LEADING_YES_RE = re.compile(r"^(si|yes|yeah|sure|certo|certamente)\b")
_PUNCT_RE = re.compile(r"[!?.,;:()\[\]\"]")

_CONTEXT_PROMPTS = {
    "consent": (
        "The interviewer asked for permission to collect contact details. Did the user agree?",
        "ACCEPT = user agrees to share contact details; REFUSE = user declines; NEUTRAL = unrelated",
    ),
    "deep_offer": (
        "The interviewer asked whether the user wants to EXTEND the interview by a few minutes. "
        "Did the user accept?",
        "ACCEPT = user explicitly agrees to extend/continue; REFUSE = user declines the extension; "
        "NEUTRAL = unrelated or just answers content",
    ),
    "stop_confirmation": (
        "The interviewer asked the user to confirm they want to stop. Did the user confirm?",
        "ACCEPT = user confirms they want to stop; REFUSE = user wants to continue; NEUTRAL = unclear",
    ),
}


def _normalize(user_msg: str) -> str:
    text = fold(user_msg).lower()
    return " ".join(_PUNCT_RE.sub(" ", text).split())


def _deterministic(user_msg: str, language: str) -> Optional[IntentResult]:
    if is_clarification_signal(user_msg, language):
        return IntentResult(intent="NEUTRAL", confidence=1.0, rationale="clarification request")
    text = _normalize(user_msg)
    if not text:
        return IntentResult(intent="NEUTRAL", confidence=1.0, rationale="empty reply")
    if text in REFUSE_EXACT:
        return IntentResult(intent="REFUSE", confidence=1.0, rationale="explicit refusal")
    if text in ACCEPT_EXACT:
        return IntentResult(intent="ACCEPT", confidence=1.0, rationale="explicit acceptance")
    if _REFUSE_RE.search(text):
        return IntentResult(intent="REFUSE", confidence=0.95, rationale="refusal phrase")
    if _ACCEPT_RE.search(text):
        return IntentResult(intent="ACCEPT", confidence=0.95, rationale="acceptance phrase")
    if _LEADING_NO_RE.match(text):
        return IntentResult(intent="REFUSE", confidence=0.9, rationale="leading no")
    if _LEADING_YES_RE.match(text):
        return IntentResult(intent="ACCEPT", confidence=0.9, rationale="leading yes")
    return None


def _prompt(user_msg: str, context: IntentContext, language: str) -> str:
    question, hints = _CONTEXT_PROMPTS[context]
    return (
        f"{question}\nLanguage: {language}\nUser message: \"{user_msg}\"\n\n"
        f"Classify intent. {hints}. Return intent, confidence (0-1) and a one-line rationale."
    )


def classify_intent(
    user_msg: str,
    *,
    context: IntentContext,
    language: str = "en",
    generate: Optional[TextGenerator] = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> IntentResult:
    """Classify ``user_msg`` in ``context`` and coerce uncertain outcomes to NEUTRAL."""
    if context in ("deep_offer", "consent"):
        fast = _deterministic(user_msg, language)
        if fast is not None:
            return fast

    if generate is None:
        return IntentResult(intent="NEUTRAL", confidence=0.0, rationale="no classifier available")

    try:
        raw = generate_with_deadline(
            generate,
            _prompt(user_msg, context, language),
            IntentResult,
            temperature=0.0,
            timeout_ms=timeout_ms,
        )
        result = IntentResult.model_validate(raw)
    except ValidationError:
        result = IntentResult(intent="NEUTRAL", confidence=0.0, rationale="fallback parsing")
    except Exception as exc:  # noqa: BLE001
        logger.warning("Intent classification failed context=%s: %s", context, exc)
        return IntentResult(intent="NEUTRAL", confidence=0.0, rationale="classifier error")

    if result.confidence < CONF_THRESHOLD:
        return IntentResult(intent="NEUTRAL", confidence=result.confidence, rationale=result.rationale)
    return result


__all__ = ["CONF_THRESHOLD", "classify_intent"]
