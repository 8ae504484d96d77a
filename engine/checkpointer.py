"""Atomic JSON persistence for interview sessions."""
from __future__ import annotations

import json
import logging
import os
from typing import Optional

from pydantic import BaseModel, ValidationError

from config.settings import settings
from engine.state import SessionSetup, SessionState

logger = logging.getLogger(__name__)


class SessionRecord(BaseModel):
    session_id: str
    setup: SessionSetup
    state: SessionState


def _checkpoint_path(session_id: str) -> str:
    return os.path.join(settings.CHECKPOINT_DIR, f"{session_id}.json")


def save_session(record: SessionRecord) -> str:
    """Persist the session record atomically and return the file path."""
    os.makedirs(settings.CHECKPOINT_DIR, exist_ok=True)
    path = _checkpoint_path(record.session_id)
    tmp_path = path + ".tmp"
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(record.model_dump(mode="json"), handle, ensure_ascii=False)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)
    return path


def load_session(session_id: str) -> Optional[SessionRecord]:
    """Load a session record from disk; ``None`` when missing or unreadable."""
    path = _checkpoint_path(session_id)
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as handle:
        raw = handle.read()
    try:
        return SessionRecord.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Discarding invalid checkpoint session=%s: %s", session_id, exc)
        return None


__all__ = ["SessionRecord", "load_session", "save_session"]
