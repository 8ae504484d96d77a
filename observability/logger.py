"""Structured logging for interview turns."""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_FILE_LOGS = os.getenv("ENABLE_FILE_LOGS", "1") in ("1", "true", "True")
LOG_FILE = os.getenv("LOG_FILE", "logs/interview.log")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "5242880"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

HUMAN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s :: %(message)s"
HUMAN_KEYS = ("phase", "status", "action", "topic", "band", "intent", "mode", "source", "ms")

_logger = logging.getLogger("interview")
_logger.setLevel(LOG_LEVEL)
_logger.propagate = False


def _human_formatter() -> logging.Formatter:
    return logging.Formatter(HUMAN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def _is_json(record: logging.LogRecord) -> bool:
    return getattr(record, "is_json", False) is True


def _rotating(path: str) -> logging.handlers.RotatingFileHandler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(LOG_LEVEL)
    return handler


def _ensure_handlers() -> None:
    if _logger.handlers:
        return

    # Console only ever sees the human line
    console = logging.StreamHandler(stream=sys.stdout)
    console.setLevel(LOG_LEVEL)
    console.setFormatter(_human_formatter())
    console.addFilter(lambda record: not _is_json(record))
    _logger.addHandler(console)

    if not ENABLE_FILE_LOGS:
        return

    log_dir = os.path.dirname(LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    json_file = _rotating(LOG_FILE)
    json_file.setFormatter(logging.Formatter("%(message)s"))
    json_file.addFilter(_is_json)
    _logger.addHandler(json_file)

    stem = LOG_FILE[:-4] if LOG_FILE.endswith(".log") else LOG_FILE
    human_file = _rotating(f"{stem}-human.log")
    human_file.setFormatter(_human_formatter())
    human_file.addFilter(lambda record: not _is_json(record))
    _logger.addHandler(human_file)


def _format_human(evt: dict[str, Any]) -> str:
    base = f"session={evt.get('session_id')} kind={evt.get('kind')}"
    extras = [f"{key}={evt[key]}" for key in HUMAN_KEYS if evt.get(key) is not None]
    return base + (" " + " ".join(extras) if extras else "")


def _emit(msg: str, level: int, *, is_json: bool) -> None:
    record = _logger.makeRecord(
        name=_logger.name,
        level=level,
        fn="",
        lno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )
    record.is_json = is_json  # type: ignore[attr-defined]
    _logger.handle(record)


def log_event(kind: str, session_id: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one human line (console + file) and one JSON line (file only)."""

    _ensure_handlers()
    if not _logger.isEnabledFor(level):
        return

    payload: dict[str, Any] = {
        "ts": time.time(),
        "trace": str(uuid.uuid4()),
        "kind": kind,
        "session_id": session_id,
    }
    payload.update(fields)

    _emit(_format_human(payload), level, is_json=False)
    if ENABLE_FILE_LOGS:
        _emit(json.dumps(payload, ensure_ascii=False, default=str), level, is_json=True)


__all__ = ["log_event"]
