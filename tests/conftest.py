import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

from agents.types import IntentResult, Topic
from config.settings import settings
from engine.state import SessionState, TurnInput
from services.plan_builder import build_base_plan
from storage.migrate import migrate


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    monkeypatch.setattr(settings, "CHECKPOINT_DIR", os.path.join(td.name, "checkpoints"), raising=False)
    migrate(db_path)
    try:
        yield
    finally:
        td.cleanup()


@pytest.fixture
def topics():
    return [
        Topic(id="t1", label="Current workflow", order_index=0, sub_goals=["tools used today", "manual steps"]),
        Topic(id="t2", label="Decision making", order_index=1, sub_goals=["who decides", "data sources"]),
        Topic(id="t3", label="Future priorities", order_index=2, sub_goals=["next quarter goals"]),
    ]


@pytest.fixture
def plan(topics):
    return build_base_plan(topics, 10, generated_at="2026-01-01T00:00:00+00:00")


@pytest.fixture
def make_turn(topics, plan):
    def _make(user_message="", **overrides):
        fields = {
            "session_id": "s1",
            "user_message": user_message,
            "language": "en",
            "topics": topics,
            "plan": plan,
            "max_duration_mins": 10,
            "elapsed_sec": 0.0,
        }
        fields.update(overrides)
        return TurnInput(**fields)

    return _make


@pytest.fixture
def fresh_state():
    return SessionState()


@pytest.fixture
def intent_stub():
    return _fixed_intent


def _fixed_intent(intent):
    """Classifier stub returning ``intent`` for every reply."""

    calls = []

    def _classify(user_msg, **kwargs):
        calls.append((user_msg, kwargs))
        return IntentResult(intent=intent, confidence=1.0, rationale="stub")

    _classify.calls = calls
    return _classify
