from services.plans import load_or_create_plan, regenerate_plan, update_plan_overrides
from storage.plans import get_plan_record, upsert_plan_record


def test_load_or_create_is_idempotent(topics):
    first = load_or_create_plan("bot-1", topics, 10)
    stored = get_plan_record("bot-1")
    second = load_or_create_plan("bot-1", topics, 10)
    again = get_plan_record("bot-1")
    assert stored.version == 1
    assert again.base_plan == stored.base_plan
    assert again.version == 1
    assert second == first


def test_changed_duration_rebuilds_and_bumps_version(topics):
    load_or_create_plan("bot-1", topics, 10)
    plan = load_or_create_plan("bot-1", topics, 20)
    assert plan.meta.max_duration_mins == 20
    assert get_plan_record("bot-1").version == 2


def test_overrides_survive_rebuild(topics):
    load_or_create_plan("bot-1", topics, 10)
    merged = update_plan_overrides("bot-1", topics, 10, {"topics": {"t2": {"max_turns": 3}}})
    assert merged.topics[1].max_turns == 3
    assert get_plan_record("bot-1").version == 2

    rebuilt = load_or_create_plan("bot-1", topics[:2], 10)
    assert rebuilt.topics[1].max_turns == 3
    assert get_plan_record("bot-1").version == 3


def test_update_keeps_stored_base_verbatim(topics):
    load_or_create_plan("bot-1", topics, 10)
    base_before = get_plan_record("bot-1").base_plan
    update_plan_overrides("bot-1", topics, 10, {"deepen": {"fallback_turns": 1}})
    record = get_plan_record("bot-1")
    assert record.base_plan == base_before
    assert '"fallback_turns":1' in record.overrides


def test_update_without_record_creates_plan(topics):
    merged = update_plan_overrides("bot-2", topics, 10, {"topics": {"t1": {"min_turns": 2}}})
    assert merged.topics[0].min_turns == 2
    assert get_plan_record("bot-2").version == 1


def test_regenerate_reapplies_overrides(topics):
    update_plan_overrides("bot-1", topics, 10, {"topics": {"t1": {"max_turns": 2}}})
    plan = regenerate_plan("bot-1", topics, 10)
    assert plan.topics[0].max_turns == 2
    assert get_plan_record("bot-1").version == 2


def test_unreadable_stored_plan_is_rebuilt(topics):
    upsert_plan_record("bot-3", '{"version": "broken"}', "not json", 4)
    plan = load_or_create_plan("bot-3", topics, 10)
    assert [t.max_turns for t in plan.topics] == [6, 6, 6]
    record = get_plan_record("bot-3")
    assert record.version == 5
    assert record.overrides is None
