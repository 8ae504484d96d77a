from agents.deep_plan import (
    build_deep_plan,
    build_deep_topic_order,
    build_extension_preview,
    get_deep_topics,
    select_deep_focus_point,
)


def test_uncovered_topics_come_first(topics):
    history = {"t1": ["tools used today", "manual steps"], "t2": ["who decides"]}
    order = build_deep_topic_order(topics, history, {}, {})
    assert order == ["t3", "t2", "t1"]


def test_engagement_breaks_ties(topics):
    order = build_deep_topic_order(topics[:2], {}, {"t2": 0.9}, {})
    assert order == ["t2", "t1"]


def test_deep_plan_spreads_spare_turns(topics, plan):
    order, turns = build_deep_plan(topics, plan, {}, {}, {}, remaining_sec=300)
    assert order == ["t1", "t2", "t3"]
    assert turns == {"t1": 2, "t2": 2, "t3": 1}


def test_deep_plan_without_time_gives_one_turn_each(topics, plan):
    _, turns = build_deep_plan(topics, plan, {}, {}, {}, remaining_sec=0)
    assert turns == {"t1": 1, "t2": 1, "t3": 1}


def test_deep_plan_fallback_when_everything_covered(topics, plan):
    history = {t.id: list(t.sub_goals) for t in topics}
    order, turns = build_deep_plan(topics, plan, history, {"t3": 0.8}, {}, remaining_sec=300)
    assert order == ["t3", "t1"]
    assert turns == {"t3": 1, "t1": 1}


def test_focus_point_follows_objective(topics):
    t2 = topics[1]
    assert select_deep_focus_point(t2, t2.sub_goals) == "who decides"
    assert select_deep_focus_point(t2, t2.sub_goals, objective="map the data sources teams trust") == "data sources"
    assert select_deep_focus_point(t2, []) == "Decision making"


def test_get_deep_topics(topics):
    assert [t.id for t in get_deep_topics(topics, ["t3", "missing", "t1"])] == ["t3", "t1"]
    assert len(get_deep_topics(topics, [])) == 3


def test_extension_preview(topics):
    history = {"t1": ["tools used today", "manual steps"]}
    assert build_extension_preview(topics, [], history, {}) == ["who decides", "next quarter goals"]
    covered = {t.id: list(t.sub_goals) for t in topics}
    assert build_extension_preview(topics, ["t2"], covered, {}) == ["Decision making"]
