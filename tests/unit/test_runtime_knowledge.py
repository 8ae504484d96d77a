import re
import threading

from agents.runtime_knowledge import (
    GeneratedKnowledge,
    GeneratedTopicKnowledge,
    RuntimeKnowledgeBuilder,
    _fnv1a,
    build_fallback_knowledge,
    build_knowledge_signature,
    build_runtime_knowledge_prompt_block,
    clamp_timeout,
    clean_items,
    generate_runtime_knowledge,
    is_knowledge_valid,
)


def test_fnv1a_known_vectors():
    assert _fnv1a("") == "811c9dc5"
    assert _fnv1a("a") == "e40c292c"


def test_signature_shape_and_sensitivity(plan):
    sig = build_knowledge_signature(language="en", plan=plan, research_goal="pricing")
    assert re.fullmatch(r"rk-v1-[0-9a-f]{8}", sig)
    assert sig == build_knowledge_signature(language="en", plan=plan, research_goal="pricing")
    assert sig != build_knowledge_signature(language="it", plan=plan, research_goal="pricing")
    assert sig != build_knowledge_signature(language="en", plan=plan, research_goal="churn")


def test_clamp_timeout():
    assert clamp_timeout(None) == 1400
    assert clamp_timeout(10) == 600
    assert clamp_timeout(99999) == 2400
    assert clamp_timeout(1000) == 1000


def test_clean_items_dedupes_and_caps():
    items = ["  Ask why  ", "ask WHY", "", "second", "third", "fourth"]
    assert clean_items(items, ["fb"]) == ["Ask why", "second", "third"]
    assert clean_items(["", "  "], ["one", "two", "three"]) == ["one", "two"]


def test_fallback_covers_every_topic(topics):
    knowledge = build_fallback_knowledge(signature="rk-v1-00000000", language="it", topics=topics)
    assert knowledge.source == "fallback"
    assert [item.topic_id for item in knowledge.topics] == ["t1", "t2", "t3"]
    assert all(1 <= len(item.probe_angles) <= 3 for item in knowledge.topics)
    assert is_knowledge_valid(knowledge, "rk-v1-00000000")
    assert not is_knowledge_valid(knowledge, "rk-v1-ffffffff")
    assert not is_knowledge_valid({"signature": "rk-v1-00000000"}, "rk-v1-00000000")


def test_generated_knowledge_is_merged_with_fallback(topics):
    generated = GeneratedKnowledge(
        summary="Focus on reporting latency and who owns decisions.",
        topics=[
            GeneratedTopicKnowledge(
                topic_id="t1",
                topic_label="Workflow",
                interpretation_cues=["Listen for manual handoffs", "listen for MANUAL handoffs"],
                significance_signals=["Delays measured in days"],
                probe_angles=["Ask for last week's report"],
            )
        ],
    )

    def _generate(prompt, schema, *, temperature, timeout_ms):
        assert schema is GeneratedKnowledge
        assert temperature == 0.25
        assert timeout_ms == 600
        return generated

    knowledge = generate_runtime_knowledge(
        signature="rk-v1-1", language="en", topics=topics, generate=_generate, timeout_ms=100
    )
    assert knowledge.source == "llm"
    first, second = knowledge.topics[0], knowledge.topics[1]
    assert first.topic_label == "Workflow"
    assert first.interpretation_cues == ["Listen for manual handoffs"]
    assert second.topic_id == "t2"
    assert second.probe_angles[0].startswith('Ask for a recent case where "who decides"')


def test_generator_failure_falls_back(topics):
    def _broken(prompt, schema, *, temperature, timeout_ms):
        raise ValueError("bad json")

    knowledge = generate_runtime_knowledge(signature="rk-v1-1", language="en", topics=topics, generate=_broken)
    assert knowledge.source == "fallback"


def test_builder_generates_once_per_signature(topics, plan):
    calls = []

    def _producer(**kwargs):
        calls.append(kwargs["signature"])
        return build_fallback_knowledge(signature=kwargs["signature"], language="en", topics=topics)

    builder = RuntimeKnowledgeBuilder(producer=_producer)
    first = builder.get(language="en", plan=plan, topics=topics)
    again = builder.get(language="en", plan=plan, topics=topics)
    assert again is first
    builder.get(language="en", plan=plan, topics=topics, research_goal="pricing")
    assert len(calls) == 2


def test_builder_reuses_valid_existing_knowledge(topics, plan):
    builder = RuntimeKnowledgeBuilder(producer=lambda **kwargs: None)
    sig = build_knowledge_signature(language="en", plan=plan)
    existing = build_fallback_knowledge(signature=sig, language="en", topics=topics)
    assert builder.get(language="en", plan=plan, topics=topics, existing=existing) is existing


def test_prompt_block_only_for_question_phases(topics):
    knowledge = build_fallback_knowledge(signature="rk-v1-1", language="en", topics=topics)
    block = build_runtime_knowledge_prompt_block(knowledge, phase="DEEPEN", topic_id="t2", language="en")
    assert block.startswith("## RUNTIME TOPIC INTELLIGENCE")
    assert 'Active topic: "Decision making"' in block
    assert build_runtime_knowledge_prompt_block(knowledge, phase="DEEP_OFFER", topic_id="t2", language="en") == ""
    assert build_runtime_knowledge_prompt_block(None, phase="EXPLORE", topic_id="t2", language="en") == ""


def _run_in_threads(*targets):
    threads = [threading.Thread(target=target) for target in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)


def test_builder_generates_distinct_signatures_concurrently(topics, plan):
    both_inside = threading.Barrier(2, timeout=2)
    overlapped = []

    def _producer(**kwargs):
        try:
            both_inside.wait()
            overlapped.append(kwargs["signature"])
        except threading.BrokenBarrierError:
            pass
        return build_fallback_knowledge(signature=kwargs["signature"], language="en", topics=topics)

    builder = RuntimeKnowledgeBuilder(producer=_producer)
    _run_in_threads(
        lambda: builder.get(language="en", plan=plan, topics=topics, research_goal="pricing"),
        lambda: builder.get(language="en", plan=plan, topics=topics, research_goal="churn"),
    )
    assert len(overlapped) == 2


def test_builder_shares_one_generation_per_signature(topics, plan):
    calls = []
    release = threading.Event()
    results = []

    def _producer(**kwargs):
        calls.append(kwargs["signature"])
        release.wait(2)
        return build_fallback_knowledge(signature=kwargs["signature"], language="en", topics=topics)

    builder = RuntimeKnowledgeBuilder(producer=_producer)

    def _get():
        results.append(builder.get(language="en", plan=plan, topics=topics))

    threads = [threading.Thread(target=_get) for _ in range(2)]
    for thread in threads:
        thread.start()
    release.set()
    for thread in threads:
        thread.join(5)
    assert len(calls) == 1
    assert results[0] is results[1]
