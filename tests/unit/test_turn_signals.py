import pytest

from agents.turn_signals import (
    detect_user_turn_signal,
    is_clarification_signal,
    is_extension_offer_question,
    is_likely_user_question,
)


@pytest.mark.parametrize(
    "message, language, expected",
    [
        ("Would you like to continue for a few more minutes?", "en", True),
        ("Ti va di continuare ancora qualche minuto?", "it", True),
        ("Hai ancora qualche minuto in più?", "it", True),
        ("Would you like to continue for a few more minutes.", "en", False),
        ("What tools do you use today?", "en", False),
        (None, "en", False),
    ],
)
def test_extension_offer_detection(message, language, expected):
    assert is_extension_offer_question(message, language) is expected


def test_clarification_detection():
    assert is_clarification_signal("hmm", "en")
    assert is_clarification_signal("Non ho capito la domanda", "it")
    assert is_clarification_signal("The tool or the process?", "en")
    assert not is_clarification_signal("We use spreadsheets for everything.", "en")


def test_user_question_detection():
    assert is_likely_user_question("why does that matter", "en")
    assert is_likely_user_question("Perché lo chiedi", "it")
    assert not is_likely_user_question("We use spreadsheets.", "en")


def test_weather_question_is_off_topic(topics):
    signal = detect_user_turn_signal("What's the weather like today?", "en", "EXPLORE", topics[1])
    assert signal == "off_topic_question"


def test_on_topic_question_is_not_flagged(topics):
    signal = detect_user_turn_signal("Who decides what, in your experience?", "en", "EXPLORE", topics[1])
    assert signal == "none"


def test_meta_question_is_off_topic(topics):
    assert detect_user_turn_signal("Are you a robot?", "en", "DEEPEN", topics[0]) == "off_topic_question"


def test_signals_only_in_question_phases(topics):
    assert detect_user_turn_signal("hmm", "en", "DEEP_OFFER", topics[0]) == "none"
    assert detect_user_turn_signal("hmm", "en", "EXPLORE", topics[0]) == "clarification"
    assert detect_user_turn_signal("", "en", "EXPLORE", topics[0]) == "none"
