import pytest

from fleet_ai_api.classifier import GREETING_RULES, SUMMARY_RULES, classify


def test_empty_text_is_other_with_zero_confidence() -> None:
    for text in ("", None, "   "):
        result = classify(text)
        assert result.intent == "other"
        assert result.confidence == 0
        assert result.entity_mention is False


def test_how_many_operational_is_confident_summary() -> None:
    result = classify("How many vehicles are operational?")
    assert result.intent == "summary"
    assert result.confidence >= 0.7
    assert result.confidence == pytest.approx(5 / 6)


@pytest.mark.parametrize(
    ("text", "intent", "confidence"),
    [
        ("Give me the fleet summary", "summary", 4 / 6),
        ("overall health please", "summary", 3 / 6),
        ("health", "other", 1 / 6),
        ("what is the weather like", "other", 0.0),
        ("How many out-of-service cars in the fleet? total cars too", "summary", 1.0),
    ],
)
def test_summary_scoring(text: str, intent: str, confidence: float) -> None:
    result = classify(text, SUMMARY_RULES)
    assert result.intent == intent
    assert result.confidence == pytest.approx(confidence)


def test_entity_mention_adds_weight() -> None:
    result = classify("health of BMW-X5M-003")
    assert result.entity_mention is True
    assert result.confidence == pytest.approx(2 / 6)
    assert result.intent == "summary"


@pytest.mark.parametrize("text", ["Hello", "hi there", "hey!"])
def test_greeting_rules(text: str) -> None:
    result = classify(text, GREETING_RULES)
    assert result.intent == "greeting"
    assert result.confidence == 1.0


@pytest.mark.parametrize("text", ["highway status", "which flight is grounded", ""])
def test_greeting_rules_ignore_partial_words(text: str) -> None:
    result = classify(text, GREETING_RULES)
    assert result.intent == "other"
    assert result.confidence == 0


def test_classify_is_deterministic() -> None:
    text = "fleet overall status and health"
    assert classify(text) == classify(text)
