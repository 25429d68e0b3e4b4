import re
from dataclasses import dataclass

ENTITY_ID_PATTERN = re.compile(r"\b[a-z][a-z0-9]*(?:-[a-z0-9]+)*-\d{1,4}\b")


@dataclass(frozen=True)
class Signal:
    pattern: re.Pattern[str]
    weight: int


@dataclass(frozen=True)
class IntentRules:
    intent: str
    signals: tuple[Signal, ...]
    normalizer: float
    threshold: float
    entity_weight: int = 0


@dataclass(frozen=True)
class ClassificationResult:
    intent: str
    confidence: float
    entity_mention: bool = False


def _signal(pattern: str, weight: int) -> Signal:
    return Signal(pattern=re.compile(pattern), weight=weight)


SUMMARY_RULES = IntentRules(
    intent="summary",
    signals=(
        _signal(r"\bhow many\b", 3),
        _signal(r"\bfleet summary\b|\bfleet\b", 3),
        _signal(r"\boverall health\b|\boverall status\b", 2),
        _signal(r"\boperational\b|\boperational state\b|\bout-of-service\b", 2),
        _signal(r"\btotal vehicles\b|\btotal cars\b", 2),
        _signal(r"\bsummary\b", 1),
        _signal(r"\bhealth\b", 1),
    ),
    normalizer=6,
    threshold=0.25,
    entity_weight=1,
)

GREETING_RULES = IntentRules(
    intent="greeting",
    signals=(_signal(r"\b(hello|hi|hey)\b", 3),),
    normalizer=3,
    threshold=0.5,
)


def classify(text: str | None, rules: IntentRules = SUMMARY_RULES) -> ClassificationResult:
    normalized = str(text or "").lower()
    score = sum(signal.weight for signal in rules.signals if signal.pattern.search(normalized))

    entity_mention = bool(ENTITY_ID_PATTERN.search(normalized))
    if entity_mention:
        score += rules.entity_weight

    confidence = min(1.0, score / rules.normalizer) if rules.normalizer > 0 else 0.0
    intent = rules.intent if confidence > rules.threshold else "other"
    return ClassificationResult(intent=intent, confidence=confidence, entity_mention=entity_mention)
