import pytest

from annot_lib.errors import ValidationFailure
from annot_lib.taxonomy import load_taxonomy
from annot_lib.validation import validate_intents, validate_memories, validate_memory, validation_errors

TAX = load_taxonomy()


def intent(cat="informational", p=1.0, **kw):
    ann = {"intent_category": cat, "probability": p, "reasoning": "because", "evidence": [{"utterance_index": 0, "text": "hi"}]}
    ann.update(kw)
    return ann


def mem(label="Possessions/Pet", **kw):
    m = {
        "type": "direct",
        "label": label,
        "value": "a cat",
        "reasoning": "said so",
        "evidence": {"session_id": "s1", "utterance_index": 0, "text": "I have a cat"},
        "confidence": 0.9,
        "time_scope": "long_term",
        "emotion": None,
        "preference_attitude": None,
    }
    m.update(kw)
    return m


def rule_of(fn, *args):
    with pytest.raises(ValidationFailure) as exc:
        fn(*args)
    return exc.value.rule


def test_probability_sum_within_tolerance():
    validate_intents([intent(p=0.5), intent("creative", 0.5)], TAX)
    validate_intents([intent(p=1.0)], TAX)
    validate_intents([intent(p=0.495), intent("creative", 0.5)], TAX)
    assert rule_of(validate_intents, [intent(p=0.5), intent("creative", 0.6)], TAX) == "probability_sum"


def test_intent_rules():
    assert rule_of(validate_intents, [], TAX) == "empty"
    assert rule_of(validate_intents, [intent(p=0.4), intent(p=0.3), intent(p=0.3)], TAX) == "too_many_intents"
    assert rule_of(validate_intents, [intent(reasoning="  ")], TAX) == "missing_reasoning"
    assert rule_of(validate_intents, [intent(evidence=[])], TAX) == "missing_evidence"
    assert rule_of(validate_intents, [intent(p=1.5)], TAX) == "probability_range"
    assert rule_of(validate_intents, [intent(p="1")], TAX) == "probability_range"
    assert rule_of(validate_intents, [intent("nonsense")], TAX) == "unknown_category"
    assert rule_of(validate_intents, [intent(intent_subtype="idea_generation")], TAX) == "unknown_subtype"
    validate_intents([intent(intent_subtype="factual_queries")], TAX)


def test_preference_attitude_rule():
    validate_memory(mem("Preferences/Food", preference_attitude="like"), TAX)
    assert rule_of(validate_memory, mem("Preferences/Food"), TAX) == "preference_attitude"
    assert rule_of(validate_memory, mem("Personal_Background/Identity", preference_attitude="like"), TAX) == "preference_attitude"
    assert rule_of(validate_memory, mem("Preferences/Food", preference_attitude="love"), TAX) == "preference_attitude"


def test_memory_field_rules():
    assert rule_of(validate_memory, mem(label=""), TAX) == "missing_label"
    assert rule_of(validate_memory, mem(value=""), TAX) == "missing_value"
    assert rule_of(validate_memory, mem(reasoning=""), TAX) == "missing_reasoning"
    assert rule_of(validate_memory, mem("Made/Up"), TAX) == "unknown_label"
    assert rule_of(validate_memory, mem(evidence=None), TAX) == "missing_evidence"
    assert rule_of(validate_memory, mem(confidence=2), TAX) == "confidence_range"
    assert rule_of(validate_memory, mem(type="maybe"), TAX) == "invalid_type"
    assert rule_of(validate_memory, mem(time_scope="soon"), TAX) == "invalid_time_scope"
    assert rule_of(validate_memory, mem(emotion="Angry"), TAX) == "invalid_emotion"
    validate_memory(mem(emotion="Positive"), TAX)


def test_memories_list():
    assert rule_of(validate_memories, [], TAX) == "empty"
    validate_memories([mem(), mem("Preferences/Music", preference_attitude="dislike")], TAX)


def test_validation_errors_does_not_raise():
    assert validation_errors([intent(p=0.5)], TAX) == ["probability_sum"]
    assert validation_errors([intent()], TAX) == []
