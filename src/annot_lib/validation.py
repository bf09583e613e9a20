"""Save-time checks for intent judgments and memory entries.

Each check raises :class:`ValidationFailure` naming the rule that failed; the
caller keeps its previous state and the annotator fixes the input.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Sequence

from .config import DEFAULT_SETTINGS, IngestSettings
from .errors import ValidationFailure
from .models import EMOTIONS, MEMORY_TYPES, PREFERENCE_ATTITUDES, TIME_SCOPES
from .taxonomy import Taxonomy, is_preference_label


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise TypeError(value)
    return float(value)


def _in_unit_range(value: Any, rule: str, what: str) -> float:
    try:
        num = _number(value)
    except TypeError:
        raise ValidationFailure(rule, f"{what} must be a number between 0 and 1, got {value!r}") from None
    if not 0.0 <= num <= 1.0:
        raise ValidationFailure(rule, f"{what} must be between 0 and 1, got {num}")
    return num


def validate_intents(
    intents: Sequence[Dict[str, Any]],
    taxonomy: Taxonomy,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> None:
    """Check a record's full ``intents_ranked`` list before it is saved."""
    if not intents:
        raise ValidationFailure("empty", "No annotations to save")
    if len(intents) > settings.max_intents:
        raise ValidationFailure(
            "too_many_intents",
            f"At most {settings.max_intents} intents per session, got {len(intents)}",
        )

    total = 0.0
    for i, ann in enumerate(intents, start=1):
        category = ann.get("intent_category")
        if not category:
            raise ValidationFailure("missing_category", f"Intent #{i} has no category")
        if not taxonomy.is_intent(category):
            raise ValidationFailure("unknown_category", f"Intent #{i}: unknown category {category!r}")
        subtype = ann.get("intent_subtype")
        if subtype and not taxonomy.is_subtype(category, subtype):
            raise ValidationFailure(
                "unknown_subtype", f"Intent #{i}: {subtype!r} is not a subtype of {category!r}"
            )
        total += _in_unit_range(ann.get("probability"), "probability_range", f"Intent #{i} probability")
        if not str(ann.get("reasoning") or "").strip():
            raise ValidationFailure("missing_reasoning", f"Intent #{i} has no reasoning")
        if not ann.get("evidence"):
            raise ValidationFailure("missing_evidence", f"Intent #{i} cites no evidence")

    if abs(total - 1.0) > settings.probability_tolerance:
        raise ValidationFailure(
            "probability_sum", f"Probabilities must sum to 1.0 (got {total:.2f})"
        )


def validate_memory(memory: Dict[str, Any], taxonomy: Taxonomy, position: int = 1) -> None:
    where = f"Memory #{position}"
    label = memory.get("label")
    if not label:
        raise ValidationFailure("missing_label", f"{where} has no label")
    if not str(memory.get("value") or "").strip():
        raise ValidationFailure("missing_value", f"{where} has no value")
    if not str(memory.get("reasoning") or "").strip():
        raise ValidationFailure("missing_reasoning", f"{where} has no reasoning")

    attitude = memory.get("preference_attitude")
    if is_preference_label(label) and attitude is None:
        raise ValidationFailure(
            "preference_attitude", f"{where}: preference labels need a preference_attitude (like or dislike)"
        )
    if not is_preference_label(label) and attitude is not None:
        raise ValidationFailure(
            "preference_attitude", f"{where}: only Preferences/* labels can carry a preference_attitude"
        )
    if attitude is not None and attitude not in PREFERENCE_ATTITUDES:
        raise ValidationFailure("preference_attitude", f"{where}: invalid preference_attitude {attitude!r}")

    if not taxonomy.is_memory_label(label):
        raise ValidationFailure("unknown_label", f"{where}: unknown label {label!r}")
    evidence = memory.get("evidence")
    if not isinstance(evidence, dict) or "utterance_index" not in evidence:
        raise ValidationFailure("missing_evidence", f"{where} cites no evidence")
    _in_unit_range(memory.get("confidence"), "confidence_range", f"{where} confidence")
    if memory.get("type") not in MEMORY_TYPES:
        raise ValidationFailure("invalid_type", f"{where}: type must be one of {MEMORY_TYPES}")
    if memory.get("time_scope") not in TIME_SCOPES:
        raise ValidationFailure("invalid_time_scope", f"{where}: time_scope must be one of {TIME_SCOPES}")
    emotion = memory.get("emotion")
    if emotion is not None and emotion not in EMOTIONS:
        raise ValidationFailure("invalid_emotion", f"{where}: emotion must be one of {EMOTIONS} or null")


def validate_memories(memories: Sequence[Dict[str, Any]], taxonomy: Taxonomy) -> None:
    """Check a record's full ``memory_items`` list before it is saved."""
    if not memories:
        raise ValidationFailure("empty", "No memories to save")
    for i, memory in enumerate(memories, start=1):
        validate_memory(memory, taxonomy, i)


def validation_errors(intents: Sequence[Dict[str, Any]], taxonomy: Taxonomy, settings: IngestSettings = DEFAULT_SETTINGS) -> List[str]:
    """Non-raising variant used by reports; empty list when valid."""
    try:
        validate_intents(intents, taxonomy, settings)
    except ValidationFailure as exc:
        return [exc.rule]
    return []


__all__ = [
    "validate_intents",
    "validate_memory",
    "validate_memories",
    "validation_errors",
]
