"""List operations behind the intent and memory forms.

The forms keep an :data:`EditingState` that says whether the draft replaces
an existing item or composes a new one, and hand a fully replacing list back
on save. Evidence text is copied from the turns at annotation time and never
re-derived later.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import ValidationFailure
from .normalize import record_key, user_turns


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class EditingExisting:
    index: int


@dataclass(frozen=True)
class ComposingNew:
    pass


EditingState = Union[Idle, EditingExisting, ComposingNew]

IDLE = Idle()


def start_new(items: List[Any], limit: Optional[int] = None) -> EditingState:
    if limit is not None and len(items) >= limit:
        raise ValidationFailure("limit_reached", f"At most {limit} items allowed")
    return ComposingNew()


def start_edit(items: List[Any], index: int) -> EditingState:
    if not 0 <= index < len(items):
        raise IndexError(f"no item at position {index}")
    return EditingExisting(index)


def _replace_or_append(items: List[Dict[str, Any]], state: EditingState, item: Dict[str, Any]) -> List[Dict[str, Any]]:
    updated = [copy.deepcopy(x) for x in items]
    if isinstance(state, EditingExisting):
        updated[state.index] = item
    elif isinstance(state, ComposingNew):
        updated.append(item)
    else:
        raise ValueError("nothing is being edited")
    return updated


def commit_intent(
    intents: List[Dict[str, Any]],
    state: EditingState,
    judgment: Dict[str, Any],
    max_items: int = 2,
) -> List[Dict[str, Any]]:
    """Return a new intent list with ``judgment`` saved at the edited slot."""
    if isinstance(state, ComposingNew) and len(intents) >= max_items:
        raise ValidationFailure("too_many_intents", f"At most {max_items} intents per session")
    return _replace_or_append(intents, state, dict(judgment))


def delete_intent(intents: List[Dict[str, Any]], index: int) -> List[Dict[str, Any]]:
    return [copy.deepcopy(x) for i, x in enumerate(intents) if i != index]


def renumber_memories(memories: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Copy ``memories`` with ids rewritten to ``m1..mN`` in list order."""
    return [dict(m, memory_id=f"m{i}") for i, m in enumerate(memories, start=1)]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def commit_memory(
    memories: List[Dict[str, Any]],
    state: EditingState,
    entry: Dict[str, Any],
    now: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Return a new memory list with ``entry`` saved.

    An edited item keeps its id; a new one gets ``m<N+1>``. ``updated_at`` is
    stamped on every save.
    """
    item = dict(entry)
    if isinstance(state, EditingExisting):
        item["memory_id"] = memories[state.index].get("memory_id") or f"m{state.index + 1}"
    else:
        item["memory_id"] = f"m{len(memories) + 1}"
    item["updated_at"] = now or _now_iso()
    return _replace_or_append(memories, state, item)


def delete_memory(memories: List[Dict[str, Any]], index: int) -> List[Dict[str, Any]]:
    """Drop one memory and renumber the rest densely."""
    return renumber_memories(copy.deepcopy(m) for i, m in enumerate(memories) if i != index)


def capture_intent_evidence(record: Dict[str, Any], selected: Iterable[int]) -> List[Dict[str, Any]]:
    """Evidence list for the selected user utterances, in selection order."""
    by_index = {t.get("utterance_index"): t for t in user_turns(record)}
    evidence = [
        {"utterance_index": idx, "text": by_index[idx].get("text") or ""}
        for idx in selected
        if idx in by_index
    ]
    if not evidence:
        raise ValidationFailure("missing_evidence", "Select at least one user utterance as evidence")
    return evidence


def capture_memory_evidence(record: Dict[str, Any], selected: Iterable[int]) -> Dict[str, Any]:
    """Single evidence block built from the first selected user utterance."""
    selected = list(selected)
    if not selected:
        raise ValidationFailure("missing_evidence", "Select at least one user utterance as evidence")
    first = selected[0]
    for turn in user_turns(record):
        if turn.get("utterance_index") == first:
            return {
                "session_id": record_key(record, "unknown"),
                "utterance_index": first,
                "text": turn.get("text") or "",
            }
    raise ValidationFailure("missing_evidence", f"Utterance {first} is not a user turn of this session")


__all__ = [
    "Idle",
    "EditingExisting",
    "ComposingNew",
    "EditingState",
    "IDLE",
    "start_new",
    "start_edit",
    "commit_intent",
    "delete_intent",
    "renumber_memories",
    "commit_memory",
    "delete_memory",
    "capture_intent_evidence",
    "capture_memory_evidence",
]
