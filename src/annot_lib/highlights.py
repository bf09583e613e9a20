"""Free-text highlight memories stored under a record's ``UserMemory`` object.

Highlighted spans are saved as ``<key_prefix>__Memory_<n>`` keys, manual
entries as ``<key_prefix>__<key>``. Each operation returns a new record; the
input is never mutated.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .export import HIGHLIGHT_FIELD
from .taxonomy import HighlightCategory


@dataclass
class HighlightLog:
    """Keys added during this session, oldest first, for delete and undo."""

    entries: List[Tuple[str, int, str]] = field(default_factory=list)  # (key, record index, text)
    counter: int = 1


def _with_memory(record: Dict[str, Any], memory: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(record)
    if memory:
        out[HIGHLIGHT_FIELD] = memory
    else:
        out.pop(HIGHLIGHT_FIELD, None)
    return out


def add_highlight(
    record: Dict[str, Any],
    index: int,
    category: HighlightCategory,
    text: str,
    log: HighlightLog,
) -> Dict[str, Any]:
    text = text.strip()
    if not text:
        raise ValueError("Nothing selected")
    key = f"{category.key_prefix}__Memory_{log.counter}"
    memory = dict(record.get(HIGHLIGHT_FIELD) or {})
    memory[key] = text
    log.entries.append((key, index, text))
    log.counter += 1
    return _with_memory(record, memory)


def add_manual_memory(record: Dict[str, Any], index: int, category: HighlightCategory, key: str, value: str, log: HighlightLog) -> Dict[str, Any]:
    if not key.strip() or not value.strip():
        raise ValueError("Key and value are required")
    full_key = f"{category.key_prefix}__{key.strip()}"
    memory = dict(record.get(HIGHLIGHT_FIELD) or {})
    memory[full_key] = value
    log.entries.append((full_key, index, value))
    return _with_memory(record, memory)


def delete_highlights_in(record: Dict[str, Any], index: int, selection: str, log: HighlightLog) -> Tuple[Dict[str, Any], int]:
    """Remove this record's highlights whose text lies inside ``selection``."""
    doomed = [e for e in log.entries if e[1] == index and e[2] in selection]
    if not doomed:
        return record, 0
    memory = dict(record.get(HIGHLIGHT_FIELD) or {})
    for key, _, _ in doomed:
        memory.pop(key, None)
    log.entries = [e for e in log.entries if e not in doomed]
    return _with_memory(record, memory), len(doomed)


def undo_last(records: Dict[int, Dict[str, Any]], log: HighlightLog) -> Optional[Tuple[int, Dict[str, Any]]]:
    """Drop the most recently added key. Returns ``(index, new record)`` or ``None``."""
    if not log.entries:
        return None
    key, index, _ = log.entries.pop()
    record = records[index]
    memory = dict(record.get(HIGHLIGHT_FIELD) or {})
    memory.pop(key, None)
    return index, _with_memory(record, memory)


def find_user(records: Sequence[Dict[str, Any]], user_id: str) -> int:
    """Index of the first record whose ``UserID`` equals ``user_id``, or -1."""
    for i, rec in enumerate(records):
        if isinstance(rec, dict) and rec.get("UserID") == user_id:
            return i
    return -1


__all__ = [
    "HighlightLog",
    "add_highlight",
    "add_manual_memory",
    "delete_highlights_in",
    "undo_last",
    "find_user",
]
