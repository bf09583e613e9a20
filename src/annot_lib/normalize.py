"""Turn user/batch envelopes into a flat list of self-contained session records.

Envelope layouts (a single user with ``sessions`` plus shared top-level
``intents_ranked`` / ``memory_items`` / ``memory_reasoning``, or a batch of
such users under ``data``) keep annotations above the sessions they describe.
The annotation forms work on one session at a time, so at load time those
shared arrays are pushed down onto the owning sessions:

- memories whose ``evidence.session_id`` matches a session are appended to it;
- with exactly one session, top-level intents replace the session's own and
  memories without any ``session_id`` are appended as well;
- envelope ``memory_reasoning`` is copied onto every session.

The export side (:mod:`annot_lib.export`) reverses this for user envelopes.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

from .errors import MalformedRecordError

logger = logging.getLogger(__name__)

ANNOTATION_FIELDS = ("intents_ranked", "memory_items", "memory_reasoning")
BATCH_TAG_FIELDS = ("data_item_user_id", "data_item_line_index", "data_item_id")
UNKNOWN_USER = "unknown_user"


def record_key(record: Dict[str, Any], default: Optional[str] = None) -> Optional[str]:
    """Identifying key of a session record: ``session_id``, then ``conversation_id``."""
    for key in ("session_id", "conversation_id"):
        value = record.get(key)
        if value not in (None, ""):
            return value
    return default


def memory_session_id(memory: Any) -> Optional[Any]:
    evidence = memory.get("evidence") if isinstance(memory, dict) else None
    if isinstance(evidence, dict):
        sid = evidence.get("session_id")
        if sid not in (None, ""):
            return sid
    return None


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, list) else []


def distribute_envelope(envelope: Dict[str, Any], tags: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Redistribute an envelope's top-level annotations onto its sessions.

    ``tags`` are merged into every produced record (used for batch items).
    The envelope itself is left untouched.
    """
    sessions = _as_list(envelope.get("sessions"))
    top_intents = envelope.get("intents_ranked")
    top_memories = _as_list(envelope.get("memory_items"))
    reasoning = envelope.get("memory_reasoning")
    single = len(sessions) == 1

    if reasoning and len(sessions) > 1:
        logger.warning(
            "Envelope-level memory_reasoning copied onto %d sessions; it cannot be attributed to one session",
            len(sessions),
        )

    out: List[Dict[str, Any]] = []
    for session in sessions:
        if not isinstance(session, dict):
            raise MalformedRecordError(f"Session entry is not a JSON object: {session!r:.80}")
        record = copy.deepcopy(session)
        own_id = record_key(session)

        memories = _as_list(session.get("memory_items"))
        if own_id is not None:
            memories += [m for m in top_memories if memory_session_id(m) == own_id]

        intents = _as_list(session.get("intents_ranked"))
        if single and top_intents is not None:
            intents = _as_list(top_intents)
        if single:
            memories += [m for m in top_memories if memory_session_id(m) is None]

        record["intents_ranked"] = copy.deepcopy(intents)
        record["memory_items"] = copy.deepcopy(memories)
        if reasoning is not None:
            record["memory_reasoning"] = reasoning
        else:
            record.setdefault("memory_reasoning", None)
        if tags:
            record.update(tags)
        out.append(record)
    return out


def undistributed_memories(envelope: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Top-level memories that :func:`distribute_envelope` gives to no session."""
    sessions = _as_list(envelope.get("sessions"))
    ids = {record_key(s) for s in sessions if isinstance(s, dict)}
    ids.discard(None)
    single = len(sessions) == 1
    left = []
    for m in _as_list(envelope.get("memory_items")):
        sid = memory_session_id(m)
        if sid is None and single:
            continue
        if sid is not None and sid in ids:
            continue
        left.append(m)
    return left


def normalize_batch(envelope: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flatten a ``{count, data: [...]}`` batch into one global record list."""
    records: List[Dict[str, Any]] = []
    for i, item in enumerate(_as_list(envelope.get("data"))):
        if not isinstance(item, dict):
            raise MalformedRecordError(f"Batch item {i} is not a JSON object: {item!r:.80}", object_index=i)
        tags = {
            "data_item_user_id": item.get("user_id") or UNKNOWN_USER,
            "data_item_line_index": item.get("line_index"),
            "data_item_id": item.get("id"),
        }
        records.extend(distribute_envelope(item, tags))
    logger.debug("Flattened batch into %d session records", len(records))
    return records


def conversation_to_turns(pairs: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert legacy ``[{human, assistant}]`` pairs into indexed turns.

    ``human`` takes one utterance index and ``assistant`` the next one, but
    only when it is present.
    """
    turns: List[Dict[str, Any]] = []
    idx = 0
    for pair in pairs or []:
        if not isinstance(pair, dict):
            continue
        if pair.get("human"):
            turns.append({"utterance_index": idx, "role": "user", "text": pair["human"]})
            idx += 1
        if pair.get("assistant"):
            turns.append({"utterance_index": idx, "role": "assistant", "text": pair["assistant"]})
            idx += 1
    return turns


def record_turns(record: Dict[str, Any]) -> List[Dict[str, Any]]:
    turns = record.get("turns")
    if isinstance(turns, list) and turns:
        return turns
    conversation = record.get("conversation")
    if isinstance(conversation, list) and conversation:
        return conversation_to_turns(conversation)
    return []


def user_turns(record: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [t for t in record_turns(record) if t.get("role") == "user"]


__all__ = [
    "ANNOTATION_FIELDS",
    "BATCH_TAG_FIELDS",
    "UNKNOWN_USER",
    "record_key",
    "memory_session_id",
    "distribute_envelope",
    "undistributed_memories",
    "normalize_batch",
    "conversation_to_turns",
    "record_turns",
    "user_turns",
]
