"""Fold edited session records back into the file's original top-level shape.

- user envelope: edits land on their sessions, then the shared top-level
  ``intents_ranked`` / ``memory_items`` / ``memory_reasoning`` are rebuilt
  from the sessions (the reverse of load-time redistribution) and stripped
  from each session; memory ids are renumbered ``m1..mN``;
- batch envelope: ``data`` is patched by position and ``count`` refreshed.
  Sessions are not re-collected here, unlike the user envelope;
- bare array / object: patched by position (object: index 0 only);
- NDJSON: flattened into one JSON array of records. Line-delimited output is
  never produced; the export notice says so.

With an empty modification map the parsed original is returned unchanged.
"""
from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from .accessor import RawDocument
from .detect import FormatB, Ndjson, is_batch_envelope, is_user_envelope
from .editing import renumber_memories
from .errors import MalformedRecordError
from .normalize import ANNOTATION_FIELDS, distribute_envelope, undistributed_memories

logger = logging.getLogger(__name__)

HIGHLIGHT_FIELD = "UserMemory"
FOLDED_FIELDS = ANNOTATION_FIELDS + (HIGHLIGHT_FIELD,)

Modifications = Mapping[int, Dict[str, Any]]


def fold_annotations(original: Dict[str, Any], edited: Dict[str, Any]) -> Dict[str, Any]:
    """Copy ``original`` with its annotation fields taken from ``edited``.

    Fields absent from ``edited`` are removed; all other fields of
    ``original`` are left as they were.
    """
    out = copy.deepcopy(original)
    for name in FOLDED_FIELDS:
        if name in edited:
            out[name] = copy.deepcopy(edited[name])
        else:
            out.pop(name, None)
    return out


def _reassemble_user_envelope(
    envelope: Dict[str, Any],
    mods: Modifications,
    loaded: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    out = copy.deepcopy(envelope)
    sessions: List[Dict[str, Any]] = out["sessions"]
    if loaded is None:
        loaded = distribute_envelope(envelope)
    current = [mods.get(i, loaded[i]) for i in range(len(sessions))]
    for i in range(len(sessions)):
        if i in mods:
            sessions[i] = fold_annotations(sessions[i], mods[i])

    if "intents_ranked" in envelope:
        # With several sessions the top-level intents were never handed to any of them.
        collected = [] if len(sessions) == 1 else list(envelope.get("intents_ranked") or [])
        for session, cur in zip(sessions, current):
            collected.extend(copy.deepcopy(cur.get("intents_ranked") or []))
            session.pop("intents_ranked", None)
        out["intents_ranked"] = collected
        logger.debug("Collected %d intents to top level", len(collected))

    if "memory_items" in envelope:
        collected = []
        for session, cur in zip(sessions, current):
            collected.extend(copy.deepcopy(cur.get("memory_items") or []))
            session.pop("memory_items", None)
        collected.extend(copy.deepcopy(undistributed_memories(envelope)))
        out["memory_items"] = renumber_memories(collected)
        logger.debug("Collected %d memories to top level", len(collected))

    if "memory_reasoning" in envelope:
        chosen: Optional[Any] = None
        for session in sessions:
            value = session.pop("memory_reasoning", None)
            if value and chosen is None:
                chosen = value
        if chosen is not None:
            out["memory_reasoning"] = chosen
    return out


def _reassemble_batch(envelope: Dict[str, Any], mods: Modifications, total_records: int) -> Dict[str, Any]:
    out = copy.deepcopy(envelope)
    data: List[Any] = out["data"]
    if total_records != len(data):
        logger.warning(
            "Batch export patches data items by record position (%d records, %d data items); "
            "session-level edits are not re-collected",
            total_records,
            len(data),
        )
    for i, edited in mods.items():
        if i < len(data) and isinstance(data[i], dict):
            data[i] = fold_annotations(data[i], edited)
        else:
            logger.warning("Modification for record %d has no matching data item; skipped", i)
    out["count"] = len(data)
    return out


def _patch_array(items: List[Any], mods: Modifications) -> List[Any]:
    return [
        fold_annotations(item, mods[i]) if i in mods and isinstance(item, dict) else copy.deepcopy(item)
        for i, item in enumerate(items)
    ]


def _patch_object(obj: Dict[str, Any], mods: Modifications) -> Dict[str, Any]:
    if 0 in mods:
        return fold_annotations(obj, mods[0])
    return copy.deepcopy(obj)


def reassemble(doc: RawDocument, mods: Modifications) -> Union[Dict[str, Any], List[Any]]:
    """Return the export value for ``doc`` with ``mods`` applied."""
    if isinstance(doc.detection, Ndjson):
        logger.info("Line-delimited source exported as a single JSON array")
        return [copy.deepcopy(mods.get(i, rec)) for i, rec in enumerate(doc.iter_records())]

    try:
        original = json.loads(doc.content)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(f"{doc.filename}: original document no longer parses: {exc.msg}") from exc
    if not mods:
        return original
    if is_user_envelope(original):
        loaded = list(doc.processed) if isinstance(doc.detection, FormatB) else None
        return _reassemble_user_envelope(original, mods, loaded)
    if is_batch_envelope(original):
        return _reassemble_batch(original, mods, doc.total)
    if isinstance(original, list):
        return _patch_array(original, mods)
    if isinstance(original, dict):
        return _patch_object(original, mods)
    raise MalformedRecordError(f"{doc.filename}: nothing to export from a {type(original).__name__}")


def render_export(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def export_filename(prefix: str, epoch_ms: Optional[int] = None) -> str:
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    return f"{prefix}-{epoch_ms}.json"


def _count(value: Any, field: str) -> int:
    if not isinstance(value, (dict, list)):
        return 0
    if isinstance(value, list):
        return sum(_count(item, field) for item in value if isinstance(item, dict))
    total = len(value.get(field) or []) if isinstance(value.get(field), list) else 0
    for nested in ("sessions", "data"):
        for item in value.get(nested) or []:
            if isinstance(item, dict) and isinstance(item.get(field), list):
                total += len(item[field])
    return total


def count_intents(value: Any) -> int:
    """Intents at the top level, in ``sessions`` and in ``data`` items."""
    return _count(value, "intents_ranked")


def count_memories(value: Any) -> int:
    return _count(value, "memory_items")


@dataclass(frozen=True)
class ExportResult:
    filename: str
    text: str
    modified: int
    intents: int
    memories: int
    flattened: bool


def export_document(
    doc: RawDocument,
    mods: Modifications,
    prefix: str = "intent-memory-annotations",
    epoch_ms: Optional[int] = None,
) -> ExportResult:
    value = reassemble(doc, mods)
    text = render_export(value)
    logger.info("Export size: %.2f KB", len(text.encode("utf-8")) / 1024)
    return ExportResult(
        filename=export_filename(prefix, epoch_ms),
        text=text,
        modified=len(mods),
        intents=count_intents(value),
        memories=count_memories(value),
        flattened=isinstance(doc.detection, Ndjson),
    )


__all__ = [
    "HIGHLIGHT_FIELD",
    "fold_annotations",
    "reassemble",
    "render_export",
    "export_filename",
    "count_intents",
    "count_memories",
    "ExportResult",
    "export_document",
]
