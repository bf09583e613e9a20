"""Decide which of the four supported layouts a file uses.

Probing order (first match wins):

1. Parse the whole document. ``count`` + ``data`` list is a batch envelope,
   ``user_id`` + ``sessions`` list is a user envelope, any other object or
   array is a bare conversation (or list of conversations).
2. Only when that fails and the filename has a line-delimited extension:
   compact NDJSON if the first non-empty line parses on its own, otherwise
   pretty-printed NDJSON recovered with :mod:`annot_lib.splitter`.
3. Anything else is rejected.

The extension is a secondary signal only: a ``.ndjson`` file holding one
indented JSON object is still detected by step 1.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

from .config import DEFAULT_SETTINGS, IngestSettings
from .errors import FormatUnrecognizedError, MalformedRecordError
from .splitter import scan_json_objects

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormatA:
    """Bare conversation object, or an array of them."""

    value: Any
    is_array: bool
    tag = "format_a"


@dataclass(frozen=True)
class FormatB:
    """``{user_id, sessions: [...], intents_ranked?, memory_items?, memory_reasoning?}``."""

    envelope: Dict[str, Any]
    tag = "format_b"


@dataclass(frozen=True)
class FormatC:
    """``{count, data: [<user envelope + line_index + id>, ...]}``."""

    envelope: Dict[str, Any]
    tag = "format_c"


@dataclass(frozen=True)
class Ndjson:
    """Line-delimited records; ``objects`` holds parsed values when pretty-printed."""

    pretty: bool
    objects: Tuple[Any, ...] = ()
    tag = "ndjson"


Detection = Union[FormatA, FormatB, FormatC, Ndjson]


def is_batch_envelope(value: Any) -> bool:
    return isinstance(value, dict) and "count" in value and isinstance(value.get("data"), list)


def is_user_envelope(value: Any) -> bool:
    return isinstance(value, dict) and "user_id" in value and isinstance(value.get("sessions"), list)


def classify_document(value: Any) -> Detection:
    """Tag an already-parsed whole document."""
    if is_batch_envelope(value):
        return FormatC(value)
    if is_user_envelope(value):
        return FormatB(value)
    if isinstance(value, list):
        return FormatA(value, is_array=True)
    if isinstance(value, dict):
        return FormatA(value, is_array=False)
    raise FormatUnrecognizedError(
        f"Top-level JSON value must be an object or array, got {type(value).__name__}"
    )


def _parse_pretty(content: str) -> Ndjson:
    chunks, remainder = scan_json_objects(content)
    if remainder:
        raise MalformedRecordError(
            f"Unterminated JSON object after object {len(chunks)}: {remainder[:100]!r}",
            object_index=len(chunks),
        )
    if not chunks:
        raise FormatUnrecognizedError("No valid JSON objects found in file")
    objects = []
    for i, chunk in enumerate(chunks):
        try:
            objects.append(json.loads(chunk))
        except json.JSONDecodeError as exc:
            raise MalformedRecordError(
                f"Invalid JSON at object {i + 1}: {exc.msg}", object_index=i
            ) from exc
    logger.info("Recovered %d objects from pretty-printed NDJSON", len(objects))
    return Ndjson(pretty=True, objects=tuple(objects))


def detect_format(content: str, filename: str, settings: IngestSettings = DEFAULT_SETTINGS) -> Detection:
    """Return the layout of ``content`` (BOM already stripped)."""
    text = content.strip()
    if not text:
        raise FormatUnrecognizedError("File is empty or contains only whitespace")

    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        value = None
    else:
        detection = classify_document(value)
        logger.debug("%s: whole-document parse -> %s", filename, detection.tag)
        return detection

    if not settings.is_line_delimited(filename):
        raise FormatUnrecognizedError(
            f"{filename}: not valid JSON and not a line-delimited file "
            f"({', '.join(settings.line_delimited_extensions)})"
        )

    first = next(ln.strip() for ln in text.splitlines() if ln.strip())
    try:
        json.loads(first)
    except json.JSONDecodeError:
        logger.info("%s: first line is not standalone JSON, trying pretty-printed NDJSON", filename)
        return _parse_pretty(text)
    logger.debug("%s: compact NDJSON", filename)
    return Ndjson(pretty=False)


__all__ = [
    "FormatA",
    "FormatB",
    "FormatC",
    "Ndjson",
    "Detection",
    "is_batch_envelope",
    "is_user_envelope",
    "classify_document",
    "detect_format",
]
