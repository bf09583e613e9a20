"""Load an annotation file once and hand out session records by index.

Record indices address the flat, normalized sequence: every session of every
envelope, in file order. How a slice is produced depends on the layout:

- bare array / object: sliced straight out of the parsed document;
- compact NDJSON: lines are parsed lazily and the walk stops as soon as the
  requested window is filled;
- user envelope, batch envelope, pretty-printed NDJSON: normalized once at
  load time into ``RawDocument.processed`` and indexed from there.

``count_records`` walks the same iterator as retrieval, so the total shown to
the annotator always matches what navigation can reach.
"""
from __future__ import annotations

import codecs
import io
import itertools
import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Iterator, List, Optional, Tuple, Union

from .config import DEFAULT_SETTINGS, IngestSettings
from .detect import Detection, FormatA, FormatB, FormatC, Ndjson, detect_format, is_user_envelope
from .errors import MalformedRecordError
from .normalize import distribute_envelope, normalize_batch

logger = logging.getLogger(__name__)

_BOMS = ("\ufeff", "\ufffe")


def decode_content(data: Union[bytes, str]) -> str:
    """Decode file bytes and strip a UTF-8 / UTF-16 byte-order mark."""
    if isinstance(data, bytes):
        codec = "utf-16" if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)) else "utf-8-sig"
        try:
            text = data.decode(codec)
        except UnicodeDecodeError as exc:
            raise MalformedRecordError(f"File is not valid UTF-8/UTF-16: {exc.reason} at byte {exc.start}") from exc
    else:
        text = data
    while text[:1] in _BOMS:
        text = text[1:]
    return text


def _expand(value: Any) -> List[Any]:
    """One parsed NDJSON value -> the session records it contributes."""
    if is_user_envelope(value):
        return distribute_envelope(value)
    return [value]


def iter_ndjson_records(content: str) -> Iterator[Any]:
    """Yield records from compact NDJSON, one line at a time.

    Blank lines are skipped. A line that does not parse raises
    :class:`MalformedRecordError`; nothing after it is yielded.
    """
    for lineno, raw in enumerate(io.StringIO(content), start=1):
        line = raw.strip()
        if not line:
            continue
        try:
            value = json.loads(line)
        except json.JSONDecodeError as exc:
            raise MalformedRecordError(
                f"Invalid NDJSON at line {lineno}: {exc.msg}. Each line must be a complete JSON object.",
                line=lineno,
            ) from exc
        yield from _expand(value)


def _processed(detection: Detection) -> Optional[Tuple[Any, ...]]:
    if isinstance(detection, FormatB):
        return tuple(distribute_envelope(detection.envelope))
    if isinstance(detection, FormatC):
        return tuple(normalize_batch(detection.envelope))
    if isinstance(detection, Ndjson) and detection.pretty:
        out: List[Any] = []
        for obj in detection.objects:
            out.extend(_expand(obj))
        return tuple(out)
    return None


@dataclass(frozen=True)
class RawDocument:
    """An uploaded file: untouched content plus what load-time probing found."""

    filename: str
    content: str
    detection: Detection
    processed: Optional[Tuple[Any, ...]]
    total: int

    @property
    def tag(self) -> str:
        return self.detection.tag

    @property
    def line_delimited(self) -> bool:
        return isinstance(self.detection, Ndjson)

    @property
    def user_id(self) -> Optional[Any]:
        if isinstance(self.detection, FormatB):
            return self.detection.envelope.get("user_id")
        if isinstance(self.detection, FormatC):
            data = self.detection.envelope.get("data") or []
            first = data[0] if data and isinstance(data[0], dict) else {}
            return first.get("user_id") or "unknown_user"
        return None

    def iter_records(self) -> Iterator[Any]:
        det = self.detection
        if self.processed is not None:
            return iter(self.processed)
        if isinstance(det, FormatA):
            return iter(det.value if det.is_array else [det.value])
        return iter_ndjson_records(self.content)

    def get_records(self, start: int, count: int) -> List[Any]:
        """Return up to ``count`` records beginning at zero-based ``start``."""
        if start < 0:
            raise ValueError(f"start must be >= 0, got {start}")
        if count <= 0:
            return []
        if self.processed is not None:
            return list(self.processed[start:start + count])
        det = self.detection
        if isinstance(det, FormatA):
            if det.is_array:
                return list(det.value[start:start + count])
            return [det.value] if start == 0 else []
        return list(itertools.islice(iter_ndjson_records(self.content), start, start + count))

    def get_record(self, index: int) -> Optional[Any]:
        found = self.get_records(index, 1)
        return found[0] if found else None


def count_records(doc: RawDocument) -> int:
    """Total records reachable through :meth:`RawDocument.get_records`."""
    if doc.processed is not None:
        return len(doc.processed)
    det = doc.detection
    if isinstance(det, FormatA):
        return len(det.value) if det.is_array else 1
    return sum(1 for _ in iter_ndjson_records(doc.content))


def _open(data: Union[bytes, str], filename: str, settings: IngestSettings) -> RawDocument:
    content = decode_content(data).strip()
    detection = detect_format(content, filename, settings)
    return RawDocument(
        filename=filename,
        content=content,
        detection=detection,
        processed=_processed(detection),
        total=0,
    )


def load_document(
    data: Union[bytes, str],
    filename: str,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> RawDocument:
    """Decode, detect and (where needed) pre-normalize an uploaded file.

    Raises :class:`FormatUnrecognizedError` or :class:`MalformedRecordError`;
    no partially loaded document is ever returned.
    """
    doc = _open(data, filename, settings)
    doc = replace(doc, total=count_records(doc))
    logger.info("Loaded %s: %s, %d session record(s)", filename, doc.tag, doc.total)
    return doc


def read_records(
    content: Union[bytes, str],
    start: int,
    count: int,
    filename: str,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> List[Any]:
    """Stateless retrieval: detect ``content`` and return one window of records.

    Unlike :func:`load_document` this does not count the whole file, so
    compact NDJSON is only parsed up to the end of the window.
    """
    return _open(content, filename, settings).get_records(start, count)


__all__ = [
    "decode_content",
    "iter_ndjson_records",
    "RawDocument",
    "count_records",
    "load_document",
    "read_records",
]
