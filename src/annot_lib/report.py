"""Tabular summaries of annotated records and the human-readable export notice."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import pandas as pd
from jinja2 import BaseLoader, Environment

from .config import DEFAULT_SETTINGS, IngestSettings
from .export import ExportResult
from .normalize import record_key
from .taxonomy import Taxonomy
from .validation import validation_errors

FRAME_COLUMNS = ["record", "session_id", "kind", "label", "subtype", "score", "invalid"]

EXPORT_SUMMARY_TMPL = """\
Exported {{ result.filename }}
  source: {{ source }} ({{ fmt }}, {{ total }} record{{ "" if total == 1 else "s" }})
  modified records: {{ result.modified }}
  intents: {{ result.intents }}
  memories: {{ result.memories }}
{% if result.flattened %}
Note: the line-delimited source was exported as a single JSON array, not as NDJSON.
{% endif %}
{% if invalid %}
Records with invalid intents:
{% for row in invalid %}
  - #{{ row.record + 1 }} {{ row.session_id }}: {{ row.rules | join(", ") }}
{% endfor %}
{% endif %}
"""

env = Environment(loader=BaseLoader(), trim_blocks=True, lstrip_blocks=True)
export_summary_template = env.from_string(EXPORT_SUMMARY_TMPL)


def annotations_frame(
    records: Iterable[Any],
    taxonomy: Optional[Taxonomy] = None,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> pd.DataFrame:
    """One row per intent judgment or memory entry.

    With a ``taxonomy`` the ``invalid`` column lists the failing intent rule
    of the owning record; otherwise it is empty.
    """
    rows: List[Dict[str, Any]] = []
    for i, rec in enumerate(records):
        if not isinstance(rec, dict):
            continue
        sid = record_key(rec, f"record_{i}")
        intents = rec.get("intents_ranked") or []
        invalid = ""
        if taxonomy is not None and intents:
            invalid = ",".join(validation_errors(intents, taxonomy, settings))
        for ann in intents:
            rows.append({
                "record": i,
                "session_id": sid,
                "kind": "intent",
                "label": ann.get("intent_category", ""),
                "subtype": ann.get("intent_subtype") or "",
                "score": ann.get("probability"),
                "invalid": invalid,
            })
        for mem in rec.get("memory_items") or []:
            rows.append({
                "record": i,
                "session_id": sid,
                "kind": "memory",
                "label": mem.get("label", ""),
                "subtype": mem.get("type") or "",
                "score": mem.get("confidence"),
                "invalid": "",
            })
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def summarize_annotations(frame: pd.DataFrame) -> pd.DataFrame:
    """Label counts overall and per record, stacked with a ``level`` column."""
    if frame.empty:
        return pd.DataFrame(columns=["kind", "label", "count", "level", "record"])
    counts = frame.groupby(["kind", "label"]).size().reset_index(name="count")
    by_record = frame.groupby(["record", "kind", "label"]).size().reset_index(name="count")
    counts["level"] = "overall"
    by_record["level"] = "record"
    out = pd.concat([counts, by_record], ignore_index=True)
    return out[["kind", "label", "count", "level", "record"]]


def invalid_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    if frame.empty:
        return []
    bad = frame[(frame["kind"] == "intent") & (frame["invalid"] != "")]
    bad = bad.drop_duplicates(subset=["record"])
    return [
        {"record": int(r.record), "session_id": r.session_id, "rules": r.invalid.split(",")}
        for r in bad.itertuples(index=False)
    ]


def render_export_summary(
    result: ExportResult,
    source: str,
    fmt: str,
    total: int,
    frame: Optional[pd.DataFrame] = None,
) -> str:
    invalid = invalid_records(frame) if frame is not None else []
    return export_summary_template.render(result=result, source=source, fmt=fmt, total=total, invalid=invalid)


__all__ = [
    "annotations_frame",
    "summarize_annotations",
    "invalid_records",
    "render_export_summary",
]
