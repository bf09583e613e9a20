"""Recover object boundaries from pretty-printed (multi-line) NDJSON.

Compact NDJSON has one object per line; exported datasets are frequently
indented instead, so a line-by-line parse fails on line 1. This scanner walks
the text once and cuts it wherever the top-level brace depth returns to zero.
Braces inside string values and escaped quotes are ignored.
"""
from __future__ import annotations

from typing import List, Tuple


def scan_json_objects(text: str) -> Tuple[List[str], str]:
    """Split ``text`` into top-level JSON object strings.

    Returns ``(objects, remainder)``. ``remainder`` is the trimmed trailing
    fragment whose braces never balanced (empty for well-formed input); it is
    dropped from ``objects`` and left to the caller to report.
    """
    objs: List[str] = []
    start = 0
    depth = 0
    seen_open = False
    in_str = False
    esc = False

    for i, ch in enumerate(text):
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            depth += 1
            seen_open = True
        elif ch == "}":
            depth -= 1
            if depth == 0 and seen_open:
                chunk = text[start:i + 1].strip()
                if chunk:
                    objs.append(chunk)
                start = i + 1
                seen_open = False

    tail = text[start:].strip()
    if tail and depth == 0 and not in_str:
        objs.append(tail)
        tail = ""
    return objs, tail


def split_json_objects(text: str) -> List[str]:
    """Return the complete top-level objects found in ``text``, in order."""
    objs, _ = scan_json_objects(text)
    return objs


__all__ = ["scan_json_objects", "split_json_objects"]
