# scripts/jsonl_tools/compact_jsonl.py
"""
Rewrite pretty-printed (multi-line) NDJSON as compact one-object-per-line NDJSON.

Usage:
  python scripts/jsonl_tools/compact_jsonl.py IN.jsonl [--out OUT.jsonl]

Without --out the input file is overwritten. Unlike a best-effort repair, any
chunk that does not parse aborts the run and nothing is written.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from annot_lib.accessor import decode_content
from annot_lib.splitter import scan_json_objects


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("src", type=Path)
    ap.add_argument("--out", type=Path, default=None)
    args = ap.parse_args()

    if not args.src.exists():
        print(f"ERROR: {args.src} not found.")
        return 1

    chunks, tail = scan_json_objects(decode_content(args.src.read_bytes()))
    if tail:
        print(f"ERROR: unbalanced trailing fragment after {len(chunks)} object(s): {tail[:60]!r}")
        return 1

    objs = []
    for n, chunk in enumerate(chunks, start=1):
        try:
            objs.append(json.loads(chunk))
        except json.JSONDecodeError as e:
            print(f"ERROR: object #{n} does not parse: {e.msg} (line {e.lineno})")
            return 1

    out_path = args.out or args.src
    with out_path.open("w", encoding="utf-8", newline="\n") as f:
        for obj in objs:
            f.write(json.dumps(obj, ensure_ascii=False) + "\n")

    print(f"Found chunks: {len(chunks)}  Wrote: {len(objs)} -> {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
