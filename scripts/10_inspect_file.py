#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
10_inspect_file.py
Detect the layout of an annotation file and print a window of its records.

Usage:
  python scripts/10_inspect_file.py FILE [--start N] [--count N]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from annot_lib.accessor import load_document
from annot_lib.config import IngestSettings, load_config
from annot_lib.errors import IngestError
from annot_lib.logging_utils import setup_logging
from annot_lib.normalize import record_key, record_turns

logger = logging.getLogger("inspect_file")


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("file", type=Path)
    ap.add_argument("--start", type=int, default=0, help="zero-based first record")
    ap.add_argument("--count", type=int, default=5)
    ap.add_argument("--full", action="store_true", help="print whole records as JSON")
    args = ap.parse_args()

    setup_logging()
    settings = IngestSettings.from_config(load_config())

    try:
        doc = load_document(args.file.read_bytes(), args.file.name, settings)
        records = doc.get_records(args.start, args.count)
    except IngestError as e:
        logger.error("%s: %s", args.file, e)
        return 1

    print(f"{args.file.name}: {doc.tag}, {doc.total} record(s)")
    if doc.user_id is not None:
        print(f"  user_id: {doc.user_id}")
    for offset, rec in enumerate(records):
        idx = args.start + offset
        if args.full or not isinstance(rec, dict):
            print(json.dumps(rec, ensure_ascii=False, indent=2))
            continue
        print(
            f"  #{idx + 1} {record_key(rec, f'record_{idx}')}: "
            f"{len(record_turns(rec))} turns, "
            f"{len(rec.get('intents_ranked') or [])} intents, "
            f"{len(rec.get('memory_items') or [])} memories"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
