#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
70_aggregate_annotations.py
Aggregate intent and memory labels of one or more annotation files for dashboarding.

Output:
  - outputs/annotation_dashboard.csv
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

from annot_lib.accessor import load_document
from annot_lib.config import ROOT, IngestSettings, load_config
from annot_lib.errors import IngestError
from annot_lib.logging_utils import setup_logging
from annot_lib.report import annotations_frame, summarize_annotations
from annot_lib.taxonomy import load_taxonomy

logger = logging.getLogger("aggregate_annotations")


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("files", nargs="+", type=Path)
    args = ap.parse_args()

    setup_logging()
    cfg = load_config()
    settings = IngestSettings.from_config(cfg)
    taxonomy = load_taxonomy()
    out_dir = ROOT / cfg["paths"]["outputs_dir"]
    dash = out_dir / "annotation_dashboard.csv"

    frames = []
    for path in args.files:
        try:
            doc = load_document(path.read_bytes(), path.name, settings)
        except IngestError as e:
            logger.error("%s: %s", path, e)
            return 1
        frame = annotations_frame(doc.iter_records(), taxonomy, settings)
        frame["file"] = path.name
        frames.append(frame)

    df = pd.concat(frames, ignore_index=True)
    if df.empty:
        print("No annotations found")
        return 0

    out = summarize_annotations(df)
    bad = len(df[df["invalid"] != ""].drop_duplicates(subset=["file", "record"]))
    if bad:
        logger.warning("%d record(s) carry intents that would not pass save validation", bad)
    out_dir.mkdir(parents=True, exist_ok=True)
    out.to_csv(dash, index=False, encoding="utf-8")
    print(f"[OK] wrote dashboard -> {dash}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
