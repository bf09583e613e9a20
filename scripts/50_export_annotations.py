#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
50_export_annotations.py
Rebuild an annotation file in its original layout from the auto-saved edits.

Inputs:
  - FILE                          (the file that was annotated)
  - outputs/.autosave/*.json      (saved modifications, keyed by filename)

Output:
  - outputs/intent-memory-annotations-<epoch ms>.json
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from annot_lib.autosave import AutoSaveConfig, DirectoryStore
from annot_lib.config import ROOT, IngestSettings, load_config
from annot_lib.errors import IngestError
from annot_lib.logging_utils import setup_logging
from annot_lib.report import annotations_frame, render_export_summary
from annot_lib.session import AnnotationSession
from annot_lib.taxonomy import load_taxonomy

logger = logging.getLogger("export_annotations")


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("file", type=Path)
    ap.add_argument("--out-dir", type=Path, default=None)
    ap.add_argument("--no-restore", action="store_true", help="export without the saved modifications")
    args = ap.parse_args()

    setup_logging()
    cfg = load_config()
    settings = IngestSettings.from_config(cfg)
    autosave = AutoSaveConfig.from_config(cfg)
    if args.no_restore:
        autosave = replace(autosave, auto_restore=False)
    out_dir = args.out_dir or ROOT / cfg["paths"]["outputs_dir"]
    store = DirectoryStore(ROOT / cfg["paths"]["autosave_dir"])

    session = AnnotationSession(settings, load_taxonomy(), store, autosave)
    try:
        session.load(args.file.read_bytes(), args.file.name)
        result = session.export()
    except IngestError as e:
        logger.error("%s: %s", args.file, e)
        return 1

    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / result.filename
    out_path.write_text(result.text, encoding="utf-8")

    frame = annotations_frame(session.page(0, session.total), session.taxonomy, settings)
    print(render_export_summary(result, args.file.name, session.document.tag, session.total, frame))
    print(f"[OK] wrote export -> {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
