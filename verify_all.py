# verify_all.py
"""Cross-check an exported annotation file against the file it was built from.

Usage:
  python verify_all.py SOURCE EXPORT
"""
import sys
from pathlib import Path

import pandas as pd

from annot_lib.accessor import load_document
from annot_lib.normalize import record_key
from annot_lib.report import annotations_frame


def load(path, as_name=None):
    return load_document(path.read_bytes(), as_name or path.name)


def keys(doc):
    return [record_key(r, f"record_{i}") if isinstance(r, dict) else f"record_{i}" for i, r in enumerate(doc.iter_records())]


def show(label, path, as_name=None):
    if not path.exists():
        print(f"{label}: MISSING -> {path}")
        return None
    doc = load(path, as_name)
    print(f"{label}: {path} -> {doc.tag}, records={doc.total}")
    return doc


if len(sys.argv) != 3:
    print(__doc__)
    sys.exit(2)

src_path, exp_path = Path(sys.argv[1]), Path(sys.argv[2])

print("== Source ==")
src = show("source", src_path)
print("\n== Export ==")
# NDJSON sources are exported as one JSON array, so the export is read as plain JSON
exp = show("export", exp_path, exp_path.stem + ".json")

if src is not None and exp is not None:
    sk, ek = keys(src), keys(exp)
    print("\n== Cross-check ==")
    print("Same record keys (in order):", sk == ek)
    print("Counts (source vs export):", len(sk), len(ek))
    missing = sorted(set(sk) - set(ek))
    if missing:
        print("  Missing from export:", missing[:10])

    before = annotations_frame(src.iter_records())
    after = annotations_frame(exp.iter_records())
    cmp = pd.DataFrame({
        "source": before.groupby("kind").size(),
        "export": after.groupby("kind").size(),
    }).fillna(0).astype(int)
    print("\n== Annotation counts ==")
    print(cmp.to_string() if not cmp.empty else "(none)")
    sys.exit(0 if sk == ek else 1)
