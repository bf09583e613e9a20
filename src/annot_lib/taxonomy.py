# src/annot_lib/taxonomy.py
"""Static label tables: intent categories, memory labels, highlight categories."""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from .config import ROOT

TAXONOMY_PATH = ROOT / "config" / "taxonomy.yaml"
PREFERENCE_NAMESPACE = "Preferences/"


@dataclass(frozen=True)
class HighlightCategory:
    id: str
    name: str
    key_prefix: str


@dataclass(frozen=True)
class Taxonomy:
    intent_subtypes: Dict[str, Tuple[str, ...]]
    memory_labels: Dict[str, str]  # label id -> category name
    highlight_categories: Tuple[HighlightCategory, ...] = ()
    default_highlight: HighlightCategory = field(
        default=HighlightCategory("uncategorized", "Uncategorized", "Memory")
    )

    @property
    def intent_ids(self) -> Tuple[str, ...]:
        return tuple(self.intent_subtypes)

    def is_intent(self, category: str) -> bool:
        return category in self.intent_subtypes

    def is_subtype(self, category: str, subtype: str) -> bool:
        return subtype in self.intent_subtypes.get(category, ())

    def is_memory_label(self, label: str) -> bool:
        return label in self.memory_labels

    def labels_by_category(self, category: str) -> List[str]:
        return [lid for lid, cat in self.memory_labels.items() if cat == category]

    def highlight_category(self, category_id: Optional[str]) -> HighlightCategory:
        for cat in self.highlight_categories:
            if cat.id == category_id:
                return cat
        return self.default_highlight


def is_preference_label(label: str) -> bool:
    return (label or "").startswith(PREFERENCE_NAMESPACE)


def _highlight(raw: Dict) -> HighlightCategory:
    return HighlightCategory(
        id=str(raw["id"]), name=str(raw.get("name", raw["id"])), key_prefix=str(raw["key_prefix"])
    )


def taxonomy_from_dict(raw: Dict) -> Taxonomy:
    intents = {
        str(cat["id"]): tuple(str(s["id"]) for s in cat.get("subtypes") or [])
        for cat in raw.get("intent_categories") or []
    }
    labels = {str(lbl["id"]): str(lbl.get("category", "")) for lbl in raw.get("memory_labels") or []}
    highlights = tuple(_highlight(c) for c in raw.get("highlight_categories") or [])
    default = raw.get("default_highlight_category")
    if default:
        return Taxonomy(intents, labels, highlights, _highlight(default))
    return Taxonomy(intents, labels, highlights)


@lru_cache(maxsize=4)
def load_taxonomy(path: Optional[str] = None) -> Taxonomy:
    """Load config/taxonomy.yaml (or ``path``)."""
    source = Path(path) if path else TAXONOMY_PATH
    if not source.exists():
        raise FileNotFoundError(f"Missing taxonomy file: {source}")
    return taxonomy_from_dict(yaml.safe_load(source.read_text(encoding="utf-8")) or {})


__all__ = [
    "HighlightCategory",
    "Taxonomy",
    "PREFERENCE_NAMESPACE",
    "is_preference_label",
    "taxonomy_from_dict",
    "load_taxonomy",
]
