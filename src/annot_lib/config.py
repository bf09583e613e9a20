# src/annot_lib/config.py
"""Configuration loader with caching and basic validation."""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

ROOT = Path(__file__).resolve().parents[2]
CONFIG_PATH = ROOT / "config" / "config.yaml"

# Required config structure for minimal operation
REQUIRED_KEYS: Dict[str, List[str]] = {
    "paths": ["outputs_dir", "autosave_dir"],
    "ingest": ["line_delimited_extensions", "page_size", "export_prefix"],
    "validation": ["max_intents", "probability_tolerance"],
}


class ConfigError(ValueError):
    """Raised when required configuration values are missing."""


def _validate(cfg: Dict, source: Path) -> Dict:
    for section, keys in REQUIRED_KEYS.items():
        if section not in cfg:
            raise ConfigError(f"Missing required section '{section}' in {source}")
        missing = [k for k in keys if k not in (cfg.get(section) or {})]
        if missing:
            raise ConfigError(
                f"Missing required key(s) {missing} in section '{section}' of {source}"
            )
    return cfg


@lru_cache(maxsize=4)
def load_config(path: Optional[str] = None) -> Dict:
    """Load and cache config/config.yaml (or ``path``) with basic validation."""
    source = Path(path) if path else CONFIG_PATH
    if not source.exists():
        raise FileNotFoundError(f"Missing config file: {source}")
    cfg = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    return _validate(cfg, source)


@dataclass(frozen=True)
class IngestSettings:
    """Explicit ingestion/validation settings handed to the core functions."""

    line_delimited_extensions: Tuple[str, ...] = (".ndjson", ".jsonl")
    page_size: int = 100
    export_prefix: str = "intent-memory-annotations"
    max_intents: int = 2
    probability_tolerance: float = 0.01

    @classmethod
    def from_config(cls, cfg: Dict) -> "IngestSettings":
        ingest = cfg.get("ingest") or {}
        validation = cfg.get("validation") or {}
        exts = tuple(str(e).lower() for e in ingest.get("line_delimited_extensions", ()))
        return cls(
            line_delimited_extensions=exts or cls.line_delimited_extensions,
            page_size=int(ingest.get("page_size", cls.page_size)),
            export_prefix=str(ingest.get("export_prefix", cls.export_prefix)),
            max_intents=int(validation.get("max_intents", cls.max_intents)),
            probability_tolerance=float(
                validation.get("probability_tolerance", cls.probability_tolerance)
            ),
        )

    def is_line_delimited(self, filename: str) -> bool:
        return (filename or "").lower().endswith(self.line_delimited_extensions)


DEFAULT_SETTINGS = IngestSettings()


__all__ = [
    "ROOT",
    "CONFIG_PATH",
    "ConfigError",
    "load_config",
    "IngestSettings",
    "DEFAULT_SETTINGS",
]
