"""Durable side-store for in-progress modifications, keyed by source filename.

The store is optional: a missing, unreadable or corrupt entry means "no
prior modifications" and is never an error. Settings are passed in as an
:class:`AutoSaveConfig` value rather than read from module state.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .modifications import ModificationMap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutoSaveConfig:
    enabled: bool = True
    storage_key_prefix: str = "intent-memory-annotations"
    auto_restore: bool = True
    debounce_ms: int = 0
    max_backup_files: int = 10
    clear_after_download: bool = False
    quota_warning_bytes: int = 4 * 1024 * 1024
    include_metadata: bool = True

    @classmethod
    def from_config(cls, cfg: Dict) -> "AutoSaveConfig":
        section = cfg.get("autosave") or {}
        base = PRESETS.get(section.get("preset") or "max_safety")
        if base is None:
            raise ValueError(f"Unknown autosave preset: {section.get('preset')!r}")
        overrides = section.get("overrides") or {}
        unknown = set(overrides) - set(asdict(base))
        if unknown:
            raise ValueError(f"Unknown autosave setting(s): {sorted(unknown)}")
        return replace(base, **overrides)


DEFAULT_AUTOSAVE = AutoSaveConfig()

PRESETS: Dict[str, AutoSaveConfig] = {
    "max_safety": DEFAULT_AUTOSAVE,
    "performance": replace(DEFAULT_AUTOSAVE, debounce_ms=2000),
    "minimal_storage": replace(
        DEFAULT_AUTOSAVE, max_backup_files=3, clear_after_download=True, include_metadata=False
    ),
    "disabled": replace(DEFAULT_AUTOSAVE, enabled=False, auto_restore=False),
}


def storage_key(filename: str, config: AutoSaveConfig = DEFAULT_AUTOSAVE) -> str:
    return f"{config.storage_key_prefix}-{filename}"


class DirectoryStore:
    """Key/value store holding one JSON file per key under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9._-]+", "_", key)
        return self.root / f"{safe}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self, prefix: str = "") -> List[str]:
        if not self.root.exists():
            return []
        safe_prefix = re.sub(r"[^A-Za-z0-9._-]+", "_", prefix)
        return sorted(p.stem for p in self.root.glob("*.json") if p.stem.startswith(safe_prefix))

    def usage_bytes(self) -> int:
        if not self.root.exists():
            return 0
        return sum(p.stat().st_size for p in self.root.glob("*.json"))


def save_modifications(
    store: DirectoryStore,
    filename: str,
    mods: ModificationMap,
    config: AutoSaveConfig = DEFAULT_AUTOSAVE,
    metadata: Optional[Dict[str, Any]] = None,
) -> bool:
    """Persist ``mods`` for ``filename``. Returns ``False`` when nothing was written."""
    if not config.enabled or not mods:
        return False
    payload: Dict[str, Any] = {"modifications": mods.to_payload()}
    if config.include_metadata:
        payload.update(metadata or {})
        payload["fileName"] = filename
        payload["timestamp"] = datetime.now(timezone.utc).isoformat()
    try:
        store.set(storage_key(filename, config), json.dumps(payload, ensure_ascii=False))
    except OSError as exc:
        logger.error("Failed to auto-save %d modification(s) for %s: %s", len(mods), filename, exc)
        return False
    logger.debug("Auto-saved %d modification(s) for %s", len(mods), filename)
    return True


def restore_modifications(
    store: DirectoryStore,
    filename: str,
    config: AutoSaveConfig = DEFAULT_AUTOSAVE,
) -> Optional[ModificationMap]:
    """Return saved modifications for ``filename``, or ``None``."""
    try:
        raw = store.get(storage_key(filename, config))
        if raw is None:
            return None
        parsed = json.loads(raw)
        restored = ModificationMap.from_payload(parsed["modifications"])
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.warning("Ignoring unreadable auto-save for %s: %s", filename, exc)
        return None
    logger.info("Restored %d modification(s) for %s", len(restored), filename)
    return restored


def clear_backup(store: DirectoryStore, filename: str, config: AutoSaveConfig = DEFAULT_AUTOSAVE) -> None:
    store.remove(storage_key(filename, config))


def _saved_at(store: DirectoryStore, key: str) -> float:
    try:
        stamp = json.loads(store.get(key) or "{}").get("timestamp")
        return datetime.fromisoformat(stamp).timestamp() if stamp else 0.0
    except (OSError, ValueError, AttributeError):
        return 0.0


def cleanup_old_backups(store: DirectoryStore, config: AutoSaveConfig = DEFAULT_AUTOSAVE) -> int:
    """Delete the oldest backups beyond ``max_backup_files``; returns how many."""
    keys = store.keys(config.storage_key_prefix)
    excess = len(keys) - config.max_backup_files
    if config.max_backup_files <= 0 or excess <= 0:
        return 0
    oldest = sorted(keys, key=lambda k: _saved_at(store, k))[:excess]
    for key in oldest:
        store.remove(key)
    logger.info("Cleaned up %d old backup(s)", len(oldest))
    return len(oldest)


@dataclass(frozen=True)
class QuotaStatus:
    is_near_limit: bool
    usage_bytes: int
    warning: Optional[str] = None


def check_quota(store: DirectoryStore, config: AutoSaveConfig = DEFAULT_AUTOSAVE) -> QuotaStatus:
    usage = store.usage_bytes()
    if usage < config.quota_warning_bytes:
        return QuotaStatus(False, usage)
    return QuotaStatus(
        True,
        usage,
        f"Auto-save usage ({usage / 1024 / 1024:.2f}MB) is approaching the limit. "
        "Consider clearing old backups.",
    )


__all__ = [
    "AutoSaveConfig",
    "DEFAULT_AUTOSAVE",
    "PRESETS",
    "storage_key",
    "DirectoryStore",
    "save_modifications",
    "restore_modifications",
    "clear_backup",
    "cleanup_old_backups",
    "QuotaStatus",
    "check_quota",
]
