"""One annotator's working state over a loaded file.

Holds the read-only :class:`RawDocument`, the current record position and the
:class:`ModificationMap` of saved edits. Every save validates first and then
swaps in a new map, so a failed save leaves the previous map untouched.
Single-threaded: callers serialize load, navigation, save and export.
"""
from __future__ import annotations

import copy
import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Union

from . import autosave as backups
from .accessor import RawDocument, load_document
from .config import DEFAULT_SETTINGS, IngestSettings
from .errors import ValidationFailure
from .export import ExportResult, export_document
from .highlights import HighlightLog, add_highlight, add_manual_memory, delete_highlights_in, find_user, undo_last
from .models import IntentJudgment, MemoryEntry
from .modifications import ModificationMap
from .taxonomy import Taxonomy, load_taxonomy
from .validation import validate_intents, validate_memories

logger = logging.getLogger(__name__)


def _as_dicts(items: Sequence[Any]) -> List[Dict[str, Any]]:
    return [item.to_dict() if hasattr(item, "to_dict") else copy.deepcopy(dict(item)) for item in items]


class AnnotationSession:
    def __init__(
        self,
        settings: IngestSettings = DEFAULT_SETTINGS,
        taxonomy: Optional[Taxonomy] = None,
        store: Optional[backups.DirectoryStore] = None,
        autosave: backups.AutoSaveConfig = backups.DEFAULT_AUTOSAVE,
    ) -> None:
        self.settings = settings
        self.taxonomy = taxonomy or load_taxonomy()
        self.store = store
        self.autosave = autosave
        self.document: Optional[RawDocument] = None
        self.modifications = ModificationMap()
        self.index = 0
        self.highlights = HighlightLog()
        self.quota: Optional[backups.QuotaStatus] = None
        self._last_backup: Optional[float] = None
        self._backup_pending = False

    # ---- loading -------------------------------------------------------

    def load(self, data: Union[bytes, str], filename: str) -> RawDocument:
        """Load a new file, discarding everything about the previous one.

        A file that fails to load raises and leaves the current state as is.
        """
        doc = load_document(data, filename, self.settings)
        self.flush_backup()
        self.document = doc
        self._last_backup = None
        self.modifications = ModificationMap()
        self.index = 0
        self.highlights = HighlightLog()
        if self.store is not None and self.autosave.auto_restore:
            restored = backups.restore_modifications(self.store, filename, self.autosave)
            if restored:
                self.modifications = ModificationMap({i: r for i, r in restored.items() if i < doc.total})
        return doc

    def reset(self) -> None:
        if self.document is not None and self.store is not None:
            backups.clear_backup(self.store, self.document.filename, self.autosave)
        self.document = None
        self._backup_pending = False
        self.modifications = ModificationMap()
        self.index = 0
        self.highlights = HighlightLog()

    def _doc(self) -> RawDocument:
        if self.document is None:
            raise RuntimeError("No file loaded")
        return self.document

    @property
    def total(self) -> int:
        return self.document.total if self.document is not None else 0

    # ---- navigation ----------------------------------------------------

    def record_at(self, index: int) -> Optional[Dict[str, Any]]:
        loaded = self._doc().get_record(index)
        if loaded is None:
            return None
        return self.modifications.effective(index, loaded)

    def current_record(self) -> Optional[Dict[str, Any]]:
        return self.record_at(self.index)

    def go_next(self) -> int:
        if self.index < self.total - 1:
            self.index += 1
        return self.index

    def go_previous(self) -> int:
        if self.index > 0:
            self.index -= 1
        return self.index

    def jump_to(self, number: int) -> int:
        """Move to the 1-based record ``number``."""
        if not 1 <= number <= self.total:
            raise ValueError(f"Record number must be between 1 and {self.total}, got {number}")
        self.index = number - 1
        return self.index

    def page(self, start: int, count: Optional[int] = None) -> List[Dict[str, Any]]:
        """Records ``start .. start+count`` with saved edits applied."""
        count = self.settings.page_size if count is None else count
        loaded = self._doc().get_records(start, count)
        return [self.modifications.effective(start + i, rec) for i, rec in enumerate(loaded)]

    def find_user(self, user_id: str) -> int:
        """Jump to the first record whose ``UserID`` matches; -1 when absent."""
        found = find_user(list(self.page(0, self.total)), user_id)
        if found >= 0:
            self.index = found
        return found

    # ---- saving --------------------------------------------------------

    def _current_copy(self) -> Dict[str, Any]:
        record = self.current_record()
        if not isinstance(record, dict):
            raise ValidationFailure("no_record", "No record to annotate at this position")
        return copy.deepcopy(record)

    def _commit(self, record: Dict[str, Any], index: Optional[int] = None) -> None:
        index = self.index if index is None else index
        self.modifications = self.modifications.with_record(index, record)
        logger.debug("Saved record %d (%d modified)", index, len(self.modifications))
        self._backup()

    def _backup(self, force: bool = False) -> None:
        if self.store is None or self.document is None:
            return
        now = time.monotonic()
        if (
            not force
            and self._last_backup is not None
            and (now - self._last_backup) * 1000 < self.autosave.debounce_ms
        ):
            self._backup_pending = True
            return
        self._last_backup = now
        self._backup_pending = False
        saved = backups.save_modifications(
            self.store,
            self.document.filename,
            self.modifications,
            self.autosave,
            {"fileFormat": self.document.tag, "totalRecords": self.document.total},
        )
        if not saved:
            return
        backups.cleanup_old_backups(self.store, self.autosave)
        self.quota = backups.check_quota(self.store, self.autosave)
        if self.quota.is_near_limit:
            logger.warning("%s", self.quota.warning)

    def flush_backup(self) -> None:
        """Write a backup held back by ``debounce_ms``, if any."""
        if self._backup_pending:
            self._backup(force=True)

    def save_intents(self, intents: Sequence[Union[IntentJudgment, Dict[str, Any]]]) -> Dict[str, Any]:
        intents = _as_dicts(intents)
        validate_intents(intents, self.taxonomy, self.settings)
        record = self._current_copy()
        record["intents_ranked"] = intents
        self._commit(record)
        return record

    def save_memories(
        self,
        memories: Sequence[Union[MemoryEntry, Dict[str, Any]]],
        reasoning: Optional[str] = None,
    ) -> Dict[str, Any]:
        memories = _as_dicts(memories)
        validate_memories(memories, self.taxonomy)
        record = self._current_copy()
        record["memory_items"] = memories
        if reasoning is not None:
            record["memory_reasoning"] = reasoning
        self._commit(record)
        return record

    def update_reasoning(self, reasoning: Optional[str]) -> Dict[str, Any]:
        record = self._current_copy()
        record["memory_reasoning"] = reasoning or None
        self._commit(record)
        return record

    def mark_no_memory(self, reasoning: str) -> Dict[str, Any]:
        """Record that this session yields no memories, with the annotator's reasoning."""
        if not (reasoning or "").strip():
            raise ValidationFailure("missing_reasoning", "Explain why there is nothing to remember")
        record = self._current_copy()
        record["memory_items"] = []
        record["memory_reasoning"] = reasoning
        self._commit(record)
        return record

    # ---- highlights ----------------------------------------------------

    def highlight(self, text: str, category_id: Optional[str] = None) -> Dict[str, Any]:
        category = self.taxonomy.highlight_category(category_id)
        record = add_highlight(self._current_copy(), self.index, category, text, self.highlights)
        self._commit(record)
        return record

    def add_memory_entry(self, key: str, value: str, category_id: Optional[str] = None) -> Dict[str, Any]:
        category = self.taxonomy.highlight_category(category_id)
        record = add_manual_memory(self._current_copy(), self.index, category, key, value, self.highlights)
        self._commit(record)
        return record

    def delete_highlights(self, selection: str) -> int:
        record, removed = delete_highlights_in(self._current_copy(), self.index, selection, self.highlights)
        if removed:
            self._commit(record)
        return removed

    def undo_highlight(self) -> bool:
        if not self.highlights.entries:
            return False
        index = self.highlights.entries[-1][1]
        undone = undo_last({index: self.record_at(index)}, self.highlights)
        if undone is None:
            return False
        self._commit(undone[1], undone[0])
        return True

    # ---- export --------------------------------------------------------

    def export(self, epoch_ms: Optional[int] = None, draft: Optional[Dict[str, Any]] = None) -> ExportResult:
        """Render the download; an unsaved ``draft`` of the current record is folded in but not kept."""
        doc = self._doc()
        self.flush_backup()
        mods = self.modifications
        if draft is not None:
            mods = mods.with_record(self.index, draft)
        result = export_document(doc, mods, self.settings.export_prefix, epoch_ms)
        logger.info(
            "Exported %s: %d modified record(s), %d intents, %d memories",
            result.filename,
            result.modified,
            result.intents,
            result.memories,
        )
        if self.autosave.clear_after_download and self.store is not None:
            backups.clear_backup(self.store, doc.filename, self.autosave)
        return result


__all__ = ["AnnotationSession"]
