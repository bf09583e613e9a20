"""Sparse overlay of edited session records, keyed by global record index."""
from __future__ import annotations

import copy
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple


class ModificationMap(Mapping[int, Dict[str, Any]]):
    """Immutable ``index -> fully replaced record`` mapping.

    Every update returns a new instance; readers holding an older map keep a
    consistent view. A record with no entry is shown exactly as loaded.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Mapping[int, Dict[str, Any]]] = None) -> None:
        data: Dict[int, Dict[str, Any]] = {}
        for index, record in (items or {}).items():
            index = int(index)
            if index < 0:
                raise ValueError(f"record index must be >= 0, got {index}")
            data[index] = record
        self._items = MappingProxyType(data)

    def __getitem__(self, index: int) -> Dict[str, Any]:
        return self._items[index]

    def __iter__(self) -> Iterator[int]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"ModificationMap(indices={sorted(self._items)})"

    def with_record(self, index: int, record: Dict[str, Any]) -> "ModificationMap":
        updated = dict(self._items)
        updated[int(index)] = copy.deepcopy(record)
        return ModificationMap(updated)

    def without(self, index: int) -> "ModificationMap":
        updated = dict(self._items)
        updated.pop(int(index), None)
        return ModificationMap(updated)

    def cleared(self) -> "ModificationMap":
        return ModificationMap()

    def effective(self, index: int, loaded: Any) -> Any:
        """The record to present at ``index``: the edit if any, else ``loaded``."""
        return self._items.get(index, loaded)

    def to_payload(self) -> List[Tuple[int, Dict[str, Any]]]:
        """Serializable ``[[index, record], ...]`` in ascending index order."""
        return [(i, self._items[i]) for i in sorted(self._items)]

    @classmethod
    def from_payload(cls, pairs: Iterable[Any]) -> "ModificationMap":
        items: Dict[int, Dict[str, Any]] = {}
        for pair in pairs:
            index, record = pair
            if not isinstance(record, dict):
                raise ValueError(f"modification for index {index} is not an object")
            items[int(index)] = record
        return cls(items)


__all__ = ["ModificationMap"]
