"""MemoryBackend (in-memory storage).

Nothing is written to disk. The last export is kept as a list of records so
tests and callers can inspect what would have been written.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..core.models import Tag
from .base import StorageBackend


class MemoryBackend(StorageBackend):
    """In-memory backend.

    Args:
        seed: Tags returned by import_all()
        persistent: Whether the store should call export_all() after mutations
    """

    def __init__(self, seed: Iterable[Tag] = (), *, persistent: bool = False) -> None:
        self._seed = [tag.copy() for tag in seed]
        self._persistent = persistent
        self.snapshot: list[dict[str, Any]] = []
        self.export_count = 0

    @property
    def is_persistent(self) -> bool:
        return self._persistent

    def import_all(self) -> list[Tag]:
        return [tag.copy() for tag in self._seed]

    def export_all(self, tags: Iterable[Tag]) -> None:
        self.snapshot = [tag.to_record() for tag in tags]
        self.export_count += 1
