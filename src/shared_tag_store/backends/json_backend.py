"""JsonFileBackend for the JSON data file.

The whole tag collection is stored as one JSON array. Localized texts are
embedded in their owning tag record.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from ..core.models import Tag
from .base import StorageBackend


class JsonFileBackend(StorageBackend):
    """Backend for a JSON tag file.

    The file is always imported. ``persistent`` only decides whether the store
    writes changes back.

    Args:
        file_path: Path to the JSON data file (created on first export)
        persistent: Whether the store should call export_all() after mutations
    """

    def __init__(self, file_path: Path | str, *, persistent: bool = True) -> None:
        self.file_path = Path(file_path)
        self._persistent = persistent

    @property
    def is_persistent(self) -> bool:
        return self._persistent

    def describe(self) -> str:
        suffix = "" if self._persistent else " (read-only)"
        return f"{self.file_path}{suffix}"

    def import_all(self) -> list[Tag]:
        """Read the JSON file into Tag objects.

        Returns:
            Parsed tags (empty when the file does not exist yet)

        Raises:
            ValueError: Failed to read JSON, or the root is not an array
        """
        if not self.file_path.exists():
            logger.info(f"No data file at {self.file_path}, starting empty")
            return []

        try:
            with open(self.file_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in data file: {self.file_path}") from e

        if not isinstance(data, list):
            raise ValueError(f"Data file must contain a JSON array, got {type(data).__name__}")

        return [Tag.from_record(record) for record in data]

    def export_all(self, tags: Iterable[Tag]) -> None:
        """Overwrite the JSON file with the given tags.

        The file is written to a sibling temp file first and then replaced.
        """
        records = [tag.to_record() for tag in tags]
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.file_path.name}.", suffix=".tmp", dir=self.file_path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Exported {len(records)} tags to {self.file_path}")
