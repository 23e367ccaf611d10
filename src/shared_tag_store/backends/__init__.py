"""タグストア用のストレージバックエンド群."""

from .base import StorageBackend
from .json_backend import JsonFileBackend
from .memory_backend import MemoryBackend

__all__ = [
    "StorageBackend",
    "JsonFileBackend",
    "MemoryBackend",
]
