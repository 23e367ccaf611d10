"""参照カウント付きタグとローカライズテキストのストア."""

from .config import StoreConfig, load_config
from .core import (
    AuditStamp,
    DuplicateError,
    InternalConsistencyError,
    LocalizedText,
    NotFoundError,
    PersistenceError,
    Tag,
    TagStoreError,
    ValidationError,
)
from .store import TagService, open_store

__all__ = [
    "StoreConfig",
    "load_config",
    "open_store",
    "TagService",
    "Tag",
    "LocalizedText",
    "AuditStamp",
    "TagStoreError",
    "NotFoundError",
    "ValidationError",
    "DuplicateError",
    "InternalConsistencyError",
    "PersistenceError",
]
