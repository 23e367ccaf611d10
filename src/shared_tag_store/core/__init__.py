"""タグストアのコア処理群.

- モデル（Tag / LocalizedText / AuditStamp）
- タグストア（counter ライフサイクル）
- ローカライズテキストストア（二重インデックス）
"""

from .exceptions import (
    DuplicateError,
    InternalConsistencyError,
    NotFoundError,
    PersistenceError,
    TagStoreError,
    ValidationError,
)
from .models import AuditStamp, LocalizedText, Tag

__all__ = [
    "AuditStamp",
    "LocalizedText",
    "Tag",
    "TagStoreError",
    "NotFoundError",
    "ValidationError",
    "DuplicateError",
    "InternalConsistencyError",
    "PersistenceError",
]
