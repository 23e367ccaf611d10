"""タグストアの組み立て.

設定からバックエンドとストアを構築し、プロセス起動時に一度だけ生成して
リクエスト処理側へ参照として渡すためのハンドルを提供します。
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from .backends.base import StorageBackend
from .backends.json_backend import JsonFileBackend
from .config import StoreConfig
from .core.tag_store import TagStore
from .core.text_store import LocalizedTextStore


@dataclass(frozen=True)
class TagService:
    """タグストアとローカライズテキストストアの組."""

    tags: TagStore
    texts: LocalizedTextStore

    def close(self) -> None:
        self.tags.close()

    def __enter__(self) -> TagService:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def build_backend(config: StoreConfig) -> StorageBackend:
    """設定に応じたバックエンドを返す.

    データファイルは常に読み込む。persistent=False の場合は書き戻さない。
    """
    return JsonFileBackend(config.data_path, persistent=config.persistent)


def open_store(
    config: StoreConfig,
    *,
    backend: StorageBackend | None = None,
    current_principal: Callable[[], str] | None = None,
) -> TagService:
    """ストアを生成し、バックエンドから既存データを読み込む.

    Args:
        config: ストア設定
        backend: 明示的に使うバックエンド（省略時は設定から生成）
        current_principal: 実行者を返す関数（省略時は設定の principal 固定）

    Returns:
        TagService

    Raises:
        ValueError: データファイルの形式が不正な場合
        InternalConsistencyError: 読み込んだデータが不変条件を満たさない場合
    """
    backend = backend or build_backend(config)
    principal = current_principal or (lambda: config.principal)

    tags = TagStore(
        backend,
        mode=config.mode,
        current_principal=principal,
        default_page_size=config.default_page_size,
    )
    texts = LocalizedTextStore(tags)
    logger.info(f"Tag store opened: {backend.describe()} (mode={config.mode})")
    return TagService(tags=tags, texts=texts)
