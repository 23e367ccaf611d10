"""ストレージバックエンド（基底クラス）.

インメモリのタグマップを起動時に復元し、変更のたびに全件を書き出すための
共通インターフェースを定義します。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from ..core.models import Tag


class StorageBackend(ABC):
    """タグ永続化バックエンドの基底クラス.

    全てのバックエンドはこのクラスを継承し、
    import_all()/export_all() を実装します。
    """

    @property
    def is_persistent(self) -> bool:
        """変更のたびに export_all() を呼ぶべきかどうか."""
        return True

    @abstractmethod
    def import_all(self) -> list[Tag]:
        """永続化済みの全タグ（ローカライズテキストを含む）を読み込む.

        Returns:
            タグのリスト。保存先がまだ存在しない場合は空リスト

        Raises:
            ValueError: データ形式が不正な場合
        """
        ...

    @abstractmethod
    def export_all(self, tags: Iterable[Tag]) -> None:
        """現在の全タグで保存内容を上書きする."""
        ...

    def describe(self) -> str:
        """ログ用の保存先の説明."""
        return type(self).__name__
