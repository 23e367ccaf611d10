"""Tag store exceptions.

ストア層で発生する例外クラスを定義します。
上位のリクエスト処理層は ``http_status`` を見てステータスコードへ変換します。
"""

from __future__ import annotations


class TagStoreError(Exception):
    """タグストア例外の基底クラス.

    Attributes:
        message: エラーメッセージ
        http_status: 上位層で使う HTTP ステータス相当の値
    """

    http_status = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(TagStoreError):
    """参照された ID（タグ / ローカライズテキスト）が存在しない."""

    http_status = 404


class ValidationError(TagStoreError):
    """入力が不正（必須項目欠落、複数語テキスト、クライアント採番ID、不変項目の変更など）."""

    http_status = 400


class DuplicateError(TagStoreError):
    """既存 ID、または同一タグ内の既存 langCode と衝突した."""

    http_status = 409


class InternalConsistencyError(TagStoreError):
    """ストア内部の不変条件違反.

    counter < 1、孤立したテキスト、二重インデックスの不一致など。
    呼び出し側の誤りではなく、ストア自体のバグを示します。
    """

    http_status = 500


class PersistenceError(TagStoreError):
    """メモリ上の変更後、バックエンドへのエクスポートに失敗した.

    メモリ上の変更はロールバックされません（ベストエフォートの書き出し）。

    Attributes:
        target: 書き出し先の説明（ファイルパスなど）
    """

    http_status = 500

    def __init__(self, message: str, target: str | None = None) -> None:
        self.target = target
        super().__init__(message)


def is_client_error(error: TagStoreError) -> bool:
    """呼び出し側の誤り（4xx 相当）かどうか."""
    return 400 <= error.http_status < 500
