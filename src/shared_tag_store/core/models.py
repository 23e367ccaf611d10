"""タグ / ローカライズテキストのデータモデル.

永続化レコード（JSON）は camelCase キーを使います。

    [{"id": "...", "title": "color", "description": null, "counter": 2,
      "createdAt": "...", "createdBy": "alice", "modifiedAt": "...", "modifiedBy": "alice",
      "texts": [{"id": "...", "langCode": "en", "text": "red", ...}]}]

旧形式（counter / texts なし）のレコードは counter=1、texts=[] として読み込みます。
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any


def new_id() -> str:
    """サーバー側で ID を採番する."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


def is_single_token(text: object) -> bool:
    """空白区切りでちょうど1語の非空文字列かどうか."""
    return isinstance(text, str) and len(text.split()) == 1


def _format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _parse_datetime(value: object) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        # 旧データはタイムゾーンなしで保存されている
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_counter(value: object) -> int:
    # 旧形式は counter を持たない
    if value is None:
        return 1
    return int(value)


@dataclass(frozen=True)
class AuditStamp:
    """監査メタデータ（作成/更新の日時と実行者）.

    作成スタンプは生成時に固定され、更新スタンプだけを ``touched()`` で差し替えます。
    """

    created_at: datetime
    created_by: str
    modified_at: datetime
    modified_by: str

    @classmethod
    def create(cls, principal: str, now: datetime | None = None) -> AuditStamp:
        now = now or utc_now()
        return cls(created_at=now, created_by=principal, modified_at=now, modified_by=principal)

    def touched(self, principal: str, now: datetime | None = None) -> AuditStamp:
        """作成スタンプを保持したまま更新スタンプを差し替えた新しい値を返す."""
        return replace(self, modified_at=now or utc_now(), modified_by=principal)

    def to_record(self) -> dict[str, Any]:
        return {
            "createdAt": _format_datetime(self.created_at),
            "createdBy": self.created_by,
            "modifiedAt": _format_datetime(self.modified_at),
            "modifiedBy": self.modified_by,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> AuditStamp | None:
        created_at = _parse_datetime(record.get("createdAt"))
        if created_at is None:
            return None
        modified_at = _parse_datetime(record.get("modifiedAt")) or created_at
        created_by = record.get("createdBy") or ""
        return cls(
            created_at=created_at,
            created_by=created_by,
            modified_at=modified_at,
            modified_by=record.get("modifiedBy") or created_by,
        )


class _Audited:
    """``audit`` フィールドを持つモデル向けの読み取り専用プロパティ."""

    audit: AuditStamp | None

    @property
    def created_at(self) -> datetime | None:
        return self.audit.created_at if self.audit else None

    @property
    def created_by(self) -> str | None:
        return self.audit.created_by if self.audit else None

    @property
    def modified_at(self) -> datetime | None:
        return self.audit.modified_at if self.audit else None

    @property
    def modified_by(self) -> str | None:
        return self.audit.modified_by if self.audit else None


@dataclass
class LocalizedText(_Audited):
    """タグ表示名の1言語分の翻訳（1語）.

    Args:
        lang_code: 言語コード（作成後は変更不可、タグ内で一意）
        text: 1語の翻訳テキスト
        id: サーバー採番の ID（クライアント入力では通常 None）
        audit: 監査メタデータ（サーバーのみが設定）
    """

    lang_code: str | None = None
    text: str | None = None
    id: str | None = None
    audit: AuditStamp | None = None

    def copy(self) -> LocalizedText:
        return copy.deepcopy(self)

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"id": self.id, "langCode": self.lang_code, "text": self.text}
        if self.audit is not None:
            record.update(self.audit.to_record())
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> LocalizedText:
        return cls(
            id=record.get("id"),
            lang_code=record.get("langCode"),
            text=record.get("text"),
            audit=AuditStamp.from_record(record),
        )


@dataclass
class Tag(_Audited):
    """複数のコンテキストから共有されるタグ.

    Args:
        title: タイトル（必須、非空）
        description: 説明（任意）
        id: サーバー採番の ID。既存 ID を指定した create は共有（counter 加算）扱い
        counter: 参照カウント。ストア内では常に 1 以上
        audit: 監査メタデータ（サーバーのみが設定）
        texts: 言語コードごとに1件のローカライズテキスト
    """

    title: str | None = None
    description: str | None = None
    id: str | None = None
    counter: int | None = None
    audit: AuditStamp | None = None
    texts: list[LocalizedText] = field(default_factory=list)

    def find_text(self, text_id: str) -> LocalizedText | None:
        return next((t for t in self.texts if t.id == text_id), None)

    def find_lang(self, lang_code: str) -> LocalizedText | None:
        return next((t for t in self.texts if t.lang_code == lang_code), None)

    def copy(self) -> Tag:
        return copy.deepcopy(self)

    def to_record(self) -> dict[str, Any]:
        """JSON レコードへ変換する（texts は埋め込み）."""
        record: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "counter": self.counter,
        }
        if self.audit is not None:
            record.update(self.audit.to_record())
        record["texts"] = [t.to_record() for t in self.texts]
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Tag:
        """JSON レコードから Tag を復元する.

        Raises:
            ValueError: レコードが dict でない、texts が配列でない、またはその要素が dict でない場合
        """
        if not isinstance(record, dict):
            raise ValueError(f"Tag record must be a JSON object, got {type(record).__name__}")
        texts = record.get("texts") or []
        if not isinstance(texts, list):
            raise ValueError(f"tag <{record.get('id')}>: texts must be a JSON array")
        for text in texts:
            if not isinstance(text, dict):
                raise ValueError(
                    f"tag <{record.get('id')}>: localized text record must be a JSON object, "
                    f"got {type(text).__name__}"
                )
        return cls(
            id=record.get("id"),
            title=record.get("title"),
            description=record.get("description"),
            counter=_parse_counter(record.get("counter", 1)),
            audit=AuditStamp.from_record(record),
            texts=[LocalizedText.from_record(t) for t in texts],
        )


def tag_sort_key(tag: Tag) -> tuple[str, str]:
    """タグの全順序（title → id）."""
    return (tag.title or "", tag.id or "")


def text_sort_key(text: LocalizedText) -> tuple[str, str]:
    """ローカライズテキストの全順序（langCode → id）."""
    return (text.lang_code or "", text.id or "")
