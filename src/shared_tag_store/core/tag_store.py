"""タグストア（参照カウント付きタグの CRUD）.

タグ ID → Tag のインメモリマップを保持し、ID採番・入力検証・counter ライフサイクルを担う。
永続化が有効な場合、変更が成功するたびにバックエンドへ全件を書き出す（失敗時は書き出さない）。

counter の意味:
    - create（ID なし）: 新規作成、counter = 1
    - create（既存 ID）: 共有。counter += 1（simple モードでは DuplicateError）
    - delete: counter == 1 なら削除（ローカライズテキストもカスケード削除）、それ以外は counter -= 1
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Iterable, Sequence
from typing import Any, TypeVar

from loguru import logger

from ..backends.base import StorageBackend
from ..config import MODE_SHARED, MODE_SIMPLE, VALID_MODES
from .exceptions import (
    DuplicateError,
    InternalConsistencyError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .models import AuditStamp, Tag, new_id, tag_sort_key

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20

# update() で反映するクライアント項目（モードごと）
UPDATABLE_FIELDS: dict[str, tuple[str, ...]] = {
    MODE_SIMPLE: ("title", "description"),
    MODE_SHARED: (),
}


def pretty_json(value: Any) -> str:
    """ログ出力用に Tag / LocalizedText を JSON 文字列化する."""
    record = value.to_record() if hasattr(value, "to_record") else value
    return json.dumps(record, indent=2, ensure_ascii=False, default=str)


def select_window(items: Sequence[T], position: int, size: int) -> list[T]:
    """``[position, position + size)`` の範囲を切り出す（範囲外は空/部分結果）."""
    start = max(position, 0)
    end = position + size
    if end <= start:
        return []
    return list(items[start:end])


def warn_ignored_audit(label: str, stored: AuditStamp | None, incoming: AuditStamp | None) -> None:
    """クライアントが送ってきた作成スタンプの差分を警告する（値は反映しない）."""
    if incoming is None or stored is None:
        return
    if incoming.created_at != stored.created_at:
        logger.warning(
            f"{label}: ignoring createdAt value <{incoming.created_at}> "
            "because it was set on the client."
        )
    if (incoming.created_by or "").lower() != (stored.created_by or "").lower():
        logger.warning(
            f"{label}: ignoring createdBy value <{incoming.created_by}> "
            "because it was set on the client."
        )


class TagStore:
    """参照カウント付きタグのストア.

    Args:
        backend: import_all()/export_all() を提供するストレージバックエンド
        mode: 既存 ID の create の扱い（"shared" / "simple"）
        current_principal: 監査項目に記録する実行者を返す関数
        default_page_size: list() の size 省略時の件数

    Raises:
        ValueError: 無効な mode の場合
        InternalConsistencyError: 読み込んだデータが不変条件を満たさない場合
    """

    def __init__(
        self,
        backend: StorageBackend,
        *,
        mode: str = MODE_SHARED,
        current_principal: Callable[[], str] = lambda: "anonymous",
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if mode not in VALID_MODES:
            raise ValueError(f"Unknown tag store mode: {mode!r}")
        self._backend = backend
        self._mode = mode
        self._current_principal = current_principal
        self._default_page_size = default_page_size
        self._tags: dict[str, Tag] = {}
        self._removal_hooks: list[Callable[[Tag], None]] = []
        # 最後の書き出し以降に未保存の変更があるか
        self._dirty = False
        # タグマップとテキストインデックスを同時に守る
        self.lock = threading.RLock()
        self._load()

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def _load(self) -> None:
        tags = self._backend.import_all()
        with self.lock:
            for tag in tags:
                if not tag.id:
                    raise InternalConsistencyError("imported tag without an ID")
                if tag.id in self._tags:
                    raise InternalConsistencyError(f"tag <{tag.id}> is imported more than once.")
                if tag.counter is None:
                    tag.counter = 1
                if tag.counter < 1:
                    raise InternalConsistencyError(
                        f"tag <{tag.id}> was imported with invalid counter <{tag.counter}>."
                    )
                if not tag.title:
                    logger.warning(f"tag <{tag.id}> was imported without a title")
                self._tags[tag.id] = tag
        logger.info(f"{len(tags)} Tags imported from {self._backend.describe()}.")

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def default_page_size(self) -> int:
        return self._default_page_size

    @property
    def is_persistent(self) -> bool:
        return self._backend.is_persistent

    def count(self) -> int:
        with self.lock:
            return len(self._tags)

    def close(self) -> None:
        """ストアを終了する.

        変更は成功のたびに書き出し済みのため、書き出しに失敗した変更が残っている
        場合だけ再度書き出す。
        """
        with self.lock:
            if self._dirty:
                self.persist()
            logger.info(f"Tag store closed ({len(self._tags)} tags).")

    # ------------------------------------------------------------------
    # helpers shared with the localized-text store
    # ------------------------------------------------------------------

    def principal(self) -> str:
        return self._current_principal()

    def add_removal_hook(self, hook: Callable[[Tag], None]) -> None:
        """タグが削除される直前（ロック内）に呼ばれるフックを登録する."""
        self._removal_hooks.append(hook)

    def live_tags(self) -> Iterable[Tag]:
        """内部の Tag をそのまま返す（呼び出し側はロックを保持していること）."""
        return self._tags.values()

    def require_live(self, tag_id: str) -> Tag:
        """内部の Tag をそのまま返す（呼び出し側はロックを保持していること）.

        Raises:
            NotFoundError: タグが存在しない場合
        """
        tag = self._tags.get(tag_id)
        if tag is None:
            raise NotFoundError(f"no tag with ID <{tag_id}> was found.")
        return tag

    def persist(self) -> None:
        """永続化が有効なら全タグを書き出す.

        Raises:
            PersistenceError: 書き出しに失敗した場合（メモリ上の変更は残る）
        """
        if not self._backend.is_persistent:
            return
        self._dirty = True
        try:
            self._backend.export_all(self._tags.values())
            self._dirty = False
        except OSError as e:
            logger.error(f"Failed to export tags to {self._backend.describe()}: {e}")
            raise PersistenceError(
                f"tags could not be exported to {self._backend.describe()}",
                target=self._backend.describe(),
            ) from e

    # ------------------------------------------------------------------
    # public contract
    # ------------------------------------------------------------------

    def list(
        self,
        query_type: str | None = None,
        query: str | None = None,
        position: int = 0,
        size: int | None = None,
    ) -> list[Tag]:
        """全タグを (title, id) 順に並べ、``[position, position + size)`` を返す.

        query_type / query はそのまま受け流す（評価しない）。
        """
        if size is None:
            size = self._default_page_size
        with self.lock:
            tags = sorted(self._tags.values(), key=tag_sort_key)
            selection = [tag.copy() for tag in select_window(tags, position, size)]
        logger.info(
            f"list(<{query}>, <{query_type}>, <{position}>, <{size}>) -> {len(selection)} tags."
        )
        return selection

    def create(self, tag: Tag) -> Tag:
        """タグを作成、または既存タグを共有する.

        Raises:
            ValidationError: クライアント採番の未知 ID、または title が空の場合
            DuplicateError: simple モードで既存 ID が指定された場合
        """
        logger.info(f"create({pretty_json(tag)})")
        with self.lock:
            if tag.id:
                return self._share(tag.id)

            if not tag.title:
                raise ValidationError("tag must contain a valid title.")

            stored = Tag(
                id=new_id(),
                title=tag.title,
                description=tag.description,
                counter=1,
                audit=AuditStamp.create(self.principal()),
            )
            self._tags[stored.id] = stored
            self.persist()
            result = stored.copy()
        logger.info(f"create() -> {pretty_json(result)}")
        return result

    def _share(self, tag_id: str) -> Tag:
        existing = self._tags.get(tag_id)
        if existing is None:
            # クライアント側で採番された ID は受け付けない
            raise ValidationError(
                f"tag <{tag_id}> contains an ID generated on the client. This is not allowed."
            )
        if self._mode == MODE_SIMPLE:
            raise DuplicateError(f"tag <{tag_id}> exists already.")

        existing.counter += 1
        existing.audit = self._touched(existing.audit)
        self.persist()
        logger.info(f"create({tag_id}): shared, counter={existing.counter}")
        return existing.copy()

    def read(self, tag_id: str) -> Tag:
        """
        Raises:
            NotFoundError: タグが存在しない場合
        """
        with self.lock:
            result = self.require_live(tag_id).copy()
        logger.info(f"read({tag_id}) -> {pretty_json(result)}")
        return result

    def update(self, tag_id: str, tag: Tag) -> Tag:
        """タグを更新する.

        createdAt / createdBy / counter のクライアント値は警告を出して無視する。
        反映する項目は UPDATABLE_FIELDS（モード別）で決まり、更新スタンプは常に付け直す。

        Raises:
            NotFoundError: タグが存在しない場合
            ValidationError: simple モードで title を空にしようとした場合
        """
        with self.lock:
            stored = self.require_live(tag_id)
            warn_ignored_audit(f"tag <{tag_id}>", stored.audit, tag.audit)
            if tag.counter is not None and tag.counter != stored.counter:
                logger.warning(
                    f"tag <{tag_id}>: ignoring counter value <{tag.counter}> "
                    "because it was set on the client."
                )

            updatable = UPDATABLE_FIELDS[self._mode]
            if "title" in updatable and not tag.title:
                raise ValidationError(f"tag <{tag_id}> must contain a valid title.")
            for name in ("title", "description"):
                value = getattr(tag, name)
                if name in updatable:
                    setattr(stored, name, value)
                elif value is not None and value != getattr(stored, name):
                    logger.warning(
                        f"tag <{tag_id}>: ignoring {name} value <{value}> "
                        f"because it can not be changed in {self._mode} mode."
                    )

            stored.audit = self._touched(stored.audit)
            self.persist()
            result = stored.copy()
        logger.info(f"update({tag_id}) -> {pretty_json(result)}")
        return result

    def delete(self, tag_id: str) -> None:
        """counter を1減らし、0 になったタグ（とローカライズテキスト）を削除する.

        Raises:
            NotFoundError: タグが存在しない場合
            InternalConsistencyError: counter が 1 未満だった場合
        """
        with self.lock:
            stored = self._tags.get(tag_id)
            if stored is None:
                raise NotFoundError(f"tag <{tag_id}> was not found.")

            if stored.counter == 1:
                for hook in self._removal_hooks:
                    hook(stored)
                if self._tags.pop(tag_id, None) is None:
                    raise InternalConsistencyError(
                        f"tag <{tag_id}> can not be removed, because it does not exist in the index"
                    )
                logger.info(f"delete({tag_id}) -> removed")
            elif stored.counter < 1:
                raise InternalConsistencyError(
                    f"tag <{tag_id}> has an invalid counter <{stored.counter}>."
                )
            else:
                stored.counter -= 1
                stored.audit = self._touched(stored.audit)
                logger.info(f"delete({tag_id}) -> counter={stored.counter}")
            self.persist()

    # ------------------------------------------------------------------

    def _touched(self, audit: AuditStamp | None) -> AuditStamp:
        if audit is None:
            return AuditStamp.create(self.principal())
        return audit.touched(self.principal())
