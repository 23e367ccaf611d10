"""ローカライズテキストストア.

各タグが所有するテキスト一覧（Tag.texts）と、テキスト ID → 所有タグ ID のグローバル索引を
TagStore のロック内で同時に更新し、二つのビューのメンバーシップを常に一致させます。

不変条件:
    - テキスト ID は全タグを通じて一意
    - 1タグにつき langCode ごとに最大1件
    - Tag.texts の全要素が索引に存在し、索引の全要素が所有タグの texts に存在する
"""

from __future__ import annotations

from loguru import logger

from .exceptions import DuplicateError, InternalConsistencyError, NotFoundError, ValidationError
from .models import AuditStamp, LocalizedText, Tag, is_single_token, new_id, text_sort_key
from .tag_store import TagStore, pretty_json, select_window, warn_ignored_audit


class LocalizedTextStore:
    """タグ配下のローカライズテキストの CRUD.

    全操作はまず tag_id を TagStore で解決し、タグが無ければ NotFoundError とします。

    Args:
        tags: 所有タグを管理する TagStore（ロックを共有する）

    Raises:
        InternalConsistencyError: 読み込み済みデータに ID / langCode の重複がある場合
    """

    def __init__(self, tags: TagStore) -> None:
        self._tags = tags
        self._index: dict[str, str] = {}
        with tags.lock:
            self._build_index()
            self.check_consistency()
            tags.add_removal_hook(self._drop_texts)
        logger.info(f"{len(self._index)} LocalizedTexts indexed.")

    def _build_index(self) -> None:
        for tag in self._tags.live_tags():
            langs: set[str] = set()
            for text in tag.texts:
                if not text.id:
                    raise InternalConsistencyError(f"tag <{tag.id}> contains a text without an ID.")
                if text.id in self._index:
                    raise InternalConsistencyError(
                        f"localized text <{text.id}> is owned by more than one tag."
                    )
                if text.lang_code in langs:
                    raise InternalConsistencyError(
                        f"tag <{tag.id}> contains more than one text for language <{text.lang_code}>."
                    )
                langs.add(text.lang_code)
                self._index[text.id] = tag.id

    def check_consistency(self) -> None:
        """二重インデックスの整合性を検証する.

        Raises:
            InternalConsistencyError: Tag.texts と索引が一致しない場合
        """
        with self._tags.lock:
            owned = 0
            for tag in self._tags.live_tags():
                for text in tag.texts:
                    owned += 1
                    if self._index.get(text.id) != tag.id:
                        raise InternalConsistencyError(
                            f"localized text <{text.id}> of tag <{tag.id}> is missing from the index."
                        )
            if owned != len(self._index):
                raise InternalConsistencyError(
                    f"index contains {len(self._index)} texts, but tags own {owned}."
                )

    def count(self) -> int:
        with self._tags.lock:
            return len(self._index)

    # ------------------------------------------------------------------

    def list_texts(
        self,
        tag_id: str,
        query_type: str | None = None,
        query: str | None = None,
        position: int = 0,
        size: int | None = None,
    ) -> list[LocalizedText]:
        """タグのテキストを (langCode, id) 順に並べ、``[position, position + size)`` を返す."""
        if size is None:
            size = self._tags.default_page_size
        with self._tags.lock:
            tag = self._tags.require_live(tag_id)
            texts = sorted(tag.texts, key=text_sort_key)
            selection = [t.copy() for t in select_window(texts, position, size)]
        logger.info(
            f"listTexts(<{tag_id}>, <{query}>, <{query_type}>, <{position}>, <{size}>) "
            f"-> {len(selection)} values"
        )
        return selection

    def create_text(self, tag_id: str, text: LocalizedText) -> LocalizedText:
        """
        Raises:
            NotFoundError: タグが存在しない場合
            ValidationError: テキストが1語でない、langCode が無い、またはクライアント採番 ID の場合
            DuplicateError: 同じ langCode が既にある、または ID が既存テキストと衝突する場合
        """
        logger.info(f"createText({tag_id}, {pretty_json(text)})")
        with self._tags.lock:
            tag = self._tags.require_live(tag_id)

            if not is_single_token(text.text):
                raise ValidationError(
                    f"localized text <{text.text}> must contain exactly one word."
                )
            if not text.lang_code:
                raise ValidationError("localized text must contain a valid language code.")
            if tag.find_lang(text.lang_code) is not None:
                raise DuplicateError(
                    f"tag <{tag_id}> contains already a localized text in language <{text.lang_code}>."
                )
            if text.id:
                if text.id in self._index:
                    raise DuplicateError(f"localized text <{text.id}> exists already.")
                raise ValidationError(
                    f"localized text <{text.id}> contains an ID generated on the client. "
                    "This is not allowed."
                )

            stored = LocalizedText(
                id=new_id(),
                lang_code=text.lang_code,
                text=text.text,
                audit=AuditStamp.create(self._tags.principal()),
            )
            tag.texts.append(stored)
            self._index[stored.id] = tag.id
            self._tags.persist()
            result = stored.copy()
        logger.info(f"createText() -> {pretty_json(result)}")
        return result

    def read_text(self, tag_id: str, text_id: str) -> LocalizedText:
        """テキストをグローバル索引から読む（tag_id は存在確認のみ）.

        Raises:
            NotFoundError: タグまたはテキストが存在しない場合
        """
        with self._tags.lock:
            self._tags.require_live(tag_id)
            owner_id = self._index.get(text_id)
            if owner_id is None:
                raise NotFoundError(f"no localized text with ID <{text_id}> was found.")
            result = self._owned_text(owner_id, text_id).copy()
        logger.info(f"readText({tag_id}, {text_id}) -> {pretty_json(result)}")
        return result

    def update_text(self, tag_id: str, text_id: str, text: LocalizedText) -> LocalizedText:
        """テキストを置き換える（langCode は変更不可）.

        Raises:
            NotFoundError: タグまたはテキスト（このタグ所有のもの）が存在しない場合
            ValidationError: langCode を変更しようとした、またはテキストが1語でない場合
        """
        with self._tags.lock:
            self._tags.require_live(tag_id)
            stored = self._owned_text(self._require_owner(tag_id, text_id), text_id)

            label = f"localized text <{tag_id}/{text_id}>"
            warn_ignored_audit(label, stored.audit, text.audit)
            if text.lang_code is not None and text.lang_code != stored.lang_code:
                raise ValidationError(
                    f"{label}: it is not allowed to change the language code "
                    f"<{stored.lang_code}> to <{text.lang_code}>."
                )
            if not is_single_token(text.text):
                raise ValidationError(
                    f"{label}: <{text.text}> must contain exactly one word."
                )

            stored.text = text.text
            stored.audit = (
                stored.audit.touched(self._tags.principal())
                if stored.audit
                else AuditStamp.create(self._tags.principal())
            )
            self._tags.persist()
            result = stored.copy()
        logger.info(f"updateText({tag_id}, {text_id}) -> {pretty_json(result)}")
        return result

    def delete_text(self, tag_id: str, text_id: str) -> None:
        """テキストを所有タグと索引の両方から削除する.

        削除は tag_id が所有するテキストに限定する。別のタグが所有するテキストは
        orphan ではなく NotFoundError として扱う。

        Raises:
            NotFoundError: タグまたはテキストが存在しない場合
            InternalConsistencyError: テキストが所有タグまたは索引の片方にしか無い場合
        """
        with self._tags.lock:
            tag = self._tags.require_live(tag_id)
            self._require_owner(tag_id, text_id)

            position = next(
                (i for i, t in enumerate(tag.texts) if t.id == text_id), None
            )
            if position is None:
                raise InternalConsistencyError(
                    f"localized text <{text_id}> can not be removed, because it is an orphan."
                )

            del tag.texts[position]
            self._index.pop(text_id)
            self._tags.persist()
        logger.info(f"deleteText({tag_id}, {text_id})")

    # ------------------------------------------------------------------

    def _require_owner(self, tag_id: str, text_id: str) -> str:
        owner_id = self._index.get(text_id)
        if owner_id is None or owner_id != tag_id:
            raise NotFoundError(
                f"no localized text with ID <{text_id}> was found in tag <{tag_id}>."
            )
        return owner_id

    def _owned_text(self, owner_id: str, text_id: str) -> LocalizedText:
        try:
            owner = self._tags.require_live(owner_id)
        except NotFoundError as e:
            raise InternalConsistencyError(
                f"localized text <{text_id}> refers to a missing tag <{owner_id}>."
            ) from e
        text = owner.find_text(text_id)
        if text is None:
            raise InternalConsistencyError(
                f"localized text <{text_id}> is indexed but not owned by tag <{owner_id}>."
            )
        return text

    def _drop_texts(self, tag: Tag) -> None:
        """削除されるタグのテキストを索引から外す（カスケード削除）."""
        missing = [t.id for t in tag.texts if self._index.get(t.id) != tag.id]
        if missing:
            raise InternalConsistencyError(
                f"tag <{tag.id}> owns texts {missing} that are missing from the index."
            )
        for text in tag.texts:
            del self._index[text.id]
        if tag.texts:
            logger.info(f"delete({tag.id}): removed {len(tag.texts)} localized texts")
