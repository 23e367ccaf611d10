"""Unit tests for LocalizedTextStore."""

from datetime import UTC, datetime

import pytest

from shared_tag_store.backends.memory_backend import MemoryBackend
from shared_tag_store.core.exceptions import (
    DuplicateError,
    InternalConsistencyError,
    NotFoundError,
    ValidationError,
)
from shared_tag_store.core.models import AuditStamp, LocalizedText, Tag
from shared_tag_store.core.tag_store import TagStore
from shared_tag_store.core.text_store import LocalizedTextStore


@pytest.fixture
def tag_id(service) -> str:
    return service.tags.create(Tag(title="color")).id


class TestCreateText:
    """create_text() のテスト."""

    def test_create_distinct_languages(self, service, tag_id) -> None:
        """異なる langCode は同じタグに追加できること."""
        en = service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        de = service.texts.create_text(tag_id, LocalizedText(lang_code="de", text="rot"))

        assert en.id and de.id and en.id != de.id
        assert en.created_by == "alice"
        assert [t.lang_code for t in service.tags.read(tag_id).texts] == ["en", "de"]
        assert service.texts.count() == 2

    def test_duplicate_language(self, service, tag_id, backend) -> None:
        """同じ langCode の2件目は DuplicateError."""
        service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        exports = backend.export_count

        with pytest.raises(DuplicateError, match="language <en>"):
            service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="blue"))

        assert backend.export_count == exports
        assert len(service.texts.list_texts(tag_id)) == 1

    def test_same_language_on_other_tag(self, service, tag_id) -> None:
        other = service.tags.create(Tag(title="size")).id
        service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        service.texts.create_text(other, LocalizedText(lang_code="en", text="big"))

        assert service.texts.count() == 2

    @pytest.mark.parametrize("text", ["dark red", "", "   ", None, "a\tb"])
    def test_text_must_be_single_word(self, service, tag_id, text) -> None:
        """1語でないテキストは ValidationError."""
        with pytest.raises(ValidationError, match="exactly one word"):
            service.texts.create_text(tag_id, LocalizedText(lang_code="en", text=text))

    @pytest.mark.parametrize("lang_code", [None, ""])
    def test_language_code_required(self, service, tag_id, lang_code) -> None:
        with pytest.raises(ValidationError, match="language code"):
            service.texts.create_text(tag_id, LocalizedText(lang_code=lang_code, text="red"))

    def test_client_id_rejected(self, service, tag_id) -> None:
        """未知のクライアント採番 ID は ValidationError、既存 ID なら DuplicateError."""
        existing = service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))

        with pytest.raises(ValidationError, match="generated on the client"):
            service.texts.create_text(
                tag_id, LocalizedText(id="client-id", lang_code="de", text="rot")
            )
        with pytest.raises(DuplicateError, match="exists already"):
            service.texts.create_text(
                tag_id, LocalizedText(id=existing.id, lang_code="de", text="rot")
            )

    def test_tag_checked_first(self, service) -> None:
        """タグが無ければテキストの検証より先に NotFoundError."""
        with pytest.raises(NotFoundError):
            service.texts.create_text("missing", LocalizedText(lang_code=None, text="two words"))


class TestReadUpdateText:
    """read_text() / update_text() のテスト."""

    def test_update_text_visible_on_read(self, service, tag_id, principal) -> None:
        created = service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        principal["name"] = "bob"

        updated = service.texts.update_text(tag_id, created.id, LocalizedText(text="crimson"))

        assert updated.text == "crimson"
        assert updated.lang_code == "en"
        assert updated.created_by == "alice"
        assert updated.modified_by == "bob"
        assert service.texts.read_text(tag_id, created.id).text == "crimson"

    def test_update_with_same_language(self, service, tag_id) -> None:
        created = service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        updated = service.texts.update_text(
            tag_id, created.id, LocalizedText(lang_code="en", text="scarlet")
        )
        assert updated.text == "scarlet"

    def test_language_code_is_immutable(self, service, tag_id, backend) -> None:
        """langCode の変更は ValidationError."""
        created = service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        exports = backend.export_count

        with pytest.raises(ValidationError, match="language code"):
            service.texts.update_text(
                tag_id, created.id, LocalizedText(lang_code="de", text="rot")
            )

        assert service.texts.read_text(tag_id, created.id).text == "red"
        assert backend.export_count == exports

    def test_update_rejects_multi_word(self, service, tag_id) -> None:
        created = service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        with pytest.raises(ValidationError):
            service.texts.update_text(tag_id, created.id, LocalizedText(text="dark red"))

    def test_update_ignores_client_audit(self, service, tag_id, log_messages) -> None:
        created = service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        forged = AuditStamp.create("mallory", datetime(2000, 1, 1, tzinfo=UTC))

        updated = service.texts.update_text(
            tag_id, created.id, LocalizedText(text="crimson", audit=forged)
        )

        assert updated.created_at == created.created_at
        assert updated.created_by == "alice"
        assert any("ignoring createdAt" in m for m in log_messages)

    def test_update_missing_text(self, service, tag_id) -> None:
        with pytest.raises(NotFoundError):
            service.texts.update_text(tag_id, "missing", LocalizedText(text="red"))

    def test_read_missing(self, service, tag_id) -> None:
        with pytest.raises(NotFoundError):
            service.texts.read_text(tag_id, "missing")
        with pytest.raises(NotFoundError):
            service.texts.read_text("missing", "missing")

    def test_read_uses_global_index(self, service, tag_id) -> None:
        """read_text はタグに限定せず索引から引けること（タグの存在確認のみ）."""
        other = service.tags.create(Tag(title="size")).id
        created = service.texts.create_text(other, LocalizedText(lang_code="en", text="big"))

        assert service.texts.read_text(tag_id, created.id).text == "big"

    def test_update_and_delete_are_scoped_to_owner(self, service, tag_id) -> None:
        """update/delete は所有タグ以外からは NotFoundError."""
        other = service.tags.create(Tag(title="size")).id
        created = service.texts.create_text(other, LocalizedText(lang_code="en", text="big"))

        with pytest.raises(NotFoundError):
            service.texts.update_text(tag_id, created.id, LocalizedText(text="huge"))
        with pytest.raises(NotFoundError):
            service.texts.delete_text(tag_id, created.id)
        assert service.texts.read_text(other, created.id).text == "big"


class TestListTexts:
    def test_sorted_by_language_and_windowed(self, service, tag_id) -> None:
        for lang, text in [("fr", "rouge"), ("de", "rot"), ("en", "red"), ("ja", "赤")]:
            service.texts.create_text(tag_id, LocalizedText(lang_code=lang, text=text))

        texts = service.texts.list_texts(tag_id)

        assert [t.lang_code for t in texts] == ["de", "en", "fr", "ja"]
        assert [t.lang_code for t in service.texts.list_texts(tag_id, position=1, size=2)] == [
            "en",
            "fr",
        ]
        assert service.texts.list_texts(tag_id, position=10, size=5) == []

    def test_missing_tag(self, service) -> None:
        with pytest.raises(NotFoundError):
            service.texts.list_texts("missing")


class TestDeleteText:
    """delete_text() のテスト."""

    def test_delete_removes_both_views(self, service, tag_id) -> None:
        created = service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        kept = service.texts.create_text(tag_id, LocalizedText(lang_code="de", text="rot"))

        service.texts.delete_text(tag_id, created.id)

        with pytest.raises(NotFoundError):
            service.texts.read_text(tag_id, created.id)
        assert [t.id for t in service.texts.list_texts(tag_id)] == [kept.id]
        assert service.texts.count() == 1
        service.texts.check_consistency()

    def test_delete_missing(self, service, tag_id) -> None:
        with pytest.raises(NotFoundError):
            service.texts.delete_text(tag_id, "missing")
        with pytest.raises(NotFoundError):
            service.texts.delete_text("missing", "missing")

    def test_orphan_detected(self, backend) -> None:
        """索引にあるのに所有タグに無いテキストは InternalConsistencyError（状態は変えない）."""
        tags = TagStore(backend)
        texts = LocalizedTextStore(tags)
        tag_id = tags.create(Tag(title="color")).id
        created = texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        tags.require_live(tag_id).texts.clear()

        with pytest.raises(InternalConsistencyError, match="orphan"):
            texts.delete_text(tag_id, created.id)
        assert texts.count() == 1
        with pytest.raises(InternalConsistencyError):
            texts.check_consistency()


class TestTagCascade:
    """タグ削除時のカスケードのテスト."""

    def test_concrete_scenario(self, service) -> None:
        """共有・テキスト作成・削除の一連のシナリオ."""
        tag_id = service.tags.create(Tag(title="color")).id
        assert service.tags.create(Tag(id=tag_id)).counter == 2
        t1 = service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="red"))
        with pytest.raises(DuplicateError):
            service.texts.create_text(tag_id, LocalizedText(lang_code="en", text="blue"))

        service.tags.delete(tag_id)
        assert service.tags.read(tag_id).counter == 1
        assert service.texts.read_text(tag_id, t1.id).text == "red"

        service.tags.delete(tag_id)
        with pytest.raises(NotFoundError):
            service.texts.read_text(tag_id, t1.id)

    def test_cascade_removes_index_entries(self, service) -> None:
        """タグ削除後、別タグ経由でもテキストは読めないこと."""
        doomed = service.tags.create(Tag(title="color")).id
        survivor = service.tags.create(Tag(title="size")).id
        t1 = service.texts.create_text(doomed, LocalizedText(lang_code="en", text="red"))

        service.tags.delete(doomed)

        with pytest.raises(NotFoundError):
            service.texts.read_text(survivor, t1.id)
        assert service.texts.count() == 0
        service.texts.check_consistency()


class TestImportIndex:
    """読み込み時の索引再構築のテスト."""

    def _seed(self, *tags: Tag) -> TagStore:
        return TagStore(MemoryBackend(tags))

    def test_rebuilds_index(self) -> None:
        tag = Tag(
            id="t1",
            title="color",
            texts=[LocalizedText(id="x1", lang_code="en", text="red")],
        )
        texts = LocalizedTextStore(self._seed(tag))

        assert texts.count() == 1
        assert texts.read_text("t1", "x1").text == "red"

    def test_duplicate_text_id_across_tags(self) -> None:
        a = Tag(id="a", title="a", texts=[LocalizedText(id="x1", lang_code="en", text="x")])
        b = Tag(id="b", title="b", texts=[LocalizedText(id="x1", lang_code="de", text="y")])

        with pytest.raises(InternalConsistencyError, match="more than one tag"):
            LocalizedTextStore(self._seed(a, b))

    def test_duplicate_language_in_tag(self) -> None:
        tag = Tag(
            id="a",
            title="a",
            texts=[
                LocalizedText(id="x1", lang_code="en", text="x"),
                LocalizedText(id="x2", lang_code="en", text="y"),
            ],
        )
        with pytest.raises(InternalConsistencyError, match="more than one text"):
            LocalizedTextStore(self._seed(tag))
