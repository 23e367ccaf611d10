"""タグ一覧レポートの出力.

ストアの現在の内容（タグ / ローカライズテキスト）を CSV として出力します。
"""

from __future__ import annotations

import argparse
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

import polars as pl
from loguru import logger

from ..backends.json_backend import JsonFileBackend
from ..core.models import Tag, tag_sort_key, text_sort_key

TAG_SCHEMA = {
    "id": pl.Utf8,
    "title": pl.Utf8,
    "description": pl.Utf8,
    "counter": pl.Int64,
    "text_count": pl.Int64,
    "languages": pl.Utf8,
    "created_at": pl.Utf8,
    "created_by": pl.Utf8,
    "modified_at": pl.Utf8,
    "modified_by": pl.Utf8,
}

TEXT_SCHEMA = {
    "tag_id": pl.Utf8,
    "text_id": pl.Utf8,
    "lang_code": pl.Utf8,
    "text": pl.Utf8,
    "modified_at": pl.Utf8,
    "modified_by": pl.Utf8,
}


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def tags_frame(tags: Iterable[Tag]) -> pl.DataFrame:
    """タグ1件1行の DataFrame を作る（title → id 順）."""
    rows = [
        {
            "id": tag.id,
            "title": tag.title,
            "description": tag.description,
            "counter": tag.counter,
            "text_count": len(tag.texts),
            "languages": ",".join(sorted(t.lang_code or "" for t in tag.texts)),
            "created_at": _iso(tag.created_at),
            "created_by": tag.created_by,
            "modified_at": _iso(tag.modified_at),
            "modified_by": tag.modified_by,
        }
        for tag in sorted(tags, key=tag_sort_key)
    ]
    return pl.DataFrame(rows, schema=TAG_SCHEMA)


def texts_frame(tags: Iterable[Tag]) -> pl.DataFrame:
    """ローカライズテキスト1件1行の DataFrame を作る."""
    rows = [
        {
            "tag_id": tag.id,
            "text_id": text.id,
            "lang_code": text.lang_code,
            "text": text.text,
            "modified_at": _iso(text.modified_at),
            "modified_by": text.modified_by,
        }
        for tag in sorted(tags, key=tag_sort_key)
        for text in sorted(tag.texts, key=text_sort_key)
    ]
    return pl.DataFrame(rows, schema=TEXT_SCHEMA)


def export_tag_reports(
    tags: Iterable[Tag],
    output_dir: Path | str,
) -> dict[str, Path | None]:
    """タグレポートをCSVファイルとして出力する.

    Args:
        tags: 出力対象のタグ（texts を含む）
        output_dir: 出力ディレクトリ

    Returns:
        出力したCSVのパス（行が無ければ None）
        - "tags": tags.csv
        - "localized_texts": localized_texts.csv
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    tags = list(tags)

    result_paths: dict[str, Path | None] = {}

    # タグ一覧
    tags_df = tags_frame(tags)
    tags_path = output_dir / "tags.csv"
    if len(tags_df) > 0:
        tags_df.write_csv(tags_path)
        result_paths["tags"] = tags_path
    else:
        result_paths["tags"] = None

    # ローカライズテキスト一覧
    texts_df = texts_frame(tags)
    texts_path = output_dir / "localized_texts.csv"
    if len(texts_df) > 0:
        texts_df.write_csv(texts_path)
        result_paths["localized_texts"] = texts_path
    else:
        result_paths["localized_texts"] = None

    logger.info(f"Tag report: {len(tags_df)} tags, {len(texts_df)} localized texts -> {output_dir}")
    return result_paths


def main() -> None:
    parser = argparse.ArgumentParser(description="Export tag/localized-text CSV reports")
    parser.add_argument("--data", type=Path, required=True, help="JSON data file")
    parser.add_argument("--out-dir", type=Path, required=True, help="Report output directory")
    args = parser.parse_args()

    tags = JsonFileBackend(args.data).import_all()
    paths = export_tag_reports(tags, args.out_dir)
    for name, path in paths.items():
        print(f"{name}\t{path if path is not None else '-'}")


if __name__ == "__main__":
    main()
