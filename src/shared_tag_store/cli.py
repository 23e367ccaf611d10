"""タグストア CLI.

JSON データファイルに対してタグ / ローカライズテキストの操作を1件ずつ実行し、
結果を JSON で標準出力へ書き出す。

終了コード:
    0: 成功
    1: 呼び出し側の誤り（NotFound / Validation / Duplicate）
    2: ストア内部のエラー（InternalConsistency / Persistence / 設定・データファイルの読み込み失敗）
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from loguru import logger

from .config import VALID_LOG_LEVELS, VALID_MODES, StoreConfig, load_config
from .core.exceptions import TagStoreError, is_client_error
from .core.models import LocalizedText, Tag
from .store import TagService, open_store
from .tools.report_tags import export_tag_reports

EXIT_OK = 0
EXIT_CLIENT_ERROR = 1
EXIT_INTERNAL_ERROR = 2


def configure_logging(level: str) -> None:
    """loguru の出力先を stderr（指定レベル以上）に切り替える."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def _emit(value: Any) -> None:
    if isinstance(value, list):
        payload: Any = [v.to_record() for v in value]
    elif value is None:
        return
    else:
        payload = value.to_record()
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _add_window_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--query-type", default=None, help="Pass-through query type")
    parser.add_argument("--query", default=None, help="Pass-through query")
    parser.add_argument("--position", type=int, default=0, help="First index of the window")
    parser.add_argument("--size", type=int, default=None, help="Window size")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shared-tag-store", description="Manage shared tags and their localized texts"
    )
    parser.add_argument("--config", type=Path, default=None, help="JSON config file")
    parser.add_argument("--data", type=Path, default=None, help="JSON data file (overrides config)")
    parser.add_argument(
        "--transient",
        action="store_true",
        help="Do not write changes back to the data file",
    )
    parser.add_argument("--mode", choices=VALID_MODES, default=None, help="Duplicate-id policy")
    parser.add_argument("--principal", default=None, help="Principal stamped into audit fields")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=VALID_LOG_LEVELS,
        default=None,
        help="Log level (default: from config, INFO)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List tags")
    _add_window_args(p)

    p = sub.add_parser("create", help="Create a tag, or share an existing one with --id")
    p.add_argument("--title", default=None)
    p.add_argument("--description", default=None)
    p.add_argument("--id", default=None, help="Existing tag ID to share")

    p = sub.add_parser("read", help="Read a tag")
    p.add_argument("tag_id")

    p = sub.add_parser("update", help="Update a tag")
    p.add_argument("tag_id")
    p.add_argument("--title", default=None)
    p.add_argument("--description", default=None)

    p = sub.add_parser("delete", help="Release one share of a tag")
    p.add_argument("tag_id")

    p = sub.add_parser("text-list", help="List localized texts of a tag")
    p.add_argument("tag_id")
    _add_window_args(p)

    p = sub.add_parser("text-create", help="Add a localized text to a tag")
    p.add_argument("tag_id")
    p.add_argument("--lang", required=True, help="Language code")
    p.add_argument("--text", required=True, help="Single-word text")

    p = sub.add_parser("text-read", help="Read a localized text")
    p.add_argument("tag_id")
    p.add_argument("text_id")

    p = sub.add_parser("text-update", help="Replace a localized text")
    p.add_argument("tag_id")
    p.add_argument("text_id")
    p.add_argument("--text", required=True, help="Single-word text")
    p.add_argument("--lang", default=None, help="Language code (can not be changed)")

    p = sub.add_parser("text-delete", help="Remove a localized text")
    p.add_argument("tag_id")
    p.add_argument("text_id")

    p = sub.add_parser("report", help="Export tags and localized texts as CSV")
    p.add_argument("--out-dir", type=Path, required=True, help="Report output directory")

    return parser


def resolve_config(args: argparse.Namespace) -> StoreConfig:
    """設定ファイル（任意）を読み込み、CLI 引数で上書きする."""
    config = load_config(args.config) if args.config is not None else StoreConfig()
    return config.with_overrides(
        data_path=args.data,
        persistent=False if args.transient else None,
        mode=args.mode,
        principal=args.principal,
        log_level=args.log_level,
    )


def dispatch(service: TagService, args: argparse.Namespace) -> Any:
    tags, texts = service.tags, service.texts
    command = args.command

    if command == "list":
        return tags.list(args.query_type, args.query, args.position, args.size)
    if command == "create":
        return tags.create(Tag(id=args.id, title=args.title, description=args.description))
    if command == "read":
        return tags.read(args.tag_id)
    if command == "update":
        return tags.update(args.tag_id, Tag(title=args.title, description=args.description))
    if command == "delete":
        tags.delete(args.tag_id)
        return None
    if command == "text-list":
        return texts.list_texts(args.tag_id, args.query_type, args.query, args.position, args.size)
    if command == "text-create":
        return texts.create_text(args.tag_id, LocalizedText(lang_code=args.lang, text=args.text))
    if command == "text-read":
        return texts.read_text(args.tag_id, args.text_id)
    if command == "text-update":
        return texts.update_text(
            args.tag_id, args.text_id, LocalizedText(lang_code=args.lang, text=args.text)
        )
    if command == "text-delete":
        texts.delete_text(args.tag_id, args.text_id)
        return None
    if command == "report":
        paths = export_tag_reports(tags.list(size=tags.count()), args.out_dir)
        for name, path in paths.items():
            print(f"{name}\t{path if path is not None else '-'}")
        return None

    raise ValueError(f"Unknown command: {command}")


def run(argv: Sequence[str] | None = None) -> int:
    """CLI を実行して終了コードを返す."""
    args = build_parser().parse_args(argv)

    try:
        config = resolve_config(args)
        configure_logging(config.log_level)
        service = open_store(config)
        _emit(dispatch(service, args))
    except TagStoreError as e:
        print(f"error: {e.message}", file=sys.stderr)
        if is_client_error(e):
            return EXIT_CLIENT_ERROR
        logger.error(f"{type(e).__name__}: {e.message}")
        return EXIT_INTERNAL_ERROR
    except (OSError, ValueError) as e:
        # 設定ファイル・データファイルの読み込み失敗
        logger.error(f"{type(e).__name__}: {e}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR
    return EXIT_OK


def main() -> None:
    """CLI エントリポイント."""
    sys.exit(run())


if __name__ == "__main__":
    main()
