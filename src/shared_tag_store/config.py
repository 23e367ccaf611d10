"""タグストア設定.

JSON 形式の設定ファイルを読み込み、CLI 引数で上書きできる設定オブジェクトを提供します。

使用例:
    >>> config = load_config(Path("tag_store.json")).with_overrides(principal="alice")
    >>> store = open_store(config)

JSON形式:
    {
        "data_path": "data/tags.json",
        "persistent": true,
        "mode": "shared",
        "principal": "anonymous",
        "default_page_size": 20,
        "log_level": "INFO"
    }
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

from loguru import logger

# create() に既存 ID が渡された時の扱い
MODE_SHARED = "shared"  # counter を加算して共有
MODE_SIMPLE = "simple"  # DuplicateError で拒否
VALID_MODES = (MODE_SHARED, MODE_SIMPLE)

VALID_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class StoreConfig:
    """タグストア設定.

    Attributes:
        data_path: JSON データファイルのパス
        persistent: 変更のたびにデータファイルへ書き出すかどうか
        mode: 既存 ID の create の扱い（"shared" / "simple"）
        principal: 監査項目に記録する実行者（呼び出し側が指定しない場合）
        default_page_size: list の size 省略時の件数
        log_level: CLI のログレベル
    """

    data_path: Path = Path("tags.json")
    persistent: bool = True
    mode: str = MODE_SHARED
    principal: str = "anonymous"
    default_page_size: int = 20
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        object.__setattr__(self, "data_path", Path(self.data_path))
        self._validate()

    def _validate(self) -> None:
        """設定値の妥当性を検証.

        Raises:
            ValueError: 無効な値が含まれている場合
        """
        if self.mode not in VALID_MODES:
            msg = f"Invalid mode '{self.mode}'. Valid modes: {VALID_MODES}"
            raise ValueError(msg)
        if not isinstance(self.persistent, bool):
            msg = f"Invalid persistent value '{self.persistent}': expected bool"
            raise ValueError(msg)
        if not isinstance(self.principal, str) or not self.principal.strip():
            msg = f"Invalid principal '{self.principal}': expected non-empty string"
            raise ValueError(msg)
        if (
            not isinstance(self.default_page_size, int)
            or isinstance(self.default_page_size, bool)
            or self.default_page_size < 1
        ):
            msg = f"Invalid default_page_size '{self.default_page_size}': expected int >= 1"
            raise ValueError(msg)
        if str(self.log_level).upper() not in VALID_LOG_LEVELS:
            msg = f"Invalid log_level '{self.log_level}'. Valid levels: {VALID_LOG_LEVELS}"
            raise ValueError(msg)

    def with_overrides(self, **overrides: Any) -> StoreConfig:
        """None 以外の値だけを上書きした設定を返す（CLI 引数用）."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["data_path"] = self.data_path.as_posix()
        return data


def load_config(config_path: Path | str) -> StoreConfig:
    """JSONファイルから設定を読み込む.

    Args:
        config_path: 設定JSONファイルのパス

    Returns:
        設定オブジェクト

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: JSON形式が不正、未知のキー、または無効な値が含まれている場合
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON in config file: {config_path}"
        raise ValueError(msg) from e

    if not isinstance(data, dict):
        msg = f"Config file must contain a JSON object, got {type(data)}"
        raise ValueError(msg)

    known = {f.name for f in fields(StoreConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        msg = f"Unknown config keys {unknown}. Valid keys: {sorted(known)}"
        raise ValueError(msg)

    # 相対パスは設定ファイルの位置を基準にする
    if "data_path" in data:
        data_path = Path(data["data_path"])
        if not data_path.is_absolute():
            data_path = config_path.parent / data_path
        data["data_path"] = data_path

    config = StoreConfig(**data)
    logger.info(f"Loaded store config from {config_path} (mode={config.mode})")
    return config
