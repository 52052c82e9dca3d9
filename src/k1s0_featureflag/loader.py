"""ローカルファイルからの設定ペイロード読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .decoder import decode
from .exceptions import ConfigDecodeError, FeatureFlagErrorCodes
from .models import FeatureMap


def _read_yaml(path: Path) -> Any:
    """YAML (JSON を含む) ファイルを読み込む。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigDecodeError(
            code=FeatureFlagErrorCodes.READ_FILE,
            message=f"Failed to read payload file: {path}",
            cause=e,
        ) from e
    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigDecodeError(
            code=FeatureFlagErrorCodes.PARSE_YAML,
            message=f"Failed to parse payload file: {path}",
            cause=e,
        ) from e


def load_payload(path: Path | str, key: bytes | str | None = None) -> FeatureMap:
    """ペイロードファイルを読み込んでフィーチャーマップを返す。

    path: YAML または JSON のペイロードファイル
    key: 暗号化ペイロードの場合の AES 鍵
    """
    return decode(_read_yaml(Path(path)), key)
