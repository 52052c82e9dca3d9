"""コールバックの重複抑止"""

from __future__ import annotations

import json
import threading
from typing import Any


def serialize_value(value: Any) -> str:
    """重複判定用に値を正規化した文字列へ変換する。

    キーの型が混在する辞書など JSON として整列できない値は repr で代用する。
    """
    try:
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=repr)
    except (TypeError, ValueError):
        return repr(value)


class CallbackDeduplicator:
    """使用コールバックとトラッキングコールバックの発火済みキーを保持する。

    テーブルはコンテキストの生存期間中保持され、属性やフィーチャーの更新ではクリアされない。
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._usage: set[tuple[str, str]] = set()
        self._tracking: set[tuple[str, int]] = set()

    def should_fire_usage(self, feature_key: str, value: Any) -> bool:
        """(feature_key, value) の組が初出なら記録して True を返す。"""
        entry = (feature_key, serialize_value(value))
        with self._lock:
            if entry in self._usage:
                return False
            self._usage.add(entry)
            return True

    def should_fire_tracking(self, experiment_key: str, variation_id: int) -> bool:
        """(experiment_key, variation_id) の組が初出なら記録して True を返す。"""
        entry = (experiment_key, variation_id)
        with self._lock:
            if entry in self._tracking:
                return False
            self._tracking.add(entry)
            return True
