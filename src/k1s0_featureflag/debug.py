"""開発ツール向けの評価履歴"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .models import FeatureMap, FeatureResult


@dataclass(frozen=True)
class EvaluationRecord:
    """1 回のフィーチャー評価の記録。"""

    key: str
    result: FeatureResult
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class DebugSnapshot:
    """現在のフィーチャー・属性と直近の評価履歴。"""

    features: FeatureMap
    attributes: Mapping[str, Any]
    evaluations: tuple[EvaluationRecord, ...]


class EvaluationLog:
    """直近 max_size 件の評価を保持するリングバッファ。max_size=0 で記録しない。"""

    def __init__(self, max_size: int = 50) -> None:
        if max_size < 0:
            raise ValueError("max_size must be >= 0")
        self._lock = threading.Lock()
        self._records: deque[EvaluationRecord] = deque(maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._records.maxlen or 0

    def record(self, key: str, result: FeatureResult) -> EvaluationRecord:
        entry = EvaluationRecord(key=key, result=result)
        if self.max_size:
            with self._lock:
                self._records.append(entry)
        return entry

    def recent(self) -> tuple[EvaluationRecord, ...]:
        """古い順に記録を返す。"""
        with self._lock:
            return tuple(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
