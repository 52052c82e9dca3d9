"""バインディング層向けの評価プロトコル"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from .models import ExperimentResult, FeatureResult


@runtime_checkable
class FeatureEvaluator(Protocol):
    """UI フックなどのバインディング層が依存するフィーチャー評価プロトコル。"""

    def set_features(self, features: Mapping[str, Any]) -> None: ...

    def set_attributes(self, attributes: Mapping[str, Any]) -> None: ...

    def evaluate_feature(self, key: str) -> FeatureResult: ...

    def run_experiment(
        self, experiment_key: str, variations: Sequence[Any], options: Any = None
    ) -> ExperimentResult: ...
