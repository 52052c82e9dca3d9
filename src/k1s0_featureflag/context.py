"""EvaluationContext 実装"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .assigner import assign
from .debug import DebugSnapshot, EvaluationLog, EvaluationRecord
from .decoder import RawPayload, decode, decode_features
from .dedup import CallbackDeduplicator
from .models import (
    Experiment,
    ExperimentResult,
    FeatureMap,
    FeatureResult,
    Namespace,
)
from .resolver import evaluate

logger = logging.getLogger(__name__)

ExperimentViewedCallback = Callable[[Experiment, ExperimentResult], None]
FeatureUsageCallback = Callable[[str, FeatureResult], None]
EvaluationObserver = Callable[[EvaluationRecord], None]


@dataclass
class EvaluationOptions:
    """EvaluationContext の設定。

    on_experiment_viewed(experiment, result):
        実験とバリエーションの組ごとに初回のみ呼ばれる。
    on_feature_usage(key, result):
        フィーチャーキーと値の組ごとに初回のみ呼ばれる。
    on_evaluation(record):
        全ての評価後に呼ばれる開発ツール向けのフック。
    """

    features: Mapping[str, Any] | None = None
    attributes: Mapping[str, Any] | None = None
    on_experiment_viewed: ExperimentViewedCallback | None = None
    on_feature_usage: FeatureUsageCallback | None = None
    on_evaluation: EvaluationObserver | None = None
    enabled: bool = True
    forced_variations: dict[str, int] = field(default_factory=dict)
    debug_history_size: int = 50


@dataclass
class ExperimentOptions:
    """run_experiment のオプション。"""

    weights: Sequence[float] | None = None
    coverage: float = 1.0
    hash_attribute: str = "id"
    namespace: Namespace | Sequence[Any] | Mapping[str, Any] | None = None
    condition: dict[str, Any] | None = None
    active: bool = True
    force: int | None = None


class EvaluationContext:
    """フィーチャー評価のファサード。

    フィーチャーマップと属性は不変のスナップショットとして保持し、更新時は参照ごと差し替える。
    評価は開始時に両方の参照を取得するため、更新途中の状態を観測することはない。
    """

    def __init__(self, options: EvaluationOptions | None = None) -> None:
        options = options or EvaluationOptions()
        self._features: FeatureMap = MappingProxyType({})
        self._attributes: Mapping[str, Any] = MappingProxyType({})
        self._forced_variations: Mapping[str, int] = MappingProxyType(
            dict(options.forced_variations)
        )
        self.enabled = options.enabled
        self.on_experiment_viewed = options.on_experiment_viewed
        self.on_feature_usage = options.on_feature_usage
        self.on_evaluation = options.on_evaluation
        self._dedup = CallbackDeduplicator()
        self._history = EvaluationLog(options.debug_history_size)

        if options.features is not None:
            self.set_features(options.features)
        if options.attributes is not None:
            self.set_attributes(options.attributes)

    @property
    def features(self) -> FeatureMap:
        return self._features

    @property
    def attributes(self) -> Mapping[str, Any]:
        return self._attributes

    def set_features(self, features: Mapping[str, Any]) -> None:
        """フィーチャーマップを丸ごと置き換える。

        Raises:
            ConfigDecodeError: 検証に失敗した場合。現在のマップは維持される。
        """
        self._features = decode_features(features)
        logger.info("Features updated", extra={"feature_count": len(self._features)})

    def set_payload(self, raw_payload: RawPayload, key: bytes | str | None = None) -> None:
        """設定ペイロード (暗号化形式を含む) をデコードしてフィーチャーマップを置き換える。

        Raises:
            ConfigDecodeError: デコードに失敗した場合。現在のマップは維持される。
        """
        self._features = decode(raw_payload, key)
        logger.info("Features updated", extra={"feature_count": len(self._features)})

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        """属性を丸ごと置き換える (マージしない)。"""
        self._attributes = MappingProxyType(copy.deepcopy(dict(attributes)))

    def set_forced_variations(self, forced_variations: Mapping[str, int]) -> None:
        """QA 用の強制割り当てを丸ごと置き換える。"""
        self._forced_variations = MappingProxyType(dict(forced_variations))

    def evaluate_feature(self, key: str) -> FeatureResult:
        """フィーチャーを評価する。データ起因で例外を送出することはない。"""
        features = self._features
        attributes = self._attributes
        result = evaluate(
            key,
            features,
            attributes,
            enabled=self.enabled,
            forced_variations=self._forced_variations,
            on_experiment=self._track,
        )
        self._fire_usage(key, result)
        record = self._history.record(key, result)
        if self.on_evaluation is not None:
            self._invoke("on_evaluation", key, self.on_evaluation, record)
        return result

    def is_on(self, key: str) -> bool:
        return self.evaluate_feature(key).on

    def is_off(self, key: str) -> bool:
        return self.evaluate_feature(key).off

    def get_feature_value(self, key: str, fallback: Any) -> Any:
        """フィーチャー値を返す。値が None の場合は fallback。"""
        value = self.evaluate_feature(key).value
        return fallback if value is None else value

    def run_experiment(
        self,
        experiment_key: str,
        variations: Sequence[Any],
        options: ExperimentOptions | None = None,
    ) -> ExperimentResult:
        """フィーチャーに紐付かないアドホック実験を実行する。"""
        options = options or ExperimentOptions()
        experiment = Experiment(
            key=experiment_key,
            variations=tuple(variations),
            weights=options.weights,
            coverage=options.coverage,
            hash_attribute=options.hash_attribute,
            namespace=options.namespace,
            condition=options.condition,
            active=options.active,
            force=options.force,
        )
        result = assign(
            experiment,
            self._attributes,
            enabled=self.enabled,
            forced_variations=self._forced_variations,
        )
        if result.in_experiment:
            self._track(experiment, result)
        return result

    def debug_snapshot(self) -> DebugSnapshot:
        """開発ツール向けに現在の状態と直近の評価履歴を返す。"""
        return DebugSnapshot(
            features=self._features,
            attributes=self._attributes,
            evaluations=self._history.recent(),
        )

    def _track(self, experiment: Experiment, result: ExperimentResult) -> None:
        # 強制割り当ては計測対象外
        if result.forced or self.on_experiment_viewed is None:
            return
        if not self._dedup.should_fire_tracking(experiment.key, result.variation_id):
            return
        self._invoke(
            "on_experiment_viewed", experiment.key, self.on_experiment_viewed, experiment, result
        )

    def _fire_usage(self, key: str, result: FeatureResult) -> None:
        if self.on_feature_usage is None:
            return
        if not self._dedup.should_fire_usage(key, result.value):
            return
        self._invoke("on_feature_usage", key, self.on_feature_usage, key, result)

    def _invoke(self, name: str, key: str, callback: Callable[..., Any], *args: Any) -> None:
        """コールバックを呼び出す。例外はログに記録して握りつぶす。"""
        try:
            callback(*args)
        except Exception:
            logger.exception("Callback failed", extra={"callback": name, "key": key})
