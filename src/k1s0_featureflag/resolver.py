"""フィーチャーの評価"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, assert_never

from .assigner import assign
from .conditions import matches
from .models import (
    Experiment,
    ExperimentResult,
    ExperimentRule,
    FeatureMap,
    FeatureResult,
    FeatureSource,
    ForceRule,
)

logger = logging.getLogger(__name__)

ExperimentHook = Callable[[Experiment, ExperimentResult], None]


def evaluate(
    feature_key: str,
    features: FeatureMap,
    attributes: Mapping[str, Any],
    *,
    enabled: bool = True,
    forced_variations: Mapping[str, int] | None = None,
    on_experiment: ExperimentHook | None = None,
) -> FeatureResult:
    """フィーチャーキーを評価して値を決定する。

    ルールは定義順に評価し、最初にマッチしたルールの値を返す。
    実験ルールでユーザーが実験に参加しなかった場合は次のルールへ進む。
    どのルールにもマッチしなければ default_value を返す。

    Args:
        feature_key: フィーチャーキー
        features: フィーチャー定義のスナップショット
        attributes: ユーザー属性のスナップショット
        enabled: False の場合は実験ルールを全てスキップする
        forced_variations: 実験キー -> バリエーション番号 の強制割り当て
        on_experiment: 実験ルールで値が決まったときに呼ばれるフック

    Returns:
        評価結果。未定義のキーは source="unknownFeature"、value=None。
    """
    definition = features.get(feature_key)
    if definition is None:
        logger.debug("Unknown feature", extra={"feature": feature_key})
        return FeatureResult(None, FeatureSource.UNKNOWN_FEATURE)

    for index, rule in enumerate(definition.rules):
        if rule.condition is not None and not matches(rule.condition, attributes):
            logger.debug(
                "Skipping rule because of condition",
                extra={"feature": feature_key, "rule_index": index},
            )
            continue

        if isinstance(rule, ForceRule):
            logger.debug(
                "Force value from rule",
                extra={"feature": feature_key, "rule_index": index},
            )
            return FeatureResult(rule.force, FeatureSource.FORCE)
        elif isinstance(rule, ExperimentRule):
            experiment = rule.to_experiment(feature_key)
            result = assign(
                experiment,
                attributes,
                enabled=enabled,
                forced_variations=forced_variations,
            )
            if not result.in_experiment:
                logger.debug(
                    "Skipping rule because user is not in experiment",
                    extra={"feature": feature_key, "rule_index": index},
                )
                continue
            if on_experiment is not None:
                on_experiment(experiment, result)
            return FeatureResult(
                result.value,
                FeatureSource.EXPERIMENT,
                experiment=experiment,
                experiment_result=result,
            )
        else:
            assert_never(rule)

    return FeatureResult(definition.default_value, FeatureSource.DEFAULT_VALUE)
