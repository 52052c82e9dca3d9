"""実験バリエーションの割り当て

ユーザーのハッシュ値を各バリエーションのバケット範囲に当てはめて
バリエーションを決定する。同じ入力に対しては常に同じ結果を返す。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .conditions import matches
from .hashing import hash as hash_seed
from .hashing import in_range
from .models import Experiment, ExperimentResult

logger = logging.getLogger(__name__)


def get_equal_weights(num_variations: int) -> list[float]:
    """均等な重みを返す。"""
    if num_variations < 1:
        return []
    return [1 / num_variations] * num_variations


def get_bucket_ranges(
    num_variations: int,
    weights: Sequence[float] | None = None,
) -> list[tuple[float, float]]:
    """各バリエーションのバケット範囲 [start, end) を返す。

    範囲は単位区間全体を累積重みで分割したもの。coverage はここでは扱わない。
    weights の長さが一致しない、または合計が 0.99〜1.01 の範囲外の場合は均等割りにする。
    """
    if weights is None or len(weights) != num_variations:
        weights = get_equal_weights(num_variations)
    elif not 0.99 <= sum(weights) <= 1.01:
        weights = get_equal_weights(num_variations)

    ranges: list[tuple[float, float]] = []
    cumulative = 0.0
    for weight in weights:
        start = cumulative
        cumulative += weight
        ranges.append((start, cumulative))
    return ranges


def choose_variation(n: float, ranges: Sequence[tuple[float, float]]) -> int:
    """n を含む範囲のインデックスを返す。どれにも含まれなければ -1。"""
    for index, (start, end) in enumerate(ranges):
        if in_range(n, start, end):
            return index
    return -1


def hash_value_of(value: Any) -> str:
    """ハッシュ属性の値をシード用文字列に変換する。None は空文字。"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def assign(
    experiment: Experiment,
    attributes: Mapping[str, Any],
    *,
    enabled: bool = True,
    forced_variations: Mapping[str, int] | None = None,
) -> ExperimentResult:
    """ユーザーを実験のバリエーションに割り当てる。

    Args:
        experiment: 実験定義
        attributes: ユーザー属性
        enabled: False の場合は誰も実験に参加させない
        forced_variations: 実験キー -> バリエーション番号 の強制割り当て (QA 用)

    Returns:
        割り当て結果。不参加の場合も variations[0] を value として返す。
    """
    key = experiment.key
    num_variations = len(experiment.variations)
    hash_attribute = experiment.hash_attribute
    hash_value = hash_value_of(attributes.get(hash_attribute))

    if num_variations < 2 or not enabled:
        logger.debug("Experiment skipped", extra={"experiment": key, "reason": "disabled"})
        return _not_included(experiment, hash_value)

    if forced_variations and key in forced_variations:
        forced = forced_variations[key]
        if _valid_index(forced, num_variations):
            return _forced(experiment, forced, hash_value)

    if not experiment.active:
        logger.debug("Experiment skipped", extra={"experiment": key, "reason": "inactive"})
        return _not_included(experiment, hash_value)

    if experiment.condition is not None and not matches(experiment.condition, attributes):
        logger.debug("Experiment skipped", extra={"experiment": key, "reason": "condition"})
        return _not_included(experiment, hash_value)

    if experiment.force is not None and _valid_index(experiment.force, num_variations):
        return _forced(experiment, experiment.force, hash_value)

    if not hash_value:
        logger.debug(
            "Experiment skipped",
            extra={"experiment": key, "reason": "missing hash attribute"},
        )
        return _not_included(experiment, hash_value)

    namespace = experiment.namespace
    if namespace is not None:
        n = hash_seed(f"{hash_value}__{namespace.id}")
        if not in_range(n, namespace.range_start, namespace.range_end):
            logger.debug("Experiment skipped", extra={"experiment": key, "reason": "namespace"})
            return _not_included(experiment, hash_value)

    h = hash_seed(hash_value + key)
    coverage = min(max(experiment.coverage, 0.0), 1.0)
    if h >= coverage:
        logger.debug("Experiment skipped", extra={"experiment": key, "reason": "coverage"})
        return _not_included(experiment, hash_value, hash_used=h)

    # h は縮尺せずに使う。coverage を変えても参加中のユーザーのバリエーションは変わらない
    ranges = get_bucket_ranges(num_variations, experiment.weights)
    variation_id = choose_variation(h, ranges)
    if variation_id < 0:
        # 重みの合計が 1 未満の場合の端数
        logger.debug("Experiment skipped", extra={"experiment": key, "reason": "weights"})
        return _not_included(experiment, hash_value, hash_used=h)

    logger.debug(
        "Experiment assigned",
        extra={"experiment": key, "variation_id": variation_id},
    )
    return ExperimentResult(
        in_experiment=True,
        variation_id=variation_id,
        value=experiment.variations[variation_id],
        hash_used=h,
        hash_attribute=hash_attribute,
        hash_value=hash_value,
        key=key,
    )


def _valid_index(index: int, num_variations: int) -> bool:
    return 0 <= index < num_variations


def _not_included(
    experiment: Experiment, hash_value: str, hash_used: float = 0.0
) -> ExperimentResult:
    variations = experiment.variations
    return ExperimentResult(
        in_experiment=False,
        variation_id=0,
        value=variations[0] if variations else None,
        hash_used=hash_used,
        hash_attribute=experiment.hash_attribute,
        hash_value=hash_value,
        key=experiment.key,
    )


def _forced(experiment: Experiment, variation_id: int, hash_value: str) -> ExperimentResult:
    logger.debug(
        "Experiment variation forced",
        extra={"experiment": experiment.key, "variation_id": variation_id},
    )
    return ExperimentResult(
        in_experiment=True,
        variation_id=variation_id,
        value=experiment.variations[variation_id],
        hash_used=0.0,
        hash_attribute=experiment.hash_attribute,
        hash_value=hash_value,
        key=experiment.key,
        forced=True,
    )
