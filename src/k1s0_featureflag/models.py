"""featureflag データモデル"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Annotated, Any, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)


class _Definition(BaseModel):
    """設定ペイロード由来の定義モデル共通設定。未知のフィールドは無視する。"""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class Namespace(_Definition):
    """排他実験用のハッシュ範囲。"""

    id: str
    range_start: float = Field(alias="rangeStart")
    range_end: float = Field(alias="rangeEnd")

    @model_validator(mode="before")
    @classmethod
    def _from_array(cls, data: Any) -> Any:
        # ["ns-id", 0.0, 0.5] 形式も受け付ける
        if isinstance(data, (list, tuple)) and len(data) == 3:
            return {"id": data[0], "rangeStart": data[1], "rangeEnd": data[2]}
        return data


class _ExperimentSpec(_Definition):
    condition: dict[str, Any] | None = None
    variations: tuple[Any, ...]
    weights: tuple[float, ...] | None = None
    coverage: float = 1.0
    hash_attribute: str = Field(default="id", alias="hashAttribute")
    namespace: Namespace | None = None

    @field_validator("coverage", mode="before")
    @classmethod
    def _default_coverage(cls, value: Any) -> Any:
        return 1.0 if value is None else value

    @field_validator("hash_attribute", mode="before")
    @classmethod
    def _default_hash_attribute(cls, value: Any) -> Any:
        return value or "id"


class Experiment(_ExperimentSpec):
    """実験定義。フィーチャールールからの実験とアドホック実験の両方に使う。"""

    key: str
    active: bool = True
    force: int | None = None


class ForceRule(_Definition):
    """条件にマッチした場合に固定値を返すルール。"""

    condition: dict[str, Any] | None = None
    force: Any = None


class ExperimentRule(_ExperimentSpec):
    """条件にマッチしたユーザーを実験に割り当てるルール。"""

    key: str | None = None

    def to_experiment(self, feature_key: str) -> Experiment:
        """ルールを Experiment に変換する。key 未指定時はフィーチャーキーを使う。

        condition はルール評価時に判定済みのため引き継がない。
        """
        return Experiment(
            key=self.key or feature_key,
            variations=self.variations,
            weights=self.weights,
            coverage=self.coverage,
            hash_attribute=self.hash_attribute,
            namespace=self.namespace,
        )


def rule_kind(value: Any) -> str | None:
    """ルールの種別タグを返す。どちらでもなければ None。"""
    if isinstance(value, ForceRule):
        return "force"
    if isinstance(value, ExperimentRule):
        return "experiment"
    if isinstance(value, Mapping):
        if "force" in value:
            return "force"
        if "variations" in value:
            return "experiment"
    return None


Rule = Annotated[
    Union[
        Annotated[ForceRule, Tag("force")],
        Annotated[ExperimentRule, Tag("experiment")],
    ],
    Discriminator(rule_kind),
]


class FeatureDefinition(_Definition):
    """フィーチャー定義。"""

    default_value: Any = Field(default=None, alias="defaultValue")
    rules: tuple[Rule, ...] = ()

    @field_validator("rules", mode="before")
    @classmethod
    def _drop_unknown_rules(cls, value: Any) -> Any:
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)):
            return value
        kept = []
        for rule in value:
            if rule_kind(rule) is None:
                logger.warning("Skipping rule without force or variations", extra={"rule": rule})
                continue
            kept.append(rule)
        return kept


FeatureMap = Mapping[str, FeatureDefinition]


class FeatureSource(StrEnum):
    """フィーチャー値の決定元。"""

    DEFAULT_VALUE = "defaultValue"
    FORCE = "force"
    EXPERIMENT = "experiment"
    UNKNOWN_FEATURE = "unknownFeature"


def truthy(value: Any) -> bool:
    """値の真偽を判定する。

    False, 0, 0.0, NaN, "", None のみ偽。
    Python の bool() と異なり、空リスト・空辞書は真として扱う。
    """
    if value is None or value is False:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


@dataclass
class ExperimentResult:
    """実験割り当て結果。"""

    in_experiment: bool
    variation_id: int
    value: Any
    hash_used: float
    hash_attribute: str
    hash_value: str = ""
    key: str = ""
    forced: bool = False


@dataclass
class FeatureResult:
    """フィーチャー評価結果。"""

    value: Any
    source: FeatureSource
    experiment: Experiment | None = None
    experiment_result: ExperimentResult | None = None
    on: bool = field(init=False)

    def __post_init__(self) -> None:
        self.on = truthy(self.value)

    @property
    def off(self) -> bool:
        return not self.on
