"""ターゲティング条件の評価

条件は MongoDB 風のクエリ辞書で表現する。

    {"country": {"$in": ["JP", "US"]}, "$or": [{"beta": True}, {"age": {"$gte": 20}}]}

存在しない属性や型の不一致は例外にせず「不一致」として扱う。
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

_MISSING: Any = object()

_VERSION_BUILD_RE = re.compile(r"(^v|\+.*$)")
_VERSION_SPLIT_RE = re.compile(r"[-.]")
_NUMERIC_RE = re.compile(r"^[0-9]+$")


def matches(condition: Mapping[str, Any] | None, attributes: Mapping[str, Any]) -> bool:
    """condition が attributes にマッチするか判定する。

    condition が None または空の場合は常にマッチする。
    トップレベルの各キーは AND で結合される。
    """
    if condition is None:
        return True
    if not isinstance(condition, Mapping):
        return False

    for key, value in condition.items():
        if key == "$and":
            if not _is_list(value) or not all(matches(c, attributes) for c in value):
                return False
        elif key == "$or":
            if not _is_list(value):
                return False
            if value and not any(matches(c, attributes) for c in value):
                return False
        elif key == "$nor":
            if not _is_list(value) or any(matches(c, attributes) for c in value):
                return False
        elif key == "$not":
            if matches(value, attributes):
                return False
        elif not _eval_value(value, _get_path(attributes, key)):
            return False
    return True


def get_type(value: Any) -> str:
    """$type 演算子で使う型名を返す。bool は number として扱わない。"""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if _is_list(value):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return "unknown"


def _is_list(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _is_missing(value: Any) -> bool:
    return value is _MISSING or value is None


def _get_path(attributes: Mapping[str, Any], path: str) -> Any:
    """ドット区切りのパスで属性を辿る。途中で途切れたら _MISSING。"""
    current: Any = attributes
    for segment in path.split("."):
        if isinstance(current, Mapping) and segment in current:
            current = current[segment]
        else:
            return _MISSING
    return current


def _is_operator_object(value: Any) -> bool:
    return (
        isinstance(value, Mapping)
        and len(value) > 0
        and all(isinstance(k, str) and k.startswith("$") for k in value)
    )


def _eval_value(condition_value: Any, attribute: Any) -> bool:
    if _is_operator_object(condition_value):
        return all(
            _eval_operator(op, attribute, operand)
            for op, operand in condition_value.items()
        )
    if _is_missing(attribute):
        return False
    return _strict_equal(condition_value, attribute)


def _strict_equal(expected: Any, actual: Any) -> bool:
    """型が一致する場合のみ比較する (1 と True、"1" と 1 は等しくない)。"""
    if get_type(expected) != get_type(actual):
        return False
    return bool(expected == actual)


def _compare(attribute: Any, operand: Any) -> int | None:
    """number 同士または string 同士のみ比較可能。それ以外は None。"""
    kind = get_type(attribute)
    if kind not in ("number", "string") or kind != get_type(operand):
        return None
    if attribute < operand:
        return -1
    if attribute > operand:
        return 1
    return 0


def _contains(candidates: Sequence[Any], attribute: Any) -> bool:
    if _is_list(attribute):
        return any(_contains(candidates, item) for item in attribute)
    return any(_strict_equal(c, attribute) for c in candidates)


def _padded_version(value: Any) -> str:
    """バージョン文字列を辞書順比較できる形に正規化する。

    "v1.2.3-rc.1+build" -> "    1-    2-    3-rc-    1"
    プレリリースなしの場合は末尾に "~" を付け、プレリリース版より大きくする。
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not value or not isinstance(value, str):
        value = "0"
    parts = _VERSION_SPLIT_RE.split(_VERSION_BUILD_RE.sub("", value))
    if len(parts) == 3:
        parts.append("~")
    return "-".join(p.rjust(5, " ") if _NUMERIC_RE.match(p) else p for p in parts)


def _eval_operator(operator: str, attribute: Any, operand: Any) -> bool:
    if operator == "$exists":
        return bool(operand) != _is_missing(attribute)
    if operator == "$not":
        return not _eval_value(operand, attribute)
    if _is_missing(attribute):
        return False

    if operator == "$eq":
        return _strict_equal(operand, attribute)
    if operator == "$ne":
        return get_type(operand) == get_type(attribute) and operand != attribute
    if operator in ("$lt", "$lte", "$gt", "$gte"):
        result = _compare(attribute, operand)
        if result is None:
            return False
        if operator == "$lt":
            return result < 0
        if operator == "$lte":
            return result <= 0
        if operator == "$gt":
            return result > 0
        return result >= 0
    if operator == "$in":
        return _is_list(operand) and _contains(operand, attribute)
    if operator == "$nin":
        return _is_list(operand) and not _contains(operand, attribute)
    if operator == "$regex":
        if not isinstance(attribute, str):
            return False
        try:
            return re.search(operand, attribute) is not None
        except (re.error, TypeError):
            return False
    if operator == "$type":
        return get_type(attribute) == operand
    if operator == "$size":
        return _is_list(attribute) and _eval_value(operand, len(attribute))
    if operator == "$elemMatch":
        if not _is_list(attribute):
            return False
        for item in attribute:
            if _is_operator_object(operand):
                if _eval_value(operand, item):
                    return True
            elif isinstance(item, Mapping) and matches(operand, item):
                return True
        return False
    if operator == "$all":
        if not _is_list(attribute) or not _is_list(operand):
            return False
        return all(any(_eval_value(c, item) for item in attribute) for c in operand)
    if operator in ("$veq", "$vne", "$vlt", "$vlte", "$vgt", "$vgte"):
        left = _padded_version(attribute)
        right = _padded_version(operand)
        if operator == "$veq":
            return left == right
        if operator == "$vne":
            return left != right
        if operator == "$vlt":
            return left < right
        if operator == "$vlte":
            return left <= right
        if operator == "$vgt":
            return left > right
        return left >= right
    return False
