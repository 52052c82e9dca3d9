"""設定ペイロードのデコード"""

from __future__ import annotations

import binascii
import json
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .crypto import decrypt
from .exceptions import ConfigDecodeError, FeatureFlagErrorCodes
from .models import FeatureDefinition, FeatureMap

_FEATURES_ADAPTER = TypeAdapter(dict[str, FeatureDefinition])

RawPayload = Mapping[str, Any] | str | bytes | bytearray


def decode(raw_payload: RawPayload, key: bytes | str | None = None) -> FeatureMap:
    """設定ペイロードをデコードしてフィーチャーマップを返す。

    受け付ける形式:
        - フィーチャーマップそのもの {"feature-key": {"defaultValue": ..., "rules": [...]}}
        - API レスポンス形式 {"status": 200, "features": {...}}
        - 暗号化形式 {"status": 200, "encryptedFeatures": "<iv_b64>.<ct_b64>"}

    Args:
        raw_payload: 辞書または JSON 文字列
        key: 暗号化形式の場合の AES 鍵 (bytes または base64 文字列)

    Raises:
        ConfigDecodeError: 形式不正・復号失敗・検証エラーの場合。部分的な結果は返さない。
    """
    payload = _as_mapping(raw_payload)

    if "encryptedFeatures" in payload:
        payload = _as_mapping(_decrypt_features(payload["encryptedFeatures"], key))
    elif "status" in payload:
        payload = payload.get("features") or {}
        if not isinstance(payload, Mapping):
            raise ConfigDecodeError(
                code=FeatureFlagErrorCodes.INVALID_PAYLOAD,
                message="'features' must be an object",
            )

    return decode_features(payload)


def decode_features(features: Mapping[str, Any]) -> FeatureMap:
    """平文のフィーチャーマップを検証して読み取り専用のマップを返す。"""
    if not isinstance(features, Mapping):
        raise ConfigDecodeError(
            code=FeatureFlagErrorCodes.INVALID_PAYLOAD,
            message=f"Feature map must be an object, got {type(features).__name__}",
        )
    try:
        validated = _FEATURES_ADAPTER.validate_python(dict(features))
    except ValidationError as e:
        raise ConfigDecodeError(
            code=FeatureFlagErrorCodes.VALIDATION,
            message=f"Feature map validation failed: {e}",
            cause=e,
        ) from e
    return MappingProxyType(validated)


def _as_mapping(raw: RawPayload) -> Mapping[str, Any]:
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigDecodeError(
                code=FeatureFlagErrorCodes.INVALID_JSON,
                message=f"Failed to parse payload JSON: {e}",
                cause=e,
            ) from e
    if not isinstance(raw, Mapping):
        raise ConfigDecodeError(
            code=FeatureFlagErrorCodes.INVALID_PAYLOAD,
            message=f"Payload must be an object, got {type(raw).__name__}",
        )
    return raw


def _decrypt_features(encrypted: Any, key: bytes | str | None) -> str:
    if not isinstance(encrypted, str):
        raise ConfigDecodeError(
            code=FeatureFlagErrorCodes.INVALID_PAYLOAD,
            message="'encryptedFeatures' must be a string",
        )
    if not key:
        raise ConfigDecodeError(
            code=FeatureFlagErrorCodes.MISSING_DECRYPTION_KEY,
            message="Payload is encrypted but no decryption key was provided",
        )
    try:
        return decrypt(key, encrypted)
    except binascii.Error as e:
        raise ConfigDecodeError(
            code=FeatureFlagErrorCodes.INVALID_BASE64,
            message=f"Malformed base64 in encrypted payload: {e}",
            cause=e,
        ) from e
    except ValueError as e:
        raise ConfigDecodeError(
            code=FeatureFlagErrorCodes.DECRYPTION_FAILED,
            message=f"Failed to decrypt payload: {e}",
            cause=e,
        ) from e
