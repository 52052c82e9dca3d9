"""ペイロードデコードのユニットテスト"""

import base64
import json

import pytest
from k1s0_featureflag import (
    ConfigDecodeError,
    FeatureDefinition,
    FeatureFlagErrorCodes,
    decode,
    decode_features,
    decrypt,
    encrypt,
    generate_key,
)

KEY = "AAECAwQFBgcICQoLDA0ODw=="
IV = bytes(range(15, -1, -1))
PLAINTEXT = '{"greeting":{"defaultValue":"hello"}}'
# openssl enc -aes-128-cbc -K 000102..0f -iv 0f0e..00 で生成した基準値
ENCRYPTED = "Dw4NDAsKCQgHBgUEAwIBAA==.a+pVWFCW4c811mnO4bmwGSWjg50IFKgHTh81FhNbJngQ23VOXmjWqEcvg6RLGZPo"

FEATURES = {
    "dark-mode": {
        "defaultValue": False,
        "rules": [{"condition": {"premium": True}, "force": True}],
    },
    "banner": {
        "defaultValue": {"text": "こんにちは", "items": [1, 2.5, None]},
        "rules": [
            {
                "key": "checkout",
                "variations": ["a", "b"],
                "weights": [0.5, 0.5],
                "coverage": 0.8,
                "hashAttribute": "device_id",
                "namespace": ["ns1", 0, 0.5],
            }
        ],
    },
}


def test_encrypt_matches_reference_vector() -> None:
    """固定 IV での暗号化結果が基準値と一致すること。"""
    assert encrypt(KEY, PLAINTEXT, iv=IV) == ENCRYPTED


def test_decrypt_reference_vector() -> None:
    assert decrypt(KEY, ENCRYPTED) == PLAINTEXT
    assert decrypt(base64.b64decode(KEY), ENCRYPTED) == PLAINTEXT


def test_encrypt_uses_random_iv() -> None:
    key = generate_key()
    assert len(key) == 16
    assert encrypt(key, "same") != encrypt(key, "same")


def test_decode_plain_feature_map() -> None:
    features = decode(FEATURES)
    assert set(features) == {"dark-mode", "banner"}
    banner = features["banner"]
    assert isinstance(banner, FeatureDefinition)
    rule = banner.rules[0]
    assert rule.hash_attribute == "device_id"
    assert rule.namespace is not None
    assert rule.namespace.range_end == 0.5


def test_decode_json_string() -> None:
    assert set(decode(json.dumps(FEATURES))) == {"dark-mode", "banner"}
    assert set(decode(json.dumps(FEATURES).encode("utf-8"))) == {"dark-mode", "banner"}


def test_decode_envelope() -> None:
    """{"status": 200, "features": {...}} 形式を受け付けること。"""
    features = decode({"status": 200, "features": FEATURES})
    assert set(features) == {"dark-mode", "banner"}
    assert decode({"status": 200}) == {}


def test_decode_reference_encrypted_payload() -> None:
    features = decode({"status": 200, "encryptedFeatures": ENCRYPTED}, KEY)
    assert features["greeting"].default_value == "hello"


def test_encrypted_round_trip() -> None:
    """暗号化して復号したフィーチャーマップが元と一致すること。"""
    payload = {"encryptedFeatures": encrypt(KEY, json.dumps(FEATURES), iv=IV)}
    encrypted = decode(payload, KEY)
    assert encrypted == decode(FEATURES)
    banner = encrypted["banner"]
    assert banner.default_value == FEATURES["banner"]["defaultValue"]
    dumped = {
        key: definition.model_dump(by_alias=True, exclude_defaults=True)
        for key, definition in encrypted.items()
    }
    assert dumped["dark-mode"] == {
        "defaultValue": False,
        "rules": ({"condition": {"premium": True}, "force": True},),
    }


def test_decoded_map_is_read_only() -> None:
    features = decode(FEATURES)
    with pytest.raises(TypeError):
        features["new"] = FeatureDefinition()  # type: ignore[index]


@pytest.mark.parametrize(
    ("payload", "code"),
    [
        ("{not json", FeatureFlagErrorCodes.INVALID_JSON),
        (b"\xff\xfe", FeatureFlagErrorCodes.INVALID_JSON),
        ("[1, 2]", FeatureFlagErrorCodes.INVALID_PAYLOAD),
        ({"status": 200, "features": [1]}, FeatureFlagErrorCodes.INVALID_PAYLOAD),
        ({"flag": {"rules": 5}}, FeatureFlagErrorCodes.VALIDATION),
        ({"flag": "not-a-definition"}, FeatureFlagErrorCodes.VALIDATION),
        ({"encryptedFeatures": 123}, FeatureFlagErrorCodes.INVALID_PAYLOAD),
    ],
)
def test_decode_errors(payload: object, code: str) -> None:
    with pytest.raises(ConfigDecodeError) as exc_info:
        decode(payload, KEY)  # type: ignore[arg-type]
    assert exc_info.value.code == code
    assert str(exc_info.value).startswith(f"{code}: ")


@pytest.mark.parametrize("features", [[1, 2], "flag", None, 5])
def test_decode_features_rejects_non_mapping(features: object) -> None:
    """オブジェクト以外のフィーチャーマップは INVALID_PAYLOAD になること。"""
    with pytest.raises(ConfigDecodeError) as exc_info:
        decode_features(features)  # type: ignore[arg-type]
    assert exc_info.value.code == FeatureFlagErrorCodes.INVALID_PAYLOAD


def test_missing_key() -> None:
    with pytest.raises(ConfigDecodeError) as exc_info:
        decode({"encryptedFeatures": ENCRYPTED})
    assert exc_info.value.code == FeatureFlagErrorCodes.MISSING_DECRYPTION_KEY


def test_malformed_base64() -> None:
    with pytest.raises(ConfigDecodeError) as exc_info:
        decode({"encryptedFeatures": "!!!.@@@"}, KEY)
    assert exc_info.value.code == FeatureFlagErrorCodes.INVALID_BASE64
    assert exc_info.value.__cause__ is not None


def test_missing_separator() -> None:
    with pytest.raises(ConfigDecodeError) as exc_info:
        decode({"encryptedFeatures": "Dw4NDAsKCQgHBgUEAwIBAA=="}, KEY)
    assert exc_info.value.code == FeatureFlagErrorCodes.DECRYPTION_FAILED


def test_wrong_key() -> None:
    """誤った鍵では部分的な結果を返さずエラーになること。"""
    wrong = base64.b64encode(bytes(16)).decode("ascii")
    with pytest.raises(ConfigDecodeError):
        decode({"encryptedFeatures": ENCRYPTED}, wrong)


def test_invalid_key_size() -> None:
    with pytest.raises(ConfigDecodeError) as exc_info:
        decode({"encryptedFeatures": ENCRYPTED}, b"short")
    assert exc_info.value.code == FeatureFlagErrorCodes.DECRYPTION_FAILED
