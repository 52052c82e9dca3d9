"""フィーチャー評価のユニットテスト"""

from k1s0_featureflag import FeatureSource, decode_features, evaluate

FEATURES = decode_features(
    {
        "dark-mode": {
            "defaultValue": False,
            "rules": [{"condition": {"premium": True}, "force": True}],
        },
        "new-onboarding": {
            "defaultValue": "classic",
            "rules": [{"variations": ["control", "guided"]}],
        },
        "banner": {
            "defaultValue": "none",
            "rules": [
                {"condition": {"country": "JP"}, "force": "x"},
                {"key": "checkout", "variations": ["control", "treatment"]},
            ],
        },
        "fallthrough": {
            "defaultValue": "default",
            "rules": [
                {"key": "checkout", "variations": ["a", "b"], "coverage": 0},
                {"condition": {"country": "US"}, "force": "us-only"},
            ],
        },
        "empty": {},
    }
)


def test_unknown_feature() -> None:
    """未定義のフィーチャーは unknownFeature になること。"""
    result = evaluate("does-not-exist", FEATURES, {})
    assert result.source == FeatureSource.UNKNOWN_FEATURE
    assert result.value is None
    assert result.on is False
    assert result.experiment_result is None


def test_default_value() -> None:
    result = evaluate("dark-mode", FEATURES, {"premium": False})
    assert result.source == FeatureSource.DEFAULT_VALUE
    assert result.value is False
    assert result.on is False


def test_feature_without_rules() -> None:
    result = evaluate("empty", FEATURES, {})
    assert result.source == FeatureSource.DEFAULT_VALUE
    assert result.value is None


def test_force_rule() -> None:
    result = evaluate("dark-mode", FEATURES, {"premium": True})
    assert result.source == FeatureSource.FORCE
    assert result.value is True
    assert result.on is True


def test_experiment_rule_uses_feature_key() -> None:
    """key 未指定の実験ルールはフィーチャーキーでハッシュされること。"""
    # hash("alicenew-onboarding") = 0.2955, hash("bobnew-onboarding") = 0.8064
    alice = evaluate("new-onboarding", FEATURES, {"id": "alice"})
    assert alice.source == FeatureSource.EXPERIMENT
    assert alice.value == "control"
    assert alice.experiment is not None
    assert alice.experiment.key == "new-onboarding"
    assert alice.experiment_result is not None
    assert alice.experiment_result.variation_id == 0

    bob = evaluate("new-onboarding", FEATURES, {"id": "bob"})
    assert bob.value == "guided"
    assert bob.experiment_result is not None
    assert bob.experiment_result.variation_id == 1


def test_rule_precedence() -> None:
    """先に書かれた force ルールが実験より優先されること。"""
    for i in range(1, 13):
        result = evaluate("banner", FEATURES, {"id": f"u{i}", "country": "JP"})
        assert result.value == "x"
        assert result.source == FeatureSource.FORCE
    result = evaluate("banner", FEATURES, {"id": "u7", "country": "US"})
    assert result.value == "treatment"


def test_experiment_not_included_falls_through() -> None:
    """実験に参加しなかった場合は次のルールへ進むこと。"""
    us = evaluate("fallthrough", FEATURES, {"id": "u1", "country": "US"})
    assert us.source == FeatureSource.FORCE
    assert us.value == "us-only"
    jp = evaluate("fallthrough", FEATURES, {"id": "u1", "country": "JP"})
    assert jp.source == FeatureSource.DEFAULT_VALUE
    assert jp.value == "default"


def test_missing_hash_attribute_falls_through_to_default() -> None:
    result = evaluate("new-onboarding", FEATURES, {})
    assert result.source == FeatureSource.DEFAULT_VALUE
    assert result.value == "classic"


def test_disabled_skips_experiment_rules() -> None:
    result = evaluate("new-onboarding", FEATURES, {"id": "bob"}, enabled=False)
    assert result.source == FeatureSource.DEFAULT_VALUE


def test_on_experiment_hook() -> None:
    """実験で値が決まった場合のみフックが呼ばれること。"""
    calls = []
    evaluate("new-onboarding", FEATURES, {"id": "bob"}, on_experiment=lambda e, r: calls.append((e.key, r.variation_id)))
    evaluate("new-onboarding", FEATURES, {}, on_experiment=lambda e, r: calls.append((e.key, r.variation_id)))
    assert calls == [("new-onboarding", 1)]


def test_evaluate_is_idempotent() -> None:
    attrs = {"id": "u7", "country": "US"}
    results = [evaluate("banner", FEATURES, attrs) for _ in range(5)]
    assert all(r == results[0] for r in results)
