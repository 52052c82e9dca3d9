"""k1s0 featureflag library."""

from .assigner import assign, get_bucket_ranges
from .client import FeatureEvaluator
from .conditions import matches
from .context import EvaluationContext, EvaluationOptions, ExperimentOptions
from .crypto import decrypt, encrypt, generate_key
from .debug import DebugSnapshot, EvaluationLog, EvaluationRecord
from .decoder import decode, decode_features
from .dedup import CallbackDeduplicator
from .exceptions import ConfigDecodeError, FeatureFlagError, FeatureFlagErrorCodes
from .hashing import fnv1a32, hash
from .loader import load_payload
from .logger import new_logger
from .models import (
    Experiment,
    ExperimentResult,
    ExperimentRule,
    FeatureDefinition,
    FeatureResult,
    FeatureSource,
    ForceRule,
    Namespace,
    truthy,
)
from .resolver import evaluate

__all__ = [
    "CallbackDeduplicator",
    "ConfigDecodeError",
    "DebugSnapshot",
    "EvaluationContext",
    "EvaluationLog",
    "EvaluationOptions",
    "EvaluationRecord",
    "Experiment",
    "ExperimentOptions",
    "ExperimentResult",
    "ExperimentRule",
    "FeatureDefinition",
    "FeatureEvaluator",
    "FeatureFlagError",
    "FeatureFlagErrorCodes",
    "FeatureResult",
    "FeatureSource",
    "ForceRule",
    "Namespace",
    "assign",
    "decode",
    "decode_features",
    "decrypt",
    "encrypt",
    "evaluate",
    "fnv1a32",
    "generate_key",
    "get_bucket_ranges",
    "hash",
    "load_payload",
    "matches",
    "new_logger",
    "truthy",
]
