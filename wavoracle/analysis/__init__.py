"""Analysis package: key templates, classifiers, tempo contract and fusion."""

from . import settings  # re-export settings module for convenience
from .fusion import FusionMethod, FusionResult, fuse_results  # noqa: F401
from .key_detection import KeyEstimate, classify_chroma, estimate_key, pearson_correlation  # noqa: F401
from .key_profiles import KEY_PROFILES, build_key_profiles  # noqa: F401
from .lookup_records import ConfidenceTier, LookupRecord, best_of  # noqa: F401
from .pipeline import AnalysisTimer  # noqa: F401
from .pipeline_core import NativeAnalysis, perform_native_analysis  # noqa: F401
from .tempo_detection import TempoEstimate, estimate_tempo  # noqa: F401

__all__ = [
    "settings",
    "AnalysisTimer",
    "ConfidenceTier",
    "FusionMethod",
    "FusionResult",
    "KEY_PROFILES",
    "KeyEstimate",
    "LookupRecord",
    "NativeAnalysis",
    "TempoEstimate",
    "best_of",
    "build_key_profiles",
    "classify_chroma",
    "estimate_key",
    "estimate_tempo",
    "fuse_results",
    "pearson_correlation",
    "perform_native_analysis",
]
