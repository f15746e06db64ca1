"""Pick one key/BPM answer from native analysis and lookup records.

Rules are evaluated in order and the first match wins:

1. native key and BPM confidence both above the threshold -> ``native_high``
2. any native result at all -> ``native_fallback`` (tier fixed at medium)
3. no native result, at least one lookup record -> ``lookup``
4. nothing usable -> ``none``

Lookup records are never consulted while a native result exists, however
weak its confidence.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence, Tuple

from wavoracle.analysis import settings
from wavoracle.analysis.key_labels import UNKNOWN_KEY
from wavoracle.analysis.lookup_records import ConfidenceTier, LookupRecord, best_of
from wavoracle.analysis.pipeline_core import NativeAnalysis
from wavoracle.analysis.utils import percentage, safe_int


class FusionMethod(str, Enum):
    NATIVE_HIGH = "native_high"
    NATIVE_FALLBACK = "native_fallback"
    LOOKUP = "lookup"
    NONE = "none"


RECOMMENDATIONS = {
    ConfidenceTier.HIGH: "High confidence result - safe to use for mixing and production",
    ConfidenceTier.MEDIUM: "Medium confidence - verify with your ears before mixing",
    ConfidenceTier.LOW: "Low confidence - manual verification recommended",
}


def recommendation_for(tier: ConfidenceTier) -> str:
    return RECOMMENDATIONS[tier]


@dataclass(frozen=True)
class FusionResult:
    key: str
    bpm: int
    confidence: ConfidenceTier
    method: FusionMethod
    notes: Tuple[str, ...]
    recommendation: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "key": self.key,
            "bpm": self.bpm,
            "confidence": self.confidence.value,
            "method": self.method.value,
            "notes": list(self.notes),
            "recommendation": self.recommendation,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "FusionResult":
        tier = ConfidenceTier.parse(payload.get("confidence"), ConfidenceTier.LOW)
        return cls(
            key=str(payload.get("key", UNKNOWN_KEY)),
            bpm=safe_int(payload.get("bpm")) or 0,
            confidence=tier,
            method=FusionMethod(payload.get("method", FusionMethod.NONE.value)),
            notes=tuple(str(note) for note in payload.get("notes") or ()),
            recommendation=str(payload.get("recommendation") or recommendation_for(tier)),
        )


def _result(key: str, bpm: int, tier: ConfidenceTier, method: FusionMethod, notes) -> FusionResult:
    return FusionResult(
        key=key,
        bpm=bpm,
        confidence=tier,
        method=method,
        notes=tuple(notes),
        recommendation=recommendation_for(tier),
    )


def _native_notes(headline: str, native: NativeAnalysis):
    return (
        headline,
        f"Key confidence: {percentage(native.key.confidence)}",
        f"BPM confidence: {percentage(native.tempo.confidence)}",
    )


def fuse_results(
    native: Optional[NativeAnalysis],
    lookup_records: Optional[Sequence[LookupRecord]] = None,
    threshold: float = settings.CONFIDENCE_THRESHOLD,
) -> FusionResult:
    """Apply the ordered fusion rules; pure and never raises for well-formed input."""
    if native is not None:
        if native.key.confidence > threshold and native.tempo.confidence > threshold:
            return _result(
                native.key.key,
                native.tempo.bpm,
                ConfidenceTier.HIGH,
                FusionMethod.NATIVE_HIGH,
                _native_notes("High confidence - native audio analysis", native),
            )
        return _result(
            native.key.key,
            native.tempo.bpm,
            ConfidenceTier.MEDIUM,
            FusionMethod.NATIVE_FALLBACK,
            _native_notes("Medium confidence - native audio analysis", native),
        )

    best = best_of(list(lookup_records or ()))
    if best is not None:
        return _result(
            best.key or UNKNOWN_KEY,
            best.bpm or 0,
            ConfidenceTier.MEDIUM,
            FusionMethod.LOOKUP,
            (f"Data from {best.source}", "Medium confidence - database lookup"),
        )

    return _result(
        UNKNOWN_KEY,
        0,
        ConfidenceTier.LOW,
        FusionMethod.NONE,
        ("Analysis failed - insufficient confidence",),
    )


__all__ = ["FusionMethod", "FusionResult", "RECOMMENDATIONS", "recommendation_for", "fuse_results"]
