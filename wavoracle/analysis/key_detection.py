"""Chroma-template key detection: Pearson scoring plus frame averaging."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence

import numpy as np

from wavoracle.analysis.key_labels import UNKNOWN_KEY
from wavoracle.analysis.key_profiles import KEY_PROFILES, PITCH_CLASSES
from wavoracle.analysis.utils import clamp_to_unit

logger = logging.getLogger(__name__)

# Relative floor under which a variance term counts as zero (flat input).
_VARIANCE_EPS = 1e-12


@dataclass(frozen=True)
class ChromaClassification:
    best_key: str
    confidence: float
    scores: Dict[str, float]


@dataclass(frozen=True)
class KeyEstimate:
    """Key decision for a whole signal; correlations keep their sign."""

    key: str
    confidence: float
    correlations: Mapping[str, float] = field(default_factory=dict)
    frames_used: int = 0

    def __post_init__(self):
        # Estimates are shared through the result cache; keep them read-only.
        object.__setattr__(self, "correlations", MappingProxyType(dict(self.correlations)))

    def to_dict(self) -> Dict[str, object]:
        return {
            "key": self.key,
            "confidence": self.confidence,
            "correlations": dict(self.correlations),
            "frames_used": self.frames_used,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "KeyEstimate":
        return cls(
            key=str(payload.get("key", UNKNOWN_KEY)),
            confidence=clamp_to_unit(payload.get("confidence")),
            correlations={str(k): float(v) for k, v in dict(payload.get("correlations") or {}).items()},
            frames_used=int(payload.get("frames_used", 0) or 0),
        )


UNKNOWN_KEY_ESTIMATE = KeyEstimate(key=UNKNOWN_KEY, confidence=0.0)


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson r between two equal-length vectors using the running-sum form.

    Returns 0.0 when the lengths differ or either vector has no variance,
    so flat or silent input can never win a comparison by artifact.
    """
    xs = np.asarray(x, dtype=float).ravel()
    ys = np.asarray(y, dtype=float).ravel()
    n = xs.size
    if n == 0 or n != ys.size:
        return 0.0
    sum_x = float(xs.sum())
    sum_y = float(ys.sum())
    sum_xx = float(np.dot(xs, xs))
    sum_yy = float(np.dot(ys, ys))
    sum_xy = float(np.dot(xs, ys))
    var_x = sum_xx - sum_x * sum_x / n
    var_y = sum_yy - sum_y * sum_y / n
    if sum_xx == 0.0 or sum_yy == 0.0:
        return 0.0
    if var_x <= _VARIANCE_EPS * sum_xx or var_y <= _VARIANCE_EPS * sum_yy:
        return 0.0
    r = (sum_xy - sum_x * sum_y / n) / math.sqrt(var_x * var_y)
    if not math.isfinite(r):
        return 0.0
    return max(-1.0, min(1.0, r))


def classify_chroma(
    chroma: Sequence[float],
    profiles: Optional[Mapping[str, Sequence[float]]] = None,
) -> ChromaClassification:
    """Score ``chroma`` against every template; first strictly-greatest score wins."""
    table = KEY_PROFILES if profiles is None else profiles
    scores: Dict[str, float] = {}
    best_key = UNKNOWN_KEY
    best_score = -math.inf
    for name, template in table.items():
        score = pearson_correlation(chroma, template)
        scores[name] = score
        if score > best_score:
            best_key = name
            best_score = score
    if not scores:
        return ChromaClassification(best_key=UNKNOWN_KEY, confidence=0.0, scores={})
    return ChromaClassification(best_key=best_key, confidence=clamp_to_unit(best_score), scores=scores)


def mean_chroma(frames: Iterable[Sequence[float]]) -> tuple[Optional[np.ndarray], int]:
    """Average the well-formed 12-bin frames; returns ``(None, 0)`` when none qualify."""
    total = np.zeros(PITCH_CLASSES, dtype=float)
    valid = 0
    skipped = 0
    for frame in frames:
        try:
            vector = np.asarray(frame, dtype=float)
        except (TypeError, ValueError):
            skipped += 1
            continue
        if vector.shape != (PITCH_CLASSES,) or not np.all(np.isfinite(vector)):
            skipped += 1
            continue
        total += vector
        valid += 1
    if skipped:
        logger.debug("🎼 Skipped %d malformed chroma frame(s), kept %d", skipped, valid)
    if valid == 0:
        return None, 0
    return total / valid, valid


def estimate_key(
    frames: Iterable[Sequence[float]],
    profiles: Optional[Mapping[str, Sequence[float]]] = None,
) -> KeyEstimate:
    """
    Estimate one key for a sequence of per-frame chromagrams.

    Frames are averaged before classification so frame-level noise is
    smoothed out first. Never raises: no usable frames yields ``Unknown``
    with zero confidence.
    """
    averaged, frame_count = mean_chroma(frames)
    if averaged is None:
        return UNKNOWN_KEY_ESTIMATE
    result = classify_chroma(averaged, profiles)
    logger.info(
        "🎹 Key estimate: %s (confidence %.3f over %d frames)",
        result.best_key,
        result.confidence,
        frame_count,
    )
    return KeyEstimate(
        key=result.best_key,
        confidence=result.confidence,
        correlations=result.scores,
        frames_used=frame_count,
    )


__all__ = [
    "ChromaClassification",
    "KeyEstimate",
    "UNKNOWN_KEY_ESTIMATE",
    "pearson_correlation",
    "classify_chroma",
    "mean_chroma",
    "estimate_key",
]
