"""Uniform tempo/BPM result wrapping an external rhythm extractor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Tuple

import numpy as np

from wavoracle.analysis.utils import clamp_to_unit, round_half_up, safe_float

logger = logging.getLogger(__name__)

RhythmExtractor = Callable[[np.ndarray, int], Tuple[float, float]]

FAILED_METHOD = "failed"


@dataclass(frozen=True)
class TempoEstimate:
    bpm: int
    confidence: float
    method: str = "unknown"

    def to_dict(self) -> Dict[str, object]:
        return {"bpm": self.bpm, "confidence": self.confidence, "method": self.method}

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "TempoEstimate":
        return cls(
            bpm=int(payload.get("bpm", 0) or 0),
            confidence=clamp_to_unit(payload.get("confidence")),
            method=str(payload.get("method", "unknown")),
        )


FAILED_TEMPO = TempoEstimate(bpm=0, confidence=0.0, method=FAILED_METHOD)


def _extractor_label(extractor) -> str:
    label = getattr(extractor, "method", None)
    if label:
        return str(label)
    return getattr(extractor, "__name__", type(extractor).__name__)


def estimate_tempo(samples: np.ndarray, sample_rate: int, rhythm_extractor: RhythmExtractor) -> TempoEstimate:
    """
    Run the rhythm extractor and coerce its answer into a TempoEstimate.

    BPM is rounded half-up and floored at 0; confidence is clamped into
    [0, 1]. A raising extractor yields ``FAILED_TEMPO`` instead of an error
    so a tempo problem never sinks the key result.
    """
    try:
        raw_bpm, raw_confidence = rhythm_extractor(samples, sample_rate)
    except Exception as exc:
        logger.warning("⚠️ Rhythm extractor failed (%s); reporting 0 BPM.", exc)
        return FAILED_TEMPO
    bpm_value = safe_float(raw_bpm)
    bpm = max(0, round_half_up(bpm_value)) if bpm_value is not None else 0
    confidence = clamp_to_unit(raw_confidence)
    method = _extractor_label(rhythm_extractor)
    logger.info("🥁 Tempo estimate: %d BPM (confidence %.3f via %s)", bpm, confidence, method)
    return TempoEstimate(bpm=bpm, confidence=confidence, method=method)


__all__ = ["RhythmExtractor", "TempoEstimate", "FAILED_TEMPO", "FAILED_METHOD", "estimate_tempo"]
