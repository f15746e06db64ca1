"""Essentia-backed chroma (HPCP) and rhythm extractors, used when Essentia imports."""

from __future__ import annotations

import logging
from typing import Tuple

import librosa
import numpy as np

from wavoracle.analysis import settings
from wavoracle.analysis.utils import clamp_to_unit

logger = logging.getLogger(__name__)

try:
    import essentia.standard as es  # type: ignore
    HAS_ESSENTIA = True
except Exception:  # pragma: no cover - Essentia optional
    es = None
    HAS_ESSENTIA = False

RHYTHM_EXTRACTOR_SR = 44100
# RhythmExtractor2013 multifeature confidence tops out here.
MULTIFEATURE_MAX_CONFIDENCE = 5.32
# C4, so HPCP bin 0 lands on C like the key templates.
HPCP_REFERENCE_FREQUENCY = 261.6256


def essentia_allowed() -> bool:
    """Return True when the Essentia extractors should be used."""
    if settings.USE_ESSENTIA is None:
        return HAS_ESSENTIA
    return HAS_ESSENTIA and settings.USE_ESSENTIA


def resample_for_rhythm_extractor(
    samples: np.ndarray,
    sr: int,
    target_sr: int = RHYTHM_EXTRACTOR_SR,
) -> np.ndarray:
    """RhythmExtractor2013 assumes 44.1 kHz input; resample anything else."""
    if sr == target_sr:
        return np.ascontiguousarray(samples, dtype=np.float32)
    resampled = librosa.resample(
        np.asarray(samples, dtype=np.float32),
        orig_sr=sr,
        target_sr=target_sr,
    )
    return np.ascontiguousarray(resampled.astype(np.float32))


class EssentiaHPCPExtractor:
    """Harmonic Pitch Class Profile per frame: window, spectrum, peaks, HPCP."""

    method = "essentia_hpcp"

    def __init__(self, sample_rate: int, frame_size: int = settings.FRAME_SIZE):
        if es is None:
            raise RuntimeError("Essentia HPCP unavailable.")
        self.sample_rate = int(sample_rate)
        self.frame_size = int(frame_size)
        self._window = es.Windowing(type="blackmanharris62", size=self.frame_size)
        self._spectrum = es.Spectrum(size=self.frame_size)
        self._peaks = es.SpectralPeaks(
            orderBy="magnitude",
            magnitudeThreshold=1e-5,
            minFrequency=20,
            maxFrequency=3500,
            maxPeaks=60,
            sampleRate=self.sample_rate,
        )
        self._hpcp = es.HPCP(
            size=12,
            referenceFrequency=HPCP_REFERENCE_FREQUENCY,
            harmonics=8,
            bandPreset=True,
            minFrequency=20,
            maxFrequency=3500,
            weightType="cosine",
            nonLinear=False,
            windowSize=1.0,
            sampleRate=self.sample_rate,
        )

    def __call__(self, frame: np.ndarray) -> np.ndarray:
        frame32 = np.ascontiguousarray(frame, dtype=np.float32)
        spectrum = self._spectrum(self._window(frame32))
        frequencies, magnitudes = self._peaks(spectrum)
        return np.asarray(self._hpcp(frequencies, magnitudes), dtype=float)


class EssentiaRhythmExtractor:
    """RhythmExtractor2013 (multifeature) with its confidence rescaled to [0, 1]."""

    method = "essentia_rhythm_extractor"

    def __init__(self):
        if es is None:
            raise RuntimeError("Essentia RhythmExtractor2013 unavailable.")
        self._extractor = es.RhythmExtractor2013(method="multifeature")

    def __call__(self, samples: np.ndarray, sample_rate: int) -> Tuple[float, float]:
        if samples is None or np.size(samples) == 0:
            raise ValueError("Empty audio payload for RhythmExtractor2013.")
        audio = resample_for_rhythm_extractor(samples, sample_rate)
        bpm, _beats, beats_confidence, _estimates, _intervals = self._extractor(audio)
        return float(bpm), clamp_to_unit(float(beats_confidence) / MULTIFEATURE_MAX_CONFIDENCE)


__all__ = [
    "HAS_ESSENTIA",
    "es",
    "RHYTHM_EXTRACTOR_SR",
    "MULTIFEATURE_MAX_CONFIDENCE",
    "essentia_allowed",
    "resample_for_rhythm_extractor",
    "EssentiaHPCPExtractor",
    "EssentiaRhythmExtractor",
]
