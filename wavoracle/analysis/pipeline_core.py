"""Native analysis: decode, per-frame chroma, key estimate and tempo estimate."""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

import numpy as np

from wavoracle.analysis import settings
from wavoracle.analysis.extractors import (
    ChromaExtractor,
    DecodedAudio,
    decode_audio,
    default_chroma_extractor,
    default_rhythm_extractor,
    generate_frames,
)
from wavoracle.analysis.key_detection import KeyEstimate, estimate_key
from wavoracle.analysis.pipeline import AnalysisTimer
from wavoracle.analysis.tempo_detection import RhythmExtractor, TempoEstimate, estimate_tempo
from wavoracle.errors import ExtractionFailure

logger = logging.getLogger(__name__)

ChromaExtractorFactory = Callable[[int, int], ChromaExtractor]
Decoder = Callable[[bytes], DecodedAudio]


@dataclass(frozen=True)
class NativeAnalysis:
    key: KeyEstimate
    tempo: TempoEstimate
    duration: float
    sample_rate: int
    channels: int
    frame_count: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "key": self.key.to_dict(),
            "bpm": self.tempo.to_dict(),
            "duration": self.duration,
            "sample_rate": self.sample_rate,
            "channels": self.channels,
            "frame_count": self.frame_count,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "NativeAnalysis":
        return cls(
            key=KeyEstimate.from_dict(payload.get("key") or {}),
            tempo=TempoEstimate.from_dict(payload.get("bpm") or {}),
            duration=float(payload.get("duration", 0.0) or 0.0),
            sample_rate=int(payload.get("sample_rate", 0) or 0),
            channels=int(payload.get("channels", 0) or 0),
            frame_count=int(payload.get("frame_count", 0) or 0),
        )


def extract_chromagram(
    samples: np.ndarray,
    chroma_extractor: ChromaExtractor,
    frame_size: int = settings.FRAME_SIZE,
    hop_size: int = settings.HOP_SIZE,
) -> List[np.ndarray]:
    """Run the chroma extractor over every frame; any extractor error is fatal."""
    chromagram: List[np.ndarray] = []
    try:
        for frame in generate_frames(samples, frame_size, hop_size):
            chromagram.append(np.asarray(chroma_extractor(frame), dtype=float))
    except Exception as exc:
        raise ExtractionFailure(f"Chroma extraction failed after {len(chromagram)} frames: {exc}") from exc
    return chromagram


def analyze_samples(
    audio: DecodedAudio,
    *,
    chroma_extractor_factory: Optional[ChromaExtractorFactory] = None,
    rhythm_extractor: Optional[RhythmExtractor] = None,
    frame_size: int = settings.FRAME_SIZE,
    hop_size: int = settings.HOP_SIZE,
    timer: Optional[AnalysisTimer] = None,
) -> NativeAnalysis:
    factory = chroma_extractor_factory or default_chroma_extractor
    rhythm = rhythm_extractor or default_rhythm_extractor()
    with (timer.track("native.chroma") if timer else nullcontext()):
        extractor = factory(audio.sample_rate, frame_size)
        chromagram = extract_chromagram(audio.samples, extractor, frame_size, hop_size)
    with (timer.track("native.key") if timer else nullcontext()):
        key_estimate = estimate_key(chromagram)
    with (timer.track("native.tempo") if timer else nullcontext()):
        tempo_estimate = estimate_tempo(audio.samples, audio.sample_rate, rhythm)
    return NativeAnalysis(
        key=key_estimate,
        tempo=tempo_estimate,
        duration=audio.duration,
        sample_rate=audio.sample_rate,
        channels=audio.channels,
        frame_count=len(chromagram),
    )


def perform_native_analysis(
    audio_bytes: bytes,
    *,
    decoder: Optional[Decoder] = None,
    chroma_extractor_factory: Optional[ChromaExtractorFactory] = None,
    rhythm_extractor: Optional[RhythmExtractor] = None,
    frame_size: int = settings.FRAME_SIZE,
    hop_size: int = settings.HOP_SIZE,
    timer: Optional[AnalysisTimer] = None,
) -> NativeAnalysis:
    """
    Full native path for one payload.

    Raises DecodeFailure or ExtractionFailure; the orchestrator turns either
    into an absent native result. Rhythm failures are absorbed by
    ``estimate_tempo`` and never raise here.
    """
    with (timer.track("native.decode") if timer else nullcontext()):
        audio = (decoder or decode_audio)(audio_bytes)
    return analyze_samples(
        audio,
        chroma_extractor_factory=chroma_extractor_factory,
        rhythm_extractor=rhythm_extractor,
        frame_size=frame_size,
        hop_size=hop_size,
        timer=timer,
    )


__all__ = [
    "NativeAnalysis",
    "extract_chromagram",
    "analyze_samples",
    "perform_native_analysis",
]
