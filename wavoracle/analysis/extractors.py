"""Audio decoding, frame generation and the librosa chroma/rhythm collaborators."""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from io import BytesIO
from typing import Callable, Iterator, Optional, Tuple

import librosa
import numpy as np

from wavoracle.analysis import settings
from wavoracle.analysis.essentia_support import (
    EssentiaHPCPExtractor,
    EssentiaRhythmExtractor,
    essentia_allowed,
)
from wavoracle.analysis.utils import clamp_to_unit
from wavoracle.errors import DecodeFailure

logger = logging.getLogger(__name__)

ChromaExtractor = Callable[[np.ndarray], np.ndarray]


@dataclass(frozen=True)
class DecodedAudio:
    """Channel 0 of the decoded payload plus the original layout."""

    samples: np.ndarray
    sample_rate: int
    channels: int

    @property
    def duration(self) -> float:
        return float(len(self.samples)) / self.sample_rate if self.sample_rate > 0 else 0.0


def _load(source, duration: Optional[float]):
    return librosa.load(source, sr=None, mono=False, duration=duration)


def decode_audio(
    audio_bytes: bytes,
    *,
    max_seconds: Optional[float] = settings.MAX_ANALYSIS_SECONDS,
    temp_suffix: str = ".m4a",
) -> DecodedAudio:
    """
    Decode an in-memory audio file and keep only channel 0.

    Streams through soundfile first; container formats it cannot read
    (m4a/aac) are retried from a temp file so audioread can open them.
    """
    if not audio_bytes:
        raise DecodeFailure("Empty audio payload.")
    try:
        y, sr = _load(BytesIO(audio_bytes), max_seconds)
    except Exception as stream_exc:
        logger.info("♻️ In-memory decode failed (%s); retrying from temp file.", stream_exc)
        try:
            with tempfile.NamedTemporaryFile(suffix=temp_suffix) as tmp_file:
                tmp_file.write(audio_bytes)
                tmp_file.flush()
                y, sr = _load(tmp_file.name, max_seconds)
        except Exception as exc:
            raise DecodeFailure(f"Could not decode audio: {exc}") from exc
    y = np.asarray(y, dtype=np.float32)
    channels = 1 if y.ndim == 1 else int(y.shape[0])
    samples = y if y.ndim == 1 else y[0]
    if samples.size == 0 or not sr:
        raise DecodeFailure("Decoded audio contains no samples.")
    logger.info("🔊 Decoded audio: %d samples at %dHz (%d channel(s))", samples.size, sr, channels)
    return DecodedAudio(samples=np.ascontiguousarray(samples), sample_rate=int(sr), channels=channels)


def generate_frames(
    samples: np.ndarray,
    frame_size: int = settings.FRAME_SIZE,
    hop_size: int = settings.HOP_SIZE,
) -> Iterator[np.ndarray]:
    """Yield overlapping frames; a signal shorter than one frame is zero-padded."""
    samples = np.asarray(samples, dtype=np.float32)
    if samples.size == 0:
        return
    if samples.size < frame_size:
        samples = np.pad(samples, (0, frame_size - samples.size))
    framed = librosa.util.frame(samples, frame_length=frame_size, hop_length=hop_size, axis=0)
    for frame in framed:
        yield frame


class LibrosaChromaExtractor:
    """Hann-windowed FFT folded onto a librosa chroma filter bank (bin 0 = C)."""

    method = "librosa_chroma"

    def __init__(self, sample_rate: int, frame_size: int = settings.FRAME_SIZE):
        self.sample_rate = int(sample_rate)
        self.frame_size = int(frame_size)
        self._window = librosa.filters.get_window("hann", self.frame_size, fftbins=True)
        self._filters = librosa.filters.chroma(sr=self.sample_rate, n_fft=self.frame_size)

    def __call__(self, frame: np.ndarray) -> np.ndarray:
        frame = np.asarray(frame, dtype=float)
        if frame.size != self.frame_size:
            frame = np.pad(frame[: self.frame_size], (0, max(0, self.frame_size - frame.size)))
        power = np.abs(np.fft.rfft(frame * self._window)) ** 2
        chroma = self._filters.dot(power)
        return librosa.util.normalize(chroma, norm=np.inf)


class LibrosaRhythmExtractor:
    """beat_track tempo with a confidence from beat-strength consistency and PLP support."""

    method = "librosa_beat_track"

    def __call__(self, samples: np.ndarray, sample_rate: int) -> Tuple[float, float]:
        if samples is None or np.size(samples) == 0:
            raise ValueError("Empty audio payload for beat tracking.")
        y = np.asarray(samples, dtype=np.float32)
        onset_env = librosa.onset.onset_strength(y=y, sr=sample_rate)
        tempo, beats = librosa.beat.beat_track(onset_envelope=onset_env, sr=sample_rate)
        bpm = float(np.atleast_1d(tempo)[0])
        if len(beats) == 0:
            return bpm, 0.0
        beat_strengths = onset_env[beats]
        mean_val = float(np.mean(beat_strengths))
        std_val = float(np.std(beat_strengths))
        beat_consistency = 1.0 - min(std_val / (mean_val + 1e-6), 1.0)
        pulse = librosa.beat.plp(onset_envelope=onset_env, sr=sample_rate)
        pulse_support = float(np.mean(pulse[beats])) if pulse.size else 0.0
        return bpm, clamp_to_unit(0.6 * beat_consistency + 0.4 * pulse_support)


def default_chroma_extractor(sample_rate: int, frame_size: int = settings.FRAME_SIZE) -> ChromaExtractor:
    """Prefer Essentia HPCP, falling back to the librosa filter bank."""
    if essentia_allowed():
        try:
            return EssentiaHPCPExtractor(sample_rate, frame_size)
        except Exception as exc:
            logger.warning("⚠️ Essentia HPCP setup failed (%s); using librosa chroma.", exc)
    return LibrosaChromaExtractor(sample_rate, frame_size)


def default_rhythm_extractor():
    if essentia_allowed():
        try:
            return EssentiaRhythmExtractor()
        except Exception as exc:
            logger.warning("⚠️ Essentia rhythm setup failed (%s); using librosa beat tracking.", exc)
    return LibrosaRhythmExtractor()


__all__ = [
    "ChromaExtractor",
    "DecodedAudio",
    "decode_audio",
    "generate_frames",
    "LibrosaChromaExtractor",
    "LibrosaRhythmExtractor",
    "default_chroma_extractor",
    "default_rhythm_extractor",
]
