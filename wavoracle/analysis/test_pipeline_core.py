#!/usr/bin/env python3
"""Native analysis pipeline driven by stub decoders and extractors."""

from __future__ import annotations

import unittest

import numpy as np

from wavoracle.analysis.extractors import DecodedAudio
from wavoracle.analysis.key_profiles import KEY_PROFILES
from wavoracle.analysis.pipeline import AnalysisTimer
from wavoracle.analysis.pipeline_core import NativeAnalysis, perform_native_analysis
from wavoracle.errors import DecodeFailure, ExtractionFailure


def _decoder(audio_bytes):
    return DecodedAudio(samples=np.zeros(44100, dtype=np.float32), sample_rate=44100, channels=2)


def _constant_chroma(name):
    template = np.array(KEY_PROFILES[name])

    def factory(sample_rate, frame_size):
        return lambda frame: template

    return factory


def _rhythm(samples, sample_rate):
    return 128.4, 0.92


class PerformNativeAnalysisTests(unittest.TestCase):
    def test_combines_key_and_tempo(self):
        timer = AnalysisTimer()
        result = perform_native_analysis(
            b"payload",
            decoder=_decoder,
            chroma_extractor_factory=_constant_chroma("G major"),
            rhythm_extractor=_rhythm,
            frame_size=4096,
            hop_size=2048,
            timer=timer,
        )
        self.assertEqual(result.key.key, "G major")
        self.assertAlmostEqual(result.key.confidence, 1.0)
        self.assertEqual(result.tempo.bpm, 128)
        self.assertAlmostEqual(result.tempo.confidence, 0.92)
        self.assertEqual(result.frame_count, 1 + (44100 - 4096) // 2048)
        self.assertEqual((result.sample_rate, result.channels), (44100, 2))
        self.assertAlmostEqual(result.duration, 1.0)
        self.assertIn("native.decode", timer.snapshot())
        self.assertIn("native.chroma", timer.snapshot())

    def test_decode_failure_propagates(self):
        def broken(audio_bytes):
            raise DecodeFailure("bad container")

        with self.assertRaises(DecodeFailure):
            perform_native_analysis(b"x", decoder=broken, rhythm_extractor=_rhythm)

    def test_chroma_failure_becomes_extraction_failure(self):
        def factory(sample_rate, frame_size):
            def explode(frame):
                raise RuntimeError("hpcp exploded")

            return explode

        with self.assertRaises(ExtractionFailure):
            perform_native_analysis(b"x", decoder=_decoder, chroma_extractor_factory=factory, rhythm_extractor=_rhythm)

    def test_rhythm_failure_keeps_key_result(self):
        def explode(samples, sample_rate):
            raise RuntimeError("no onsets")

        result = perform_native_analysis(
            b"x",
            decoder=_decoder,
            chroma_extractor_factory=_constant_chroma("E minor"),
            rhythm_extractor=explode,
        )
        self.assertEqual(result.key.key, "E minor")
        self.assertEqual((result.tempo.bpm, result.tempo.confidence), (0, 0.0))

    def test_round_trips_through_dict(self):
        result = perform_native_analysis(
            b"x",
            decoder=_decoder,
            chroma_extractor_factory=_constant_chroma("C# major"),
            rhythm_extractor=_rhythm,
        )
        payload = result.to_dict()
        self.assertEqual(payload["bpm"]["bpm"], 128)
        self.assertEqual(NativeAnalysis.from_dict(payload), result)


if __name__ == "__main__":
    unittest.main()
