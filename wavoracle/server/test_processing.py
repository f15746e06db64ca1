#!/usr/bin/env python3
"""TrackAnalyzer orchestration with stub native analyzers and aggregators."""

from __future__ import annotations

import threading
import unittest

from wavoracle.analysis.fusion import FusionMethod
from wavoracle.analysis.key_detection import KeyEstimate
from wavoracle.analysis.lookup_records import ConfidenceTier, LookupRecord
from wavoracle.analysis.pipeline_core import NativeAnalysis
from wavoracle.analysis.tempo_detection import TempoEstimate
from wavoracle.errors import DecodeFailure, ExtractionFailure
from wavoracle.server.cache_store import ResultCache
from wavoracle.server.processing import TrackAnalyzer


def _native(key_conf=0.95, bpm_conf=0.95) -> NativeAnalysis:
    return NativeAnalysis(
        key=KeyEstimate(key="G major", confidence=key_conf),
        tempo=TempoEstimate(bpm=124, confidence=bpm_conf, method="stub"),
        duration=10.0,
        sample_rate=44100,
        channels=1,
        frame_count=200,
    )


class _CountingNative:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    def __call__(self, audio_bytes):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class _StubAggregator:
    def __init__(self, records=(), error=None, block=None):
        self.records = list(records)
        self.error = error
        self.block = block
        self.calls = []

    def aggregate(self, title, artist=None):
        self.calls.append((title, artist))
        if self.block is not None:
            self.block.wait(5.0)
        if self.error is not None:
            raise self.error
        return list(self.records)


class _BrokenCache(ResultCache):
    def get(self, fingerprint):
        raise RuntimeError("disk gone")

    def put(self, fingerprint, bundle):
        raise RuntimeError("disk gone")


def _analyzer(native=None, aggregator=None, cache=None, **kwargs) -> TrackAnalyzer:
    return TrackAnalyzer(
        cache=cache if cache is not None else ResultCache(),
        native_analyzer=native or _CountingNative(_native()),
        lookup_aggregator=aggregator or _StubAggregator(),
        **kwargs,
    )


class TrackAnalyzerTests(unittest.TestCase):
    def test_confident_native_result(self):
        bundle = _analyzer().analyze(b"abc", "Song", "Artist")
        self.assertEqual(bundle.final.method, FusionMethod.NATIVE_HIGH)
        self.assertEqual((bundle.final.key, bundle.final.bpm), ("G major", 124))
        self.assertIsNone(bundle.native_absent_reason)
        self.assertIn("analysis_total", bundle.analysis_timing)

    def test_second_request_is_served_from_cache(self):
        native = _CountingNative(_native())
        aggregator = _StubAggregator()
        analyzer = _analyzer(native, aggregator)
        first = analyzer.analyze(b"abc", "Song", "Artist")
        second = analyzer.analyze(b"xyz", "Song", "Artist")
        self.assertIs(second, first)
        self.assertEqual(native.calls, 1)
        self.assertEqual(len(aggregator.calls), 1)

    def test_force_reanalyze_bypasses_and_refreshes_cache(self):
        native = _CountingNative(_native())
        analyzer = _analyzer(native)
        first = analyzer.analyze(b"abc", "Song")
        refreshed = analyzer.analyze(b"abc", "Song", force_reanalyze=True)
        self.assertEqual(native.calls, 2)
        self.assertIsNot(refreshed, first)
        self.assertIs(analyzer.analyze(b"abc", "Song"), refreshed)

    def test_different_size_is_a_new_fingerprint(self):
        native = _CountingNative(_native())
        analyzer = _analyzer(native)
        analyzer.analyze(b"abc", "Song")
        analyzer.analyze(b"abcd", "Song")
        self.assertEqual(native.calls, 2)

    def test_decode_failure_falls_back_to_lookup(self):
        records = [
            LookupRecord.build("Tunebat", "D minor", 100, ConfidenceTier.MEDIUM),
            LookupRecord.build("MusicBrainz", "F major", 101, ConfidenceTier.LOW),
        ]
        analyzer = _analyzer(_CountingNative(error=DecodeFailure("bad")), _StubAggregator(records))
        bundle = analyzer.analyze(b"abc", "Song", "Artist")
        self.assertEqual(bundle.final.method, FusionMethod.LOOKUP)
        self.assertEqual((bundle.final.key, bundle.final.bpm), ("D minor", 100))
        self.assertIsNone(bundle.native)
        self.assertTrue(bundle.native_absent_reason.startswith("decode_failure"))
        self.assertEqual(len(bundle.lookup_records), 2)

    def test_everything_failing_still_returns_a_bundle(self):
        analyzer = _analyzer(
            _CountingNative(error=ExtractionFailure("hpcp")),
            _StubAggregator(error=RuntimeError("network down")),
        )
        bundle = analyzer.analyze(b"abc", "Song")
        self.assertEqual(bundle.final.method, FusionMethod.NONE)
        self.assertEqual(bundle.final.confidence, ConfidenceTier.LOW)
        self.assertEqual((bundle.final.key, bundle.final.bpm), ("Unknown", 0))
        self.assertTrue(bundle.native_absent_reason.startswith("extraction_failure"))
        self.assertTrue(bundle.lookup_absent_reason.startswith("lookup_error"))

    def test_unexpected_native_error_is_contained(self):
        bundle = _analyzer(_CountingNative(error=ZeroDivisionError("oops"))).analyze(b"abc", "Song")
        self.assertEqual(bundle.final.method, FusionMethod.NONE)
        self.assertTrue(bundle.native_absent_reason.startswith("native_error"))

    def test_weak_native_ignores_lookup(self):
        records = [LookupRecord.build("Tunebat", "D minor", 100, ConfidenceTier.HIGH)]
        analyzer = _analyzer(_CountingNative(_native(0.4, 0.4)), _StubAggregator(records))
        bundle = analyzer.analyze(b"abc", "Song")
        self.assertEqual(bundle.final.method, FusionMethod.NATIVE_FALLBACK)
        self.assertEqual(bundle.final.key, "G major")

    def test_cache_errors_do_not_fail_the_request(self):
        native = _CountingNative(_native())
        analyzer = _analyzer(native, cache=_BrokenCache())
        bundle = analyzer.analyze(b"abc", "Song")
        self.assertEqual(bundle.final.method, FusionMethod.NATIVE_HIGH)
        analyzer.analyze(b"abc", "Song")
        self.assertEqual(native.calls, 2)

    def test_slow_lookup_path_times_out(self):
        release = threading.Event()
        analyzer = _analyzer(
            _CountingNative(error=DecodeFailure("bad")),
            _StubAggregator([LookupRecord.build("Tunebat", "D minor", 100)], block=release),
            lookup_timeout=0.1,
        )
        try:
            bundle = analyzer.analyze(b"abc", "Song")
        finally:
            release.set()
        self.assertEqual(bundle.final.method, FusionMethod.NONE)
        self.assertIn("timed out", bundle.lookup_absent_reason)

    def test_bundle_serializes(self):
        payload = _analyzer().analyze(b"abc", "Song", "Artist").to_dict()
        self.assertEqual(payload["method"], "native_high")
        self.assertEqual(payload["confidence"], "high")
        self.assertEqual(payload["final_result"]["key"], "G major")
        self.assertEqual(payload["analysis"]["bpm"]["bpm"], 124)
        self.assertEqual(payload["web_data"], [])


if __name__ == "__main__":
    unittest.main()
