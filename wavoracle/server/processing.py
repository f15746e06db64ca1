"""Request orchestration: cache lookup, concurrent native/lookup paths, fusion."""

from __future__ import annotations

import concurrent.futures
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Tuple

from wavoracle.analysis import settings
from wavoracle.analysis.fusion import FusionResult, fuse_results
from wavoracle.analysis.lookup_records import LookupRecord
from wavoracle.analysis.pipeline import AnalysisTimer
from wavoracle.analysis.pipeline_core import NativeAnalysis, perform_native_analysis
from wavoracle.errors import DecodeFailure, ExtractionFailure
from wavoracle.server.bundle import AnalysisBundle, PathOutcome
from wavoracle.server.cache_store import ResultCache, make_fingerprint
from wavoracle.server.lookup_sources import LookupAggregator, build_default_sources

LOGGER = logging.getLogger(__name__)

NativeAnalyzer = Callable[[bytes], NativeAnalysis]


class TrackAnalyzer:
    """
    Owns the result cache and runs one analysis per fingerprint.

    ``analyze`` never raises: a failed path becomes an absent input to
    fusion and the worst case is the ``none``/``low`` result.
    """

    def __init__(
        self,
        cache=None,
        native_analyzer: Optional[NativeAnalyzer] = None,
        lookup_aggregator: Optional[LookupAggregator] = None,
        *,
        threshold: float = settings.CONFIDENCE_THRESHOLD,
        analysis_timeout: float = settings.ANALYSIS_TIMEOUT_SECONDS,
        lookup_timeout: float = settings.LOOKUP_TIMEOUT_SECONDS,
    ):
        self.cache = cache if cache is not None else ResultCache()
        self.native_analyzer = native_analyzer
        if lookup_aggregator is None:
            lookup_aggregator = LookupAggregator(build_default_sources(timeout=lookup_timeout), timeout=lookup_timeout)
        self.lookup_aggregator = lookup_aggregator
        self.threshold = threshold
        self.analysis_timeout = analysis_timeout
        self.lookup_timeout = lookup_timeout

    def _native_path(self, audio_bytes: bytes, timer: AnalysisTimer) -> PathOutcome[NativeAnalysis]:
        try:
            with timer.track("native_total"):
                if self.native_analyzer is not None:
                    native = self.native_analyzer(audio_bytes)
                else:
                    native = perform_native_analysis(audio_bytes, timer=timer)
        except DecodeFailure as exc:
            LOGGER.warning("❌ Audio decode failed: %s", exc)
            return PathOutcome.absent(f"decode_failure: {exc}")
        except ExtractionFailure as exc:
            LOGGER.warning("❌ Chroma extraction failed: %s", exc)
            return PathOutcome.absent(f"extraction_failure: {exc}")
        except Exception as exc:
            LOGGER.exception("❌ Native analysis failed unexpectedly")
            return PathOutcome.absent(f"native_error: {exc}")
        if native is None:
            return PathOutcome.absent("native analyzer returned no result")
        LOGGER.info("✅ Native analysis completed")
        return PathOutcome.ok(native)

    def _lookup_path(
        self, title: str, artist: Optional[str], timer: AnalysisTimer
    ) -> PathOutcome[Tuple[LookupRecord, ...]]:
        try:
            with timer.track("lookup_total"):
                records = self.lookup_aggregator.aggregate(title, artist)
        except Exception as exc:
            LOGGER.exception("❌ Lookup aggregation failed")
            return PathOutcome.absent(f"lookup_error: {exc}")
        return PathOutcome.ok(tuple(records or ()))

    @staticmethod
    def _await(future, timeout: float, label: str) -> PathOutcome:
        try:
            return future.result(timeout=timeout if timeout and timeout > 0 else None)
        except concurrent.futures.TimeoutError:
            LOGGER.error("⏱️ %s path timed out after %.0fs", label, timeout)
            return PathOutcome.absent(f"{label} timed out after {timeout:.0f}s")
        except Exception as exc:
            LOGGER.exception("❌ %s path crashed", label)
            return PathOutcome.absent(f"{label}_error: {exc}")

    def _run_paths(self, audio_bytes: bytes, title: str, artist: Optional[str], timer: AnalysisTimer):
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="analyze")
        try:
            native_future = executor.submit(self._native_path, audio_bytes, timer)
            lookup_future = executor.submit(self._lookup_path, title, artist, timer)
            native_outcome = self._await(native_future, self.analysis_timeout, "native")
            # The aggregator bounds its own sources; the extra second covers pool overhead.
            lookup_outcome = self._await(lookup_future, self.lookup_timeout + 1.0, "lookup")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return native_outcome, lookup_outcome

    def _fuse(self, native: Optional[NativeAnalysis], records: Tuple[LookupRecord, ...]) -> FusionResult:
        try:
            return fuse_results(native, records, self.threshold)
        except Exception:
            LOGGER.exception("❌ Fusion failed; reporting insufficient data")
            return fuse_results(None, ())

    def analyze(
        self,
        audio_bytes: bytes,
        title: str,
        artist: Optional[str] = None,
        *,
        force_reanalyze: bool = False,
    ) -> AnalysisBundle:
        """Return the cached bundle for this fingerprint or compute, store and return a new one."""
        fingerprint = make_fingerprint(title, artist, audio_bytes)
        if force_reanalyze:
            LOGGER.info("🔁 Force re-analyze requested for '%s' - bypassing cache", title)
        else:
            try:
                cached = self.cache.get(fingerprint)
            except Exception:
                LOGGER.exception("⚠️ Cache read failed; analyzing from scratch")
                cached = None
            if cached is not None:
                LOGGER.info("📋 Returning cached result for '%s'", title)
                return cached

        LOGGER.info("🎵 Analyzing '%s' by %s", title, artist or "Unknown")
        timer = AnalysisTimer()
        with timer.track("analysis_total"):
            native_outcome, lookup_outcome = self._run_paths(audio_bytes or b"", title, artist, timer)
            final = self._fuse(native_outcome.value, lookup_outcome.value or ())
        timer.log(f"'{title}'")
        LOGGER.info(
            "🎯 Final result for '%s': %s @ %d BPM (%s via %s)",
            title,
            final.key,
            final.bpm,
            final.confidence.value,
            final.method.value,
        )
        bundle = AnalysisBundle(
            title=title,
            artist=artist,
            final=final,
            native=native_outcome.value,
            lookup_records=tuple(lookup_outcome.value or ()),
            native_absent_reason=native_outcome.reason,
            lookup_absent_reason=lookup_outcome.reason,
            analysis_timing=timer.snapshot(),
        )
        try:
            self.cache.put(fingerprint, bundle)
        except Exception:
            LOGGER.exception("⚠️ Cache write failed for '%s'", title)
        return bundle


__all__ = ["TrackAnalyzer", "NativeAnalyzer"]
