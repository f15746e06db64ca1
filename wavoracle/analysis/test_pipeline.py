#!/usr/bin/env python3
"""AnalysisTimer bookkeeping used for per-bundle stage timings."""

from __future__ import annotations

import unittest

from wavoracle.analysis import pipeline
from wavoracle.analysis.pipeline import AnalysisTimer


class AnalysisTimerTests(unittest.TestCase):
    def test_track_accumulates_named_sections(self):
        timer = AnalysisTimer()
        with timer.track("native.key"):
            pass
        with timer.track("native.key"):
            pass
        timer.add("lookup_total", 0.5)
        snapshot = timer.snapshot()
        self.assertEqual(set(snapshot), {"native.key", "lookup_total"})
        self.assertGreaterEqual(snapshot["native.key"], 0.0)
        self.assertEqual(snapshot["lookup_total"], 0.5)

    def test_track_records_even_when_stage_raises(self):
        timer = AnalysisTimer()
        with self.assertRaises(RuntimeError):
            with timer.track("native.decode"):
                raise RuntimeError("bad container")
        self.assertIn("native.decode", timer.snapshot())

    def test_add_ignores_unusable_durations(self):
        timer = AnalysisTimer()
        timer.add("a", None)
        timer.add("b", "fast")
        timer.add("c", -1.0)
        self.assertEqual(timer.snapshot(), {})

    def test_log_orders_slowest_first(self):
        timer = AnalysisTimer()
        timer.add("fast", 0.1)
        timer.add("slow", 2.0)
        with self.assertLogs("wavoracle.analysis.pipeline", level="INFO") as captured:
            timer.log("'Song'")
        self.assertIn("slow: 2.000s, fast: 0.100s", captured.output[0])

    def test_timer_is_the_only_timing_helper(self):
        self.assertEqual(pipeline.__all__, ["AnalysisTimer"])
        self.assertFalse(hasattr(pipeline, "stage_timer"))


if __name__ == "__main__":
    unittest.main()
