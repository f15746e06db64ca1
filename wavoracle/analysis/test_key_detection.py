#!/usr/bin/env python3
"""Key template table, Pearson scoring and frame-averaged key estimation."""

from __future__ import annotations

import unittest

import numpy as np

from wavoracle.analysis.key_detection import (
    KeyEstimate,
    classify_chroma,
    estimate_key,
    mean_chroma,
    pearson_correlation,
)
from wavoracle.analysis.key_labels import keys_match_fuzzy
from wavoracle.analysis.key_profiles import KEY_PROFILES, build_key_profiles


def _chroma_for(*pitch_weights, floor=0.0):
    chroma = np.full(12, floor)
    for index, weight in pitch_weights:
        chroma[index] = weight
    return chroma


class KeyProfileTableTests(unittest.TestCase):
    def test_builds_twenty_four_binary_templates(self):
        self.assertEqual(len(KEY_PROFILES), 24)
        for name, template in KEY_PROFILES.items():
            self.assertEqual(len(template), 12, name)
            self.assertEqual(sum(template), 7.0, name)
            self.assertTrue(set(template) <= {0.0, 1.0}, name)

    def test_order_is_tonic_ascending_major_first(self):
        names = list(KEY_PROFILES)
        self.assertEqual(names[:4], ["C major", "C minor", "C# major", "C# minor"])
        self.assertEqual(names[-1], "B minor")

    def test_known_scale_degrees(self):
        c_major = KEY_PROFILES["C major"]
        self.assertEqual([i for i, v in enumerate(c_major) if v], [0, 2, 4, 5, 7, 9, 11])
        a_minor = KEY_PROFILES["A minor"]
        self.assertEqual([i for i, v in enumerate(a_minor) if v], [0, 2, 4, 5, 7, 9, 11])
        d_minor = KEY_PROFILES["D minor"]
        self.assertEqual([i for i, v in enumerate(d_minor) if v], [0, 2, 4, 5, 7, 9, 10])

    def test_table_is_read_only_and_deterministic(self):
        with self.assertRaises(TypeError):
            KEY_PROFILES["C major"] = (0.0,) * 12  # type: ignore[index]
        self.assertEqual(dict(build_key_profiles()), dict(KEY_PROFILES))


class PearsonCorrelationTests(unittest.TestCase):
    def test_identical_vectors_correlate_to_one(self):
        self.assertAlmostEqual(pearson_correlation([1, 2, 3, 4], [1, 2, 3, 4]), 1.0)

    def test_inverted_vectors_correlate_to_minus_one(self):
        self.assertAlmostEqual(pearson_correlation([1, 2, 3, 4], [4, 3, 2, 1]), -1.0)

    def test_matches_numpy_reference(self):
        rng = np.random.default_rng(7)
        x = rng.random(12)
        y = rng.random(12)
        self.assertAlmostEqual(pearson_correlation(x, y), float(np.corrcoef(x, y)[0, 1]), places=10)

    def test_flat_or_empty_input_scores_zero(self):
        template = KEY_PROFILES["C major"]
        self.assertEqual(pearson_correlation([0.0] * 12, template), 0.0)
        self.assertEqual(pearson_correlation([0.1] * 12, template), 0.0)
        self.assertEqual(pearson_correlation([], []), 0.0)

    def test_length_mismatch_scores_zero(self):
        self.assertEqual(pearson_correlation([1, 2, 3], [1, 2]), 0.0)


class ClassifyChromaTests(unittest.TestCase):
    def test_every_profile_classifies_with_full_confidence(self):
        for name, template in KEY_PROFILES.items():
            result = classify_chroma(template)
            self.assertAlmostEqual(result.confidence, 1.0, places=9)
            # Relative major/minor templates are the same vector; the earlier name wins.
            self.assertEqual(KEY_PROFILES[result.best_key], template)
            self.assertTrue(keys_match_fuzzy(result.best_key, name)[0], name)

    def test_relative_pair_resolves_to_table_order(self):
        self.assertEqual(classify_chroma(KEY_PROFILES["A minor"]).best_key, "C major")
        self.assertEqual(classify_chroma(KEY_PROFILES["D# major"]).best_key, "C minor")
        self.assertEqual(classify_chroma(KEY_PROFILES["E minor"]).best_key, "E minor")

    def test_all_zero_chroma_scores_zero_everywhere(self):
        result = classify_chroma([0.0] * 12)
        self.assertEqual(set(result.scores.values()), {0.0})
        self.assertEqual(result.best_key, "C major")
        self.assertEqual(result.confidence, 0.0)

    def test_negative_best_correlation_reports_zero_confidence(self):
        template = np.array(KEY_PROFILES["E major"])
        result = classify_chroma(1.0 - template, {"E major": tuple(template)})
        self.assertEqual(result.best_key, "E major")
        self.assertLess(result.scores["E major"], 0.0)
        self.assertEqual(result.confidence, 0.0)

    def test_ties_go_to_first_profile_in_table_order(self):
        # C, E and G sit in six scales; exact binary weights make those scores identical.
        chroma = _chroma_for((0, 1.0), (4, 1.0), (7, 1.0))
        first = classify_chroma(chroma)
        second = classify_chroma(chroma)
        self.assertEqual(first.best_key, "C major")
        self.assertEqual(first, second)

    def test_quiet_chroma_scores_like_loud_chroma(self):
        template = np.array(KEY_PROFILES["G major"])
        reference = classify_chroma(template)
        for scale in (1e-3, 1e-7, 1e-12, 1e6):
            scaled = classify_chroma(template * scale)
            self.assertEqual(scaled.best_key, reference.best_key, scale)
            self.assertAlmostEqual(scaled.confidence, reference.confidence, places=9)
            for name, score in reference.scores.items():
                self.assertAlmostEqual(scaled.scores[name], score, places=9, msg=f"{name} @ {scale}")

    def test_scores_cover_whole_table(self):
        result = classify_chroma(KEY_PROFILES["G major"])
        self.assertEqual(list(result.scores), list(KEY_PROFILES))


class EstimateKeyTests(unittest.TestCase):
    def test_no_frames_returns_unknown(self):
        result = estimate_key([])
        self.assertEqual(result.key, "Unknown")
        self.assertEqual(result.confidence, 0.0)

    def test_only_invalid_frames_returns_unknown(self):
        result = estimate_key([[1, 2, 3], None, "abc", np.ones((3, 4))])
        self.assertEqual(result, KeyEstimate(key="Unknown", confidence=0.0))

    def test_invalid_frames_are_ignored_in_the_mean(self):
        valid = list(KEY_PROFILES["F# minor"])
        mixed = estimate_key([valid, [1.0, 2.0, 3.0, 4.0, 5.0]])
        direct = classify_chroma(valid)
        self.assertEqual(mixed.key, direct.best_key)
        self.assertAlmostEqual(mixed.confidence, direct.confidence)
        self.assertEqual(mixed.correlations, direct.scores)
        self.assertEqual(mixed.frames_used, 1)

    def test_non_finite_frames_are_skipped(self):
        nan_frame = [float("nan")] * 12
        averaged, count = mean_chroma([KEY_PROFILES["D major"], nan_frame])
        self.assertEqual(count, 1)
        np.testing.assert_allclose(averaged, KEY_PROFILES["D major"])

    def test_mean_smooths_noisy_frames(self):
        rng = np.random.default_rng(3)
        base = np.array(KEY_PROFILES["A minor"]) * 2.0
        frames = [np.clip(base + rng.normal(0.0, 0.3, 12), 0.0, None) for _ in range(64)]
        result = estimate_key(frames)
        self.assertIn(result.key, {"A minor", "C major"})  # relative keys share every pitch
        self.assertGreater(result.confidence, 0.8)
        self.assertEqual(result.frames_used, 64)

    def test_accepts_chromagram_matrix_rows(self):
        matrix = np.vstack([KEY_PROFILES["E minor"]] * 5)
        result = estimate_key(matrix)
        self.assertEqual(result.key, "E minor")
        self.assertEqual(result.frames_used, 5)

    def test_unnormalized_small_frames_still_classify(self):
        frames = [np.array(KEY_PROFILES["E minor"]) * 5e-7] * 4
        result = estimate_key(frames)
        self.assertEqual(result.key, "E minor")
        self.assertAlmostEqual(result.confidence, 1.0, places=9)

    def test_correlations_are_read_only(self):
        estimate = estimate_key([KEY_PROFILES["D major"]])
        with self.assertRaises(TypeError):
            estimate.correlations["D major"] = -1.0  # type: ignore[index]
        source = {"C major": 0.5}
        held = KeyEstimate(key="C major", confidence=0.5, correlations=source)
        source["C major"] = 0.0
        self.assertEqual(held.correlations["C major"], 0.5)

    def test_round_trips_through_dict(self):
        estimate = estimate_key([KEY_PROFILES["C# major"]])
        restored = KeyEstimate.from_dict(estimate.to_dict())
        self.assertEqual(restored, estimate)


if __name__ == "__main__":
    unittest.main()
