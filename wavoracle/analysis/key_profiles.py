"""Binary major/minor scale templates used by the chroma key classifier."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from wavoracle.analysis.key_labels import NOTE_NAMES_SHARP

KEY_NAMES = NOTE_NAMES_SHARP
MAJOR_INTERVALS = (0, 2, 4, 5, 7, 9, 11)
MINOR_INTERVALS = (0, 2, 3, 5, 7, 8, 10)
SCALE_INTERVALS = (("major", MAJOR_INTERVALS), ("minor", MINOR_INTERVALS))
PITCH_CLASSES = 12


def scale_template(tonic_index: int, intervals) -> Tuple[float, ...]:
    """Return a 12-bin vector with 1.0 on every scale degree of the tonic."""
    template = [0.0] * PITCH_CLASSES
    for offset in intervals:
        template[(tonic_index + offset) % PITCH_CLASSES] = 1.0
    return tuple(template)


def build_key_profiles() -> Mapping[str, Tuple[float, ...]]:
    """
    Build the 24 key templates.

    Insertion order is tonic-ascending with major before minor; the
    classifier relies on that order to break ties deterministically.
    Degrees are unweighted (no perceptual profile).
    """
    profiles: Dict[str, Tuple[float, ...]] = {}
    for tonic_index, tonic in enumerate(KEY_NAMES):
        for mode, intervals in SCALE_INTERVALS:
            profiles[f"{tonic} {mode}"] = scale_template(tonic_index, intervals)
    return MappingProxyType(profiles)


KEY_PROFILES = build_key_profiles()


__all__ = [
    "KEY_NAMES",
    "MAJOR_INTERVALS",
    "MINOR_INTERVALS",
    "PITCH_CLASSES",
    "KEY_PROFILES",
    "build_key_profiles",
    "scale_template",
]
