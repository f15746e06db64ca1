"""Shared analyzer configuration loaded from environment variables."""

from __future__ import annotations

import os


def _truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on", "y"}


# Frame generator defaults for chromagram extraction (samples).
FRAME_SIZE = max(256, int(os.environ.get("FRAME_SIZE", "4096")))
HOP_SIZE = max(64, int(os.environ.get("HOP_SIZE", "2048")))

# Native readings must beat this on both key and BPM to earn the "high" tier.
CONFIDENCE_THRESHOLD = float(os.environ.get("CONFIDENCE_THRESHOLD", "0.85"))

_max_analysis_env = float(os.environ.get("MAX_ANALYSIS_SECONDS", "0"))
MAX_ANALYSIS_SECONDS = _max_analysis_env if _max_analysis_env > 0 else None
ANALYSIS_TIMEOUT_SECONDS = float(os.environ.get("ANALYSIS_TIMEOUT_SECONDS", "120"))
LOOKUP_TIMEOUT_SECONDS = float(os.environ.get("LOOKUP_TIMEOUT_SECONDS", "10"))

_essentia_env = os.environ.get("USE_ESSENTIA")
# None means "use Essentia whenever it imports".
USE_ESSENTIA = None if _essentia_env is None else _truthy(_essentia_env)

LOOKUP_SOURCES = tuple(
    name.strip().lower()
    for name in os.environ.get("LOOKUP_SOURCES", "tunebat,musicbrainz").split(",")
    if name.strip()
)
TUNEBAT_BASE_URL = os.environ.get("TUNEBAT_BASE_URL", "https://tunebat.com")
TUNEBAT_PROXY_URL = os.environ.get("TUNEBAT_PROXY_URL", "https://api.allorigins.win/raw?url=")
MUSICBRAINZ_BASE_URL = os.environ.get("MUSICBRAINZ_BASE_URL", "https://musicbrainz.org")
LOOKUP_USER_AGENT = os.environ.get(
    "LOOKUP_USER_AGENT",
    "WavOracle/1.0 ( https://github.com/wavoracle/wavoracle )",
)


__all__ = [
    "FRAME_SIZE",
    "HOP_SIZE",
    "CONFIDENCE_THRESHOLD",
    "MAX_ANALYSIS_SECONDS",
    "ANALYSIS_TIMEOUT_SECONDS",
    "LOOKUP_TIMEOUT_SECONDS",
    "USE_ESSENTIA",
    "LOOKUP_SOURCES",
    "TUNEBAT_BASE_URL",
    "TUNEBAT_PROXY_URL",
    "MUSICBRAINZ_BASE_URL",
    "LOOKUP_USER_AGENT",
]
