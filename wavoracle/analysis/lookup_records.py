"""Normalized records returned by external key/BPM lookup sources."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence

from wavoracle.analysis.key_labels import canonicalize_key
from wavoracle.analysis.utils import safe_int


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @classmethod
    def parse(cls, value, default: "ConfidenceTier" = None) -> "ConfidenceTier":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            if default is None:
                raise
            return default


_TIER_RANK = {ConfidenceTier.HIGH: 3, ConfidenceTier.MEDIUM: 2, ConfidenceTier.LOW: 1}


@dataclass(frozen=True)
class LookupRecord:
    source: str
    key: Optional[str] = None
    bpm: Optional[int] = None
    confidence: ConfidenceTier = ConfidenceTier.LOW
    url: Optional[str] = None

    @classmethod
    def build(cls, source: str, key=None, bpm=None, confidence=ConfidenceTier.LOW, url=None) -> "LookupRecord":
        """Normalize raw scraped values: canonical key spelling, integer BPM (0 or less means unknown)."""
        bpm_value = safe_int(bpm)
        return cls(
            source=source,
            key=canonicalize_key(key),
            bpm=bpm_value if bpm_value and bpm_value > 0 else None,
            confidence=ConfidenceTier.parse(confidence, ConfidenceTier.LOW),
            url=url,
        )

    @property
    def has_data(self) -> bool:
        return bool(self.key) or bool(self.bpm)

    def to_dict(self) -> Dict[str, object]:
        return {
            "source": self.source,
            "key": self.key,
            "bpm": self.bpm,
            "confidence": self.confidence.value,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "LookupRecord":
        return cls(
            source=str(payload.get("source", "unknown")),
            key=payload.get("key"),
            bpm=safe_int(payload.get("bpm")),
            confidence=ConfidenceTier.parse(payload.get("confidence"), ConfidenceTier.LOW),
            url=payload.get("url"),
        )


def best_of(records: Sequence[LookupRecord]) -> Optional[LookupRecord]:
    """Highest tier wins; ``max`` keeps the first of equally ranked records."""
    if not records:
        return None
    return max(records, key=lambda record: record.confidence.rank)


__all__ = ["ConfidenceTier", "LookupRecord", "best_of"]
