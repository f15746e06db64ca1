"""Per-request result bundle and the ok/absent outcome of each analysis path."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Generic, Mapping, Optional, Tuple, TypeVar

from wavoracle.analysis.fusion import FusionResult
from wavoracle.analysis.lookup_records import LookupRecord
from wavoracle.analysis.pipeline_core import NativeAnalysis

T = TypeVar("T")


@dataclass(frozen=True)
class PathOutcome(Generic[T]):
    """Either data from a path or the reason it produced none."""

    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "PathOutcome[T]":
        return cls(value=value)

    @classmethod
    def absent(cls, reason: str) -> "PathOutcome[T]":
        return cls(value=None, reason=reason)

    @property
    def present(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class AnalysisBundle:
    """Everything one ``analyze()`` call produced; this is what the cache stores."""

    title: str
    artist: Optional[str]
    final: FusionResult
    native: Optional[NativeAnalysis] = None
    lookup_records: Tuple[LookupRecord, ...] = ()
    native_absent_reason: Optional[str] = None
    lookup_absent_reason: Optional[str] = None
    analysis_timing: Mapping[str, float] = field(default_factory=dict)
    analyzed_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def __post_init__(self):
        # Cache hits hand this same object to every caller.
        object.__setattr__(self, "lookup_records", tuple(self.lookup_records))
        object.__setattr__(self, "analysis_timing", MappingProxyType(dict(self.analysis_timing)))

    def to_dict(self) -> Dict[str, object]:
        return {
            "title": self.title,
            "artist": self.artist,
            "analysis": self.native.to_dict() if self.native else None,
            "web_data": [record.to_dict() for record in self.lookup_records],
            "final_result": self.final.to_dict(),
            "confidence": self.final.confidence.value,
            "method": self.final.method.value,
            "native_absent_reason": self.native_absent_reason,
            "lookup_absent_reason": self.lookup_absent_reason,
            "analysis_timing": dict(self.analysis_timing),
            "analyzed_at": self.analyzed_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "AnalysisBundle":
        native_payload = payload.get("analysis")
        return cls(
            title=str(payload.get("title", "")),
            artist=payload.get("artist"),
            final=FusionResult.from_dict(payload.get("final_result") or {}),
            native=NativeAnalysis.from_dict(native_payload) if native_payload else None,
            lookup_records=tuple(LookupRecord.from_dict(item) for item in payload.get("web_data") or ()),
            native_absent_reason=payload.get("native_absent_reason"),
            lookup_absent_reason=payload.get("lookup_absent_reason"),
            analysis_timing={str(k): float(v) for k, v in dict(payload.get("analysis_timing") or {}).items()},
            analyzed_at=str(payload.get("analyzed_at") or datetime.now().isoformat()),
        )


__all__ = ["PathOutcome", "AnalysisBundle"]
