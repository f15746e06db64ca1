"""Stage timing helpers shared by the native pipeline and the orchestrator."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from threading import Lock
from typing import Dict

logger = logging.getLogger(__name__)


class AnalysisTimer:
    """Collect lightweight timing data for expensive analysis stages."""

    def __init__(self):
        self._sections: Dict[str, float] = {}
        self._lock = Lock()

    @contextmanager
    def track(self, name: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.add(name, time.perf_counter() - start)

    def add(self, name: str, duration: float):
        if duration is None:
            return
        try:
            numeric = float(duration)
        except (TypeError, ValueError):
            return
        if numeric < 0:
            return
        with self._lock:
            self._sections[name] = self._sections.get(name, 0.0) + numeric

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            return {key: round(value, 6) for key, value in self._sections.items()}

    def log(self, label: str):
        sections = self.snapshot()
        if not sections:
            return
        ordered = sorted(sections.items(), key=lambda item: item[1], reverse=True)
        parts = ", ".join(f"{name}: {duration:.3f}s" for name, duration in ordered)
        logger.info("⏱️ %s timings: %s", label, parts)


__all__ = ["AnalysisTimer"]
