"""Failure types raised inside a single analysis path.

Each one is caught at the boundary of the path that raised it and turned
into an absent input for the fusion step.
"""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for recoverable analysis failures."""


class DecodeFailure(AnalysisError):
    """The audio payload could not be decoded into samples."""


class ExtractionFailure(AnalysisError):
    """The chromagram extractor raised while processing frames."""


class LookupFailure(AnalysisError):
    """A single external lookup source failed to produce a record."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


__all__ = ["AnalysisError", "DecodeFailure", "ExtractionFailure", "LookupFailure"]
