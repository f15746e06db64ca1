"""WavOracle key/BPM detection and fusion engine."""

__version__ = "1.0.0"
