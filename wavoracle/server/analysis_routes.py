"""Flask route registration for the analysis, stats and cache endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import jsonify, request

from wavoracle import __version__


def _truthy(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on", "y"}
    return False


def register_analysis_routes(app, *, logger, analyzer):
    """Wire /health, /analyze_data, /stats and /cache/clear onto the provided Flask app."""

    def _header(name: str) -> Optional[str]:
        value = request.headers.get(name)
        if value is None:
            return None
        value = value.strip()
        return value or None

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify(
            {
                "running": True,
                "version": __version__,
                "status": "healthy",
                "server": "WavOracle Analysis Server",
                "timestamp": datetime.now().isoformat(),
            }
        )

    @app.route("/analyze_data", methods=["POST"])
    def analyze_data():
        audio_data = request.get_data()
        if not audio_data:
            return jsonify({"error": "No audio data provided"}), 400
        title = _header("X-Song-Title")
        if not title:
            return jsonify({"error": "Missing fields", "message": "Require X-Song-Title header"}), 400
        artist = _header("X-Song-Artist")
        force_reanalyze = _truthy(request.headers.get("X-Force-Reanalyze"))
        logger.info("📨 Analyzing direct upload '%s' by %s", title, artist or "Unknown")
        bundle = analyzer.analyze(audio_data, title, artist, force_reanalyze=force_reanalyze)
        return jsonify(bundle.to_dict())

    @app.route("/stats", methods=["GET"])
    def get_stats():
        return jsonify(analyzer.cache.stats())

    @app.route("/cache/clear", methods=["POST"])
    def clear_cache():
        removed = analyzer.cache.clear()
        logger.info("🗑️ Cache cleared via API (%d entries)", removed)
        return jsonify({"success": True, "removed": removed})


__all__ = ["register_analysis_routes"]
