#!/usr/bin/env python3
"""
WavOracle Analysis Server
Detects key and BPM for uploaded tracks, cross-checks web databases,
and caches each fused result by title/artist/size.
"""

from __future__ import annotations

import logging
from typing import Optional

from flask import Flask
from flask_cors import CORS

from wavoracle.server.analysis_routes import register_analysis_routes
from wavoracle.server.app_config import ServerConfig
from wavoracle.server.cache_store import ResultCache, SQLiteResultCache
from wavoracle.server.database import configure_database
from wavoracle.server.processing import TrackAnalyzer

logger = logging.getLogger(__name__)


def configure_logging(config: ServerConfig):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(config.log_file),
            logging.StreamHandler(),
        ],
    )


def build_analyzer(config: ServerConfig) -> TrackAnalyzer:
    if config.persistent_cache:
        configure_database(str(config.db_path))
        cache = SQLiteResultCache(namespace=config.cache_namespace)
        logger.info("📂 Persistent cache: %s", config.db_path)
    else:
        cache = ResultCache()
    return TrackAnalyzer(cache=cache)


def create_app(analyzer: Optional[TrackAnalyzer] = None, config: Optional[ServerConfig] = None) -> Flask:
    config = config or ServerConfig.from_env()
    app = Flask(__name__)
    if config.production_mode:
        CORS(app)
    else:
        CORS(app, resources={r"/*": {"origins": ["http://localhost:*", "http://127.0.0.1:*"]}})
    register_analysis_routes(app, logger=logger, analyzer=analyzer or build_analyzer(config))
    return app


def main():
    config = ServerConfig.from_env()
    configure_logging(config)
    logger.info("🎵 WavOracle Analysis Server")
    logger.info("📁 Cache Dir: %s", config.cache_dir)
    app = create_app(config=config)
    bind_host = config.bind_host
    if bind_host == "0.0.0.0":
        logger.info("📡 Listening on all interfaces (port %d)", config.default_port)
    else:
        logger.info("📡 Listening on http://%s:%d", bind_host, config.default_port)
    app.run(host=bind_host, port=config.default_port, debug=False)


if __name__ == "__main__":
    main()
