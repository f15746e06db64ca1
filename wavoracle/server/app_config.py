"""Shared, typed configuration for the analysis server.

Keeps environment overrides discoverable instead of spreading one-off
globals across modules.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ServerConfig:
    production_mode: bool
    default_port: int
    host: str | None
    cache_dir: Path
    db_path: Path
    log_file: Path
    persistent_cache: bool
    cache_namespace: str

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Build config from environment with sensible defaults."""
        production_mode = os.environ.get("PRODUCTION_MODE", "false").lower() == "true"
        default_port = int(os.environ.get("WAVORACLE_SERVER_PORT", "5050"))
        host = os.environ.get("WAVORACLE_SERVER_HOST")
        cache_dir = Path(os.environ.get("WAVORACLE_CACHE_DIR", "~/Music/WavOracleCache")).expanduser()
        db_path = Path(os.environ.get("WAVORACLE_DB_PATH", str(cache_dir / "analysis_cache.db"))).expanduser()
        cache_dir.mkdir(parents=True, exist_ok=True)
        log_file = cache_dir / "server.log"
        persistent_cache = os.environ.get("WAVORACLE_PERSISTENT_CACHE", "false").strip().lower() in {
            "1",
            "true",
            "yes",
            "on",
            "y",
        }
        cache_namespace = os.environ.get("WAVORACLE_CACHE_NAMESPACE", "default")
        return cls(
            production_mode=production_mode,
            default_port=default_port,
            host=host,
            cache_dir=cache_dir,
            db_path=db_path,
            log_file=log_file,
            persistent_cache=persistent_cache,
            cache_namespace=cache_namespace,
        )

    @property
    def bind_host(self) -> str:
        if self.host:
            return self.host
        return "0.0.0.0" if self.production_mode else "127.0.0.1"
