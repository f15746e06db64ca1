"""Database helpers: configuration, short-lived connections, schema setup."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from threading import Lock
from typing import Optional

logger = logging.getLogger(__name__)

_DB_PATH: Optional[str] = None
_db_lock = Lock()


def configure_database(db_path: str):
    """Configure the sqlite path used by connection helpers."""
    global _DB_PATH
    with _db_lock:
        _DB_PATH = str(db_path)


def _create_db_connection() -> sqlite3.Connection:
    with _db_lock:
        db_path = _DB_PATH
    if db_path is None:
        raise RuntimeError("Database path not configured.")
    conn = sqlite3.connect(db_path, timeout=10.0)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db_connection():
    """Open a connection for one unit of work; commit on success, always close."""
    conn = _create_db_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def initialize_database():
    """Create tables and indexes if they do not yet exist."""
    with get_db_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS analysis_cache (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                fingerprint_hash TEXT UNIQUE NOT NULL,
                cache_namespace TEXT DEFAULT 'default',
                title TEXT NOT NULL,
                artist TEXT,
                byte_length INTEGER NOT NULL,
                key TEXT,
                bpm INTEGER,
                confidence_tier TEXT,
                method TEXT,
                bundle TEXT NOT NULL,
                analyzed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_fingerprint ON analysis_cache(fingerprint_hash)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_artist_title ON analysis_cache(artist, title)"
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS server_stats (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                total_analyses INTEGER DEFAULT 0,
                cache_hits INTEGER DEFAULT 0,
                cache_misses INTEGER DEFAULT 0,
                last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        cursor.execute("SELECT COUNT(*) FROM server_stats")
        if cursor.fetchone()[0] == 0:
            cursor.execute(
                "INSERT INTO server_stats (total_analyses, cache_hits, cache_misses) VALUES (0, 0, 0)"
            )

    logger.info("Database initialized at %s", _DB_PATH)


__all__ = ["configure_database", "get_db_connection", "initialize_database"]
