"""Result caches keyed by the request fingerprint ``(title, artist, byte length)``.

The fingerprint ignores audio content, so two different files
with the same title, artist and size share one entry.
"""

from __future__ import annotations

import hashlib
import json
import logging
from threading import Lock
from typing import Dict, Optional, Tuple

from wavoracle.server.bundle import AnalysisBundle
from wavoracle.server.database import get_db_connection, initialize_database

logger = logging.getLogger(__name__)

DEFAULT_CACHE_NAMESPACE = "default"

Fingerprint = Tuple[str, Optional[str], int]


def make_fingerprint(title: str, artist: Optional[str], audio_bytes: bytes) -> Fingerprint:
    return (title, artist, len(audio_bytes or b""))


def get_fingerprint_hash(fingerprint: Fingerprint, namespace: str = DEFAULT_CACHE_NAMESPACE) -> str:
    title, artist, byte_length = fingerprint
    # JSON keeps None distinct from the string "None".
    key = f"{namespace}::{json.dumps([title, artist, int(byte_length)])}"
    return hashlib.sha256(key.encode()).hexdigest()


class ResultCache:
    """In-process cache. Entries live for the process lifetime; last writer wins."""

    def __init__(self):
        self._entries: Dict[Fingerprint, AnalysisBundle] = {}
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def get(self, fingerprint: Fingerprint) -> Optional[AnalysisBundle]:
        with self._lock:
            bundle = self._entries.get(fingerprint)
        self.update_stats(cache_hit=bundle is not None)
        if bundle is None:
            logger.info("❌ CACHE MISS for '%s' by %s", fingerprint[0], fingerprint[1])
        else:
            logger.info("✅ CACHE HIT for '%s' by %s", fingerprint[0], fingerprint[1])
        return bundle

    def put(self, fingerprint: Fingerprint, bundle: AnalysisBundle):
        with self._lock:
            self._entries[fingerprint] = bundle
        logger.info("💾 Cached analysis for '%s' by %s", fingerprint[0], fingerprint[1])

    def update_stats(self, cache_hit: bool):
        with self._lock:
            if cache_hit:
                self._hits += 1
            else:
                self._misses += 1

    def stats(self) -> Dict[str, object]:
        with self._lock:
            hits, misses, cached = self._hits, self._misses, len(self._entries)
        total = hits + misses
        return {
            "total_analyses": total,
            "cache_hits": hits,
            "cache_misses": misses,
            "cache_hit_rate": (hits / total) if total else 0.0,
            "total_cached_songs": cached,
        }

    def clear(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        logger.info("🗑️ Cleared %d cached analyses", removed)
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SQLiteResultCache:
    """Same contract as ResultCache, persisted through the configured sqlite database."""

    def __init__(self, namespace: str = DEFAULT_CACHE_NAMESPACE, initialize: bool = True):
        self.namespace = namespace
        if initialize:
            initialize_database()

    def get(self, fingerprint: Fingerprint) -> Optional[AnalysisBundle]:
        fingerprint_hash = get_fingerprint_hash(fingerprint, self.namespace)
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT bundle FROM analysis_cache WHERE fingerprint_hash = ? AND cache_namespace = ?",
                (fingerprint_hash, self.namespace),
            ).fetchone()
        bundle = None
        if row:
            try:
                bundle = AnalysisBundle.from_dict(json.loads(row["bundle"]))
            except (json.JSONDecodeError, TypeError, ValueError) as exc:
                logger.warning("⚠️ Could not decode cached bundle JSON (%s); treating as miss.", exc)
        self.update_stats(cache_hit=bundle is not None)
        if bundle is None:
            logger.info("❌ CACHE MISS for '%s' by %s", fingerprint[0], fingerprint[1])
        else:
            logger.info("✅ CACHE HIT for '%s' by %s", fingerprint[0], fingerprint[1])
        return bundle

    def put(self, fingerprint: Fingerprint, bundle: AnalysisBundle):
        title, artist, byte_length = fingerprint
        fingerprint_hash = get_fingerprint_hash(fingerprint, self.namespace)
        with get_db_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO analysis_cache (
                    fingerprint_hash, cache_namespace, title, artist, byte_length,
                    key, bpm, confidence_tier, method, bundle, analyzed_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    fingerprint_hash,
                    self.namespace,
                    title,
                    artist,
                    int(byte_length),
                    bundle.final.key,
                    bundle.final.bpm,
                    bundle.final.confidence.value,
                    bundle.final.method.value,
                    json.dumps(bundle.to_dict()),
                    bundle.analyzed_at,
                ),
            )
        logger.info("💾 Cached analysis for '%s' by %s", title, artist)

    def update_stats(self, cache_hit: bool):
        column = "cache_hits" if cache_hit else "cache_misses"
        with get_db_connection() as conn:
            conn.execute(
                f"""
                UPDATE server_stats
                SET {column} = {column} + 1,
                    total_analyses = total_analyses + 1,
                    last_updated = CURRENT_TIMESTAMP
                WHERE id = 1
                """
            )

    def stats(self) -> Dict[str, object]:
        with get_db_connection() as conn:
            stats = conn.execute(
                "SELECT total_analyses, cache_hits, cache_misses, last_updated FROM server_stats LIMIT 1"
            ).fetchone()
            cached = conn.execute(
                "SELECT COUNT(*) FROM analysis_cache WHERE cache_namespace = ?",
                (self.namespace,),
            ).fetchone()[0]
        hits = stats["cache_hits"] if stats else 0
        misses = stats["cache_misses"] if stats else 0
        return {
            "total_analyses": stats["total_analyses"] if stats else 0,
            "cache_hits": hits,
            "cache_misses": misses,
            "cache_hit_rate": (hits / (hits + misses)) if (hits + misses) else 0.0,
            "last_updated": stats["last_updated"] if stats else None,
            "total_cached_songs": cached,
        }

    def clear(self) -> int:
        with get_db_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM analysis_cache WHERE cache_namespace = ?",
                (self.namespace,),
            )
            removed = cursor.rowcount
        logger.info("🗑️ Cleared %d cached analyses (namespace=%s)", removed, self.namespace)
        return removed

    def __len__(self) -> int:
        return int(self.stats()["total_cached_songs"])


__all__ = [
    "DEFAULT_CACHE_NAMESPACE",
    "Fingerprint",
    "make_fingerprint",
    "get_fingerprint_hash",
    "ResultCache",
    "SQLiteResultCache",
]
