"""External key/BPM lookups (Tunebat, MusicBrainz) and their aggregator."""

from __future__ import annotations

import concurrent.futures
import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote, quote_plus

import requests

from wavoracle.analysis import settings
from wavoracle.analysis.key_labels import normalize_key_label
from wavoracle.analysis.lookup_records import ConfidenceTier, LookupRecord, best_of
from wavoracle.errors import LookupFailure

logger = logging.getLogger(__name__)

_TUNEBAT_KEY_PATTERNS = (
    re.compile(r'"key"\s*:\s*"([^"]+)"', re.IGNORECASE),
    re.compile(r'key["\s]*:["\s]*([^"<>\s]+)', re.IGNORECASE),
)
_TUNEBAT_BPM_PATTERN = re.compile(r'bpm["\s]*:["\s]*(\d+)', re.IGNORECASE)
_BPM_TAG_PATTERN = re.compile(r"^(\d{2,3})\s*bpm$", re.IGNORECASE)


def search_query(title: str, artist: Optional[str] = None) -> str:
    return f"{artist} {title}" if artist else title


class LookupSource:
    """One external database. ``search`` returns at most one record or None."""

    name = "source"
    tier = ConfidenceTier.LOW

    def __init__(self, http=None, timeout: float = settings.LOOKUP_TIMEOUT_SECONDS):
        self._http = http or requests
        self.timeout = timeout

    def _get(self, url: str, **kwargs):
        headers = {"User-Agent": settings.LOOKUP_USER_AGENT}
        headers.update(kwargs.pop("headers", {}) or {})
        response = self._http.get(url, headers=headers, timeout=self.timeout, **kwargs)
        if not response.ok:
            raise LookupFailure(self.name, f"HTTP {response.status_code} for {url}")
        return response

    def search(self, title: str, artist: Optional[str] = None) -> Optional[LookupRecord]:
        raise NotImplementedError


class TunebatSource(LookupSource):
    """Scrapes the Tunebat search page (through a CORS-style proxy when configured)."""

    name = "Tunebat"
    tier = ConfidenceTier.MEDIUM

    def __init__(
        self,
        http=None,
        timeout: float = settings.LOOKUP_TIMEOUT_SECONDS,
        base_url: str = settings.TUNEBAT_BASE_URL,
        proxy_url: Optional[str] = settings.TUNEBAT_PROXY_URL,
    ):
        super().__init__(http, timeout)
        self.base_url = base_url.rstrip("/")
        self.proxy_url = proxy_url

    def search_url(self, title: str, artist: Optional[str] = None) -> str:
        return f"{self.base_url}/Search?q={quote_plus(search_query(title, artist))}"

    def search(self, title: str, artist: Optional[str] = None) -> Optional[LookupRecord]:
        target = self.search_url(title, artist)
        fetch_url = f"{self.proxy_url}{quote(target, safe='')}" if self.proxy_url else target
        logger.info("🔍 Searching Tunebat: %s", target)
        html = self._get(fetch_url).text
        key_value = None
        for pattern in _TUNEBAT_KEY_PATTERNS:
            match = pattern.search(html)
            if match:
                key_value = match.group(1)
                break
        bpm_match = _TUNEBAT_BPM_PATTERN.search(html)
        if not key_value or not bpm_match:
            return None
        return LookupRecord.build(self.name, key_value, bpm_match.group(1), self.tier, target)


class MusicBrainzSource(LookupSource):
    """First recording hit from the MusicBrainz search API; key/BPM from fields or tags."""

    name = "MusicBrainz"
    tier = ConfidenceTier.LOW

    def __init__(
        self,
        http=None,
        timeout: float = settings.LOOKUP_TIMEOUT_SECONDS,
        base_url: str = settings.MUSICBRAINZ_BASE_URL,
    ):
        super().__init__(http, timeout)
        self.base_url = base_url.rstrip("/")

    def search_url(self, title: str, artist: Optional[str] = None) -> str:
        return f"{self.base_url}/ws/2/recording/?query={quote_plus(search_query(title, artist))}&fmt=json"

    @staticmethod
    def _from_tags(tags: Iterable[Dict[str, object]]):
        key_value = None
        bpm_value = None
        for tag in tags or ():
            name = str(tag.get("name", "")).strip()
            if not name:
                continue
            bpm_match = _BPM_TAG_PATTERN.match(name)
            if bpm_match and bpm_value is None:
                bpm_value = bpm_match.group(1)
            elif key_value is None and re.search(r"\b(major|minor)\b", name, re.IGNORECASE):
                if normalize_key_label(name):
                    key_value = name
        return key_value, bpm_value

    def search(self, title: str, artist: Optional[str] = None) -> Optional[LookupRecord]:
        url = self.search_url(title, artist)
        logger.info("🔍 Searching MusicBrainz: %s", url)
        try:
            data = self._get(url, headers={"Accept": "application/json"}).json()
        except ValueError as exc:
            raise LookupFailure(self.name, f"malformed JSON payload: {exc}") from exc
        recordings = data.get("recordings") if isinstance(data, dict) else None
        if not recordings:
            return None
        recording = recordings[0]
        tag_key, tag_bpm = self._from_tags(recording.get("tags") or [])
        record = LookupRecord.build(
            self.name,
            recording.get("key") or tag_key,
            recording.get("bpm") or tag_bpm,
            self.tier,
            url,
        )
        return record if record.has_data else None


SOURCE_REGISTRY = {
    "tunebat": TunebatSource,
    "musicbrainz": MusicBrainzSource,
}


def build_default_sources(
    names: Sequence[str] = settings.LOOKUP_SOURCES,
    http=None,
    timeout: float = settings.LOOKUP_TIMEOUT_SECONDS,
) -> List[LookupSource]:
    """Instantiate configured sources in priority order, skipping unknown names."""
    sources: List[LookupSource] = []
    for name in names:
        source_cls = SOURCE_REGISTRY.get(name.lower())
        if source_cls is None:
            logger.warning("⚠️ Unknown lookup source '%s' ignored.", name)
            continue
        sources.append(source_cls(http=http, timeout=timeout))
    return sources


class LookupAggregator:
    """Query every source concurrently and keep the answers in configured order."""

    def __init__(self, sources: Sequence[LookupSource], timeout: float = settings.LOOKUP_TIMEOUT_SECONDS):
        self.sources = list(sources)
        self.timeout = timeout

    def aggregate(self, title: str, artist: Optional[str] = None) -> List[LookupRecord]:
        if not self.sources:
            return []
        executor = ThreadPoolExecutor(max_workers=len(self.sources), thread_name_prefix="lookup")
        pending = [(source, executor.submit(source.search, title, artist)) for source in self.sources]
        deadline = time.monotonic() + self.timeout
        records: List[LookupRecord] = []
        try:
            for source, future in pending:
                remaining = max(0.0, deadline - time.monotonic())
                try:
                    record = future.result(timeout=remaining)
                except concurrent.futures.TimeoutError:
                    logger.warning("⏱️ %s lookup timed out after %.1fs", source.name, self.timeout)
                    continue
                except Exception as exc:
                    failure = exc if isinstance(exc, LookupFailure) else LookupFailure(source.name, str(exc))
                    logger.warning("⚠️ Lookup failed: %s", failure)
                    continue
                if record is None or not record.has_data:
                    logger.info("∅ %s returned no key/BPM data", source.name)
                    continue
                if record.source != source.name:
                    record = replace(record, source=source.name)
                records.append(record)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        logger.info("🌐 Lookup returned %d record(s) for '%s'", len(records), title)
        return records


__all__ = [
    "LookupSource",
    "TunebatSource",
    "MusicBrainzSource",
    "SOURCE_REGISTRY",
    "LookupAggregator",
    "build_default_sources",
    "best_of",
    "search_query",
]
