"""Parse and canonicalize key labels coming from analysis and lookup sources."""

from __future__ import annotations

import re
from typing import Optional, Tuple

NOTE_NAMES_SHARP = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")
UNKNOWN_KEY = "Unknown"

_MODE_ALIASES = {
    "maj": "major",
    "major": "major",
    "ionian": "major",
    "min": "minor",
    "minor": "minor",
    "aeolian": "minor",
}
_NATURALS = {"c": 0, "d": 2, "e": 4, "f": 5, "g": 7, "a": 9, "b": 11}
_NOTE_TOKEN = re.compile(r"[a-g](?:#|b|x)*")


def _clean(text: str) -> str:
    text = text.replace("♯", "#").replace("♭", "b")
    text = re.sub(r"\bsharp\b", "#", text, flags=re.IGNORECASE)
    text = re.sub(r"\bflat\b", "b", text, flags=re.IGNORECASE)
    return text.strip()


def pitch_class(token: str) -> Optional[int]:
    """Map a note spelling (c, db, d##, cb, fx) to a pitch class 0-11."""
    token = (token or "").strip().lower()
    if not token or token[0] not in _NATURALS:
        return None
    pitch = _NATURALS[token[0]]
    for accidental in token[1:]:
        if accidental == "#":
            pitch += 1
        elif accidental == "b":
            pitch -= 1
        elif accidental == "x":
            pitch += 2
        else:
            return None
    return pitch % 12


def normalize_key_label(label: Optional[str]) -> Optional[Tuple[int, str]]:
    """Convert an arbitrary key label to ``(root_index, "major" | "minor")``."""
    if not label:
        return None
    text = _clean(str(label))
    if not text or text.lower() == UNKNOWN_KEY.lower():
        return None

    tokens = text.replace("/", " / ").split()
    mode: Optional[str] = None
    tonic_tokens = []
    for token in tokens:
        alias = _MODE_ALIASES.get(token.lower().rstrip("."))
        if alias:
            mode = mode or alias
            continue
        tonic_tokens.append(token)

    tonic_text = "".join(tonic_tokens)
    if mode is None:
        for alias in sorted(_MODE_ALIASES, key=len, reverse=True):
            if len(tonic_text) > len(alias) and tonic_text.lower().endswith(alias):
                mode = _MODE_ALIASES[alias]
                tonic_text = tonic_text[: -len(alias)]
                break
    # "Am","F#m", "C#m/Dbm": a trailing lowercase m marks minor.
    if mode is None and re.search(r"[a-gA-G][#bx]*m(?:$|/)", tonic_text):
        mode = "minor"
        tonic_text = re.sub(r"([a-gA-G][#bx]*)m(?=$|/)", r"\1", tonic_text)
    mode = mode or "major"

    for part in tonic_text.split("/"):
        match = _NOTE_TOKEN.match(part.strip().lower())
        if match:
            root = pitch_class(match.group(0))
            if root is not None:
                return root, mode
    return None


def format_canonical_key(root_index: int, mode: str) -> str:
    return f"{NOTE_NAMES_SHARP[int(root_index) % 12]} {mode}"


def canonicalize_key(label: Optional[str]) -> Optional[str]:
    """Return ``"<Tonic> <mode>"`` in sharp spelling, or the stripped label if unparseable."""
    if label is None:
        return None
    parsed = normalize_key_label(label)
    if parsed is None:
        stripped = str(label).strip()
        return stripped or None
    return format_canonical_key(*parsed)


def keys_match_fuzzy(key1: Optional[str], key2: Optional[str]) -> Tuple[bool, str]:
    """
    Compare two key labels.

    Returns ``(match, reason)`` where reason is one of ``exact``,
    ``enharmonic``, ``relative major/minor``, ``different``, ``missing key``
    or ``unparseable key``. Relative keys count as a match since they mix
    harmonically.
    """
    if not key1 or not key2:
        return False, "missing key"
    parsed1 = normalize_key_label(key1)
    parsed2 = normalize_key_label(key2)
    if not parsed1 or not parsed2:
        return False, "unparseable key"
    root1, mode1 = parsed1
    root2, mode2 = parsed2
    if parsed1 == parsed2:
        if _clean(key1).lower() == _clean(key2).lower():
            return True, "exact"
        return True, "enharmonic"
    if mode1 != mode2:
        major_root = root1 if mode1 == "major" else root2
        minor_root = root1 if mode1 == "minor" else root2
        if (major_root - minor_root) % 12 == 3:
            return True, "relative major/minor"
    return False, "different"


__all__ = [
    "NOTE_NAMES_SHARP",
    "UNKNOWN_KEY",
    "pitch_class",
    "normalize_key_label",
    "format_canonical_key",
    "canonicalize_key",
    "keys_match_fuzzy",
]
