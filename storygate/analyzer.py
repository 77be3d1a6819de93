"""
Pattern Analyzer — Deterministic Signal Extraction

Scans a generated passage for the defects the gate steers against:
  1. Contradictions (temporal marker + negation in one sentence)
  2. Fatigue (content words repeated past a threshold)
  3. Drift (system-speak with no grounded action)
  4. Meta-awareness status (how loudly the above co-occur)

Everything here is a pure function of the input text. No LLM, no state.
The vocabularies are tuning, not architecture: they are module-level
constants so they can be read in one place.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Mapping

DEFAULT_FATIGUE_THRESHOLD = 5


# ============================================================
# VOCABULARIES
# ============================================================

TEMPORAL_MARKERS = ("already", "still", "again")
NEGATION_MARKERS = ("not", "n't", "never")

SYSTEM_TERMS = ("system", "sequence", "signal", "process", "loop", "protocol")
ACTION_TERMS = (
    "pressed", "moved", "spoke", "acted", "responded", "decided", "changed",
)

META_TERMS = ("ache", "loop", "shimmer", "echo", "recursive")

# Tokens this short are treated as function words
MIN_CONTENT_WORD_LENGTH = 4

# A segment that is nothing but one quoted utterance
_PURE_DIALOGUE = re.compile(r'^\s*"[^"]*"[,.!?]?\s*$')
_NON_WORD = re.compile(r"[^\w\s]")


# ============================================================
# DATA STRUCTURES
# ============================================================

class MetaStatus(str, Enum):
    SUPPRESSED = "suppressed"
    FLICKER = "flicker"
    ACTIVE = "active"


@dataclass(frozen=True)
class AnalysisRecord:
    """Immutable result of analyzing one sanitized passage."""
    fragment: str
    contradictions: tuple[str, ...]
    fatigue: Mapping[str, int]          # word -> count, only >= threshold
    drift: tuple[str, ...]
    meta_status: MetaStatus
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def has_issues(self) -> bool:
        return bool(self.contradictions or self.fatigue or self.drift)

    def to_dict(self) -> dict:
        return {
            "fragment": self.fragment,
            "contradictions": list(self.contradictions),
            "fatigue": dict(self.fatigue),
            "drift": list(self.drift),
            "meta_status": self.meta_status.value,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================
# DETECTORS
# ============================================================

def _segments(text: str) -> list[str]:
    """Sentence-like segments. Splits on periods only."""
    return text.split(".")


def detect_contradictions(text: str) -> list[str]:
    """Segments pairing a temporal marker (already/still/again) with a negation."""
    found = []
    for segment in _segments(text):
        lowered = segment.lower()
        if (
            any(t in lowered for t in TEMPORAL_MARKERS)
            and any(n in lowered for n in NEGATION_MARKERS)
        ):
            found.append(segment.strip())
    return found


def trace_fatigue(text: str, threshold: int = DEFAULT_FATIGUE_THRESHOLD) -> dict[str, int]:
    """
    Count content words and return those used at least `threshold` times.

    Ordered by count (descending), ties by first appearance, so the
    first entries are always the worst offenders.
    """
    words = [
        w for w in _NON_WORD.sub(" ", text.lower()).split()
        if len(w) >= MIN_CONTENT_WORD_LENGTH
    ]
    return {
        word: count
        for word, count in Counter(words).most_common()
        if count >= threshold
    }


def detect_drift(text: str) -> list[str]:
    """
    Segments that talk about systems without anything happening.

    Pure dialogue is exempt: characters are allowed to say "the system".
    """
    found = []
    for segment in _segments(text):
        stripped = segment.strip()
        if _PURE_DIALOGUE.match(stripped):
            continue
        lowered = stripped.lower()
        if (
            any(t in lowered for t in SYSTEM_TERMS)
            and not any(a in lowered for a in ACTION_TERMS)
        ):
            found.append(stripped)
    return found


def meta_status(
    text: str,
    contradictions: list[str] | tuple[str, ...],
    fatigue: Mapping[str, int],
    drift: list[str] | tuple[str, ...],
) -> MetaStatus:
    """
    Meta-awareness score:
      +1 meta vocabulary anywhere, + min(contradictions, 2),
      +1 any fatigue, +1 any drift.
    >= 3 active, == 2 flicker, otherwise suppressed.
    """
    score = 0
    lowered = text.lower()

    if any(t in lowered for t in META_TERMS):
        score += 1

    score += min(len(contradictions), 2)
    score += 1 if fatigue else 0
    score += 1 if drift else 0

    if score >= 3:
        return MetaStatus.ACTIVE
    if score == 2:
        return MetaStatus.FLICKER
    return MetaStatus.SUPPRESSED


# ============================================================
# ENTRY POINT
# ============================================================

def analyze(text: str, fatigue_threshold: int = DEFAULT_FATIGUE_THRESHOLD) -> AnalysisRecord:
    """Run every detector over `text` and freeze the result."""
    contradictions = detect_contradictions(text)
    fatigue = trace_fatigue(text, fatigue_threshold)
    drift = detect_drift(text)

    return AnalysisRecord(
        fragment=text,
        contradictions=tuple(contradictions),
        fatigue=MappingProxyType(fatigue),
        drift=tuple(drift),
        meta_status=meta_status(text, contradictions, fatigue, drift),
    )


def build_suggestions(record: AnalysisRecord) -> list[str]:
    """Human-readable repair hints, most structural first."""
    suggestions = []

    for line in record.contradictions:
        suggestions.append(f'Contradiction: "{line}" - clarify temporal logic')

    for line in record.drift:
        suggestions.append(f'Ungrounded: "{line}" - add concrete action')

    for word, count in record.fatigue.items():
        suggestions.append(f'Overused: "{word}" ({count}x) - use synonyms')

    return suggestions
