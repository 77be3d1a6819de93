"""
Quality Scorer

Maps an AnalysisRecord to five per-dimension scores, their mean, and a
quality label. Separated from the analyzer for single-responsibility:
the analyzer finds defects, the scorer decides what they cost.

Every dimension is binary: a dimension either lands high (4 or 5) or
low (1 or 2). No rule produces a 3.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from storygate.analyzer import AnalysisRecord


EMOTIONAL_STRENGTH = "Emotional Strength"
STORY_FLOW = "Story Flow"
CHARACTER_CLARITY = "Character Clarity"
DIALOGUE_WEIGHT = "Dialogue Weight"
WORD_VARIETY = "Word Variety"

DIMENSIONS = (
    EMOTIONAL_STRENGTH,
    STORY_FLOW,
    CHARACTER_CLARITY,
    DIALOGUE_WEIGHT,
    WORD_VARIETY,
)

EMOTION_TERMS = ("felt", "cried", "laughed", "trembled", "ache")
_PRONOUN = re.compile(r"\b(?:he|she|i|you)\b", re.IGNORECASE)
_REPORTED_SPEECH = re.compile(r"\bsaid\b", re.IGNORECASE)

# (minimum average, label), checked top-down
QUALITY_BANDS = (
    (4.0, "excellent"),
    (3.0, "good"),
    (2.0, "fair"),
)


@dataclass(frozen=True)
class ScoreSet:
    """Per-dimension scores plus their mean and label."""
    scores: Mapping[str, int]
    average: float
    quality: str

    def breakdown(self) -> dict:
        return {
            "scores": dict(self.scores),
            "average": round(self.average, 2),
            "quality": self.quality,
        }


def quality_label(average: float) -> str:
    for floor, label in QUALITY_BANDS:
        if average >= floor:
            return label
    return "poor"


def has_dialogue(text: str) -> bool:
    """A double quote or a reported-speech verb."""
    return '"' in text or bool(_REPORTED_SPEECH.search(text))


def score(record: AnalysisRecord) -> ScoreSet:
    """
    Score a passage.

      Emotional Strength: 4 if an emotion word appears, else 2
      Story Flow:         1 if any contradiction or drift, else 5
      Character Clarity:  4 if he/she/i/you appears as a word, else 2
      Dialogue Weight:    4 if quoted or reported speech, else 2
      Word Variety:       1 if any fatigue, else 5
    """
    text = record.fragment
    lowered = text.lower()

    scores = {
        EMOTIONAL_STRENGTH: 4 if any(e in lowered for e in EMOTION_TERMS) else 2,
        STORY_FLOW: 1 if (record.contradictions or record.drift) else 5,
        CHARACTER_CLARITY: 4 if _PRONOUN.search(text) else 2,
        DIALOGUE_WEIGHT: 4 if has_dialogue(text) else 2,
        WORD_VARIETY: 1 if record.fatigue else 5,
    }

    average = sum(scores.values()) / len(scores)
    return ScoreSet(
        scores=MappingProxyType(scores),
        average=average,
        quality=quality_label(average),
    )
