"""
Session State

Everything the gate remembers between turns of one session. Owned by
the gate: components receive it explicitly and nobody else writes it.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from storygate.analyzer import AnalysisRecord
from storygate.directive import ContextClassification

logger = logging.getLogger(__name__)

HISTORY_CAPACITY = 20


@dataclass
class GateMetrics:
    """Cumulative counters for one session."""
    total_outputs: int = 0
    regenerations: int = 0
    fatigue_detections: int = 0
    drift_detections: int = 0

    def record_output(self, record: Optional[AnalysisRecord]) -> None:
        self.total_outputs += 1
        if record is not None:
            if record.fatigue:
                self.fatigue_detections += 1
            if record.drift:
                self.drift_detections += 1

    def record_regeneration(self) -> None:
        self.regenerations += 1

    def summary(self) -> dict:
        return {
            "total_outputs": self.total_outputs,
            "regenerations": self.regenerations,
            "regen_rate": _rate(self.regenerations, self.total_outputs),
            "fatigue_rate": _rate(self.fatigue_detections, self.total_outputs),
            "drift_rate": _rate(self.drift_detections, self.total_outputs),
        }


def _rate(count: int, total: int) -> str:
    if total <= 0:
        return "0%"
    return f"{count / total * 100:.1f}%"


@dataclass
class SessionState:
    """
    Per-session gate state.

    history:                accepted AnalysisRecords, oldest evicted first
    active_correction_keys: correction cards currently in the store
    regen_counter:          regenerations spent on the current turn
    adapted_params:         adaptive-mode k/tau, valid for the current turn
    store_available:        cleared for good once the card store refuses a write
    """
    initialized: bool = False
    history: deque = field(default_factory=lambda: deque(maxlen=HISTORY_CAPACITY))
    active_correction_keys: set[str] = field(default_factory=set)
    metrics: GateMetrics = field(default_factory=GateMetrics)
    regen_counter: int = 0
    adapted_params: Optional[ContextClassification] = None
    store_available: bool = True
    last_context_analysis: Optional[AnalysisRecord] = None
    last_context_chars: int = 0
    last_context_words: int = 0

    def initialize(self) -> bool:
        """Mark the session started. Returns True only the first time."""
        if self.initialized:
            return False
        self.initialized = True
        logger.debug("Session state initialized")
        return True

    def push_analysis(self, record: AnalysisRecord) -> None:
        self.history.append(record)

    def summary(self) -> dict:
        return self.metrics.summary()
