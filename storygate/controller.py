"""
Regeneration Controller — Bounded-Retry State Machine

  Idle ──score──▶ Scored ──┬─ counter at cap ─────▶ Accepted (exhausted)
                           ├─ average < threshold ─▶ Regenerating
                           └─ otherwise ───────────▶ Accepted (quality)

Regenerating is a signal to the caller, not a loop: the caller owns
the generator and comes back with a fresh attempt. The per-turn
counter is the only thing that stops an endless retry, so it is
checked before the score.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from storygate.analyzer import AnalysisRecord, build_suggestions
from storygate.config import GateConfig
from storygate.scorer import ScoreSet
from storygate.session import SessionState

logger = logging.getLogger(__name__)

MAX_REPORTED_ISSUES = 3


class ControllerState(str, Enum):
    IDLE = "idle"
    SCORED = "scored"
    ACCEPTED = "accepted"
    REGENERATING = "regenerating"


class AcceptReason(str, Enum):
    QUALITY = "quality"         # passed the threshold
    EXHAUSTED = "exhausted"     # out of regeneration attempts
    FALLBACK = "fallback"       # the gate failed internally


@dataclass(frozen=True)
class Decision:
    """Outcome of one pass through the state machine."""
    state: ControllerState
    reason: Optional[AcceptReason] = None
    attempt: int = 0            # regenerations spent on this turn so far
    issues: list[str] = field(default_factory=list)
    trace: tuple[ControllerState, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.state == ControllerState.ACCEPTED


def _accept(
    record: AnalysisRecord,
    session: SessionState,
    reason: AcceptReason,
    trace: list[ControllerState],
) -> Decision:
    attempts_used = session.regen_counter
    session.regen_counter = 0
    session.push_analysis(record)
    session.metrics.record_output(record)
    trace.append(ControllerState.ACCEPTED)
    return Decision(
        state=ControllerState.ACCEPTED,
        reason=reason,
        attempt=attempts_used,
        trace=tuple(trace),
    )


def decide(
    scores: ScoreSet,
    record: AnalysisRecord,
    session: SessionState,
    config: GateConfig,
) -> Decision:
    """
    Walk Idle → Scored → {Accepted | Regenerating} for one attempt.

    Mutates `session`: the per-turn counter, the cumulative metrics,
    and, on acceptance, the bounded analysis history.
    """
    trace = [ControllerState.IDLE, ControllerState.SCORED]

    if session.regen_counter >= config.max_regen_attempts:
        logger.debug(
            "Regeneration attempts exhausted (%d/%d), accepting",
            session.regen_counter, config.max_regen_attempts,
        )
        return _accept(record, session, AcceptReason.EXHAUSTED, trace)

    if scores.average < config.quality_threshold:
        session.regen_counter += 1
        session.metrics.record_regeneration()
        trace.append(ControllerState.REGENERATING)
        return Decision(
            state=ControllerState.REGENERATING,
            attempt=session.regen_counter,
            issues=build_suggestions(record)[:MAX_REPORTED_ISSUES],
            trace=tuple(trace),
        )

    return _accept(record, session, AcceptReason.QUALITY, trace)
