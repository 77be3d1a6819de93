"""
Gate — Public Entry Points

Coordinates the directive synthesizer, sanitizer, analyzer, scorer,
controller and correction manager for one session at a time.

Two calls per generation attempt:
  prepare_context()  before the upstream generator runs
  process_output()   after it returns, yielding Accept or Retry

Neither call raises. A card store that refuses writes switches the
directive card and correction cards off for the rest of the session;
any other failure becomes an Accept with reason "fallback".
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, TypeVar, Union

from storygate.analyzer import AnalysisRecord, MetaStatus, analyze
from storygate.cards import CardStore, ExternalStoreError
from storygate.config import GateConfig
from storygate.controller import AcceptReason, decide
from storygate.corrections import apply_corrections
from storygate.directive import (
    ContextClassification,
    classify,
    publish_directive,
    synthesize,
)
from storygate.history import Turn, is_continuation, last_output, recent_outputs
from storygate.logging import DiagnosticLog
from storygate.sanitizer import PLACEHOLDER, sanitize_report
from storygate.scorer import ScoreSet, score
from storygate.session import SessionState

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONTEXT_WINDOW = 3

CONTINUE_HINT = (
    "\n\n<SYSTEM>Continue from your last response, "
    "maintaining the same scene and tone.</SYSTEM>"
)
_TERMINAL_PUNCTUATION = re.compile(r"[.!?]$")


# ============================================================
# RESULTS
# ============================================================

@dataclass(frozen=True)
class ContextResult:
    """The context to send upstream, with the directive appended."""
    text: str
    directive: str
    classification: ContextClassification
    corrections: list[str] = field(default_factory=list)
    continue_hint: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class Accept:
    """Final text for this turn."""
    text: str
    reason: AcceptReason
    attempt: int = 0
    scores: Optional[ScoreSet] = None
    analysis: Optional[AnalysisRecord] = None
    empty_placeholder: bool = False
    corrections: list[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(frozen=True)
class Retry:
    """Discard this attempt and generate again."""
    attempt: int
    max_attempts: int
    issues: list[str]
    scores: ScoreSet


GateResult = Union[Accept, Retry]


# ============================================================
# THE GATE
# ============================================================

class QualityGate:
    """
    Generation quality gate for one configuration and one card store.

    The gate holds no per-session state of its own: every call takes
    the SessionState it should read and update.
    """

    def __init__(self, config: GateConfig, store: CardStore, debug: bool = False):
        self.config = config
        self.store = store
        self.diag = DiagnosticLog("gate", enabled=debug)

    # --- internals ---

    def _write_store(
        self, session: SessionState, fn: Callable[..., T], *args,
    ) -> Optional[T]:
        """Run a card-store write unless the store has already refused one."""
        if not session.store_available:
            return None
        try:
            return fn(*args)
        except ExternalStoreError as e:
            session.store_available = False
            logger.warning(
                "Card store refused a write; directive and correction cards "
                "disabled for this session",
                extra={"error": str(e)},
            )
            return None

    def _start(self, session: SessionState) -> None:
        if session.initialize():
            self._write_store(session, publish_directive, self.store, synthesize(self.config))
            self.diag.emit("State initialized", "success")

    def _continue_hint(self, context_text: str, history: Sequence[Turn]) -> str:
        if not is_continuation(history):
            return ""
        lines = [line for line in context_text.split("\n") if line.strip()]
        last_line = lines[-1].strip() if lines else ""
        if _TERMINAL_PUNCTUATION.search(last_line):
            return ""
        return CONTINUE_HINT

    # --- before generation ---

    def prepare_context(
        self,
        context_text: str,
        history: Sequence[Turn],
        session: SessionState,
    ) -> ContextResult:
        """
        Build the request for the upstream generator.

        Refreshes correction cards from the last few outputs, picks the
        sampling parameters, publishes the directive card and appends
        the directive to the context.
        """
        try:
            self._start(session)
            context_text = context_text or ""

            corrections: list[str] = []
            if self.config.enable_dynamic_correction:
                recent = recent_outputs(history, CONTEXT_WINDOW)
                if recent.strip():
                    record = analyze(recent, self.config.fatigue_threshold)
                    session.last_context_analysis = record
                    corrections = self._write_store(
                        session, apply_corrections, record, self.store, session,
                    ) or []
                    recent_scores = score(record)
                    if recent_scores.quality == "poor":
                        self.diag.emit(
                            f"Quality warning: {recent_scores.quality} "
                            f"(score: {recent_scores.average:.2f})",
                            "warn",
                            average=recent_scores.average,
                            quality=recent_scores.quality,
                        )

            classification = classify(context_text, self.config)
            if self.config.adaptive:
                session.adapted_params = classification
                self.diag.emit(
                    f"Directive adapted: k={classification.k}, tau={classification.tau}",
                    "info",
                    k=classification.k,
                    tau=classification.tau,
                    context_kind=classification.kind,
                )

            hint = self._continue_hint(context_text, history)
            directive = synthesize(self.config, classification)
            self._write_store(session, publish_directive, self.store, directive)

            text = context_text + hint + "\n\n" + directive
            session.last_context_chars = len(text)
            session.last_context_words = len(text.split())

            return ContextResult(
                text=text,
                directive=directive,
                classification=classification,
                corrections=corrections,
                continue_hint=bool(hint),
            )
        except Exception as e:
            logger.error("Context preparation failed: %s", e, exc_info=True)
            directive = synthesize(self.config)
            return ContextResult(
                text=f"{context_text or ''}\n\n{directive}",
                directive=directive,
                classification=ContextClassification("default", self.config.k, self.config.tau),
                error=str(e),
            )

    # --- after generation ---

    def process_output(
        self,
        raw_text: str,
        history: Sequence[Turn],
        session: SessionState,
    ) -> GateResult:
        """
        Sanitize, analyze, score and decide on one raw generation.

        Retry means the text is discarded and the caller should prepare
        the context and generate again. Accept carries the final text.
        """
        clean: Optional[str] = None
        try:
            self._start(session)

            prior = last_output(history)
            report = sanitize_report(raw_text, prior.text if prior else None)
            clean = report.text

            if report.duplicate:
                self.diag.emit(
                    f'Removed duplicate start: "{report.duplicate[:30]}..."',
                    "info",
                    duplicate=report.duplicate,
                )
            if report.removed_chars:
                self.diag.emit(
                    "Sanitizer removed generator artifacts",
                    "info",
                    removed_chars=report.removed_chars,
                )
            if report.empty:
                self.diag.emit(
                    "Output was empty after cleaning, returning placeholder", "warn",
                )

            record = analyze(clean, self.config.fatigue_threshold)
            scores = score(record)
            decision = decide(scores, record, session, self.config)

            if not decision.accepted:
                self.diag.emit(
                    f"Quality below threshold: {scores.average:.2f} < "
                    f"{self.config.quality_threshold}",
                    "warn",
                    average=scores.average,
                    issues=decision.issues,
                )
                for issue in decision.issues:
                    self.diag.emit(f"  - {issue}", "warn")
                self.diag.emit(
                    f"Triggering regeneration (attempt {decision.attempt}/"
                    f"{self.config.max_regen_attempts})",
                    "warn",
                    attempt=decision.attempt,
                    max_attempts=self.config.max_regen_attempts,
                )
                return Retry(
                    attempt=decision.attempt,
                    max_attempts=self.config.max_regen_attempts,
                    issues=decision.issues,
                    scores=scores,
                )

            session.adapted_params = None

            corrections: list[str] = []
            if self.config.enable_dynamic_correction:
                corrections = self._write_store(
                    session, apply_corrections, record, self.store, session,
                ) or []

            self._report_acceptance(decision.reason, scores, record)

            return Accept(
                text=clean,
                reason=decision.reason,
                attempt=decision.attempt,
                scores=scores,
                analysis=record,
                empty_placeholder=report.empty,
                corrections=corrections,
            )
        except Exception as e:
            logger.error("Output processing failed: %s", e, exc_info=True)
            session.regen_counter = 0
            return Accept(
                text=clean if clean is not None else PLACEHOLDER,
                reason=AcceptReason.FALLBACK,
                empty_placeholder=clean is None or clean == PLACEHOLDER,
                error=str(e),
            )

    def _report_acceptance(
        self,
        reason: AcceptReason,
        scores: ScoreSet,
        record: AnalysisRecord,
    ) -> None:
        if reason == AcceptReason.EXHAUSTED:
            self.diag.emit(
                "Max regeneration attempts reached, accepting output",
                "warn",
                reason=reason.value,
            )
        self.diag.emit(
            f"Output quality: {scores.quality} ({scores.average:.2f})",
            "success",
            average=scores.average,
            quality=scores.quality,
            reason=reason.value,
        )
        for dimension, value in scores.scores.items():
            self.diag.emit(f"  {dimension}: {value}/5", "info")
        if record.meta_status != MetaStatus.SUPPRESSED:
            self.diag.emit(f"  Meta-awareness: {record.meta_status.value}", "warn")

    # --- queries ---

    def metrics(self, session: SessionState) -> dict:
        """Totals and rates for the session."""
        return session.summary()
