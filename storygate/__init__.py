"""
StoryGate — Generation Quality Gate for Interactive Fiction

Wraps an upstream text generator: steers it with a sampling directive,
cleans what comes back, scores it, and asks for bounded regeneration
when the passage is too weak.

Public API:
  - QualityGate:      prepare_context() / process_output() per attempt
  - run_turn:         drive one turn to an accepted passage
  - GateConfig:       tunables (k, tau, thresholds, attempt cap)
  - SessionState:     per-session memory owned by the gate
  - analyze:          contradictions, fatigue, drift, meta status
  - score:            five-dimension passage score
  - sanitize:         strip leakage, markup and duplicated openings
  - synthesize:       Verbalized Sampling directive text
  - CardStore:        guidance card store interface
  - LLMProvider:      abstract generator interface for provider swapping

Usage:
    from storygate import QualityGate, GateConfig, SessionState
    from storygate import InMemoryCardStore, run_turn
"""

__version__ = "2.1.0"

from storygate.analyzer import AnalysisRecord, MetaStatus, analyze, build_suggestions
from storygate.cards import CardStore, ExternalStoreError, GuidanceCard, InMemoryCardStore
from storygate.config import ConfigurationError, GateConfig, load_gate_config
from storygate.controller import AcceptReason, ControllerState, decide
from storygate.directive import ContextClassification, classify, synthesize
from storygate.gate import Accept, ContextResult, QualityGate, Retry
from storygate.history import Turn, TurnRole
from storygate.runner import run_turn
from storygate.sanitizer import sanitize, sanitize_report
from storygate.scorer import ScoreSet, score
from storygate.session import SessionState
from storygate.llm import LLMProvider
from storygate.llm.factory import get_provider

__all__ = [
    "AnalysisRecord",
    "MetaStatus",
    "analyze",
    "build_suggestions",
    "CardStore",
    "ExternalStoreError",
    "GuidanceCard",
    "InMemoryCardStore",
    "ConfigurationError",
    "GateConfig",
    "load_gate_config",
    "AcceptReason",
    "ControllerState",
    "decide",
    "ContextClassification",
    "classify",
    "synthesize",
    "Accept",
    "ContextResult",
    "QualityGate",
    "Retry",
    "Turn",
    "TurnRole",
    "run_turn",
    "sanitize",
    "sanitize_report",
    "ScoreSet",
    "score",
    "SessionState",
    "LLMProvider",
    "get_provider",
]
