"""
API Schemas — Request and Response Models

Pydantic models for the StoryGate API.
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field

from storygate.history import Turn, TurnRole


# ============================================================
# HISTORY
# ============================================================

class TurnModel(BaseModel):
    role: TurnRole
    text: str = Field("", max_length=50_000)

    def to_turn(self) -> Turn:
        return Turn(role=self.role, text=self.text)


def to_history(turns: list[TurnModel]) -> list[Turn]:
    return [t.to_turn() for t in turns]


# ============================================================
# SESSIONS
# ============================================================

class SessionCreateRequest(BaseModel):
    """POST /sessions request body."""
    cards_enabled: bool = Field(True, description="Allow the gate to write guidance cards.")


class SessionResponse(BaseModel):
    session_id: str
    config: dict


# ============================================================
# CONTEXT
# ============================================================

class ContextRequest(BaseModel):
    """POST /sessions/{id}/context request body."""
    text: str = Field(..., max_length=200_000,
                      description="Narrative context the generator will continue.")
    history: list[TurnModel] = Field(default_factory=list, max_length=1000)

    model_config = {"json_schema_extra": {"examples": [
        {"text": "You stand before the old gate.", "history": [
            {"role": "input", "text": "You open the gate."},
        ]},
    ]}}


class ContextResponse(BaseModel):
    text: str
    directive: str
    context_kind: str
    k: int
    tau: float
    corrections: list[str]
    continue_hint: bool
    error: Optional[str] = None


# ============================================================
# OUTPUT
# ============================================================

class OutputRequest(BaseModel):
    """POST /sessions/{id}/output request body."""
    text: str = Field("", max_length=200_000, description="Raw generator output.")
    history: list[TurnModel] = Field(default_factory=list, max_length=1000)


class ScoreResponse(BaseModel):
    scores: dict[str, int]
    average: float
    quality: str


class OutputResponse(BaseModel):
    status: str                         # "accept" | "retry"
    text: Optional[str] = None
    reason: Optional[str] = None
    attempt: int
    max_attempts: Optional[int] = None
    issues: list[str] = Field(default_factory=list)
    score: Optional[ScoreResponse] = None
    meta_status: Optional[str] = None
    empty_placeholder: bool = False
    corrections: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class TurnRequest(BaseModel):
    """POST /sessions/{id}/turn request body."""
    text: str = Field(..., max_length=200_000)
    history: list[TurnModel] = Field(default_factory=list, max_length=1000)
    temperature: float = Field(0.9, ge=0.0, le=2.0)


# ============================================================
# STATELESS TOOLS
# ============================================================

class AnalyzeRequest(BaseModel):
    """POST /analyze request body."""
    text: str = Field(..., min_length=1, max_length=50_000)
    fatigue_threshold: Optional[int] = Field(None, ge=1)


class AnalyzeResponse(BaseModel):
    fragment: str
    contradictions: list[str]
    fatigue: dict[str, int]
    drift: list[str]
    meta_status: str
    suggestions: list[str]
    score: ScoreResponse


class SanitizeRequest(BaseModel):
    """POST /sanitize request body."""
    text: str = Field("", max_length=200_000)
    prior: Optional[str] = Field(None, max_length=200_000)


class SanitizeResponse(BaseModel):
    text: str
    duplicate: str
    removed_spans: list[dict]
    empty: bool


# ============================================================
# METRICS / CARDS / HEALTH
# ============================================================

class MetricsResponse(BaseModel):
    total_outputs: int
    regenerations: int
    regen_rate: str
    fatigue_rate: str
    drift_rate: str
    regen_counter: int
    history_size: int
    store_available: bool


class CardResponse(BaseModel):
    title: str
    entry: str
    type: str
    keys: str
    description: str


class CardsResponse(BaseModel):
    cards: list[CardResponse]
    active_corrections: list[str]


class HealthResponse(BaseModel):
    status: str
    version: str
    llm_provider: str
    sessions: int
