"""
StoryGate API — Main Application

GET    /health                  — Health check
POST   /sessions                — Open a gate session
DELETE /sessions/{id}           — Close a session
POST   /sessions/{id}/context   — Prepare context for the generator
POST   /sessions/{id}/output    — Gate one raw generation (accept / retry)
POST   /sessions/{id}/turn      — Run a whole turn against the configured provider
GET    /sessions/{id}/metrics   — Session totals and rates
GET    /sessions/{id}/cards     — Cards currently in the session's store
POST   /analyze                 — Stateless analysis and scores
POST   /sanitize                — Stateless output cleaning
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional, Union

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from storygate import __version__
from storygate.analyzer import analyze, build_suggestions
from storygate.config import load_gate_config, settings
from storygate.gate import Accept, Retry
from storygate.llm.factory import get_provider
from storygate.logging import get_logger, setup_logging
from storygate.registry import GateSession, SessionRegistry
from storygate.runner import run_turn
from storygate.sanitizer import sanitize_report
from storygate.scorer import score
from storygate.schemas.gate import (
    AnalyzeRequest,
    AnalyzeResponse,
    CardsResponse,
    ContextRequest,
    ContextResponse,
    HealthResponse,
    MetricsResponse,
    OutputRequest,
    OutputResponse,
    SanitizeRequest,
    SanitizeResponse,
    SessionCreateRequest,
    SessionResponse,
    TurnRequest,
    to_history,
)

logger = get_logger("api")

gate_config = load_gate_config()
registry = SessionRegistry(
    gate_config,
    max_sessions=settings.MAX_SESSIONS,
    debug=settings.DEBUG_LOGGING,
)


# ============================================================
# STARTUP / SHUTDOWN
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(
        "StoryGate API starting",
        extra={
            "k": gate_config.k,
            "tau": gate_config.tau,
            "max_attempts": gate_config.max_regen_attempts,
        },
    )
    yield
    logger.info("StoryGate API shutting down")


app = FastAPI(
    title="StoryGate API",
    description="Generation quality gate for interactive fiction",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=False,
)


# ============================================================
# GLOBAL ERROR HANDLER
# ============================================================

@app.exception_handler(Exception)
async def global_error_handler(request: Request, exc: Exception):
    """Structured 500 without leaking internals."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"error": str(exc), "path": request.url.path, "method": request.method},
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error. The request could not be completed."},
    )


# Lazy LLM provider
_llm = None


def _get_llm():
    global _llm
    if _llm is None:
        _llm = get_provider(settings.LLM_PROVIDER)
    return _llm


def _session_or_404(session_id: str) -> GateSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(404, f"Unknown session: {session_id}")
    return session


def _output_response(result: Union[Accept, Retry]) -> dict:
    if isinstance(result, Retry):
        return {
            "status": "retry",
            "attempt": result.attempt,
            "max_attempts": result.max_attempts,
            "issues": result.issues,
            "score": result.scores.breakdown(),
        }
    return {
        "status": "accept",
        "text": result.text,
        "reason": result.reason.value,
        "attempt": result.attempt,
        "score": result.scores.breakdown() if result.scores else None,
        "meta_status": result.analysis.meta_status.value if result.analysis else None,
        "empty_placeholder": result.empty_placeholder,
        "corrections": result.corrections,
        "error": result.error,
    }


# ============================================================
# SESSIONS
# ============================================================

@app.post("/sessions", response_model=SessionResponse, status_code=201)
async def create_session(request: Optional[SessionCreateRequest] = None):
    cards_enabled = request.cards_enabled if request is not None else True
    session = registry.create(cards_enabled=cards_enabled)
    logger.info("Session opened", extra={"session_id": session.session_id})
    return {
        "session_id": session.session_id,
        "config": {
            "k": gate_config.k,
            "tau": gate_config.tau,
            "adaptive": gate_config.adaptive,
            "fatigue_threshold": gate_config.fatigue_threshold,
            "quality_threshold": gate_config.quality_threshold,
            "max_regen_attempts": gate_config.max_regen_attempts,
            "enable_dynamic_correction": gate_config.enable_dynamic_correction,
        },
    }


@app.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str):
    if not registry.delete(session_id):
        raise HTTPException(404, f"Unknown session: {session_id}")
    logger.info("Session closed", extra={"session_id": session_id})


@app.post("/sessions/{session_id}/context", response_model=ContextResponse)
async def prepare_context(session_id: str, request: ContextRequest):
    """Context with the sampling directive appended, ready for the generator."""
    session = _session_or_404(session_id)
    async with session.lock:
        result = session.gate.prepare_context(
            request.text, to_history(request.history), session.state,
        )
    return {
        "text": result.text,
        "directive": result.directive,
        "context_kind": result.classification.kind,
        "k": result.classification.k,
        "tau": result.classification.tau,
        "corrections": result.corrections,
        "continue_hint": result.continue_hint,
        "error": result.error,
    }


@app.post("/sessions/{session_id}/output", response_model=OutputResponse)
async def process_output(session_id: str, request: OutputRequest):
    """Gate one raw generation. A retry means: prepare context and generate again."""
    session = _session_or_404(session_id)
    async with session.lock:
        result = session.gate.process_output(
            request.text, to_history(request.history), session.state,
        )
    return _output_response(result)


@app.post("/sessions/{session_id}/turn", response_model=OutputResponse)
async def turn(session_id: str, request: TurnRequest):
    """Generate until the gate accepts, using the configured provider."""
    session = _session_or_404(session_id)
    start = time.time()
    async with session.lock:
        result = await run_turn(
            session.gate,
            _get_llm(),
            request.text,
            to_history(request.history),
            session.state,
            temperature=request.temperature,
        )

    logger.info(
        f"Turn complete: reason={result.reason.value}",
        extra={
            "session_id": session_id,
            "reason": result.reason.value,
            "attempt": result.attempt,
            "duration_ms": int((time.time() - start) * 1000),
        },
    )
    return _output_response(result)


@app.get("/sessions/{session_id}/metrics", response_model=MetricsResponse)
async def session_metrics(session_id: str):
    session = _session_or_404(session_id)
    state = session.state
    return {
        **session.gate.metrics(state),
        "regen_counter": state.regen_counter,
        "history_size": len(state.history),
        "store_available": state.store_available,
    }


@app.get("/sessions/{session_id}/cards", response_model=CardsResponse)
async def session_cards(session_id: str):
    session = _session_or_404(session_id)
    return {
        "cards": [c.to_dict() for c in session.store.find_all(lambda c: True)],
        "active_corrections": sorted(session.state.active_correction_keys),
    }


# ============================================================
# STATELESS TOOLS
# ============================================================

@app.post("/analyze", response_model=AnalyzeResponse)
async def analyze_text(request: AnalyzeRequest):
    """Analyze and score a passage without touching any session."""
    threshold = request.fatigue_threshold or gate_config.fatigue_threshold
    record = analyze(request.text, threshold)
    data = record.to_dict()
    data.pop("timestamp")
    return {
        **data,
        "suggestions": build_suggestions(record),
        "score": score(record).breakdown(),
    }


@app.post("/sanitize", response_model=SanitizeResponse)
async def sanitize_text(request: SanitizeRequest):
    report = sanitize_report(request.text, request.prior)
    return {
        "text": report.text,
        "duplicate": report.duplicate,
        "removed_spans": report.removed_spans,
        "empty": report.empty,
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check."""
    return {
        "status": "operational",
        "version": __version__,
        "llm_provider": settings.LLM_PROVIDER,
        "sessions": len(registry),
    }


# --- Request Logging Middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with method, path, status, duration."""
    path = request.url.path
    if path == "/health":
        return await call_next(request)

    start = time.time()
    response = await call_next(request)
    duration_ms = round((time.time() - start) * 1000, 1)

    logger.info(
        f"{request.method} {path} → {response.status_code} ({duration_ms}ms)",
        extra={
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response
