"""
Turn Runner — the loop that owns the generator call.

The gate never loops on its own; it answers Retry and waits for a new
attempt. This is the caller side of that contract: prepare, generate,
process, and go around again until the gate accepts. The gate's
attempt cap bounds the loop at max_regen_attempts + 1 generations.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from storygate.gate import Accept, QualityGate
from storygate.history import Turn
from storygate.llm import LLMProvider
from storygate.session import SessionState

logger = logging.getLogger(__name__)


async def run_turn(
    gate: QualityGate,
    generator: LLMProvider,
    context_text: str,
    history: Sequence[Turn],
    session: SessionState,
    system_instruction: Optional[str] = None,
    temperature: float = 0.9,
) -> Accept:
    """
    Drive one logical turn to an accepted passage.

    A generator exception counts as an empty candidate: it uses up an
    attempt like any other poor output.
    """
    start = time.time()
    generations = 0

    while True:
        context = gate.prepare_context(context_text, history, session)
        generations += 1

        try:
            raw = await generator.generate(
                context.text,
                system_instruction=system_instruction,
                temperature=temperature,
            )
        except Exception as e:
            logger.warning(
                "Upstream generation failed on attempt %d: %s", generations, e,
                extra={"attempt": generations, "error_type": type(e).__name__},
            )
            raw = ""

        result = gate.process_output(raw, history, session)
        if isinstance(result, Accept):
            logger.info(
                f"Turn accepted after {generations} generation(s)",
                extra={
                    "attempt": generations,
                    "reason": result.reason.value,
                    "average": result.scores.average if result.scores else None,
                    "duration_ms": int((time.time() - start) * 1000),
                },
            )
            return result
