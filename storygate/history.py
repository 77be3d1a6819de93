"""
Turn History — External Interface

The host owns an append-only log of turns. The gate only reads it:
the latest generated output (for duplicate suppression) and the last
few outputs joined together (for context analysis).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence


class TurnRole(str, Enum):
    INPUT = "input"          # the reader's action
    OUTPUT = "output"        # accepted generated text
    CONTINUE = "continue"    # a bare request to keep going


@dataclass(frozen=True)
class Turn:
    role: TurnRole
    text: str = ""


def last_output(history: Sequence[Turn]) -> Optional[Turn]:
    """Most recent generated-output turn, or None."""
    for turn in reversed(history):
        if turn.role == TurnRole.OUTPUT:
            return turn
    return None


def recent_outputs(history: Sequence[Turn], n: int = 3) -> str:
    """Text of the last `n` generated outputs, space-joined, oldest first."""
    outputs = [t.text or "" for t in history if t.role == TurnRole.OUTPUT]
    return " ".join(outputs[-n:]) if n > 0 else ""


def is_continuation(history: Sequence[Turn]) -> bool:
    """True when the latest turn is a continue request."""
    return bool(history) and history[-1].role == TurnRole.CONTINUE
