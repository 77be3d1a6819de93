"""
Directive Synthesizer — Sampling Bias for the Upstream Generator

Builds the instruction appended to every generation request. It asks
the generator to sample several candidates internally, keep only the
atypical ones (estimated probability below tau), pick one, and never
reveal any of this in its output.

synthesize() is pure: same config + classification, same bytes.
publish_directive() is the only side effect, and it is idempotent.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from storygate.cards import CardStore, GuidanceCard
from storygate.config import GateConfig

logger = logging.getLogger(__name__)

DIRECTIVE_CARD_TITLE = "Sampling_Directive"
DIRECTIVE_MARKER = "[Internal Sampling Protocol:"
DIRECTIVE_CLOSING_PHRASE = "never mention this process"

# Context classification lookup: kind -> (k, tau)
ADAPTIVE_PARAMS = {
    "dialogue": (7, 0.12),      # more variety in speech
    "action": (5, 0.08),        # surprising but coherent
    "description": (4, 0.15),   # moderate
}

DESCRIPTIVE_LENGTH = 500

_ACTION_VERBS = re.compile(r"\b(?:run|fight|move|open|close|attack)\b", re.IGNORECASE)
_SPEECH_VERB = re.compile(r"\bsaid\b", re.IGNORECASE)


@dataclass(frozen=True)
class ContextClassification:
    """Sampling parameters chosen for one turn's context."""
    kind: str       # "dialogue" | "action" | "description" | "default"
    k: int
    tau: float


def classify(context_text: str, config: GateConfig) -> ContextClassification:
    """
    Pick k/tau for the context.

    Outside adaptive mode this always returns the configured values.
    Dialogue wins over action, action over long description.
    """
    if not config.adaptive:
        return ContextClassification("default", config.k, config.tau)

    if '"' in context_text or _SPEECH_VERB.search(context_text):
        kind = "dialogue"
    elif _ACTION_VERBS.search(context_text):
        kind = "action"
    elif len(context_text) > DESCRIPTIVE_LENGTH:
        kind = "description"
    else:
        return ContextClassification("default", config.k, config.tau)

    k, tau = ADAPTIVE_PARAMS[kind]
    return ContextClassification(kind, k, tau)


def synthesize(
    config: GateConfig,
    classification: Optional[ContextClassification] = None,
) -> str:
    """Build the directive text. No side effects."""
    if classification is not None:
        k, tau = classification.k, classification.tau
    else:
        k, tau = config.k, config.tau

    return (
        f"{DIRECTIVE_MARKER}\n"
        f"- mentally generate {k} distinct seamless candidate continuations\n"
        f"- for each candidate, estimate its probability p (how typical/likely it would be)\n"
        f"- only consider candidates where p < {tau} (from the unlikely tails of the distribution)\n"
        f"- randomly select one of these low-probability candidates\n"
        f"- output ONLY the selected continuation as your natural response\n"
        f"- {DIRECTIVE_CLOSING_PHRASE}, probabilities, or candidates in your output]"
    )


def publish_directive(store: CardStore, directive: str) -> GuidanceCard:
    """
    Cache the directive as the highest-priority card.

    An unchanged directive leaves the store alone. A changed one is
    removed and recreated, never edited in place. May raise
    ExternalStoreError.
    """
    existing = store.get(DIRECTIVE_CARD_TITLE)
    if existing is not None and existing.entry == directive:
        return existing

    while store.remove(DIRECTIVE_CARD_TITLE):
        pass

    card = store.create(
        GuidanceCard(
            title=DIRECTIVE_CARD_TITLE,
            entry=directive,
            type="System",
            keys="",
            description="Sampling directive - diversity enhancement",
        ),
        index=0,
    )
    logger.debug("Directive card published")
    return card
