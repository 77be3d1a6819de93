"""
Correction Manager — Guidance Cards That Steer the Next Attempt

After each analysis cycle, the previous cycle's correction cards are
removed and one card is written per issue category still present:

  Variety   — overused words (names the top five)
  Grounding — drift into abstract system-speak
  Coherence — temporal contradictions

Cards are never edited in place and never accumulate. A category's
card disappears the first cycle it is no longer detected.
"""

from __future__ import annotations

import logging

from storygate.analyzer import AnalysisRecord
from storygate.cards import CardStore, GuidanceCard
from storygate.session import SessionState

logger = logging.getLogger(__name__)

CARD_PREFIX = "DynamicCorrection_"
VARIETY_KEY = f"{CARD_PREFIX}Variety"
GROUNDING_KEY = f"{CARD_PREFIX}Grounding"
COHERENCE_KEY = f"{CARD_PREFIX}Coherence"

TOP_FATIGUE_WORDS = 5

VARIETY_GUIDANCE = (
    "[Style guidance: Avoid repeating these overused words: {words}. "
    "Use synonyms, varied phrasing, and fresh descriptions.]"
)
GROUNDING_GUIDANCE = (
    "[Style guidance: Focus on concrete, physical actions. Show visible "
    "responses, character decisions, and tangible events. Avoid abstract "
    "system references.]"
)
COHERENCE_GUIDANCE = (
    "[Style guidance: Maintain logical consistency. Check temporal sequence "
    "(before/after/already). Ensure cause and effect make sense. Verify "
    "character knowledge is consistent.]"
)


def build_correction_cards(record: AnalysisRecord) -> list[GuidanceCard]:
    """One card per issue category present in `record`. Pure."""
    cards = []

    if record.fatigue:
        words = list(record.fatigue)[:TOP_FATIGUE_WORDS]
        cards.append(GuidanceCard(
            title=VARIETY_KEY,
            entry=VARIETY_GUIDANCE.format(words=", ".join(words)),
            type="guidance",
            description="Auto-generated variety correction",
        ))

    if record.drift:
        cards.append(GuidanceCard(
            title=GROUNDING_KEY,
            entry=GROUNDING_GUIDANCE,
            type="guidance",
            description="Auto-generated grounding correction",
        ))

    if record.contradictions:
        cards.append(GuidanceCard(
            title=COHERENCE_KEY,
            entry=COHERENCE_GUIDANCE,
            type="guidance",
            description="Auto-generated coherence correction",
        ))

    return cards


def _remove_all(store: CardStore, title: str) -> None:
    while store.remove(title):
        pass


def cleanup(store: CardStore, session: SessionState) -> None:
    """
    Remove every correction card in the store.

    Untracked ones too: a persisting store can hold cards from an
    earlier session, and tracked keys must match the store exactly.
    """
    stale = {c.title for c in store.find_all(lambda c: c.title.startswith(CARD_PREFIX))}
    for key in sorted(stale | session.active_correction_keys):
        _remove_all(store, key)
    session.active_correction_keys.clear()


def apply_corrections(
    record: AnalysisRecord,
    store: CardStore,
    session: SessionState,
) -> list[str]:
    """
    Replace last cycle's corrections with this cycle's.

    Cleanup runs even when nothing new is detected. Returns the keys
    created. May raise ExternalStoreError; the gate handles it.
    """
    cleanup(store, session)

    created = []
    for card in build_correction_cards(record):
        _remove_all(store, card.title)
        store.create(card, index=0)
        session.active_correction_keys.add(card.title)
        created.append(card.title)

    if created:
        logger.debug("Corrections applied: %s", ", ".join(created))
    return created
