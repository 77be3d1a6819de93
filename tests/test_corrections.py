"""
Tests for correction cards — one card per issue category, replaced
wholesale every cycle, tracked keys always matching the store.
"""

import pytest

from storygate.analyzer import analyze
from storygate.cards import ExternalStoreError, GuidanceCard, InMemoryCardStore
from storygate.corrections import (
    CARD_PREFIX,
    COHERENCE_KEY,
    GROUNDING_KEY,
    VARIETY_KEY,
    apply_corrections,
    build_correction_cards,
    cleanup,
)
from storygate.session import SessionState


ALL_ISSUES = analyze("The signal was still not there. The signal faded.", fatigue_threshold=2)
CLEAN = analyze("Rain fell on the roofs.")


def _correction_titles(store):
    return {t for t in store.titles() if t.startswith(CARD_PREFIX)}


class TestBuildCards:

    def test_one_card_per_category(self):
        titles = [c.title for c in build_correction_cards(ALL_ISSUES)]
        assert titles == [VARIETY_KEY, GROUNDING_KEY, COHERENCE_KEY]

    def test_clean_record_no_cards(self):
        assert build_correction_cards(CLEAN) == []

    def test_variety_names_top_five_words(self):
        text = " ".join(
            [w for w in ("amber", "bright", "cloud", "drift", "ember", "frost") for _ in range(3)]
        )
        cards = build_correction_cards(analyze(text, fatigue_threshold=3))
        assert len(cards) == 1
        entry = cards[0].entry
        assert "amber, bright, cloud, drift, ember" in entry
        assert "frost" not in entry

    def test_card_fields(self):
        card = build_correction_cards(ALL_ISSUES)[0]
        assert card.type == "guidance"
        assert card.keys == ""
        assert card.entry.startswith("[Style guidance:")


class TestApplyCorrections:

    def test_creates_and_tracks(self):
        store = InMemoryCardStore()
        session = SessionState()
        created = apply_corrections(ALL_ISSUES, store, session)

        assert set(created) == {VARIETY_KEY, GROUNDING_KEY, COHERENCE_KEY}
        assert session.active_correction_keys == set(created)
        assert _correction_titles(store) == set(created)

    def test_previous_cycle_removed(self):
        store = InMemoryCardStore()
        session = SessionState()
        apply_corrections(ALL_ISSUES, store, session)
        created = apply_corrections(CLEAN, store, session)

        assert created == []
        assert session.active_correction_keys == set()
        assert _correction_titles(store) == set()

    def test_category_disappears_when_fixed(self):
        store = InMemoryCardStore()
        session = SessionState()
        apply_corrections(ALL_ISSUES, store, session)
        apply_corrections(analyze("The system hummed."), store, session)

        assert _correction_titles(store) == {GROUNDING_KEY}
        assert session.active_correction_keys == {GROUNDING_KEY}

    def test_no_accumulation_over_cycles(self):
        store = InMemoryCardStore()
        session = SessionState()
        for _ in range(5):
            apply_corrections(ALL_ISSUES, store, session)
        assert len(store) == 3

    def test_cards_inserted_at_front(self):
        store = InMemoryCardStore([GuidanceCard("Lore", "Old lore")])
        session = SessionState()
        apply_corrections(ALL_ISSUES, store, session)
        assert store.titles()[-1] == "Lore"

    def test_unrelated_cards_untouched(self):
        store = InMemoryCardStore([GuidanceCard("Lore", "Old lore")])
        session = SessionState()
        apply_corrections(ALL_ISSUES, store, session)
        apply_corrections(CLEAN, store, session)
        assert store.titles() == ["Lore"]

    def test_stale_card_in_store_replaced(self):
        store = InMemoryCardStore([GuidanceCard(VARIETY_KEY, "stale", "guidance")])
        session = SessionState()
        apply_corrections(analyze("door door door door door", 3), store, session)

        assert store.titles().count(VARIETY_KEY) == 1
        assert store.get(VARIETY_KEY).entry != "stale"
        assert _correction_titles(store) == session.active_correction_keys == {VARIETY_KEY}

    def test_untracked_cards_swept_when_clean(self):
        store = InMemoryCardStore([
            GuidanceCard(GROUNDING_KEY, "old"),
            GuidanceCard(COHERENCE_KEY, "old"),
            GuidanceCard(COHERENCE_KEY, "older"),
            GuidanceCard("Lore", "Old lore"),
        ])
        session = SessionState()
        assert apply_corrections(CLEAN, store, session) == []
        assert store.titles() == ["Lore"]
        assert session.active_correction_keys == set()

    def test_tracked_keys_match_store_over_cycles(self):
        store = InMemoryCardStore([GuidanceCard(VARIETY_KEY, "stale")])
        session = SessionState()
        for record in (ALL_ISSUES, CLEAN, analyze("The system hummed."), ALL_ISSUES):
            apply_corrections(record, store, session)
            assert _correction_titles(store) == session.active_correction_keys
            assert len(store.titles()) == len(set(store.titles()))

    def test_refused_write_raises(self):
        with pytest.raises(ExternalStoreError):
            apply_corrections(ALL_ISSUES, InMemoryCardStore(enabled=False), SessionState())

    def test_cleanup_alone(self):
        store = InMemoryCardStore()
        session = SessionState()
        apply_corrections(ALL_ISSUES, store, session)
        cleanup(store, session)
        assert len(store) == 0
        assert session.active_correction_keys == set()
