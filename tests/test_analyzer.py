"""
Tests for the pattern analyzer — contradictions, fatigue, drift and
meta-awareness status.

All deterministic, no LLM, no session state.
"""

import pytest

from storygate.analyzer import (
    AnalysisRecord,
    MetaStatus,
    analyze,
    build_suggestions,
    detect_contradictions,
    detect_drift,
    meta_status,
    trace_fatigue,
)


# ============================================================
# CONTRADICTIONS
# ============================================================

class TestContradictions:
    """Temporal marker + negation in the same sentence."""

    def test_already_with_not(self):
        found = detect_contradictions("She had already not seen him. He waited.")
        assert found == ["She had already not seen him"]

    def test_contraction_negation(self):
        found = detect_contradictions("He didn't knock again")
        assert found == ["He didn't knock again"]

    def test_marker_without_negation(self):
        assert detect_contradictions("She was still there.") == []

    def test_negation_without_marker(self):
        assert detect_contradictions("He did not answer.") == []

    def test_case_insensitive(self):
        assert len(detect_contradictions("STILL he would NOT move.")) == 1

    def test_sentences_checked_independently(self):
        # marker and negation in different sentences: no contradiction
        assert detect_contradictions("It was already late. He did not care.") == []

    def test_segments_keep_original_case(self):
        found = detect_contradictions("The Queen had never returned again.")
        assert found == ["The Queen had never returned again"]


# ============================================================
# FATIGUE
# ============================================================

class TestFatigue:
    """Repeated content words."""

    def test_door_scenario(self):
        text = "The door opened. The door closed. The door creaked."
        assert trace_fatigue(text, threshold=3) == {"door": 3}

    def test_short_words_ignored(self):
        text = "the the the the the the cat cat cat cat cat"
        assert trace_fatigue(text, threshold=5) == {}

    def test_punctuation_stripped(self):
        text = "Light, light! LIGHT? light... light"
        assert trace_fatigue(text, threshold=5) == {"light": 5}

    def test_below_threshold_excluded(self):
        assert trace_fatigue("river river river river", threshold=5) == {}

    def test_worst_offender_first(self):
        text = "glow glow glow glow glow dark dark dark dark dark dark"
        result = trace_fatigue(text, threshold=5)
        assert list(result) == ["dark", "glow"]
        assert result["dark"] == 6

    @pytest.mark.parametrize("threshold", [1, 2, 3, 4, 5])
    def test_raising_threshold_never_adds_words(self, threshold):
        text = (
            "The shadow moved. The shadow waited. The shadow and the light "
            "argued, and the light won, and the shadow left the room room room."
        )
        lower = set(trace_fatigue(text, threshold))
        higher = set(trace_fatigue(text, threshold + 1))
        assert higher <= lower


# ============================================================
# DRIFT
# ============================================================

class TestDrift:
    """System-speak without grounded action."""

    def test_system_without_action(self):
        assert detect_drift("The system hummed quietly.") == ["The system hummed quietly"]

    def test_action_grounds_the_sentence(self):
        assert detect_drift("The signal moved across the screen.") == []

    def test_pure_dialogue_exempt(self):
        assert detect_drift('"The system is down,"') == []
        assert detect_drift('  "The protocol failed!"  ') == []

    def test_narration_before_quote_not_exempt(self):
        text = 'The system hummed as she said "hello"'
        assert detect_drift(text) == [text]

    def test_narration_after_quote_not_exempt(self):
        text = '"Down," she whispered to the system'
        assert detect_drift(text) == [text]

    def test_narration_around_two_quotes_is_not_pure_dialogue(self):
        text = '"Look," she whispered, "the protocol"'
        assert detect_drift(text) == [text]

    def test_plain_narrative(self):
        assert detect_drift("Rain fell on the old roofs.") == []


# ============================================================
# META STATUS
# ============================================================

class TestMetaStatus:

    def test_clean_text_suppressed(self):
        assert analyze("Rain fell on the roofs.").meta_status == MetaStatus.SUPPRESSED

    def test_meta_vocabulary_alone_suppressed(self):
        assert analyze("An echo returned from the valley.").meta_status == MetaStatus.SUPPRESSED

    def test_meta_vocabulary_plus_drift_flickers(self):
        # "loop" is both meta vocabulary and a system term
        assert analyze("The signal loop hummed.").meta_status == MetaStatus.FLICKER

    def test_contradictions_plus_drift_active(self):
        text = "He still did not know. She was already never sure. The system hummed."
        assert analyze(text).meta_status == MetaStatus.ACTIVE

    def test_contradictions_capped_at_two(self):
        contradictions = ["a", "b", "c", "d"]
        assert meta_status("", contradictions, {}, []) == MetaStatus.FLICKER


# ============================================================
# RECORD + SUGGESTIONS
# ============================================================

class TestAnalysisRecord:

    def test_record_keeps_fragment(self):
        record = analyze("Rain fell.")
        assert isinstance(record, AnalysisRecord)
        assert record.fragment == "Rain fell."
        assert record.has_issues is False

    def test_record_is_immutable(self):
        record = analyze("The door door door door door")
        with pytest.raises(Exception):
            record.fragment = "other"
        with pytest.raises(TypeError):
            record.fatigue["door"] = 1

    def test_to_dict(self):
        data = analyze("The system hummed.").to_dict()
        assert data["drift"] == ["The system hummed"]
        assert data["meta_status"] == "suppressed"
        assert "timestamp" in data

    def test_suggestions_order(self):
        record = analyze(
            "The signal was still not there. The signal faded.",
            fatigue_threshold=2,
        )
        suggestions = build_suggestions(record)
        assert suggestions[0].startswith("Contradiction:")
        assert suggestions[1].startswith("Ungrounded:")
        assert suggestions[-1] == 'Overused: "signal" (2x) - use synonyms'

    def test_no_issues_no_suggestions(self):
        assert build_suggestions(analyze("Rain fell on the roofs.")) == []
