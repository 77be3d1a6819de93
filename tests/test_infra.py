"""
Tests for the supporting infrastructure: structured logging, the
diagnostics sink, the card store, the session registry and the
provider circuit breaker.
"""

import json
import logging
import time

import pytest

from storygate.cards import ExternalStoreError, GuidanceCard, InMemoryCardStore
from storygate.config import GateConfig
from storygate.llm.factory import get_provider
from storygate.llm.gemini import CircuitBreaker, GeminiProvider
from storygate.logging import DiagnosticLog, JSONFormatter, get_logger
from storygate.registry import SessionRegistry


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="storygate.gate", level=logging.WARNING, pathname=__file__,
        lineno=1, msg="Quality below threshold", args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_core_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "storygate.gate"
        assert entry["message"] == "Quality below threshold"
        assert "timestamp" in entry

    def test_known_extras_included(self):
        entry = json.loads(JSONFormatter().format(
            _record(severity="warn", average=1.6, issues=["a", "b"]),
        ))
        assert entry["severity"] == "warn"
        assert entry["average"] == 1.6
        assert entry["issues"] == ["a", "b"]

    def test_unknown_extras_dropped(self):
        entry = json.loads(JSONFormatter().format(_record(secret="nope")))
        assert "secret" not in entry

    def test_logger_namespace(self):
        assert get_logger("api").name == "storygate.api"


class TestDiagnosticLog:

    def test_disabled_emits_nothing(self, caplog):
        diag = DiagnosticLog("test", enabled=False)
        with caplog.at_level(logging.DEBUG, logger="storygate"):
            assert diag.emit("hidden", "warn") is False
        assert caplog.records == []

    def test_enabled_maps_severity(self, caplog):
        diag = DiagnosticLog("test", enabled=True)
        with caplog.at_level(logging.DEBUG, logger="storygate"):
            assert diag.emit("done", "success", average=4.4) is True
            diag.emit("careful", "warn")
            diag.emit("broken", "error")

        levels = [(r.getMessage(), r.levelno, r.severity) for r in caplog.records]
        assert levels == [
            ("done", logging.INFO, "success"),
            ("careful", logging.WARNING, "warn"),
            ("broken", logging.ERROR, "error"),
        ]
        assert caplog.records[0].average == 4.4


class TestCardStore:

    def test_index_clamped(self):
        store = InMemoryCardStore([GuidanceCard("A", "a")])
        store.create(GuidanceCard("B", "b"), index=99)
        store.create(GuidanceCard("C", "c"), index=-5)
        assert store.titles() == ["C", "A", "B"]

    def test_non_string_fields_rejected(self):
        with pytest.raises(TypeError):
            InMemoryCardStore().create(GuidanceCard("A", 42))

    def test_non_integer_index_rejected(self):
        with pytest.raises(TypeError):
            InMemoryCardStore().create(GuidanceCard("A", "a"), index="0")

    def test_remove_first_match_only(self):
        store = InMemoryCardStore([GuidanceCard("A", "1"), GuidanceCard("A", "2")])
        assert store.remove("A") is True
        assert store.get("A").entry == "2"
        assert store.remove("missing") is False

    def test_disabled_store_refuses_writes(self):
        store = InMemoryCardStore(enabled=False)
        with pytest.raises(ExternalStoreError):
            store.create(GuidanceCard("A", "a"))
        with pytest.raises(ExternalStoreError):
            store.remove("A")
        assert store.find_all(lambda c: True) == []


class TestSessionRegistry:

    def test_create_and_get(self):
        registry = SessionRegistry(GateConfig())
        session = registry.create()
        assert registry.get(session.session_id) is session
        assert session.gate.config == GateConfig()
        assert len(registry) == 1

    def test_sessions_are_isolated(self):
        registry = SessionRegistry(GateConfig())
        a, b = registry.create(), registry.create()
        assert a.session_id != b.session_id
        assert a.state is not b.state
        assert a.store is not b.store

    def test_lru_eviction(self):
        registry = SessionRegistry(GateConfig(), max_sessions=2)
        first = registry.create()
        second = registry.create()
        registry.get(first.session_id)   # first is now most recent
        registry.create()

        assert registry.get(first.session_id) is first
        assert registry.get(second.session_id) is None
        assert len(registry) == 2

    def test_delete(self):
        registry = SessionRegistry(GateConfig())
        session = registry.create()
        assert registry.delete(session.session_id) is True
        assert registry.delete(session.session_id) is False

    def test_cleanup_stale(self):
        registry = SessionRegistry(GateConfig())
        session = registry.create()
        session.last_used = time.time() - 100
        registry.create()
        assert registry.cleanup_stale(max_age=50) == 1
        assert len(registry) == 1

    def test_cards_disabled(self):
        session = SessionRegistry(GateConfig()).create(cards_enabled=False)
        assert session.store.enabled is False


class TestCircuitBreaker:

    def test_opens_after_threshold(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.state == "closed"
        cb.record_failure()
        assert cb.is_open

    def test_success_resets(self):
        cb = CircuitBreaker(failure_threshold=2)
        cb.record_failure()
        cb.record_success()
        cb.record_failure()
        assert cb.state == "closed"

    def test_half_open_after_timeout(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        assert cb.state == "half-open"
        assert not cb.is_open


class TestProviderFactory:

    def test_gemini_provider(self):
        assert isinstance(get_provider("gemini"), GeminiProvider)

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            get_provider("nonexistent")
