"""
Session Registry — In-Memory Gate Sessions for the HTTP Host

Each session bundles its own SessionState, card store and gate. The
registry is LRU-bounded: when full, the least recently used session
is dropped.

The registry lock only guards the mapping. Work on one session is
serialized by that session's asyncio lock, so a session never runs
two turns at once.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from storygate.cards import InMemoryCardStore
from storygate.config import GateConfig
from storygate.gate import QualityGate
from storygate.session import SessionState

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 1000


@dataclass
class GateSession:
    session_id: str
    gate: QualityGate
    state: SessionState = field(default_factory=SessionState)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_used: float = field(default_factory=time.time)

    @property
    def store(self) -> InMemoryCardStore:
        return self.gate.store


class SessionRegistry:
    """LRU-bounded map of session id → GateSession."""

    def __init__(
        self,
        config: GateConfig,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        debug: bool = False,
    ):
        self.config = config
        self.max_sessions = max_sessions
        self.debug = debug
        self._sessions: OrderedDict[str, GateSession] = OrderedDict()
        self._lock = threading.Lock()

    def create(self, cards_enabled: bool = True) -> GateSession:
        session_id = secrets.token_urlsafe(12)
        gate = QualityGate(
            self.config,
            InMemoryCardStore(enabled=cards_enabled),
            debug=self.debug,
        )
        session = GateSession(session_id=session_id, gate=gate)

        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info("Session evicted (LRU)", extra={"session_id": evicted})
            self._sessions[session_id] = session
        return session

    def get(self, session_id: str) -> Optional[GateSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
                session.last_used = time.time()
            return session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def cleanup_stale(self, max_age: float = 86400) -> int:
        """Drop sessions idle for longer than `max_age` seconds."""
        cutoff = time.time() - max_age
        with self._lock:
            stale = [k for k, s in self._sessions.items() if s.last_used < cutoff]
            for k in stale:
                del self._sessions[k]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
