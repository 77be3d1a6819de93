"""
Gemini Provider — narrative generation through the google.genai SDK.

The client is created lazily, so the gate and the API load without an
API key and only fail on an actual generation request.

- Retries transient errors (rate limits, 5xx, timeouts) with backoff
- Falls back to FALLBACK_MODEL when the primary model keeps failing
- Circuit breaker: after repeated failures, fail fast for a while so a
  turn spends its regeneration budget on empty candidates instead of
  waiting on timeouts
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Optional

from google import genai
from google.genai import types

from storygate.llm import LLMProvider

logger = logging.getLogger("storygate.llm.gemini")

FALLBACK_MODEL = "gemini-2.5-flash"

_TRANSIENT_MARKERS = (
    "429", "500", "503", "rate", "quota", "timeout",
    "connection", "unavailable", "overloaded",
)

_CB_FAILURE_THRESHOLD = 3
_CB_RECOVERY_TIMEOUT = 60


class CircuitOpenError(Exception):
    """Raised instead of calling the model while the breaker is open."""


class CircuitBreaker:
    """closed → open after N consecutive failures → half-open after a cooldown."""

    def __init__(
        self,
        failure_threshold: int = _CB_FAILURE_THRESHOLD,
        recovery_timeout: float = _CB_RECOVERY_TIMEOUT,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._failures = 0
        self._opened_at: float = 0
        self._state = "closed"

    @property
    def state(self) -> str:
        if self._state == "open" and time.monotonic() - self._opened_at >= self.recovery_timeout:
            self._state = "half-open"
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    def record_success(self) -> None:
        self._failures = 0
        self._state = "closed"

    def record_failure(self) -> None:
        self._failures += 1
        if self._failures >= self.failure_threshold:
            self._state = "open"
            self._opened_at = time.monotonic()
            logger.warning(
                "Circuit breaker OPEN after %d consecutive generation failures; "
                "failing fast for %ds",
                self._failures, self.recovery_timeout,
            )


def _is_transient(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


class GeminiProvider(LLMProvider):
    """Google Gemini generator with retry, model fallback and circuit breaker."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self._api_key = api_key or os.getenv("GEMINI_API_KEY", "")
        self._model = model or os.getenv("GEMINI_MODEL", FALLBACK_MODEL)
        self._client: Optional[genai.Client] = None
        self.circuit_breaker = CircuitBreaker()

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self._api_key:
                raise RuntimeError(
                    "GEMINI_API_KEY not set. Get one from "
                    "https://aistudio.google.com/apikey"
                )
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def _call_model(
        self,
        model: str,
        prompt: str,
        config: types.GenerateContentConfig,
        max_retries: int,
    ) -> str:
        client = self._get_client()
        for attempt in range(max_retries):
            try:
                response = await client.aio.models.generate_content(
                    model=model,
                    contents=prompt,
                    config=config,
                )
                return response.text or ""
            except Exception as e:
                if _is_transient(e) and attempt < max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                    continue
                raise
        raise RuntimeError(f"{model}: no attempts made")

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.9,
    ) -> str:
        if self.circuit_breaker.is_open:
            raise CircuitOpenError(
                "Generator circuit breaker is open after repeated failures"
            )

        config = types.GenerateContentConfig(
            temperature=temperature,
            system_instruction=system_instruction,
        )

        try:
            result = await self._call_model(self._model, prompt, config, max_retries=2)
        except Exception as primary_err:
            if self._model == FALLBACK_MODEL:
                self.circuit_breaker.record_failure()
                raise
            logger.warning(
                "Primary model %s failed (%s), falling back to %s",
                self._model, primary_err, FALLBACK_MODEL,
            )
            try:
                result = await self._call_model(FALLBACK_MODEL, prompt, config, max_retries=1)
            except Exception as fallback_err:
                logger.error("Fallback model %s also failed: %s", FALLBACK_MODEL, fallback_err)
                self.circuit_breaker.record_failure()
                raise fallback_err from primary_err

        self.circuit_breaker.record_success()
        return result
