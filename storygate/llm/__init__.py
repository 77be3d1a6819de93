"""
Upstream Generator — Abstract Interface

Every generation request goes through this interface. Swap providers
by changing STORYGATE_LLM_PROVIDER in env.

The gate assumes nothing about the response beyond "some text":
empty strings are valid candidates, and there is no structured
error channel.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class LLMProvider(ABC):
    """Abstract base for upstream generators."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.9,
    ) -> str:
        """Generate a continuation for `prompt` (context + directive)."""
        ...
