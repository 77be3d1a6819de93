"""
Upstream generator factory.
"""

from __future__ import annotations

from typing import Optional

from storygate.config import settings
from storygate.llm import LLMProvider

PROVIDERS = ("gemini",)


def get_provider(provider_name: Optional[str] = None) -> LLMProvider:
    """Return the generator named by `provider_name` or STORYGATE_LLM_PROVIDER."""
    name = (provider_name or settings.LLM_PROVIDER).lower()
    if name == "gemini":
        from storygate.llm.gemini import GeminiProvider
        return GeminiProvider(
            api_key=settings.GEMINI_API_KEY or None,
            model=settings.GEMINI_MODEL,
        )
    raise ValueError(
        f"Unknown LLM provider: {name!r} (expected one of {', '.join(PROVIDERS)})"
    )
