"""
StoryGate Configuration

Two layers:
  - Settings:   host options (LLM provider, server, logging) loaded from env.
  - GateConfig: the gate's tuning knobs. Validated once at load, frozen
                for the lifetime of a turn.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(ValueError):
    """Raised when gate configuration is out of bounds or unparsable."""


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    VERSION: str = "2.1.0"

    # --- Upstream generator ---
    LLM_PROVIDER: str = os.getenv("STORYGATE_LLM_PROVIDER", "gemini")
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    # --- Diagnostics ---
    DEBUG_LOGGING: bool = os.getenv("STORYGATE_DEBUG", "false").lower() == "true"

    # --- Sessions ---
    MAX_SESSIONS: int = int(os.getenv("STORYGATE_MAX_SESSIONS", "1000"))

    # --- Server ---
    HOST: str = os.getenv("STORYGATE_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("STORYGATE_PORT", "8000"))

    # --- CORS ---
    CORS_ORIGINS: str = os.getenv("STORYGATE_CORS_ORIGINS", "*")


settings = Settings()


# ============================================================
# GATE CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class GateConfig:
    """
    Tuning knobs for one gate.

    k, tau:                 sampling directive parameters
    adaptive:               re-derive k/tau from the context each turn
    fatigue_threshold:      occurrences before a word counts as overused
    quality_threshold:      minimum average score to accept
    max_regen_attempts:     regenerations allowed per turn
    enable_dynamic_correction: write correction cards after each cycle
    """

    k: int = 5
    tau: float = 0.10
    adaptive: bool = False
    fatigue_threshold: int = 5
    quality_threshold: float = 2.5
    max_regen_attempts: int = 2
    enable_dynamic_correction: bool = True

    def __post_init__(self):
        if not _is_int(self.k) or self.k < 1:
            raise ConfigurationError(f"k must be an integer >= 1, got {self.k!r}")
        if not _is_real(self.tau) or not 0 < self.tau < 1:
            raise ConfigurationError(f"tau must be in (0, 1), got {self.tau!r}")
        if not _is_int(self.fatigue_threshold) or self.fatigue_threshold < 1:
            raise ConfigurationError(
                f"fatigue_threshold must be an integer >= 1, got {self.fatigue_threshold!r}"
            )
        if not _is_real(self.quality_threshold) or not math.isfinite(self.quality_threshold):
            raise ConfigurationError(
                f"quality_threshold must be a finite number, got {self.quality_threshold!r}"
            )
        if not _is_int(self.max_regen_attempts) or self.max_regen_attempts < 0:
            raise ConfigurationError(
                f"max_regen_attempts must be an integer >= 0, got {self.max_regen_attempts!r}"
            )
        for name in ("adaptive", "enable_dynamic_correction"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigurationError(f"{name} must be a boolean")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_real(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# Environment variable → (field, parser)
_ENV_FIELDS = {
    "STORYGATE_K": ("k", int),
    "STORYGATE_TAU": ("tau", float),
    "STORYGATE_ADAPTIVE": ("adaptive", "bool"),
    "STORYGATE_FATIGUE_THRESHOLD": ("fatigue_threshold", int),
    "STORYGATE_QUALITY_THRESHOLD": ("quality_threshold", float),
    "STORYGATE_MAX_REGEN_ATTEMPTS": ("max_regen_attempts", int),
    "STORYGATE_DYNAMIC_CORRECTION": ("enable_dynamic_correction", "bool"),
}

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def load_gate_config(env: Optional[Mapping[str, str]] = None) -> GateConfig:
    """
    Build a GateConfig from environment variables.

    Unset variables fall back to the defaults. Any malformed value raises
    ConfigurationError here, never mid-turn.
    """
    env = os.environ if env is None else env
    values = {}

    for var, (name, parser) in _ENV_FIELDS.items():
        raw = env.get(var)
        if raw is None or raw.strip() == "":
            continue
        raw = raw.strip()
        if parser == "bool":
            lowered = raw.lower()
            if lowered in _TRUTHY:
                values[name] = True
            elif lowered in _FALSY:
                values[name] = False
            else:
                raise ConfigurationError(f"{var} must be a boolean, got {raw!r}")
            continue
        try:
            values[name] = parser(raw)
        except ValueError as e:
            raise ConfigurationError(f"{var} is not a valid {parser.__name__}: {raw!r}") from e

    return GateConfig(**values)
