"""
Tests for gate configuration — validation and environment loading.
"""

import pytest

from storygate.config import ConfigurationError, GateConfig, load_gate_config


class TestGateConfig:

    def test_defaults(self):
        config = GateConfig()
        assert (config.k, config.tau) == (5, 0.10)
        assert config.adaptive is False
        assert config.fatigue_threshold == 5
        assert config.quality_threshold == 2.5
        assert config.max_regen_attempts == 2
        assert config.enable_dynamic_correction is True

    def test_frozen(self):
        with pytest.raises(Exception):
            GateConfig().k = 9

    @pytest.mark.parametrize("kwargs", [
        {"k": 0},
        {"k": True},
        {"k": 2.5},
        {"tau": 0},
        {"tau": 1.0},
        {"tau": -0.1},
        {"fatigue_threshold": 0},
        {"quality_threshold": float("nan")},
        {"max_regen_attempts": -1},
        {"adaptive": "yes"},
        {"enable_dynamic_correction": 1},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            GateConfig(**kwargs)

    def test_zero_regenerations_allowed(self):
        assert GateConfig(max_regen_attempts=0).max_regen_attempts == 0


class TestLoadGateConfig:

    def test_empty_env_gives_defaults(self):
        assert load_gate_config({}) == GateConfig()

    def test_parses_values(self):
        config = load_gate_config({
            "STORYGATE_K": "7",
            "STORYGATE_TAU": "0.2",
            "STORYGATE_ADAPTIVE": "yes",
            "STORYGATE_FATIGUE_THRESHOLD": "3",
            "STORYGATE_QUALITY_THRESHOLD": "3.5",
            "STORYGATE_MAX_REGEN_ATTEMPTS": "0",
            "STORYGATE_DYNAMIC_CORRECTION": "off",
        })
        assert config == GateConfig(
            k=7, tau=0.2, adaptive=True, fatigue_threshold=3,
            quality_threshold=3.5, max_regen_attempts=0,
            enable_dynamic_correction=False,
        )

    def test_blank_values_ignored(self):
        assert load_gate_config({"STORYGATE_K": "  "}) == GateConfig()

    @pytest.mark.parametrize("env", [
        {"STORYGATE_K": "five"},
        {"STORYGATE_TAU": "abc"},
        {"STORYGATE_ADAPTIVE": "maybe"},
        {"STORYGATE_TAU": "1.5"},
        {"STORYGATE_MAX_REGEN_ATTEMPTS": "-2"},
    ])
    def test_malformed_values_raise(self, env):
        with pytest.raises(ConfigurationError):
            load_gate_config(env)
