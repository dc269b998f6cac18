"""Tests for core.config — defaults, environment overrides, validation."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from core.config import ExtractionConfig
from core.extraction import extraction_config as defaults


class TestExtractionConfig:
    def test_defaults(self, monkeypatch):
        for name in ("RS_MIN_VERTICAL_GAP", "RS_SNAP_MAX_ITERATIONS", "RS_LOG_FORMAT", "RS_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        cfg = ExtractionConfig()
        assert cfg.min_vertical_gap == defaults.MIN_VERTICAL_GAP
        assert cfg.snap_max_iterations == defaults.SNAP_MAX_ITERATIONS
        assert cfg.drop_contained_regions is True
        assert cfg.contained_area_ratio == defaults.CONTAINED_AREA_RATIO
        assert cfg.log_format == "text"
        assert cfg.log_level == "INFO"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("RS_MIN_VERTICAL_GAP", "8.5")
        monkeypatch.setenv("RS_SNAP_MAX_ITERATIONS", "5")
        monkeypatch.setenv("RS_LOG_FORMAT", "json")
        monkeypatch.setenv("RS_LOG_LEVEL", "DEBUG")
        cfg = ExtractionConfig()
        assert cfg.min_vertical_gap == 8.5
        assert cfg.snap_max_iterations == 5
        assert cfg.log_format == "json"
        assert cfg.log_level == "DEBUG"

    def test_invalid_env_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv("RS_MIN_VERTICAL_GAP", "wide")
        monkeypatch.setenv("RS_SNAP_MAX_ITERATIONS", "3.5")
        with caplog.at_level(logging.WARNING, logger="core.config"):
            cfg = ExtractionConfig()
        assert cfg.min_vertical_gap == defaults.MIN_VERTICAL_GAP
        assert cfg.snap_max_iterations == defaults.SNAP_MAX_ITERATIONS
        assert "RS_MIN_VERTICAL_GAP" in caplog.text
        assert "RS_SNAP_MAX_ITERATIONS" in caplog.text

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setenv("RS_MIN_VERTICAL_GAP", "8.5")
        assert ExtractionConfig(min_vertical_gap=2.0).min_vertical_gap == 2.0

    @pytest.mark.parametrize("kwargs", [
        {"min_vertical_gap": -1.0},
        {"snap_max_iterations": 0},
        {"contained_area_ratio": 0.0},
        {"contained_area_ratio": 1.5},
    ])
    def test_validation(self, kwargs):
        with pytest.raises(ValidationError):
            ExtractionConfig(**kwargs)
