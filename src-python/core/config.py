"""Global extraction configuration."""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, Field

from core.extraction import extraction_config as defaults

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a number")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer")
        return default


class ExtractionConfig(BaseModel):
    """Runtime settings for the correction pipeline — loaded once at startup.

    Algorithm constants live in :mod:`core.extraction.extraction_config`;
    only the knobs an operator is expected to turn are exposed here.
    """

    # Minimum vertical gap between horizontally overlapping regions
    # (normalized units).  Also caps descender growth.
    min_vertical_gap: float = Field(
        default_factory=lambda: _env_float("RS_MIN_VERTICAL_GAP", defaults.MIN_VERTICAL_GAP),
        ge=0.0,
    )

    # Expansion passes per box before the snapper stops converging.
    snap_max_iterations: int = Field(
        default_factory=lambda: _env_int("RS_SNAP_MAX_ITERATIONS", defaults.SNAP_MAX_ITERATIONS),
        ge=1,
    )

    # Collapse proposals that duplicate another box before snapping.
    drop_contained_regions: bool = True
    contained_area_ratio: float = Field(
        default=defaults.CONTAINED_AREA_RATIO, gt=0.0, le=1.0,
    )

    # Logging
    log_format: str = Field(                          # "text" | "json"
        default_factory=lambda: os.environ.get("RS_LOG_FORMAT", "text"),
    )
    log_level: str = Field(
        default_factory=lambda: os.environ.get("RS_LOG_LEVEL", "INFO"),
    )


# Singleton, loaded once at import
config = ExtractionConfig()
