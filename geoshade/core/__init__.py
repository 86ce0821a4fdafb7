"""
Core domain models and pure functions for GeoShade.

This module contains the domain models and pure business logic
that are independent of external I/O and infrastructure concerns.
"""

from .models import (
    AdditionalData, DataSource, DATA_SOURCES, DEFAULT_COLOR, LatLng, Polygon,
    SampleKind, SamplePoint, ThresholdRule, TimeWindow,
)
from .geometry import validate, derive_sample_points
from .threshold import evaluate, RuleMatch
from .time_window import TimeWindowState

__all__ = [
    "AdditionalData", "DataSource", "DATA_SOURCES", "DEFAULT_COLOR", "LatLng", "Polygon",
    "SampleKind", "SamplePoint", "ThresholdRule", "TimeWindow",
    "validate", "derive_sample_points", "evaluate", "RuleMatch", "TimeWindowState",
]
